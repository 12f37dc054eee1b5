from __future__ import annotations

from collections.abc import AsyncGenerator

import redis.asyncio as redis
from fastapi import Depends

from blackjack.infra.redis_client import create_redis
from blackjack.session_ops import SessionOperations
from blackjack.session_store import SessionStore
from blackjack.settings import settings_from_env


async def get_redis() -> AsyncGenerator[redis.Redis, None]:
    client = create_redis()
    try:
        yield client
    finally:
        await client.aclose()


def get_store(r: redis.Redis = Depends(get_redis)) -> SessionStore:
    settings = settings_from_env()
    return SessionStore(r=r, key_prefix=settings.key_prefix, watch_retries=settings.watch_retries)


def get_ops(store: SessionStore = Depends(get_store)) -> SessionOperations:
    return SessionOperations(store)
