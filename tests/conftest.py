from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import fakeredis
import pytest
from fastapi.testclient import TestClient

from blackjack.session_ops import SessionOperations
from blackjack.session_store import SessionStore


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs (REDIS_URL for the live-Redis integration test).

    In CI, we *don't* auto-load `.env` by default so the integration test stays
    skipped unless explicitly opted-in with BLACKJACK_LOAD_DOTENV_FOR_TESTS=1.
    """

    if os.environ.get("CI") and os.environ.get("BLACKJACK_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@pytest.fixture()
def redis_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture()
def r(redis_server: fakeredis.FakeServer) -> fakeredis.FakeAsyncRedis:
    return fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)


@pytest.fixture()
def store(r: fakeredis.FakeAsyncRedis) -> SessionStore:
    return SessionStore(r=r)


@pytest.fixture()
def ops(store: SessionStore) -> SessionOperations:
    return SessionOperations(store)


@pytest.fixture()
def client_and_redis(redis_server: fakeredis.FakeServer) -> Generator[tuple[TestClient, fakeredis.FakeRedis], None, None]:
    """FastAPI TestClient wired to fakeredis, plus a sync view of the same server for assertions."""

    from blackjack.api.deps import get_redis
    from blackjack.main import app

    async def _override() -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
        # Built per request so the async client binds to the app's event loop.
        yield fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)

    app.dependency_overrides[get_redis] = _override
    with TestClient(app) as c:
        yield c, fakeredis.FakeRedis(server=redis_server, decode_responses=True)
    app.dependency_overrides.clear()
