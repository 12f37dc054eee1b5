from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Settings:
    redis_url: str
    key_prefix: str
    log_level: str
    # Optimistic-transaction retries before an update gives up with StoreError.
    watch_retries: int
    # API processes sharing the store; the stale sweep only sees its own sockets.
    replicas: int


def settings_from_env() -> Settings:
    return Settings(
        redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
        key_prefix=os.environ.get("BLACKJACK_KEY_PREFIX", "blackjack"),
        log_level=os.environ.get("BLACKJACK_LOG_LEVEL", "INFO").upper(),
        watch_retries=int(os.environ.get("BLACKJACK_WATCH_RETRIES", "8")),
        replicas=int(os.environ.get("BLACKJACK_REPLICAS", "1")),
    )
