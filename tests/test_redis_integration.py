from __future__ import annotations

import os
from uuid import uuid4

import pytest

from blackjack.api.models import Card, SessionCreate, SessionFilter
from blackjack.errors import InvalidUser
from blackjack.session_ops import SessionOperations
from blackjack.session_store import SessionStore


@pytest.mark.asyncio
async def test_session_roundtrip_against_live_redis_env_gated() -> None:
    """Exercise the store against a real Redis server.

    Opt-in: BLACKJACK_REDIS_INTEGRATION=1 (REDIS_URL defaults to localhost).
    Uses a throwaway key prefix and removes its own keys.
    """

    if os.environ.get("BLACKJACK_REDIS_INTEGRATION") != "1":
        pytest.skip("Set BLACKJACK_REDIS_INTEGRATION=1 to run against a live Redis")

    from blackjack.infra.redis_client import create_redis

    r = create_redis()
    prefix = f"blackjack-it-{uuid4().hex[:8]}"
    store = SessionStore(r=r, key_prefix=prefix)
    ops = SessionOperations(store)

    try:
        _, err = await store.create(SessionCreate(connection_id="c1", game="t1"))
        assert err is None

        merged, err = await ops.add_cards("c1", [Card(display="A", values=[1, 11]), Card(display="K", values=[10])])
        assert err is None
        assert [c.display for c in merged] == ["A", "K"]

        sums, err = await ops.get_cards_sums(SessionFilter(connection_id="c1"))
        assert err is None
        assert sums == (11, 21)

        removed, err = await store.purge_connections({"c1"})
        assert err is None
        assert removed == 1

        _, err = await store.get_meta(SessionFilter(connection_id="c1"))
        assert isinstance(err, InvalidUser)
    finally:
        keys = [k async for k in r.scan_iter(match=f"{prefix}:*")]
        if keys:
            await r.delete(*keys)
        await r.aclose()
