from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import uuid4

import redis.asyncio as redis
from redis.exceptions import WatchError

from blackjack.api.models import (
    Card,
    DeleteResult,
    PlayerMeta,
    PlayerSession,
    SessionCreate,
    SessionFilter,
    SessionPatch,
)
from blackjack.errors import InvalidUser, NotFound, StoreError, VersionConflict
from blackjack.result import guarded

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(tz=UTC)


class SessionStore:
    """Sole owner of the Redis handle for player sessions.

    Layout (with the default prefix):
      - `blackjack:session:{id}`: JSON document (PlayerSession)
      - `blackjack:sessions`: set of all session ids
      - `blackjack:conn:{connection_id}`: session id bound to a live connection

    Single-document writes are atomic (WATCH/MULTI). Nothing here spans two
    documents, and composed read-then-write flows live in `SessionOperations`.
    Every public method returns a `Result`; none of them raise.
    """

    def __init__(self, *, r: redis.Redis, key_prefix: str = "blackjack", watch_retries: int = 8) -> None:
        self._r = r
        self._prefix = key_prefix
        self._watch_retries = watch_retries

    @property
    def sessions_key(self) -> str:
        return f"{self._prefix}:sessions"

    def session_key(self, session_id: str) -> str:
        return f"{self._prefix}:session:{session_id}"

    def connection_key(self, connection_id: str) -> str:
        return f"{self._prefix}:conn:{connection_id}"

    # -- lookups ---------------------------------------------------------

    async def _load(self, session_id: str) -> PlayerSession | None:
        raw = await self._r.get(self.session_key(session_id))
        if not raw:
            return None
        return PlayerSession.model_validate_json(raw)

    async def _candidate_ids(self, flt: SessionFilter) -> list[str]:
        # Narrow via the cheapest index available; `flt.matches` does the real check.
        if flt.id is not None:
            return [flt.id]
        if flt.connection_id is not None:
            sid = await self._r.get(self.connection_key(flt.connection_id))
            return [sid] if sid else []
        if flt.connection_ids is not None:
            if not flt.connection_ids:
                return []
            sids = await self._r.mget([self.connection_key(c) for c in sorted(flt.connection_ids)])
            return [s for s in sids if s]
        return sorted(await self._r.smembers(self.sessions_key))

    async def _find_all(self, flt: SessionFilter) -> list[PlayerSession]:
        out: list[PlayerSession] = []
        for sid in await self._candidate_ids(flt):
            session = await self._load(sid)
            if session is not None and flt.matches(session):
                out.append(session)
        out.sort(key=lambda s: s.created_at)
        return out

    async def _find_one(self, flt: SessionFilter) -> PlayerSession | None:
        found = await self._find_all(flt)
        return found[0] if found else None

    # -- writes ----------------------------------------------------------

    async def _commit(
        self,
        *,
        session_id: str,
        flt: SessionFilter,
        patch: SessionPatch,
        expected_version: int | None,
    ) -> PlayerSession | None:
        """One optimistic attempt. Returns None if the document no longer matches."""

        key = self.session_key(session_id)
        async with self._r.pipeline(transaction=True) as pipe:
            await pipe.watch(key)
            raw = await pipe.get(key)
            if not raw:
                return None
            current = PlayerSession.model_validate_json(raw)
            if not flt.matches(current):
                return None
            if expected_version is not None and current.version != expected_version:
                raise VersionConflict(f"expected version {expected_version}, found {current.version}")

            updated = patch.apply(current)
            updated.version = current.version + 1
            updated.last_updated_at = _now()

            old_cid = current.connection_id
            new_cid = updated.connection_id
            if new_cid is not None and new_cid != old_cid:
                await pipe.watch(self.connection_key(new_cid))
                owner = await pipe.get(self.connection_key(new_cid))
                if owner is not None and owner != session_id:
                    raise StoreError(f"connection {new_cid} is already bound to another session")

            pipe.multi()
            pipe.set(key, updated.model_dump_json())
            if old_cid != new_cid:
                if old_cid is not None:
                    pipe.delete(self.connection_key(old_cid))
                if new_cid is not None:
                    pipe.set(self.connection_key(new_cid), session_id)
            await pipe.execute()
            return updated

    async def _remove(self, session: PlayerSession) -> bool:
        cid = session.connection_id
        if cid is not None and await self._r.get(self.connection_key(cid)) != session.id:
            # Index already points elsewhere (rebound); leave it alone.
            cid = None
        async with self._r.pipeline(transaction=True) as pipe:
            pipe.delete(self.session_key(session.id))
            pipe.srem(self.sessions_key, session.id)
            if cid is not None:
                pipe.delete(self.connection_key(cid))
            deleted, *_ = await pipe.execute()
        return bool(deleted)

    # -- public API ------------------------------------------------------

    @guarded
    async def list_connections(self) -> list[str]:
        sessions = await self._find_all(SessionFilter())
        return [s.connection_id for s in sessions if s.connection_id]

    @guarded
    async def purge_connections(self, connection_ids: set[str] | frozenset[str]) -> int:
        stale = await self._find_all(SessionFilter(connection_ids=frozenset(connection_ids)))
        removed = 0
        for session in stale:
            if await self._remove(session):
                removed += 1
        if removed:
            logger.info("purged %d stale session(s)", removed)
        return removed

    @guarded
    async def create(self, fields: SessionCreate) -> PlayerSession:
        now = _now()
        session = PlayerSession(id=uuid4().hex, created_at=now, last_updated_at=now, **fields.model_dump())

        cid = session.connection_id
        if cid is not None:
            claimed = await self._r.set(self.connection_key(cid), session.id, nx=True)
            if not claimed:
                raise StoreError(f"connection {cid} is already bound to another session")

        try:
            async with self._r.pipeline(transaction=True) as pipe:
                pipe.set(self.session_key(session.id), session.model_dump_json())
                pipe.sadd(self.sessions_key, session.id)
                await pipe.execute()
        except Exception:
            if cid is not None:
                await self._r.delete(self.connection_key(cid))
            raise
        return session

    @guarded
    async def update(
        self,
        flt: SessionFilter,
        patch: SessionPatch,
        *,
        expected_version: int | None = None,
    ) -> PlayerMeta:
        for _ in range(self._watch_retries):
            current = await self._find_one(flt)
            if current is None:
                raise NotFound("no session matches the update filter")
            try:
                updated = await self._commit(
                    session_id=current.id,
                    flt=flt,
                    patch=patch,
                    expected_version=expected_version,
                )
            except WatchError:
                logger.debug("session %s changed during update; retrying", current.id)
                continue
            if updated is not None:
                return updated.meta()
        raise StoreError(f"update gave up after {self._watch_retries} attempts")

    @guarded
    async def delete(self, flt: SessionFilter) -> DeleteResult:
        session = await self._find_one(flt)
        if session is None or not await self._remove(session):
            raise NotFound("no session matches the delete filter")
        return DeleteResult(deleted_count=1)

    @guarded
    async def find(self, flt: SessionFilter) -> list[PlayerMeta]:
        return [s.meta() for s in await self._find_all(flt)]

    @guarded
    async def get_meta(self, flt: SessionFilter) -> PlayerMeta:
        session = await self._find_one(flt)
        if session is None:
            raise InvalidUser()
        return session.meta()

    @guarded
    async def get_connection_id(self, flt: SessionFilter) -> str:
        session = await self._find_one(flt)
        if session is None or not session.connection_id:
            raise InvalidUser()
        return session.connection_id

    @guarded
    async def get_cards(self, flt: SessionFilter, all: bool = False) -> list[Card]:
        """Player's hand; without `all`, the first (hidden) card is dropped."""

        session = await self._find_one(flt)
        if session is None:
            raise InvalidUser()
        if all:
            return list(session.cards)
        return session.cards[1:]
