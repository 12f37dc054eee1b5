from __future__ import annotations

from blackjack.api.models import Card, PlayerMeta, SessionFilter, SessionPatch
from blackjack.errors import InvalidUser
from blackjack.hand import card_sums
from blackjack.result import guarded
from blackjack.session_store import SessionStore


class SessionOperations:
    """Game-aware operations composed from `SessionStore` primitives.

    Each operation re-reads the record before writing. The read and the write
    are separate store calls, so two writers racing on the same connection
    resolve as last-writer-wins. Callers that need stronger guarantees can use
    `SessionStore.update(..., expected_version=...)` directly.

    Errors from the store propagate unchanged unless an operation names a
    stricter precondition.
    """

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    @guarded
    async def set_cards(self, connection_id: str, cards: list[Card]) -> PlayerMeta:
        target = SessionFilter(connection_id=connection_id)
        meta, err = await self.store.get_meta(target)
        if err:
            raise err

        _, err = await self.store.update(SessionFilter(id=meta.id), SessionPatch(cards=cards))
        if err:
            raise err

        updated, err = await self.store.get_meta(target)
        if err:
            raise err
        return updated

    @guarded
    async def add_cards(self, connection_id: str, cards: list[Card]) -> list[Card]:
        """Append `cards` to the hand; returns the new cards followed by the prior hand."""

        target = SessionFilter(connection_id=connection_id)
        old_cards, err = await self.store.get_cards(target, all=True)
        if err:
            raise InvalidUser() from err

        _, err = await self.store.update(target, SessionPatch(push_cards=cards))
        if err:
            raise err

        return [*cards, *old_cards]

    @guarded
    async def set_ready_state(self, connection_id: str, ready: bool) -> PlayerMeta:
        meta, err = await self.store.get_meta(SessionFilter(connection_id=connection_id))
        if err:
            raise InvalidUser() from err

        updated, err = await self.store.update(SessionFilter(id=meta.id), SessionPatch(ready=ready))
        if err:
            raise err
        return updated

    @guarded
    async def set_stand_state(self, flt: SessionFilter, stand: bool) -> PlayerMeta:
        _, err = await self.store.get_meta(flt)
        if err:
            raise err

        _, err = await self.store.update(flt, SessionPatch(stand=stand))
        if err:
            raise err

        # Re-read so the caller sees the committed value.
        updated, err = await self.store.get_meta(flt)
        if err:
            raise err
        return updated

    @guarded
    async def get_cards_sums(self, flt: SessionFilter) -> tuple[int, int]:
        cards, err = await self.store.get_cards(flt, all=True)
        if err:
            raise err
        return card_sums(cards)

    @guarded
    async def reset_hand(self, flt: SessionFilter) -> PlayerMeta:
        """Start a new round: empty hand, not ready, not standing."""

        _, err = await self.store.get_meta(flt)
        if err:
            raise err

        updated, err = await self.store.update(flt, SessionPatch(cards=[], ready=False, stand=False))
        if err:
            raise err
        return updated
