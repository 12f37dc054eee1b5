from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from blackjack.errors import ErrorKind


class Card(BaseModel):
    # Rank as displayed ("A", "7", "K", ...).
    display: str = Field(..., min_length=1, max_length=2)
    # Numeric value set; aces carry both values, e.g. [1, 11].
    values: list[int] = Field(..., min_length=1)
    suit: str | None = None


class PlayerMeta(BaseModel):
    """Public view of a player session.

    Never carries `cards` or `connection_id`; safe to hand to opponents.
    """

    id: str
    game: str | None = None
    ready: bool = False
    stand: bool = False
    version: int = 0
    created_at: datetime
    last_updated_at: datetime


class PlayerSession(BaseModel):
    id: str
    connection_id: str | None = None

    # Table/game the player has joined; None means "not seated".
    game: str | None = None

    # Ordered hand. The first card is the hidden one.
    cards: list[Card] = Field(default_factory=list)

    ready: bool = False
    stand: bool = False

    # Bumped on every committed write; used for compare-and-swap updates.
    version: int = 0

    created_at: datetime
    last_updated_at: datetime

    def meta(self) -> PlayerMeta:
        return PlayerMeta.model_validate(self.model_dump(exclude={"cards", "connection_id"}))


class SessionCreate(BaseModel):
    connection_id: str | None = None
    game: str | None = None
    cards: list[Card] = Field(default_factory=list)
    ready: bool = False
    stand: bool = False


class SessionFilter(BaseModel):
    """Predicate over sessions; every field that is set must match."""

    id: str | None = None
    connection_id: str | None = None
    connection_ids: frozenset[str] | None = None
    game: str | None = None

    def matches(self, session: PlayerSession) -> bool:
        if self.id is not None and session.id != self.id:
            return False
        if self.connection_id is not None and session.connection_id != self.connection_id:
            return False
        if self.connection_ids is not None and session.connection_id not in self.connection_ids:
            return False
        if self.game is not None and session.game != self.game:
            return False
        return True


class SessionPatch(BaseModel):
    """Partial update. Only explicitly provided fields are applied.

    `push_cards` appends to the existing hand instead of replacing it.
    Setting `connection_id=None` explicitly unbinds the connection.
    """

    connection_id: str | None = None
    game: str | None = None
    cards: list[Card] | None = None
    ready: bool | None = None
    stand: bool | None = None
    push_cards: list[Card] | None = None

    def apply(self, session: PlayerSession) -> PlayerSession:
        fields = self.model_dump(exclude_unset=True, exclude={"push_cards"})
        updated = session.model_copy(update=fields)
        # model_copy(update=...) skips validation; rebuild nested cards explicitly.
        if self.cards is not None:
            updated.cards = list(self.cards)
        if self.push_cards:
            updated.cards = [*updated.cards, *self.push_cards]
        return updated


class DeleteResult(BaseModel):
    deleted_count: int


class InboundEvent(BaseModel):
    type: str
    # join: table to sit at
    game: str | None = None
    # ready/stand: desired flag value
    value: bool = True
    # peek: opponent's persistent id
    player_id: str | None = None


class HandView(BaseModel):
    player_id: str
    cards: list[Card]
    sums: tuple[int, int] | None = None


class Reply(BaseModel):
    status: Literal["OK", "REQUEST_ERROR"]
    content: Any = None
    error: ErrorKind | None = None

    @staticmethod
    def ok(content: Any) -> "Reply":
        return Reply(status="OK", content=content, error=None)

    @staticmethod
    def request_error(kind: ErrorKind) -> "Reply":
        return Reply(status="REQUEST_ERROR", error=kind)

    def to_payload(self) -> dict[str, Any]:
        if self.status == "OK":
            return self.model_dump(mode="json")
        return self.model_dump(mode="json", exclude={"content"})
