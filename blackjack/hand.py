from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol


FACE_RANKS = frozenset({"J", "Q", "K"})
ACE = "A"


class ScoredCard(Protocol):
    display: str
    values: Sequence[int]


def card_points(card: ScoredCard, *, ace: int = 1) -> int:
    """Value of a single card, with aces worth `ace`."""

    if card.display == ACE:
        return ace
    if card.display in FACE_RANKS:
        return 10
    return int(card.values[0])


def card_sums(cards: Iterable[ScoredCard]) -> tuple[int, int]:
    """Score a hand as `(low_total, high_total)`.

    Both totals fold over every card; every ace is 1 in the low total and 11
    in the high one (so `A, A` scores `(2, 22)`).
    No bust/soft-17 decisions are made here.
    """

    low = 0
    high = 0
    for card in cards:
        low += card_points(card, ace=1)
        high += card_points(card, ace=11)
    return low, high
