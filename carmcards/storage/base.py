"""Storage abstractions used by the Carmcards services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Protocol, Sequence

TradeKey = tuple[int, int]


def trade_key(first_collector_id: int, second_collector_id: int) -> TradeKey:
    """Canonical key for the unordered pair of collectors."""
    if first_collector_id <= second_collector_id:
        return (first_collector_id, second_collector_id)
    return (second_collector_id, first_collector_id)


@dataclass(slots=True)
class CollectorRecord:
    collector_id: int
    user_id: int
    username: str | None = None
    last_draw_at: datetime | None = None


@dataclass(slots=True)
class PossessionRecord:
    possession_id: int
    collector_id: int
    card_id: int


class TradeState(str, Enum):
    NO_TRADE = "no_trade"
    INVITED = "invited"
    ACCEPTED = "accepted"


@dataclass(slots=True)
class TradeOffer:
    collector_id: int
    card_id: int | None = None


@dataclass(slots=True)
class TradeRecord:
    caller: TradeOffer
    responder: TradeOffer
    created_at: datetime
    updated_at: datetime | None = None

    @property
    def key(self) -> TradeKey:
        return trade_key(self.caller.collector_id, self.responder.collector_id)

    @property
    def state(self) -> TradeState:
        if self.responder.card_id is None:
            return TradeState.INVITED
        return TradeState.ACCEPTED

    @property
    def last_activity(self) -> datetime:
        return self.updated_at or self.created_at

    def involves(self, collector_id: int) -> bool:
        return collector_id in (self.caller.collector_id, self.responder.collector_id)


class CollectorStore(Protocol):
    async def find_by_user_id(self, user_id: int) -> CollectorRecord | None:
        ...

    async def find_by_username(self, username: str) -> CollectorRecord | None:
        ...

    async def create(self, user_id: int, username: str | None = None) -> CollectorRecord:
        ...

    async def get_or_create(self, user_id: int, username: str | None = None) -> CollectorRecord:
        ...

    async def claim_username(self, user_id: int, username: str) -> None:
        """Give ``username`` to this user's collector and take it from any other."""
        ...

    async def save(self, record: CollectorRecord) -> None:
        """Persist the draw timestamp; usernames change through ``claim_username``."""
        ...


class PossessionStore(Protocol):
    async def add(self, collector_id: int, card_id: int) -> PossessionRecord:
        ...

    async def remove(self, collector_id: int, card_id: int) -> bool:
        """Remove at most one matching possession; report whether one was removed."""
        ...

    async def count(self, collector_id: int, card_ids: Iterable[int]) -> int:
        ...

    async def list_for_collector(self, collector_id: int) -> Sequence[PossessionRecord]:
        ...

    async def exchange(
        self,
        first_collector_id: int,
        first_card_id: int,
        second_collector_id: int,
        second_card_id: int,
    ) -> bool:
        """Move one ``first_card_id`` row to the second collector and one
        ``second_card_id`` row to the first collector, all or nothing.

        Returns False without changing anything when either collector no
        longer holds the card it gives away.
        """
        ...


class TradeStore(Protocol):
    async def get(self, key: TradeKey) -> TradeRecord | None:
        ...

    async def put(self, trade: TradeRecord) -> None:
        ...

    async def delete(self, key: TradeKey) -> bool:
        ...

    async def for_collector(self, collector_id: int) -> Sequence[TradeRecord]:
        ...
