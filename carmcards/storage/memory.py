"""In-memory storage backend for Carmcards."""

from __future__ import annotations

from dataclasses import replace
from itertools import count
from typing import Iterable, Sequence

from .base import (
    CollectorRecord,
    CollectorStore,
    PossessionRecord,
    PossessionStore,
    TradeKey,
    TradeRecord,
    TradeStore,
)


class InMemoryCollectorStore(CollectorStore):
    def __init__(self) -> None:
        self._records: dict[int, CollectorRecord] = {}
        self._ids = count(1)

    async def find_by_user_id(self, user_id: int) -> CollectorRecord | None:
        record = self._records.get(user_id)
        return replace(record) if record else None

    async def find_by_username(self, username: str) -> CollectorRecord | None:
        wanted = username.lstrip("@").lower()
        for record in self._records.values():
            if record.username and record.username.lower() == wanted:
                return replace(record)
        return None

    async def create(self, user_id: int, username: str | None = None) -> CollectorRecord:
        if user_id in self._records:
            raise ValueError(f"Collector for user {user_id} already exists")
        record = CollectorRecord(collector_id=next(self._ids), user_id=user_id)
        self._records[user_id] = record
        if username:
            await self.claim_username(user_id, username)
        return replace(record)

    async def get_or_create(self, user_id: int, username: str | None = None) -> CollectorRecord:
        if user_id not in self._records:
            return await self.create(user_id, username)
        record = self._records[user_id]
        if username and record.username != username:
            await self.claim_username(user_id, username)
        return replace(record)

    async def claim_username(self, user_id: int, username: str) -> None:
        wanted = username.lstrip("@")
        for record in self._records.values():
            if record.user_id == user_id:
                record.username = wanted
            elif record.username and record.username.lower() == wanted.lower():
                record.username = None

    async def save(self, record: CollectorRecord) -> None:
        stored = self._records.get(record.user_id)
        if stored is None:
            self._records[record.user_id] = replace(record)
            return
        stored.last_draw_at = record.last_draw_at


class InMemoryPossessionStore(PossessionStore):
    def __init__(self) -> None:
        self._rows: list[PossessionRecord] = []
        self._ids = count(1)

    async def add(self, collector_id: int, card_id: int) -> PossessionRecord:
        record = PossessionRecord(
            possession_id=next(self._ids), collector_id=collector_id, card_id=card_id
        )
        self._rows.append(record)
        return replace(record)

    async def remove(self, collector_id: int, card_id: int) -> bool:
        row = self._first(collector_id, card_id)
        if row is None:
            return False
        self._rows.remove(row)
        return True

    async def count(self, collector_id: int, card_ids: Iterable[int]) -> int:
        wanted = set(card_ids)
        return sum(
            1 for row in self._rows if row.collector_id == collector_id and row.card_id in wanted
        )

    async def list_for_collector(self, collector_id: int) -> Sequence[PossessionRecord]:
        return [replace(row) for row in self._rows if row.collector_id == collector_id]

    async def exchange(
        self,
        first_collector_id: int,
        first_card_id: int,
        second_collector_id: int,
        second_card_id: int,
    ) -> bool:
        # No awaits below: the swap cannot interleave with another task.
        first = self._first(first_collector_id, first_card_id)
        second = self._first(second_collector_id, second_card_id)
        if first is None or second is None or first is second:
            return False
        first.collector_id = second_collector_id
        second.collector_id = first_collector_id
        return True

    def _first(self, collector_id: int, card_id: int) -> PossessionRecord | None:
        for row in self._rows:
            if row.collector_id == collector_id and row.card_id == card_id:
                return row
        return None


class InMemoryTradeStore(TradeStore):
    def __init__(self) -> None:
        self._trades: dict[TradeKey, TradeRecord] = {}

    async def get(self, key: TradeKey) -> TradeRecord | None:
        trade = self._trades.get(key)
        return _copy_trade(trade) if trade else None

    async def put(self, trade: TradeRecord) -> None:
        self._trades[trade.key] = _copy_trade(trade)

    async def delete(self, key: TradeKey) -> bool:
        return self._trades.pop(key, None) is not None

    async def for_collector(self, collector_id: int) -> Sequence[TradeRecord]:
        return [
            _copy_trade(trade) for trade in self._trades.values() if trade.involves(collector_id)
        ]


def _copy_trade(trade: TradeRecord) -> TradeRecord:
    return replace(trade, caller=replace(trade.caller), responder=replace(trade.responder))
