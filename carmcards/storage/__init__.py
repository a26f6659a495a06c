"""Storage backends for Carmcards."""

from .base import (
    CollectorRecord,
    CollectorStore,
    PossessionRecord,
    PossessionStore,
    TradeKey,
    TradeOffer,
    TradeRecord,
    TradeState,
    TradeStore,
    trade_key,
)
from .memory import InMemoryCollectorStore, InMemoryPossessionStore, InMemoryTradeStore
from .sqlalchemy import AsyncSQLAlchemyStorage

__all__ = [
    "CollectorRecord",
    "CollectorStore",
    "PossessionRecord",
    "PossessionStore",
    "TradeKey",
    "TradeOffer",
    "TradeRecord",
    "TradeState",
    "TradeStore",
    "trade_key",
    "InMemoryCollectorStore",
    "InMemoryPossessionStore",
    "InMemoryTradeStore",
    "AsyncSQLAlchemyStorage",
]
