"""Domain models and services."""

from .cards import Card, CardCatalog, CardSet
from .collection import CardHoldings, CollectionEntry, CollectionPage, CollectionService, DrawOutcome
from .events import EventBus
from .exceptions import (
    CarmcardsError,
    CooldownActive,
    EmptyCollection,
    InvalidStateError,
    NoCardsAvailable,
    OwnershipError,
    StoreError,
    UnknownCardError,
    UnknownCollectorError,
)
from .locks import KeyedLocks
from .trading import (
    TradeAccepted,
    TradeCancelled,
    TradeExecuted,
    TradeInvited,
    TradeOutcome,
    TradeService,
)

__all__ = [
    "Card",
    "CardCatalog",
    "CardSet",
    "CardHoldings",
    "CollectionEntry",
    "CollectionPage",
    "CollectionService",
    "DrawOutcome",
    "EventBus",
    "CarmcardsError",
    "CooldownActive",
    "EmptyCollection",
    "InvalidStateError",
    "NoCardsAvailable",
    "OwnershipError",
    "StoreError",
    "UnknownCardError",
    "UnknownCollectorError",
    "KeyedLocks",
    "TradeAccepted",
    "TradeCancelled",
    "TradeExecuted",
    "TradeInvited",
    "TradeOutcome",
    "TradeService",
]
