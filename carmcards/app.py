"""Top level application object for Carmcards bots."""

from __future__ import annotations

from random import Random
from typing import Any

from .config import CarmcardsConfig
from .domain.collection import CollectionService
from .domain.events import EventBus
from .domain.trading import TradeService
from .registry import CardRegistry
from .storage.base import CollectorStore, PossessionStore, TradeStore
from .storage.memory import InMemoryCollectorStore, InMemoryPossessionStore, InMemoryTradeStore
from .storage.sqlalchemy import AsyncSQLAlchemyStorage


class BotApp:
    """Central dependency container used by the bot and its tests."""

    def __init__(
        self,
        config: CarmcardsConfig,
        *,
        collector_store: CollectorStore | None = None,
        possession_store: PossessionStore | None = None,
        trade_store: TradeStore | None = None,
        event_bus: EventBus | None = None,
        rng: Random | None = None,
    ) -> None:
        self.config = config
        self.event_bus = event_bus or EventBus()
        self.cards = CardRegistry()

        self._rng = rng or (Random(config.rng_seed) if config.rng_seed is not None else Random())

        self._sqlalchemy_storage: AsyncSQLAlchemyStorage | None = None
        (
            self.collector_store,
            self.possession_store,
            self.trade_store,
        ) = self._wire_storage(collector_store, possession_store, trade_store)

        self.collection_service = CollectionService(
            catalog=self.cards.catalog,
            collector_store=self.collector_store,
            possession_store=self.possession_store,
            draw_config=self.config.draw,
            event_bus=self.event_bus,
            rng=self._rng,
        )
        self.trade_service = TradeService(
            catalog=self.cards.catalog,
            collector_store=self.collector_store,
            possession_store=self.possession_store,
            trade_store=self.trade_store,
            event_bus=self.event_bus,
            trade_config=self.config.trade,
        )

    def _wire_storage(
        self,
        collector_store: CollectorStore | None,
        possession_store: PossessionStore | None,
        trade_store: TradeStore | None,
    ) -> tuple[CollectorStore, PossessionStore, TradeStore]:
        if collector_store and possession_store and trade_store:
            return collector_store, possession_store, trade_store

        backend = self.config.storage.backend
        if backend == "memory":
            return (
                collector_store or InMemoryCollectorStore(),
                possession_store or InMemoryPossessionStore(),
                trade_store or InMemoryTradeStore(),
            )
        if backend == "sqlalchemy":
            dsn = self.config.storage.resolve_dsn()
            if not dsn:
                raise ValueError("SQLAlchemy backend requires a DSN")
            storage = AsyncSQLAlchemyStorage(dsn, echo=self.config.storage.echo_sql)
            self._sqlalchemy_storage = storage
            return (
                collector_store or storage.collector_store(),
                possession_store or storage.possession_store(),
                trade_store or storage.trade_store(),
            )
        raise ValueError(f"Unsupported storage backend {backend}")

    def snapshot(self) -> dict[str, Any]:
        """Export current configuration for debugging."""
        return {
            "storage": self.config.storage.backend,
            "cards": len(self.cards.catalog),
            "card_sets": [card_set.name for card_set in self.cards.catalog.iter_card_sets()],
            "cooldown_seconds": self.config.draw.cooldown_seconds,
            "invite_ttl_seconds": self.config.trade.invite_ttl_seconds,
        }

    async def init_backend(self) -> None:
        """Initialize storage backend resources (e.g., database tables)."""
        if self._sqlalchemy_storage:
            await self._sqlalchemy_storage.init_models()

    async def close(self) -> None:
        if self._sqlalchemy_storage:
            await self._sqlalchemy_storage.dispose()
