"""Drawing cards and browsing a collector's holdings."""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from random import Random
from typing import Sequence

from .cards import Card, CardCatalog, CardSet
from .clock import seconds_since, utcnow
from .events import EventBus
from .exceptions import (
    CooldownActive,
    EmptyCollection,
    NoCardsAvailable,
    OwnershipError,
    UnknownCollectorError,
)
from .locks import KeyedLocks
from ..config import DrawConfig
from ..storage.base import CollectorRecord, CollectorStore, PossessionStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DrawOutcome:
    card: Card
    card_set: CardSet | None
    collector: CollectorRecord
    next_draw_at: datetime


@dataclass(slots=True)
class CardHoldings:
    number: int
    card: Card
    card_set: CardSet | None
    quantity: int
    foil_quantity: int


@dataclass(slots=True)
class CollectionEntry:
    number: int
    card_set: CardSet | None
    quantity: int
    has_foil: bool


@dataclass(slots=True)
class CollectionPage:
    entries: Sequence[CollectionEntry]
    page: int
    pages: int


class CollectionService:
    """Operate on a collector's cards, applying the draw cooldown."""

    def __init__(
        self,
        catalog: CardCatalog,
        collector_store: CollectorStore,
        possession_store: PossessionStore,
        draw_config: DrawConfig,
        event_bus: EventBus,
        *,
        rng: Random | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self._catalog = catalog
        self._collectors = collector_store
        self._possessions = possession_store
        self._draw = draw_config
        self._event_bus = event_bus
        self._rng = rng or Random()
        self._locks = locks or KeyedLocks()

    async def draw(self, user_id: int, *, username: str | None = None) -> DrawOutcome:
        # The cooldown check and the stamp must not interleave for one collector.
        async with self._locks.hold(user_id):
            return await self._draw_locked(user_id, username)

    async def _draw_locked(self, user_id: int, username: str | None) -> DrawOutcome:
        collector = await self._collectors.get_or_create(user_id, username)

        now = utcnow()
        remaining = self._cooldown_remaining(collector, now)
        if remaining > 0:
            raise CooldownActive(remaining)

        is_foil = self._rng.random() < self._draw.foil_chance
        card = self._catalog.sample(self._rng, is_foil=is_foil)
        if card is None:
            raise NoCardsAvailable("The catalog has no cards to draw")

        await self._possessions.add(collector.collector_id, card.card_id)
        collector.last_draw_at = now
        await self._collectors.save(collector)
        logger.info("Collector %s drew %s", collector.collector_id, card.label)

        await self._event_bus.publish(
            "collector.draw.completed",
            {"user_id": user_id, "card_id": card.card_id, "is_foil": card.is_foil},
        )
        return DrawOutcome(
            card=card,
            card_set=self._catalog.get_card_set(card.card_set_id),
            collector=collector,
            next_draw_at=now + timedelta(seconds=self._draw.cooldown_seconds),
        )

    async def cooldown_remaining(self, user_id: int) -> int:
        collector = await self._collectors.find_by_user_id(user_id)
        if collector is None:
            return 0
        return self._cooldown_remaining(collector, utcnow())

    async def card_holdings(self, user_id: int, number: int) -> CardHoldings:
        collector = await self._require_collector(user_id)
        variants = self._catalog.variants_of(number)
        quantity = await self._possessions.count(
            collector.collector_id, [card.card_id for card in variants]
        )
        if not quantity:
            raise OwnershipError("You don't have a card with that number", user_id=user_id)

        foil = self._catalog.find_by_number(number, True)
        foil_quantity = 0
        if foil is not None:
            foil_quantity = await self._possessions.count(collector.collector_id, [foil.card_id])
        if foil is not None and foil_quantity:
            shown = foil
        else:
            shown = min(variants, key=lambda card: card.is_foil)
        return CardHoldings(
            number=number,
            card=shown,
            card_set=self._catalog.get_card_set(shown.card_set_id),
            quantity=quantity,
            foil_quantity=foil_quantity,
        )

    async def has_cards(self, user_id: int) -> bool:
        collector = await self._collectors.find_by_user_id(user_id)
        if collector is None:
            return False
        return bool(await self._possessions.list_for_collector(collector.collector_id))

    async def collection_page(self, user_id: int, page: int = 1) -> CollectionPage:
        """Return one page of distinct card numbers; ``page`` is 1-based and clamped."""
        collector = await self._require_collector(user_id)
        possessions = await self._possessions.list_for_collector(collector.collector_id)
        cards = [
            card
            for card in (self._catalog.find_card(row.card_id) for row in possessions)
            if card is not None
        ]
        if not cards:
            raise EmptyCollection("You don't have any cards in your collection")

        quantities = Counter(card.number for card in cards)
        foils = {card.number for card in cards if card.is_foil}
        set_ids: dict[int, int | None] = {}
        for card in cards:
            set_ids.setdefault(card.number, card.card_set_id)

        per_page = max(1, self._draw.cards_per_page)
        numbers = sorted(quantities)
        pages = math.ceil(len(numbers) / per_page)
        page = min(max(page, 1), pages)
        start = (page - 1) * per_page
        entries = [
            CollectionEntry(
                number=number,
                card_set=self._catalog.get_card_set(set_ids[number]),
                quantity=quantities[number],
                has_foil=number in foils,
            )
            for number in numbers[start : start + per_page]
        ]
        return CollectionPage(entries=entries, page=page, pages=pages)

    async def _require_collector(self, user_id: int) -> CollectorRecord:
        collector = await self._collectors.find_by_user_id(user_id)
        if collector is None:
            raise UnknownCollectorError(user_id)
        return collector

    def _cooldown_remaining(self, record: CollectorRecord, now: datetime) -> int:
        if not record.last_draw_at:
            return 0
        elapsed = seconds_since(record.last_draw_at, now)
        return max(0, self._draw.cooldown_seconds - elapsed)
