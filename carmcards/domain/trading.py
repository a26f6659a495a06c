"""Trade negotiation between two collectors.

A trade between two collectors moves through three states:

* no trade: nothing is stored for the pair;
* invited: the caller offered a card, the responder has not answered;
* accepted: the responder offered a card back; the caller's next trade
  command executes the swap and removes the trade.

All work for a pair runs under that pair's lock so that the
lookup/validate/mutate sequence of one command never interleaves with another
command for the same pair. The possession swap itself is delegated to the
store's ``exchange`` which moves both rows or none, so a card promised in two
trades at once can only leave its owner once.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Sequence, Union

from .cards import Card, CardCatalog
from .clock import seconds_since, utcnow
from .events import EventBus
from .exceptions import InvalidStateError, OwnershipError, UnknownCardError, UnknownCollectorError
from .locks import KeyedLocks
from ..config import TradeConfig
from ..storage.base import (
    CollectorRecord,
    CollectorStore,
    PossessionStore,
    TradeKey,
    TradeOffer,
    TradeRecord,
    TradeState,
    TradeStore,
    trade_key,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TradeInvited:
    trade: TradeRecord
    caller: CollectorRecord
    responder: CollectorRecord
    card: Card


@dataclass(slots=True)
class TradeAccepted:
    trade: TradeRecord
    caller: CollectorRecord
    responder: CollectorRecord
    caller_card: Card
    responder_card: Card


@dataclass(slots=True)
class TradeExecuted:
    caller: CollectorRecord
    responder: CollectorRecord
    caller_card: Card
    responder_card: Card


@dataclass(slots=True)
class TradeCancelled:
    trade: TradeRecord
    cancelled_by: CollectorRecord
    other: CollectorRecord


TradeOutcome = Union[TradeInvited, TradeAccepted, TradeExecuted]


@dataclass(slots=True)
class _PairContext:
    actor: CollectorRecord
    target: CollectorRecord
    key: TradeKey
    trade: TradeRecord | None

    @property
    def state(self) -> TradeState:
        return self.trade.state if self.trade else TradeState.NO_TRADE

    def require_trade(self) -> TradeRecord:
        if self.trade is None:
            raise InvalidStateError("There is no trade between these collectors")
        return self.trade

    def caller_and_responder(self) -> tuple[CollectorRecord, CollectorRecord]:
        if self.require_trade().caller.collector_id == self.actor.collector_id:
            return self.actor, self.target
        return self.target, self.actor


class TradeService:
    """Drive the invite / accept / execute protocol for collector pairs."""

    def __init__(
        self,
        catalog: CardCatalog,
        collector_store: CollectorStore,
        possession_store: PossessionStore,
        trade_store: TradeStore,
        event_bus: EventBus,
        *,
        trade_config: TradeConfig | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self._catalog = catalog
        self._collectors = collector_store
        self._possessions = possession_store
        self._trades = trade_store
        self._event_bus = event_bus
        self._config = trade_config or TradeConfig()
        self._locks = locks or KeyedLocks()

    async def propose_or_advance(
        self,
        actor_user_id: int,
        target_user_id: int,
        card_number: int | None = None,
        is_foil: bool = False,
    ) -> TradeOutcome:
        """Apply the trade command of ``actor`` towards ``target``.

        With no trade for the pair the actor invites the target with the named
        card; with an invitation from the target the actor accepts it with the
        named card; with an accepted trade the caller executes it.
        """
        async with self._pair(actor_user_id, target_user_id) as ctx:
            if ctx.state is TradeState.NO_TRADE:
                return await self._invite(ctx, card_number, is_foil)
            if ctx.state is TradeState.INVITED:
                return await self._accept(ctx, card_number, is_foil)
            return await self._execute(ctx)

    async def invite(
        self, actor_user_id: int, target_user_id: int, card_number: int, is_foil: bool = False
    ) -> TradeInvited:
        async with self._pair(actor_user_id, target_user_id) as ctx:
            if ctx.state is not TradeState.NO_TRADE:
                raise InvalidStateError("A trade between these collectors is already pending")
            return await self._invite(ctx, card_number, is_foil)

    async def accept(
        self, actor_user_id: int, target_user_id: int, card_number: int, is_foil: bool = False
    ) -> TradeAccepted:
        async with self._pair(actor_user_id, target_user_id) as ctx:
            if ctx.state is not TradeState.INVITED:
                raise InvalidStateError("There is no trade invitation to accept")
            return await self._accept(ctx, card_number, is_foil)

    async def execute(self, actor_user_id: int, target_user_id: int) -> TradeExecuted:
        async with self._pair(actor_user_id, target_user_id) as ctx:
            if ctx.state is not TradeState.ACCEPTED:
                raise InvalidStateError("There is no accepted trade to execute")
            return await self._execute(ctx)

    async def cancel(self, actor_user_id: int, target_user_id: int) -> TradeCancelled:
        async with self._pair(actor_user_id, target_user_id) as ctx:
            if ctx.trade is None:
                raise InvalidStateError("There is no trade to cancel")
            await self._trades.delete(ctx.key)
            logger.info(
                "Trade %s cancelled by collector %s", ctx.key, ctx.actor.collector_id
            )
            await self._event_bus.publish(
                "trade.cancelled",
                {"pair": ctx.key, "cancelled_by": ctx.actor.user_id},
            )
            return TradeCancelled(trade=ctx.trade, cancelled_by=ctx.actor, other=ctx.target)

    async def get_trade(self, first_user_id: int, second_user_id: int) -> TradeRecord | None:
        first = await self._require_collector(first_user_id)
        second = await self._require_collector(second_user_id)
        key = trade_key(first.collector_id, second.collector_id)
        async with self._locks.hold(key):
            return await self._load_trade(key)

    async def state_of(self, first_user_id: int, second_user_id: int) -> TradeState:
        trade = await self.get_trade(first_user_id, second_user_id)
        return trade.state if trade else TradeState.NO_TRADE

    async def trades_for(self, user_id: int) -> Sequence[TradeRecord]:
        collector = await self._require_collector(user_id)
        trades = await self._trades.for_collector(collector.collector_id)
        return [trade for trade in trades if not self._is_expired(trade)]

    @asynccontextmanager
    async def _pair(self, actor_user_id: int, target_user_id: int) -> AsyncIterator[_PairContext]:
        actor = await self._require_collector(actor_user_id)
        target = await self._require_collector(target_user_id)
        if actor.collector_id == target.collector_id:
            raise InvalidStateError("Collectors cannot trade with themselves")
        key = trade_key(actor.collector_id, target.collector_id)
        async with self._locks.hold(key):
            trade = await self._load_trade(key)
            yield _PairContext(actor=actor, target=target, key=key, trade=trade)

    async def _invite(
        self, ctx: _PairContext, card_number: int | None, is_foil: bool
    ) -> TradeInvited:
        if card_number is None:
            raise InvalidStateError("No pending trade; name a card to offer")
        card = await self._resolve_owned_card(ctx.actor, card_number, is_foil)
        trade = TradeRecord(
            caller=TradeOffer(collector_id=ctx.actor.collector_id, card_id=card.card_id),
            responder=TradeOffer(collector_id=ctx.target.collector_id),
            created_at=utcnow(),
        )
        await self._trades.put(trade)
        logger.info(
            "Collector %s invited collector %s to trade %s",
            ctx.actor.collector_id,
            ctx.target.collector_id,
            card.label,
        )
        await self._event_bus.publish(
            "trade.invited",
            {
                "pair": ctx.key,
                "caller": ctx.actor.user_id,
                "responder": ctx.target.user_id,
                "card_id": card.card_id,
            },
        )
        return TradeInvited(trade=trade, caller=ctx.actor, responder=ctx.target, card=card)

    async def _accept(
        self, ctx: _PairContext, card_number: int | None, is_foil: bool
    ) -> TradeAccepted:
        trade = ctx.require_trade()
        if trade.caller.collector_id == ctx.actor.collector_id:
            raise InvalidStateError("Waiting for the other collector to answer your invitation")
        if card_number is None:
            raise InvalidStateError("Name a card to offer in return")
        caller_card = await self._offered_card(ctx, trade.caller.card_id)
        card = await self._resolve_owned_card(ctx.actor, card_number, is_foil)
        trade.responder.card_id = card.card_id
        trade.updated_at = utcnow()
        await self._trades.put(trade)
        logger.info(
            "Collector %s accepted trade %s with %s", ctx.actor.collector_id, ctx.key, card.label
        )
        await self._event_bus.publish(
            "trade.accepted",
            {
                "pair": ctx.key,
                "caller": ctx.target.user_id,
                "responder": ctx.actor.user_id,
                "card_id": card.card_id,
            },
        )
        return TradeAccepted(
            trade=trade,
            caller=ctx.target,
            responder=ctx.actor,
            caller_card=caller_card,
            responder_card=card,
        )

    async def _execute(self, ctx: _PairContext) -> TradeExecuted:
        trade = ctx.require_trade()
        if trade.caller.collector_id != ctx.actor.collector_id:
            raise InvalidStateError("Waiting for the other collector to confirm the trade")
        caller, responder = ctx.caller_and_responder()
        caller_card = await self._offered_card(ctx, trade.caller.card_id)
        responder_card = await self._offered_card(ctx, trade.responder.card_id)

        exchanged = await self._possessions.exchange(
            caller.collector_id,
            caller_card.card_id,
            responder.collector_id,
            responder_card.card_id,
        )
        if not exchanged:
            await self._discard(ctx, "a card is no longer held")
            raise OwnershipError(
                "One of the offered cards is no longer held; the trade was cancelled"
            )

        await self._trades.delete(ctx.key)
        logger.info(
            "Trade %s executed: %s for %s", ctx.key, caller_card.label, responder_card.label
        )
        await self._event_bus.publish(
            "trade.executed",
            {
                "pair": ctx.key,
                "caller": caller.user_id,
                "responder": responder.user_id,
                "caller_card_id": caller_card.card_id,
                "responder_card_id": responder_card.card_id,
            },
        )
        return TradeExecuted(
            caller=caller,
            responder=responder,
            caller_card=caller_card,
            responder_card=responder_card,
        )

    async def _offered_card(self, ctx: _PairContext, card_id: int | None) -> Card:
        card = self._catalog.find_card(card_id) if card_id is not None else None
        if card is None:
            await self._discard(ctx, f"card {card_id} is no longer in the catalog")
            raise InvalidStateError(
                "One of the offered cards no longer exists; the trade was cancelled"
            )
        return card

    async def _discard(self, ctx: _PairContext, reason: str) -> None:
        await self._trades.delete(ctx.key)
        logger.warning("Trade %s discarded: %s", ctx.key, reason)
        await self._event_bus.publish("trade.cancelled", {"pair": ctx.key, "cancelled_by": None})

    async def _resolve_owned_card(
        self, collector: CollectorRecord, number: int, is_foil: bool
    ) -> Card:
        card = self._catalog.find_by_number(number, is_foil)
        if card is None:
            raise UnknownCardError(number, is_foil)
        owned = await self._possessions.count(collector.collector_id, [card.card_id])
        if not owned:
            raise OwnershipError(f"You don't have a {card.label}", user_id=collector.user_id)
        return card

    async def _require_collector(self, user_id: int) -> CollectorRecord:
        collector = await self._collectors.find_by_user_id(user_id)
        if collector is None:
            raise UnknownCollectorError(user_id)
        return collector

    async def _load_trade(self, key: TradeKey) -> TradeRecord | None:
        trade = await self._trades.get(key)
        if trade is None or not self._is_expired(trade):
            return trade
        await self._trades.delete(key)
        logger.info("Trade %s expired", key)
        await self._event_bus.publish("trade.expired", {"pair": key})
        return None

    def _is_expired(self, trade: TradeRecord) -> bool:
        ttl = self._config.invite_ttl_seconds
        if ttl is None:
            return False
        return seconds_since(trade.last_activity, utcnow()) > ttl
