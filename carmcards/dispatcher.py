"""Execute parsed chat commands and render the replies."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .app import BotApp
from .commands import (
    CancelTradeCommand,
    CardCommand,
    CollectionCommand,
    Command,
    DrawCommand,
    HelpCommand,
    TradeCommand,
)
from .domain.collection import CardHoldings, CollectionPage, DrawOutcome
from .domain.exceptions import (
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
from .domain.trading import TradeAccepted, TradeCancelled, TradeExecuted, TradeInvited, TradeOutcome
from .storage.base import CollectorRecord

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Reply:
    text: str
    image_url: str | None = None
    page: int | None = None
    pages: int | None = None


class CommandDispatcher:
    """Run one command for one sender; domain errors become reply text."""

    def __init__(self, app: BotApp) -> None:
        self._app = app
        self._collection = app.collection_service
        self._trades = app.trade_service

    async def handle(
        self,
        command: Command,
        *,
        user_id: int,
        username: str | None = None,
        display_name: str | None = None,
    ) -> Reply:
        name = display_name or username
        try:
            if username:
                await self._refresh_username(user_id, username)
            if isinstance(command, HelpCommand):
                return Reply(render_help_message())
            if isinstance(command, DrawCommand):
                outcome = await self._collection.draw(user_id, username=username)
                return Reply(format_draw_message(outcome), image_url=outcome.card.image_url)
            if isinstance(command, CardCommand):
                holdings = await self._collection.card_holdings(user_id, command.number)
                return Reply(format_card_message(holdings), image_url=holdings.card.image_url)
            if isinstance(command, CollectionCommand):
                page = await self._collection.collection_page(user_id, command.page)
                return Reply(
                    format_collection_message(page, owner=name or f"user {user_id}"),
                    page=page.page,
                    pages=page.pages,
                )
            if isinstance(command, TradeCommand):
                return await self._trade(command, user_id)
            if isinstance(command, CancelTradeCommand):
                return await self._cancel_trade(command, user_id)
        except CarmcardsError as exc:
            return Reply(format_error_message(exc, user_id=user_id))
        raise TypeError(f"Unsupported command {command!r}")

    async def _trade(self, command: TradeCommand, user_id: int) -> Reply:
        if not command.has_target:
            return Reply(
                "Mention who you want to trade with, e.g. /trade @username 7 or /trade @username 7 foil."
            )
        target_user_id = await self._resolve_target(command.target_user_id, command.target_username)
        outcome = await self._trades.propose_or_advance(
            user_id, target_user_id, command.card_number, command.is_foil
        )
        return Reply(format_trade_message(outcome))

    async def _cancel_trade(self, command: CancelTradeCommand, user_id: int) -> Reply:
        if not command.has_target:
            return Reply("Mention whose trade you want to cancel, e.g. /canceltrade @username.")
        target_user_id = await self._resolve_target(command.target_user_id, command.target_username)
        cancelled = await self._trades.cancel(user_id, target_user_id)
        return Reply(format_cancel_message(cancelled))

    async def _refresh_username(self, user_id: int, username: str) -> None:
        collector = await self._app.collector_store.find_by_user_id(user_id)
        if collector is not None and collector.username != username:
            await self._app.collector_store.claim_username(user_id, username)

    async def _resolve_target(self, target_user_id: int | None, target_username: str | None) -> int:
        if target_user_id is not None:
            return target_user_id
        if target_username is None:
            raise InvalidStateError("Mention who you want to trade with")
        collector = await self._app.collector_store.find_by_username(target_username)
        if collector is None:
            raise UnknownCollectorError(username=target_username)
        return collector.user_id


def display_name(collector: CollectorRecord) -> str:
    if collector.username:
        return f"@{collector.username}"
    return f"user {collector.user_id}"


def render_help_message() -> str:
    lines = [
        "Carmcards commands:",
        "",
        "• /draw: collect a card. You can use this once a day.",
        "• /collection 1: view a page of cards in your collection.",
        "• /card 1: view a card with a given number.",
        "• /trade @username 7 [foil]: offer your card #7 to @username.",
        "  They accept with /trade @you <number>, then you run /trade @them to swap.",
        "• /canceltrade @username: withdraw a pending trade.",
        "• /help: show this message.",
    ]
    return "\n".join(lines)


def format_duration(seconds: int) -> str:
    hours, remainder = divmod(max(0, seconds), 3600)
    minutes = remainder // 60
    hours_text = f"{hours} {'hour' if hours == 1 else 'hours'}"
    minutes_text = f"{minutes} {'minute' if minutes == 1 else 'minutes'}"
    if not hours and not minutes:
        return "less than a minute"
    if not hours:
        return minutes_text
    if not minutes:
        return hours_text
    return f"{hours_text} and {minutes_text}"


def format_draw_message(outcome: DrawOutcome) -> str:
    card = outcome.card
    title = f"Card #{card.number}"
    if outcome.card_set:
        title += f" ({outcome.card_set.name})"
    lines = [title, f"You collected card #{card.number}!"]
    if card.is_foil:
        lines.append("✨ It's a foil version!")
    return "\n".join(lines)


def format_card_message(holdings: CardHoldings) -> str:
    title = f"Card #{holdings.number}"
    if holdings.card_set:
        title += f" ({holdings.card_set.name})"
    description = f"You have {holdings.quantity}."
    if holdings.foil_quantity:
        description += f" Foil versions, {holdings.foil_quantity}."
    return f"{title}\n{description}"


def format_collection_message(page: CollectionPage, *, owner: str) -> str:
    lines = [f"📚 {owner}'s collection", ""]
    for entry in page.entries:
        title = f"Card #{entry.number}"
        if entry.card_set:
            title += f" ({entry.card_set.name})"
        icon = "✨" if entry.has_foil else "🎴"
        lines.append(f"{title} {icon} x{entry.quantity}")
    lines.append("")
    lines.append(f"Page {page.page}/{page.pages}")
    return "\n".join(lines)


def format_trade_message(outcome: TradeOutcome) -> str:
    if isinstance(outcome, TradeInvited):
        return (
            f"You have invited {display_name(outcome.responder)} to trade for your "
            f"{outcome.card.label}. To accept, they can use /trade mentioning you and the "
            "number of a card they want to trade for it."
        )
    if isinstance(outcome, TradeAccepted):
        return (
            f"You have offered your {outcome.responder_card.label} for "
            f"{display_name(outcome.caller)}'s {outcome.caller_card.label}. "
            "To execute this trade, they can use /trade mentioning you."
        )
    if isinstance(outcome, TradeExecuted):
        return (
            f"Trade complete! You traded your {outcome.caller_card.label} for "
            f"{display_name(outcome.responder)}'s {outcome.responder_card.label}."
        )
    raise TypeError(f"Unsupported trade outcome {outcome!r}")


def format_cancel_message(cancelled: TradeCancelled) -> str:
    return f"Your trade with {display_name(cancelled.other)} was cancelled."


def format_error_message(exc: CarmcardsError, *, user_id: int) -> str:
    if isinstance(exc, UnknownCollectorError):
        if exc.user_id is not None and exc.user_id == user_id:
            return "You haven't started your collection yet. Use /draw to get your first card."
        return "The user you mentioned hasn't started their collection yet."
    if isinstance(exc, CooldownActive):
        return f"{format_duration(exc.seconds_remaining)} until your next draw."
    if isinstance(exc, UnknownCardError):
        variant = "foil card" if exc.is_foil else "card"
        return f"There is no {variant} #{exc.number}."
    if isinstance(exc, (OwnershipError, EmptyCollection, InvalidStateError)):
        return f"{exc}."
    if isinstance(exc, NoCardsAvailable):
        return "There are no cards to draw yet."
    if isinstance(exc, StoreError):
        logger.warning("Command failed on storage error: %s", exc)
        return "Something went wrong while saving your cards. Please try again later."
    logger.warning("Unhandled domain error: %s", exc)
    return "That didn't work."
