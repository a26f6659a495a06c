"""Factory helpers to wire Carmcards services into aiogram."""

from __future__ import annotations

import logging

from aiogram import Router
from aiogram.enums import MessageEntityType
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message, User

from ..app import BotApp
from ..commands import CollectionCommand, HelpCommand, parse_command
from ..dispatcher import CommandDispatcher, Reply, render_help_message
from .api_utils import safe_callback_answer, safe_edit_text, safe_reply, safe_reply_photo
from .keyboards import collection_page_keyboard, parse_collection_callback

logger = logging.getLogger(__name__)

TRADE_COMMANDS = ("trade", "canceltrade")


def build_router(app: BotApp, *, bot_username: str | None = None) -> Router:
    ensure_catalog_ready(app)

    router = Router()
    dispatcher = CommandDispatcher(app)

    @router.message(Command("start", "help"))
    async def handle_help(message: Message) -> None:
        await send_reply(message, Reply(render_help_message()))

    @router.message(Command("draw", "card", "cards", "collection", "collections"))
    async def handle_collection_commands(message: Message) -> None:
        await _dispatch(message, message.text)

    @router.message(Command(*TRADE_COMMANDS))
    async def handle_trade_commands(message: Message) -> None:
        text, target_user_id = extract_trade_target(message)
        await _dispatch(message, text, target_user_id=target_user_id)

    @router.callback_query(lambda c: parse_collection_callback(c.data) is not None)
    async def handle_collection_page(callback: CallbackQuery) -> None:
        user = callback.from_user
        parsed = parse_collection_callback(callback.data)
        if not user or not parsed:
            return
        owner_id, page = parsed
        if owner_id != user.id:
            await safe_callback_answer(callback, "This isn't your collection.", show_alert=True)
            return
        reply = await dispatcher.handle(
            CollectionCommand(page=page),
            user_id=user.id,
            username=user.username,
            display_name=sender_name(user),
        )
        await safe_callback_answer(callback)
        await safe_edit_text(
            callback.message,
            reply.text,
            reply_markup=collection_page_keyboard(user.id, reply.page or 1, reply.pages or 1),
        )

    async def _dispatch(
        message: Message, text: str | None, *, target_user_id: int | None = None
    ) -> None:
        user = message.from_user
        if not user or user.is_bot:
            return
        command = parse_command(text, bot_username=bot_username, target_user_id=target_user_id)
        if command is None:
            logger.debug("Unparsed command text from %s: %r", user.id, text)
            command = HelpCommand()
        reply = await dispatcher.handle(
            command,
            user_id=user.id,
            username=user.username,
            display_name=sender_name(user),
        )
        await send_reply(message, reply, owner_id=user.id)

    return router


def ensure_catalog_ready(app: BotApp) -> None:
    if not len(app.cards.catalog):
        raise RuntimeError(
            "The catalog has no cards. Register them with app.cards or load_catalog_from_json."
        )


def extract_trade_target(message: Message) -> tuple[str, int | None]:
    """Return the command text without a text mention, and the user it points at.

    Users without a public username are mentioned through ``text_mention``
    entities; otherwise a reply to someone's message names the partner unless
    the text carries an ``@username`` of its own.
    """
    text = message.text or ""
    for entity in message.entities or ():
        if entity.type == MessageEntityType.TEXT_MENTION and entity.user:
            mention = entity.extract_from(text)
            return text.replace(mention, " ", 1), entity.user.id
    parts = text.split(maxsplit=1)
    arguments = parts[1] if len(parts) > 1 else ""
    reply = message.reply_to_message
    if reply and reply.from_user and not reply.from_user.is_bot and "@" not in arguments:
        return text, reply.from_user.id
    return text, None


def sender_name(user: User) -> str:
    if user.username:
        return f"@{user.username}"
    return user.full_name


async def send_reply(message: Message, reply: Reply, *, owner_id: int | None = None) -> None:
    markup = None
    if reply.page is not None and owner_id is not None:
        markup = collection_page_keyboard(owner_id, reply.page, reply.pages or 1)
    if reply.image_url:
        await safe_reply_photo(message, reply.image_url, reply.text, reply_markup=markup)
    else:
        await safe_reply(message, reply.text, reply_markup=markup)
