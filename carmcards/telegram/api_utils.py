"""Shared helpers to interact with the Telegram Bot API safely."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from aiogram.exceptions import (
    TelegramAPIError,
    TelegramBadRequest,
    TelegramForbiddenError,
    TelegramRetryAfter,
)
from aiogram.types import CallbackQuery, Message

P = ParamSpec("P")
T = TypeVar("T")

logger = logging.getLogger(__name__)


async def safe_api_call(
    label: str,
    func: Callable[P, Awaitable[T]],
    *args: P.args,
    retries: int = 3,
    **kwargs: P.kwargs,
) -> T | None:
    """Run a Bot API call; sleep through rate limits, log and drop other API failures."""
    attempt = 0
    while True:
        try:
            return await func(*args, **kwargs)
        except TelegramRetryAfter as exc:
            attempt += 1
            if attempt >= retries:
                logger.warning(
                    "Telegram call '%s' gave up after %s rate-limited attempts.", label, attempt
                )
                return None
            delay = float(getattr(exc, "retry_after", 0) or 1.0)
            logger.info(
                "Telegram call '%s' rate limited; retrying in %.1f s (%s/%s).",
                label,
                delay,
                attempt,
                retries,
            )
            await asyncio.sleep(delay)
        except TelegramForbiddenError:
            logger.info("Telegram call '%s' forbidden; the bot was blocked or removed.", label)
            return None
        except TelegramBadRequest as exc:
            if "message is not modified" in str(exc).lower():
                logger.debug("Telegram call '%s' skipped: nothing changed.", label)
            else:
                logger.warning("Telegram call '%s' bad request: %s", label, exc)
            return None
        except TelegramAPIError as exc:
            logger.error("Telegram call '%s' failed: %s", label, exc, exc_info=True)
            return None


async def safe_reply(message: Message | None, text: str, **kwargs) -> bool:
    """Answer in the chat of ``message``."""
    if not message:
        return False
    return (await safe_api_call("message.answer", message.answer, text, **kwargs)) is not None


async def safe_reply_photo(message: Message | None, photo: str, caption: str, **kwargs) -> bool:
    """Answer with an image; falls back to text when Telegram rejects the image."""
    if not message:
        return False
    sent = await safe_api_call(
        "message.answer_photo", message.answer_photo, photo, caption=caption, **kwargs
    )
    if sent is None:
        return await safe_reply(message, caption, **kwargs)
    return True


async def safe_edit_text(message: Message | None, text: str, **kwargs) -> bool:
    if not message:
        return False
    return (
        await safe_api_call("message.edit_text", message.edit_text, text, **kwargs)
    ) is not None


async def safe_callback_answer(
    callback: CallbackQuery | None,
    text: str | None = None,
    **kwargs,
) -> bool:
    if not callback:
        return False
    params = dict(kwargs)
    if text is not None:
        params["text"] = text
    return (await safe_api_call("callback.answer", callback.answer, **params)) is not None
