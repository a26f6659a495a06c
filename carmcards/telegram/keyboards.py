"""Keyboard helpers for Carmcards bots."""

from __future__ import annotations

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

COLLECTION_CALLBACK_PREFIX = "carmcards:collection:"


def collection_page_keyboard(owner_id: int, page: int, pages: int) -> InlineKeyboardMarkup | None:
    """Previous/next buttons for a collection page; None when there is one page."""
    if pages <= 1:
        return None
    row: list[InlineKeyboardButton] = []
    if page > 1:
        row.append(
            InlineKeyboardButton(
                text="◀️ Previous",
                callback_data=f"{COLLECTION_CALLBACK_PREFIX}{owner_id}:{page - 1}",
            )
        )
    if page < pages:
        row.append(
            InlineKeyboardButton(
                text="Next ▶️",
                callback_data=f"{COLLECTION_CALLBACK_PREFIX}{owner_id}:{page + 1}",
            )
        )
    return InlineKeyboardMarkup(inline_keyboard=[row])


def parse_collection_callback(data: str | None) -> tuple[int, int] | None:
    """Return ``(owner_id, page)`` from collection keyboard callback data."""
    if not data or not data.startswith(COLLECTION_CALLBACK_PREFIX):
        return None
    owner, _, page = data[len(COLLECTION_CALLBACK_PREFIX):].partition(":")
    if not owner.isdigit() or not page.isdigit():
        return None
    return int(owner), int(page)
