"""Telegram integration helpers."""

from .aiogram_router import build_router, extract_trade_target
from .keyboards import collection_page_keyboard, parse_collection_callback

__all__ = [
    "build_router",
    "extract_trade_target",
    "collection_page_keyboard",
    "parse_collection_callback",
]
