"""Carmcards public API."""

from .app import BotApp
from .config import CarmcardsConfig
from .registry import CardRegistry

__all__ = [
    "BotApp",
    "CarmcardsConfig",
    "CardRegistry",
]
