"""Pytest fixtures for Carmcards."""

from __future__ import annotations

import pytest

from ..app import BotApp
from ..config import CarmcardsConfig
from .factory import CardFactory


@pytest.fixture()
def memory_app() -> BotApp:
    """In-memory app with regular and foil cards numbered 1 to 10 in one set."""
    app = BotApp(CarmcardsConfig(bot_token="test", rng_seed=7))
    factory = CardFactory()
    factory.populate(app.cards.catalog, range(1, 11), card_set=factory.card_set(1))
    return app
