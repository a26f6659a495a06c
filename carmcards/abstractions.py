"""High-level helpers that simplify bootstrapping Carmcards bots.

This module provides a straightforward, batteries-included API for running the
bot from a catalog file and for building catalogs in code.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from pathlib import Path

from aiogram import Bot, Dispatcher
from rich.console import Console

from .app import BotApp
from .config import CarmcardsConfig
from .loaders import load_catalog_from_json, validate_catalog_dict
from .telegram import build_router
from .validators import validate_app

console = Console()


@dataclass(slots=True)
class SimpleBotConfig:
    """Minimal settings required to run a Carmcards bot."""

    bot_token: str
    catalog_path: Path
    storage: str = "memory"  # "memory" or path to SQLite file
    foil_chance: float | None = None
    invite_ttl_seconds: int | None = None


async def run_simple_bot(config: SimpleBotConfig) -> None:
    """Spin up a ready-to-go aiogram bot with sensible defaults."""

    carmcards_config = CarmcardsConfig.from_env()
    carmcards_config.bot_token = config.bot_token
    if config.storage != "memory":
        db_path = Path(config.storage).expanduser().resolve()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        carmcards_config.storage.backend = "sqlalchemy"
        carmcards_config.storage.dsn = f"sqlite+aiosqlite:///{db_path.as_posix()}"
    if config.foil_chance is not None:
        carmcards_config.draw.foil_chance = config.foil_chance
    if config.invite_ttl_seconds is not None:
        carmcards_config.trade.invite_ttl_seconds = config.invite_ttl_seconds

    app = BotApp(carmcards_config)
    await app.init_backend()
    load_catalog_from_json(app, config.catalog_path)
    issues = validate_app(app)
    if issues:
        raise RuntimeError("Invalid bot configuration:\n" + "\n".join(f"- {i}" for i in issues))

    bot = Bot(app.config.bot_token)
    me = await bot.get_me()
    dp = Dispatcher()
    dp.include_router(build_router(app, bot_username=me.username))

    snapshot = app.snapshot()
    console.print(
        f"[bold green]Carmcards ready as @{me.username}![/bold green]\n"
        f"Cards: {snapshot['cards']}, storage: {snapshot['storage']}",
    )

    try:
        await dp.start_polling(bot)
    finally:
        await app.close()


def run_simple_bot_sync(config: SimpleBotConfig) -> None:
    """Synchronous wrapper for run_simple_bot."""

    asyncio.run(run_simple_bot(config))


@dataclass(slots=True)
class CatalogBuilder:
    """Imperative builder that produces JSON catalogs."""

    card_sets: list[dict] = field(default_factory=list)
    cards: list[dict] = field(default_factory=list)

    def add_card_set(self, set_id: int, name: str) -> "CatalogBuilder":
        self.card_sets.append({"id": set_id, "name": name})
        return self

    def add_card(
        self,
        card_id: int,
        number: int,
        *,
        foil: bool = False,
        image_url: str | None = None,
        card_set: int | None = None,
    ) -> "CatalogBuilder":
        card: dict = {"id": card_id, "number": number, "foil": foil}
        if image_url:
            card["image"] = image_url
        if card_set is not None:
            card["set"] = card_set
        self.cards.append(card)
        return self

    def add_foil_pair(
        self,
        number: int,
        *,
        image_url: str | None = None,
        foil_image_url: str | None = None,
        card_set: int | None = None,
    ) -> "CatalogBuilder":
        """Add regular and foil variants of ``number`` with the next free ids."""
        next_id = max((card["id"] for card in self.cards), default=0) + 1
        self.add_card(next_id, number, image_url=image_url, card_set=card_set)
        self.add_card(
            next_id + 1,
            number,
            foil=True,
            image_url=foil_image_url or image_url,
            card_set=card_set,
        )
        return self

    def build(self) -> dict:
        catalog = {"cardSets": self.card_sets, "cards": self.cards}
        errors = validate_catalog_dict(catalog)
        if errors:
            raise ValueError("Catalog validation failed:\n" + "\n".join(f"- {err}" for err in errors))
        return catalog

    def save(self, path: Path) -> None:
        catalog = self.build()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(catalog, ensure_ascii=False, indent=2), encoding="utf-8")


__all__ = [
    "SimpleBotConfig",
    "CatalogBuilder",
    "run_simple_bot",
    "run_simple_bot_sync",
]
