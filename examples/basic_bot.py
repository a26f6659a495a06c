"""Example Carmcards bot: a small catalog, a trade log and a dry-run trade."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from carmcards import BotApp, CarmcardsConfig
from carmcards.loaders import load_catalog_from_json

logger = logging.getLogger("carmcards.example")


def register(app: BotApp) -> None:
    """Load the example catalog and log finished trades."""
    catalog_path = Path(__file__).with_name("catalog") / "cards.json"
    load_catalog_from_json(app, catalog_path)

    async def log_trade(payload) -> None:
        logger.info(
            "Users %s and %s swapped cards %s and %s",
            payload["caller"],
            payload["responder"],
            payload["caller_card_id"],
            payload["responder_card_id"],
        )

    app.event_bus.subscribe("trade.executed", log_trade)


async def simulate() -> None:
    """Two collectors draw once and then swap their cards."""
    config = CarmcardsConfig.from_env()
    config.draw.cooldown_seconds = 0
    app = BotApp(config)
    register(app)

    first = await app.collection_service.draw(1, username="ash")
    second = await app.collection_service.draw(2, username="misty")
    trades = app.trade_service
    await trades.propose_or_advance(1, 2, first.card.number, first.card.is_foil)
    await trades.propose_or_advance(2, 1, second.card.number, second.card.is_foil)
    executed = await trades.propose_or_advance(1, 2)
    print(f"ash now holds {executed.responder_card.label}, misty holds {executed.caller_card.label}")


async def run_bot() -> None:
    from aiogram import Bot, Dispatcher

    from carmcards.telegram import build_router

    app = BotApp(CarmcardsConfig.from_env())
    register(app)
    await app.init_backend()

    bot = Bot(app.config.bot_token)
    me = await bot.get_me()
    dp = Dispatcher()
    dp.include_router(build_router(app, bot_username=me.username))
    try:
        await dp.start_polling(bot)
    finally:
        await app.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_bot())
