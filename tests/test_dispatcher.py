import pytest

from carmcards.commands import CollectionCommand, TradeCommand
from carmcards.dispatcher import CommandDispatcher, format_duration, format_error_message
from carmcards.domain.clock import utcnow
from carmcards.domain.exceptions import (
    CooldownActive,
    StoreError,
    UnknownCardError,
    UnknownCollectorError,
)
from carmcards.storage.base import TradeOffer, TradeRecord
from carmcards.testing import CollectorFactory, TestClient


async def give(app, user_id, number, *, username=None, is_foil=False):
    collector = await app.collector_store.get_or_create(user_id, username)
    card = app.cards.catalog.find_by_number(number, is_foil)
    await app.possession_store.add(collector.collector_id, card.card_id)


@pytest.mark.asyncio()
async def test_trade_conversation_by_username(memory_app):
    await give(memory_app, 1, 1, username="ash")
    await give(memory_app, 2, 2, username="misty")
    client = TestClient(memory_app)

    reply = await client.send(1, "/trade @misty 1")
    assert "invited @misty" in reply.text
    assert "card #1" in reply.text

    reply = await client.send(2, "/trade @Ash #2")
    assert "offered your card #2 for @ash's card #1" in reply.text

    reply = await client.send(2, "/trade @ash")
    assert reply.text == "Waiting for the other collector to confirm the trade."

    reply = await client.send(1, "/trade @misty")
    assert reply.text.startswith("Trade complete!")
    assert len(client.history()) == 4


@pytest.mark.asyncio()
async def test_trade_with_reply_target(memory_app):
    await give(memory_app, 1, 1, username="ash")
    await give(memory_app, 2, 2)
    client = TestClient(memory_app)

    reply = await client.send(1, "/trade 1 foil", target_user_id=2)
    assert reply.text == "You don't have a foil card #1."


@pytest.mark.asyncio()
async def test_trade_needs_target(memory_app):
    dispatcher = CommandDispatcher(memory_app)
    reply = await dispatcher.handle(TradeCommand(card_number=1), user_id=1)
    assert reply.text.startswith("Mention who you want to trade with")


@pytest.mark.asyncio()
async def test_trade_with_unknown_username(memory_app):
    await give(memory_app, 1, 1, username="ash")
    client = TestClient(memory_app)

    reply = await client.send(1, "/trade @brock 1")
    assert reply.text == "The user you mentioned hasn't started their collection yet."


@pytest.mark.asyncio()
async def test_cancel_trade_reply(memory_app):
    await give(memory_app, 1, 1, username="ash")
    await give(memory_app, 2, 2, username="misty")
    client = TestClient(memory_app)

    await client.send(1, "/trade @misty 1")
    reply = await client.send(2, "/canceltrade @ash")
    assert reply.text == "Your trade with @ash was cancelled."

    reply = await client.send(2, "/canceltrade @ash")
    assert reply.text == "There is no trade to cancel."


@pytest.mark.asyncio()
async def test_draw_then_cooldown(memory_app):
    client = TestClient(memory_app)

    reply = await client.send(5, "/draw", username="gary")
    assert "You collected card #" in reply.text
    assert reply.image_url

    reply = await client.send(5, "/draw")
    assert reply.text.endswith("until your next draw.")


@pytest.mark.asyncio()
async def test_collection_reply_has_paging(memory_app):
    memory_app.config.draw.cards_per_page = 1
    await give(memory_app, 1, 1, username="ash")
    await give(memory_app, 1, 4, is_foil=True)
    dispatcher = CommandDispatcher(memory_app)

    reply = await dispatcher.handle(CollectionCommand(page=2), user_id=1, display_name="Ash")
    assert reply.page == 2
    assert reply.pages == 2
    assert "Ash's collection" in reply.text
    assert "✨ x1" in reply.text
    assert reply.text.endswith("Page 2/2")


@pytest.mark.asyncio()
async def test_card_before_first_draw(memory_app):
    client = TestClient(memory_app)
    reply = await client.send(9, "/card 1")
    assert reply.text.startswith("You haven't started your collection yet.")


@pytest.mark.asyncio()
async def test_help_and_unknown_text(memory_app):
    client = TestClient(memory_app)
    assert "/trade @username" in (await client.send(1, "/help")).text
    assert await client.send(1, "good morning") is None


def test_format_duration():
    assert format_duration(30) == "less than a minute"
    assert format_duration(60) == "1 minute"
    assert format_duration(7200) == "2 hours"
    assert format_duration(3660) == "1 hour and 1 minute"


def test_format_error_message():
    assert format_error_message(UnknownCardError(3, True), user_id=1) == "There is no foil card #3."
    assert format_error_message(CooldownActive(120), user_id=1) == "2 minutes until your next draw."
    assert "started their collection" in format_error_message(
        UnknownCollectorError(2), user_id=1
    )
    assert "Please try again later" in format_error_message(StoreError("boom"), user_id=1)


@pytest.mark.asyncio()
async def test_trade_between_factory_collectors(memory_app):
    factory = CollectorFactory()
    catalog = memory_app.cards.catalog
    ash = await factory.register(memory_app, with_cards=[catalog.find_by_number(1)])
    misty = await factory.register(memory_app, with_cards=[catalog.find_by_number(2)])
    client = TestClient(memory_app)

    await client.send(ash.user_id, f"/trade @{misty.username} 1")
    await client.send(misty.user_id, f"/trade @{ash.username} 2")
    reply = await client.send(ash.user_id, f"/trade @{misty.username}")

    assert reply.text == (
        f"Trade complete! You traded your card #1 for @{misty.username}'s card #2."
    )


@pytest.mark.asyncio()
async def test_reassigned_username_reaches_new_owner(memory_app):
    factory = CollectorFactory()
    catalog = memory_app.cards.catalog
    former = await factory.register(memory_app, with_cards=[catalog.find_by_number(1)])
    current = await factory.register(memory_app, with_cards=[catalog.find_by_number(2)])
    trader = await factory.register(memory_app, with_cards=[catalog.find_by_number(3)])
    client = TestClient(memory_app)

    await client.send(current.user_id, "/help", username=former.username)
    reply = await client.send(trader.user_id, f"/trade @{former.username} 3")

    assert f"invited @{former.username}" in reply.text
    assert await memory_app.trade_service.get_trade(trader.user_id, current.user_id)
    assert await memory_app.trade_service.get_trade(trader.user_id, former.user_id) is None
    assert (await memory_app.collector_store.find_by_user_id(former.user_id)).username is None


@pytest.mark.asyncio()
async def test_trade_for_card_gone_from_catalog_becomes_reply(memory_app):
    await give(memory_app, 1, 1, username="ash")
    await give(memory_app, 2, 2, username="misty")
    ash = await memory_app.collector_store.find_by_user_id(1)
    misty = await memory_app.collector_store.find_by_user_id(2)
    await memory_app.trade_store.put(
        TradeRecord(
            caller=TradeOffer(collector_id=ash.collector_id, card_id=999),
            responder=TradeOffer(
                collector_id=misty.collector_id,
                card_id=memory_app.cards.catalog.find_by_number(2).card_id,
            ),
            created_at=utcnow(),
        )
    )
    client = TestClient(memory_app)

    reply = await client.send(1, "/trade", target_user_id=2)

    assert reply.text == "One of the offered cards no longer exists; the trade was cancelled."
    assert await memory_app.trade_service.get_trade(1, 2) is None
