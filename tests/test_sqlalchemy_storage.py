import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio

from carmcards.app import BotApp
from carmcards.config import CarmcardsConfig, StorageConfig
from carmcards.domain.clock import as_utc, utcnow
from carmcards.domain.exceptions import CooldownActive, StoreError
from carmcards.storage import AsyncSQLAlchemyStorage, TradeOffer, TradeRecord, TradeState


@pytest_asyncio.fixture()
async def storage(tmp_path):
    storage = AsyncSQLAlchemyStorage(f"sqlite+aiosqlite:///{(tmp_path / 'cards.db').as_posix()}")
    await storage.init_models()
    yield storage
    await storage.dispose()


@pytest.mark.asyncio()
async def test_collectors_round_trip(storage):
    collectors = storage.collector_store()
    created = await collectors.get_or_create(10, "Ash")
    again = await collectors.get_or_create(10, "ash_k")

    assert again.collector_id == created.collector_id
    assert (await collectors.find_by_user_id(10)).username == "ash_k"
    assert (await collectors.find_by_username("@ASH_K")).user_id == 10
    assert await collectors.find_by_username("misty") is None

    moment = utcnow() - timedelta(minutes=5)
    again.last_draw_at = moment
    await collectors.save(again)
    stored = await collectors.find_by_user_id(10)
    assert as_utc(stored.last_draw_at) == moment


@pytest.mark.asyncio()
async def test_possession_exchange_is_all_or_nothing(storage):
    collectors = storage.collector_store()
    possessions = storage.possession_store()
    ash = await collectors.create(1)
    misty = await collectors.create(2)
    await possessions.add(ash.collector_id, 100)
    await possessions.add(misty.collector_id, 200)

    assert not await possessions.exchange(ash.collector_id, 100, misty.collector_id, 300)
    assert await possessions.count(ash.collector_id, [100]) == 1
    assert await possessions.count(misty.collector_id, [200]) == 1

    assert await possessions.exchange(ash.collector_id, 100, misty.collector_id, 200)
    assert [row.card_id for row in await possessions.list_for_collector(ash.collector_id)] == [200]
    assert [row.card_id for row in await possessions.list_for_collector(misty.collector_id)] == [100]

    assert await possessions.remove(ash.collector_id, 200)
    assert not await possessions.remove(ash.collector_id, 200)
    assert await possessions.count(ash.collector_id, []) == 0


@pytest.mark.asyncio()
async def test_trade_store_round_trip(storage):
    collectors = storage.collector_store()
    trades = storage.trade_store()
    ash = await collectors.create(1)
    misty = await collectors.create(2)

    trade = TradeRecord(
        caller=TradeOffer(collector_id=misty.collector_id, card_id=5),
        responder=TradeOffer(collector_id=ash.collector_id),
        created_at=utcnow(),
    )
    await trades.put(trade)
    stored = await trades.get(trade.key)
    assert stored.state is TradeState.INVITED
    assert stored.caller.collector_id == misty.collector_id

    stored.responder.card_id = 6
    stored.updated_at = utcnow()
    await trades.put(stored)
    assert (await trades.get(trade.key)).state is TradeState.ACCEPTED
    assert len(await trades.for_collector(ash.collector_id)) == 1

    assert await trades.delete(trade.key)
    assert not await trades.delete(trade.key)
    assert await trades.get(trade.key) is None


@pytest.mark.asyncio()
async def test_missing_tables_raise_store_error(tmp_path):
    storage = AsyncSQLAlchemyStorage(f"sqlite+aiosqlite:///{(tmp_path / 'empty.db').as_posix()}")
    try:
        with pytest.raises(StoreError):
            await storage.collector_store().find_by_user_id(1)
    finally:
        await storage.dispose()


@pytest.mark.asyncio()
async def test_trade_over_sqlalchemy_backend(tmp_path):
    dsn = f"sqlite+aiosqlite:///{(tmp_path / 'app.db').as_posix()}"
    app = BotApp(
        CarmcardsConfig(bot_token="test", storage=StorageConfig(backend="sqlalchemy", dsn=dsn))
    )
    app.cards.foil_pair(1, card_id=1, foil_card_id=2).foil_pair(2, card_id=3, foil_card_id=4)
    await app.init_backend()
    try:
        ash = await app.collector_store.get_or_create(1, "ash")
        misty = await app.collector_store.get_or_create(2, "misty")
        await app.possession_store.add(ash.collector_id, 1)
        await app.possession_store.add(misty.collector_id, 3)

        service = app.trade_service
        await service.propose_or_advance(1, 2, 1)
        await service.propose_or_advance(2, 1, 2)
        await service.propose_or_advance(1, 2)

        assert await service.state_of(1, 2) is TradeState.NO_TRADE
        assert await app.possession_store.count(ash.collector_id, [3]) == 1
        assert await app.possession_store.count(misty.collector_id, [1]) == 1
    finally:
        await app.close()


@pytest.mark.asyncio()
async def test_username_moves_to_new_owner(storage):
    collectors = storage.collector_store()
    former = await collectors.get_or_create(1, "ash")
    await collectors.get_or_create(2, "misty")

    await collectors.claim_username(2, "Ash")

    assert (await collectors.find_by_username("ash")).user_id == 2
    assert (await collectors.find_by_user_id(former.user_id)).username is None

    await collectors.get_or_create(3, "ASH")
    assert (await collectors.find_by_username("ash")).user_id == 3
    assert (await collectors.find_by_user_id(2)).username is None


@pytest.mark.asyncio()
async def test_concurrent_draws_over_sqlalchemy_backend(tmp_path):
    dsn = f"sqlite+aiosqlite:///{(tmp_path / 'draws.db').as_posix()}"
    app = BotApp(
        CarmcardsConfig(bot_token="test", storage=StorageConfig(backend="sqlalchemy", dsn=dsn))
    )
    app.cards.foil_pair(1, card_id=1, foil_card_id=2)
    await app.init_backend()
    try:
        results = await asyncio.gather(
            app.collection_service.draw(42),
            app.collection_service.draw(42),
            return_exceptions=True,
        )

        assert sum(isinstance(result, CooldownActive) for result in results) == 1
        collector = await app.collector_store.find_by_user_id(42)
        assert len(await app.possession_store.list_for_collector(collector.collector_id)) == 1
    finally:
        await app.close()
