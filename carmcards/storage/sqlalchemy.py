"""SQLAlchemy storage backend for Carmcards."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Iterable, Sequence

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..domain.exceptions import StoreError
from .base import (
    CollectorRecord,
    CollectorStore,
    PossessionRecord,
    PossessionStore,
    TradeKey,
    TradeOffer,
    TradeRecord,
    TradeStore,
)

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class CollectorTable(Base):
    __tablename__ = "carmcards_collectors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, unique=True, index=True)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    last_draw_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class PossessionTable(Base):
    __tablename__ = "carmcards_possessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collector_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("carmcards_collectors.id"), index=True
    )
    card_id: Mapped[int] = mapped_column(Integer, index=True)


class TradeTable(Base):
    __tablename__ = "carmcards_trades"

    low_collector_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    high_collector_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    caller_id: Mapped[int] = mapped_column(Integer, ForeignKey("carmcards_collectors.id"))
    caller_card_id: Mapped[int] = mapped_column(Integer)
    responder_id: Mapped[int] = mapped_column(Integer, ForeignKey("carmcards_collectors.id"))
    responder_card_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class _ExchangeConflict(Exception):
    """Rolls back an exchange whose rows moved under it."""


@asynccontextmanager
async def _store_errors(action: str) -> AsyncIterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Storage operation '%s' failed: %s", action, exc)
        raise StoreError(f"Storage operation '{action}' failed") from exc


class AsyncSQLAlchemyStorage:
    """Bundle of async stores backed by SQLAlchemy."""

    def __init__(self, dsn: str, *, echo: bool = False) -> None:
        self._engine = create_async_engine(dsn, echo=echo)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    async def init_models(self) -> None:
        async with _store_errors("init_models"):
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    def collector_store(self) -> "AsyncSQLAlchemyCollectorStore":
        return AsyncSQLAlchemyCollectorStore(self._session_factory)

    def possession_store(self) -> "AsyncSQLAlchemyPossessionStore":
        return AsyncSQLAlchemyPossessionStore(self._session_factory)

    def trade_store(self) -> "AsyncSQLAlchemyTradeStore":
        return AsyncSQLAlchemyTradeStore(self._session_factory)


class AsyncSQLAlchemyCollectorStore(CollectorStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_by_user_id(self, user_id: int) -> CollectorRecord | None:
        async with _store_errors("collector.find_by_user_id"):
            async with self._session_factory() as session:
                row = (
                    await session.execute(
                        select(CollectorTable).where(CollectorTable.user_id == user_id)
                    )
                ).scalar_one_or_none()
                return _to_collector(row) if row else None

    async def find_by_username(self, username: str) -> CollectorRecord | None:
        wanted = username.lstrip("@").lower()
        async with _store_errors("collector.find_by_username"):
            async with self._session_factory() as session:
                row = (
                    await session.execute(
                        select(CollectorTable)
                        .where(func.lower(CollectorTable.username) == wanted)
                        .limit(1)
                    )
                ).scalar_one_or_none()
                return _to_collector(row) if row else None

    async def create(self, user_id: int, username: str | None = None) -> CollectorRecord:
        async with _store_errors("collector.create"):
            async with self._session_factory() as session:
                async with session.begin():
                    if username:
                        username = username.lstrip("@")
                        await session.execute(_release_username(username, user_id))
                    row = CollectorTable(user_id=user_id, username=username)
                    session.add(row)
                return _to_collector(row)

    async def get_or_create(self, user_id: int, username: str | None = None) -> CollectorRecord:
        record = await self.find_by_user_id(user_id)
        if record is None:
            try:
                return await self.create(user_id, username)
            except StoreError as exc:
                if not isinstance(exc.__cause__, IntegrityError):
                    raise
                # Another task registered the same user first.
                record = await self.find_by_user_id(user_id)
                if record is None:
                    raise
        if username and record.username != username:
            await self.claim_username(user_id, username)
            record.username = username.lstrip("@")
        return record

    async def claim_username(self, user_id: int, username: str) -> None:
        wanted = username.lstrip("@")
        async with _store_errors("collector.claim_username"):
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(_release_username(wanted, user_id))
                    await session.execute(
                        update(CollectorTable)
                        .where(CollectorTable.user_id == user_id)
                        .values(username=wanted)
                    )

    async def save(self, record: CollectorRecord) -> None:
        async with _store_errors("collector.save"):
            async with self._session_factory() as session:
                stmt = (
                    update(CollectorTable)
                    .where(CollectorTable.id == record.collector_id)
                    .values(last_draw_at=record.last_draw_at)
                )
                await session.execute(stmt)
                await session.commit()


class AsyncSQLAlchemyPossessionStore(PossessionStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(self, collector_id: int, card_id: int) -> PossessionRecord:
        async with _store_errors("possession.add"):
            async with self._session_factory() as session:
                row = PossessionTable(collector_id=collector_id, card_id=card_id)
                session.add(row)
                await session.commit()
                return PossessionRecord(
                    possession_id=row.id, collector_id=row.collector_id, card_id=row.card_id
                )

    async def remove(self, collector_id: int, card_id: int) -> bool:
        async with _store_errors("possession.remove"):
            async with self._session_factory() as session:
                async with session.begin():
                    possession_id = await _first_possession_id(session, collector_id, card_id)
                    if possession_id is None:
                        return False
                    result = await session.execute(
                        delete(PossessionTable).where(PossessionTable.id == possession_id)
                    )
                    return result.rowcount == 1

    async def count(self, collector_id: int, card_ids: Iterable[int]) -> int:
        wanted = list(card_ids)
        if not wanted:
            return 0
        async with _store_errors("possession.count"):
            async with self._session_factory() as session:
                stmt = select(func.count(PossessionTable.id)).where(
                    PossessionTable.collector_id == collector_id,
                    PossessionTable.card_id.in_(wanted),
                )
                return int((await session.execute(stmt)).scalar_one())

    async def list_for_collector(self, collector_id: int) -> Sequence[PossessionRecord]:
        async with _store_errors("possession.list_for_collector"):
            async with self._session_factory() as session:
                stmt = (
                    select(PossessionTable)
                    .where(PossessionTable.collector_id == collector_id)
                    .order_by(PossessionTable.id)
                )
                rows = (await session.execute(stmt)).scalars().all()
                return [
                    PossessionRecord(
                        possession_id=row.id, collector_id=row.collector_id, card_id=row.card_id
                    )
                    for row in rows
                ]

    async def exchange(
        self,
        first_collector_id: int,
        first_card_id: int,
        second_collector_id: int,
        second_card_id: int,
    ) -> bool:
        async with _store_errors("possession.exchange"):
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        first_id = await _first_possession_id(
                            session, first_collector_id, first_card_id
                        )
                        second_id = await _first_possession_id(
                            session, second_collector_id, second_card_id
                        )
                        if first_id is None or second_id is None:
                            return False
                        moves = (
                            (first_id, first_collector_id, second_collector_id),
                            (second_id, second_collector_id, first_collector_id),
                        )
                        for possession_id, owner_id, new_owner_id in moves:
                            result = await session.execute(
                                update(PossessionTable)
                                .where(
                                    PossessionTable.id == possession_id,
                                    PossessionTable.collector_id == owner_id,
                                )
                                .values(collector_id=new_owner_id)
                            )
                            if result.rowcount != 1:
                                raise _ExchangeConflict(possession_id)
            except _ExchangeConflict as conflict:
                logger.warning("Possession %s changed owner during exchange", conflict.args[0])
                return False
            return True


class AsyncSQLAlchemyTradeStore(TradeStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: TradeKey) -> TradeRecord | None:
        async with _store_errors("trade.get"):
            async with self._session_factory() as session:
                row = await session.get(TradeTable, key)
                return _to_trade(row) if row else None

    async def put(self, trade: TradeRecord) -> None:
        low, high = trade.key
        async with _store_errors("trade.put"):
            async with self._session_factory() as session:
                await session.merge(
                    TradeTable(
                        low_collector_id=low,
                        high_collector_id=high,
                        caller_id=trade.caller.collector_id,
                        caller_card_id=trade.caller.card_id,
                        responder_id=trade.responder.collector_id,
                        responder_card_id=trade.responder.card_id,
                        created_at=trade.created_at,
                        updated_at=trade.updated_at,
                    )
                )
                await session.commit()

    async def delete(self, key: TradeKey) -> bool:
        low, high = key
        async with _store_errors("trade.delete"):
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(TradeTable).where(
                        TradeTable.low_collector_id == low,
                        TradeTable.high_collector_id == high,
                    )
                )
                await session.commit()
                return result.rowcount > 0

    async def for_collector(self, collector_id: int) -> Sequence[TradeRecord]:
        async with _store_errors("trade.for_collector"):
            async with self._session_factory() as session:
                stmt = select(TradeTable).where(
                    or_(
                        TradeTable.low_collector_id == collector_id,
                        TradeTable.high_collector_id == collector_id,
                    )
                )
                rows = (await session.execute(stmt)).scalars().all()
                return [_to_trade(row) for row in rows]


def _release_username(username: str, keep_user_id: int):
    return (
        update(CollectorTable)
        .where(
            func.lower(CollectorTable.username) == username.lower(),
            CollectorTable.user_id != keep_user_id,
        )
        .values(username=None)
    )


async def _first_possession_id(
    session: AsyncSession, collector_id: int, card_id: int
) -> int | None:
    stmt = (
        select(PossessionTable.id)
        .where(PossessionTable.collector_id == collector_id, PossessionTable.card_id == card_id)
        .order_by(PossessionTable.id)
        .limit(1)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


def _to_collector(row: CollectorTable) -> CollectorRecord:
    return CollectorRecord(
        collector_id=row.id,
        user_id=row.user_id,
        username=row.username,
        last_draw_at=row.last_draw_at,
    )


def _to_trade(row: TradeTable) -> TradeRecord:
    return TradeRecord(
        caller=TradeOffer(collector_id=row.caller_id, card_id=row.caller_card_id),
        responder=TradeOffer(collector_id=row.responder_id, card_id=row.responder_card_id),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
