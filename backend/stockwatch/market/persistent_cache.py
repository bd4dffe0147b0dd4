"""Durable (symbol, period) -> series store with per-period expiry.

Backed by SQLAlchemy's asyncio extension. Any backend failure degrades the
cache to always-miss reads and no-op writes; callers then fall through to
a direct upstream fetch.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy import JSON, BigInteger, Integer, String, UniqueConstraint, delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .clock import Clock
from .errors import CacheBackendUnavailable
from .models import PricePoint, merge_series
from .periods import TimePeriod, cache_ttl_ms

logger = logging.getLogger(__name__)

_BACKEND_ERRORS = (CacheBackendUnavailable, SQLAlchemyError, OSError)


class Base(DeclarativeBase):
    pass


class SeriesCacheRow(Base):
    __tablename__ = "stock_historical_cache"
    __table_args__ = (UniqueConstraint("symbol", "period", name="uq_stock_cache_symbol_period"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    symbol: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    period: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    data: Mapped[list] = mapped_column(JSON, nullable=False)
    # Unix milliseconds
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)


@dataclass(frozen=True, slots=True)
class SeriesCacheEntry:
    symbol: str
    period: TimePeriod
    points: list[PricePoint]
    created_at: int
    updated_at: int
    expires_at: int


class PersistentCache:
    """Historical series cache.

    Lifecycle:
        cache = PersistentCache("sqlite+aiosqlite:///./cache.db")
        await cache.initialize()
        ...
        await cache.close()

    An empty URL leaves the cache permanently unavailable.
    """

    def __init__(self, database_url: str, clock: Clock | None = None) -> None:
        self._url = database_url.strip()
        self._clock = clock or Clock()
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker | None = None
        self._key_locks: dict[tuple[str, str], asyncio.Lock] = {}

    async def initialize(self) -> None:
        """Connect and create the table. Failures leave the cache degraded."""
        if not self._url:
            logger.warning("Persistent cache not configured. Cache disabled.")
            return
        engine = create_async_engine(self._url)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Persistent cache unavailable, running uncached: %s", e)
            await engine.dispose()
            return
        self._engine = engine
        self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False)
        logger.info("Persistent cache initialized (%s)", engine.url.render_as_string(hide_password=True))

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None

    @property
    def enabled(self) -> bool:
        return self._sessionmaker is not None

    async def is_available(self) -> bool:
        """True when the backing store answers a trivial query."""
        try:
            async with self._sessions()() as session:
                await session.execute(select(SeriesCacheRow.id).limit(1))
            return True
        except _BACKEND_ERRORS:
            return False

    # --- Reads ---

    async def read(self, symbol: str, period: TimePeriod | str) -> list[PricePoint] | None:
        """Cached series, or None on miss. Expired rows are deleted on the way."""
        entry = await self.read_entry(symbol, period)
        return entry.points if entry is not None else None

    async def read_entry(self, symbol: str, period: TimePeriod | str) -> SeriesCacheEntry | None:
        period = TimePeriod.parse(period)
        try:
            async with self._lock_for(symbol, period):
                async with self._sessions().begin() as session:
                    row = await session.scalar(
                        select(SeriesCacheRow).where(
                            SeriesCacheRow.symbol == symbol,
                            SeriesCacheRow.period == period.value,
                        )
                    )
                    if row is None:
                        logger.debug("Cache MISS for %s (%s)", symbol, period.value)
                        return None

                    if row.expires_at < self._clock.now_ms():
                        logger.debug("Cache EXPIRED for %s (%s)", symbol, period.value)
                        await session.delete(row)
                        return None

                    try:
                        points = [PricePoint.from_dict(p) for p in row.data]
                    except (KeyError, TypeError, ValueError) as e:
                        logger.warning("Cache row for %s (%s) is unreadable, dropping it: %s", symbol, period.value, e)
                        await session.delete(row)
                        return None
                    logger.debug("Cache HIT for %s (%s) - %d points", symbol, period.value, len(points))
                    return SeriesCacheEntry(
                        symbol=row.symbol,
                        period=period,
                        points=points,
                        created_at=row.created_at,
                        updated_at=row.updated_at,
                        expires_at=row.expires_at,
                    )
        except _BACKEND_ERRORS as e:
            self._log_backend_error("read", symbol, period, e)
            return None

    # --- Writes ---

    async def write(self, symbol: str, period: TimePeriod | str, points: list[PricePoint]) -> None:
        """Upsert the series for (symbol, period). Empty series are not stored.

        created_at is kept from the first insert; updated_at and expires_at
        move forward on every write.
        """
        period = TimePeriod.parse(period)
        if not points:
            return

        now = self._clock.now_ms()
        ttl = cache_ttl_ms(period)
        values = {
            "symbol": symbol,
            "period": period.value,
            "data": [p.to_dict() for p in merge_series(points)],
            "created_at": now,
            "updated_at": now,
            "expires_at": now + ttl,
        }
        try:
            async with self._lock_for(symbol, period):
                async with self._sessions().begin() as session:
                    stmt = self._upsert_statement(self._engine.dialect.name, values)
                    if stmt is not None:
                        await session.execute(stmt)
                    else:
                        await self._select_then_write(session, values)
            logger.debug(
                "Cache saved for %s (%s) - %d points, expires in %d min",
                symbol,
                period.value,
                len(values["data"]),
                round(ttl / 60000),
            )
        except _BACKEND_ERRORS as e:
            self._log_backend_error("write", symbol, period, e)

    async def delete(self, symbol: str, period: TimePeriod | str) -> None:
        period = TimePeriod.parse(period)
        try:
            async with self._lock_for(symbol, period):
                async with self._sessions().begin() as session:
                    await session.execute(
                        delete(SeriesCacheRow).where(
                            SeriesCacheRow.symbol == symbol,
                            SeriesCacheRow.period == period.value,
                        )
                    )
        except _BACKEND_ERRORS as e:
            self._log_backend_error("delete", symbol, period, e)

    async def delete_all_for_symbol(self, symbol: str) -> None:
        try:
            async with self._sessions().begin() as session:
                await session.execute(delete(SeriesCacheRow).where(SeriesCacheRow.symbol == symbol))
        except _BACKEND_ERRORS as e:
            self._log_backend_error("clear", symbol, None, e)

    async def sweep_expired(self) -> int:
        """Bulk-delete every row whose expires_at is in the past. Returns the row count."""
        try:
            async with self._sessions().begin() as session:
                result = await session.execute(
                    delete(SeriesCacheRow).where(SeriesCacheRow.expires_at < self._clock.now_ms())
                )
                removed = result.rowcount or 0
        except _BACKEND_ERRORS as e:
            self._log_backend_error("sweep", "*", None, e)
            return 0
        if removed:
            logger.info("Swept %d expired cache rows", removed)
        return removed

    # --- Internals ---

    def _sessions(self) -> async_sessionmaker:
        if self._sessionmaker is None:
            raise CacheBackendUnavailable("persistent cache is not initialized")
        return self._sessionmaker

    def _lock_for(self, symbol: str, period: TimePeriod) -> asyncio.Lock:
        key = (symbol, period.value)
        lock = self._key_locks.get(key)
        if lock is None:
            lock = self._key_locks[key] = asyncio.Lock()
        return lock

    @staticmethod
    def _upsert_statement(dialect: str, values: dict):
        """INSERT ... ON CONFLICT (symbol, period) DO UPDATE, where the dialect has it."""
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            return None
        stmt = insert(SeriesCacheRow).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=["symbol", "period"],
            set_={
                "data": stmt.excluded.data,
                "updated_at": stmt.excluded.updated_at,
                "expires_at": stmt.excluded.expires_at,
            },
        )

    @staticmethod
    async def _select_then_write(session, values: dict) -> None:
        existing = await session.scalar(
            select(SeriesCacheRow.id).where(
                SeriesCacheRow.symbol == values["symbol"],
                SeriesCacheRow.period == values["period"],
            )
        )
        if existing is None:
            session.add(SeriesCacheRow(**values))
        else:
            await session.execute(
                update(SeriesCacheRow)
                .where(SeriesCacheRow.id == existing)
                .values(
                    data=values["data"],
                    updated_at=values["updated_at"],
                    expires_at=values["expires_at"],
                )
            )

    @staticmethod
    def _log_backend_error(op: str, symbol: str, period: TimePeriod | None, error: Exception) -> None:
        label = f"{symbol} ({period.value})" if period else symbol
        if isinstance(error, CacheBackendUnavailable):
            logger.debug("Cache %s skipped for %s: %s", op, label, error)
        else:
            logger.error("Cache %s failed for %s: %s", op, label, error)
