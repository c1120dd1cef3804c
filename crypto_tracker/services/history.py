import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from crypto_tracker.database import as_utc, utcnow
from crypto_tracker.errors import PersistenceError
from crypto_tracker.models.price_history import PriceHistory

logger = logging.getLogger("crypto_tracker.history")


class HistoryStore:
    """Append-only store of observed prices, keyed by lowercase symbol."""

    def __init__(self, session_factory: async_sessionmaker):
        self._sessions = session_factory

    async def save(self, record: PriceHistory) -> PriceHistory:
        symbol = record.symbol = record.symbol.lower()
        if record.timestamp is None:
            record.timestamp = utcnow()
        async with self._sessions() as db:
            try:
                db.add(record)
                await db.commit()
                await db.refresh(record)
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError(
                    f"Failed to save price history for {symbol}"
                ) from e
        logger.debug(f"History saved: {record.symbol} {record.price} @ {record.timestamp}")
        return record

    async def recent(self, symbol: str, limit: int = 100) -> List[PriceHistory]:
        q = (
            select(PriceHistory)
            .where(PriceHistory.symbol == symbol.lower())
            .order_by(PriceHistory.timestamp.desc(), PriceHistory.id.desc())
            .limit(limit)
        )
        return await self._fetch(q, symbol)

    async def range(
        self, symbol: str, start: datetime, end: Optional[datetime] = None
    ) -> List[PriceHistory]:
        end = end or utcnow()
        q = (
            select(PriceHistory)
            .where(PriceHistory.symbol == symbol.lower())
            .where(PriceHistory.timestamp.between(as_utc(start), as_utc(end)))
            .order_by(PriceHistory.timestamp.desc(), PriceHistory.id.desc())
        )
        return await self._fetch(q, symbol)

    async def purge_older_than(self, cutoff: datetime) -> int:
        async with self._sessions() as db:
            try:
                res = await db.execute(
                    delete(PriceHistory).where(PriceHistory.timestamp < as_utc(cutoff))
                )
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError("Failed to purge price history") from e
        count = res.rowcount or 0
        logger.info(f"Purged {count} price history rows older than {cutoff.isoformat()}")
        return count

    async def _fetch(self, q, symbol: str) -> List[PriceHistory]:
        async with self._sessions() as db:
            try:
                res = await db.execute(q)
                return list(res.scalars().all())
            except SQLAlchemyError as e:
                raise PersistenceError(
                    f"Failed to read price history for {symbol}"
                ) from e
