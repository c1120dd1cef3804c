import logging
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from crypto_tracker.errors import ConflictError, PersistenceError
from crypto_tracker.models.favorite import Favorite

logger = logging.getLogger("crypto_tracker.favorites")


class FavoritesStore:
    def __init__(self, session_factory: async_sessionmaker):
        self._sessions = session_factory

    async def add(self, symbol: str, name: str) -> Favorite:
        key = symbol.strip().lower()
        fav = Favorite(symbol=key, name=name.strip())
        async with self._sessions() as db:
            try:
                db.add(fav)
                await db.commit()
                await db.refresh(fav)
            except IntegrityError as e:
                await db.rollback()
                raise ConflictError(f"{key} is already in favorites") from e
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError(f"Failed to add favorite {key}") from e
        logger.info(f"Favorite added: {fav.symbol}")
        return fav

    async def remove(self, symbol: str) -> int:
        """Delete a favorite; returns the number of rows removed (0 or 1)."""
        key = symbol.strip().lower()
        async with self._sessions() as db:
            try:
                res = await db.execute(delete(Favorite).where(Favorite.symbol == key))
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError(f"Failed to remove favorite {key}") from e
        count = res.rowcount or 0
        logger.info(f"Favorite remove for {key}: {count} row(s)")
        return count

    async def list_all(self) -> List[Favorite]:
        q = select(Favorite).order_by(Favorite.created_at.desc(), Favorite.id.desc())
        async with self._sessions() as db:
            try:
                res = await db.execute(q)
                return list(res.scalars().all())
            except SQLAlchemyError as e:
                raise PersistenceError("Failed to list favorites") from e

    async def is_favorite(self, symbol: str) -> bool:
        q = select(Favorite.id).where(Favorite.symbol == symbol.strip().lower())
        async with self._sessions() as db:
            try:
                res = await db.execute(q)
                return res.first() is not None
            except SQLAlchemyError as e:
                raise PersistenceError(f"Failed to look up favorite {symbol}") from e
