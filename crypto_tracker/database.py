import asyncio
import logging
import os
from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

from crypto_tracker.config import DATABASE_URL

logger = logging.getLogger("crypto_tracker.database")

engine = create_async_engine(DATABASE_URL, echo=False, future=True)

AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)
Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetime on every backend.

    SQLite has no tz support and hands back naive values; those are read back
    as UTC since everything is converted to UTC before it is written.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return as_utc(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return as_utc(value)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _ensure_sqlite_directory(url: str) -> None:
    parsed = make_url(url)
    if not parsed.drivername.startswith("sqlite"):
        return
    database = parsed.database
    if not database or database == ":memory:":
        return
    directory = os.path.dirname(os.path.abspath(database))
    if not os.path.isdir(directory):
        logger.info(f"Creating database directory {directory}")
        os.makedirs(directory, exist_ok=True)


async def init_db(db_engine: AsyncEngine = None, max_attempts: int = 10):
    # import models so they register on Base.metadata
    import crypto_tracker.models.favorite  # noqa: F401
    import crypto_tracker.models.price_history  # noqa: F401

    db_engine = db_engine or engine
    _ensure_sqlite_directory(str(db_engine.url))
    # create tables, retrying while the database starts
    attempt = 0
    while True:
        try:
            async with db_engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            break
        except Exception as e:
            attempt += 1
            if attempt >= max_attempts:
                logger.error(f"Database still unavailable after {attempt} attempts")
                raise
            wait_seconds = min(5, 0.5 * attempt)
            logger.warning(
                f"Database not ready (attempt {attempt}): {e}. Retrying in {wait_seconds}s..."
            )
            await asyncio.sleep(wait_seconds)
