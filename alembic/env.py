from logging.config import fileConfig
import os
import re
import sys

from sqlalchemy import engine_from_config
from sqlalchemy import pool
from alembic import context

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# add your model's MetaData object here
# for 'autogenerate' support
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))
from crypto_tracker.config import DATABASE_URL
from crypto_tracker.database import Base
import crypto_tracker.models.favorite  # noqa: F401
import crypto_tracker.models.price_history  # noqa: F401

target_metadata = Base.metadata

database_url = os.getenv("DATABASE_URL", DATABASE_URL)

# Alembic runs migrations with a synchronous driver. Strip async driver
# suffixes, e.g. postgresql+asyncpg:// -> postgresql://,
# sqlite+aiosqlite:// -> sqlite://
database_url = re.sub(r"\+(asyncpg|aiopg|aiosqlite)(?=://)", "", database_url, count=1)

config.set_main_option("sqlalchemy.url", database_url)


def run_migrations_offline():
    url = config.get_main_option("sqlalchemy.url")
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True)

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
