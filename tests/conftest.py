import os
import sys
import time

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Ensure the project root is on sys.path so tests can import crypto_tracker
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from crypto_tracker.database import init_db  # noqa: E402
from crypto_tracker.errors import UpstreamFetchError  # noqa: E402
from crypto_tracker.services.cache import PriceCache  # noqa: E402
from crypto_tracker.services.favorites import FavoritesStore  # noqa: E402
from crypto_tracker.services.history import HistoryStore  # noqa: E402
from crypto_tracker.services.prices import PriceService  # noqa: E402


def coin_payload(coin_id, symbol, name, usd):
    return {
        "id": coin_id,
        "symbol": symbol,
        "name": name,
        "image": {"large": f"https://img.example/{coin_id}.png"},
        "market_data": {
            "current_price": {"usd": usd, "eur": usd * 0.9, "gbp": usd * 0.8},
            "market_cap": {"usd": usd * 1_000_000},
            "price_change_percentage_24h": 1.5,
            "last_updated": "2026-10-19T12:00:00.000Z",
        },
    }


class FakeClock:
    """Epoch-ms clock that only moves when told to."""

    def __init__(self, start_ms=1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self):
        return self.now_ms

    def advance(self, seconds):
        self.now_ms += int(seconds * 1000)


class FakeCoinGecko:
    """Stands in for CoinGeckoClient; records calls, never touches the network."""

    def __init__(self):
        self.coins = {
            "bitcoin": coin_payload("bitcoin", "btc", "Bitcoin", 65000.0),
            "ethereum": coin_payload("ethereum", "eth", "Ethereum", 3200.0),
        }
        self.coin_calls = []
        self.chart_calls = []
        self.market_calls = []
        self.fail = False
        self.chart_points = 24
        self.closed = False

    async def fetch_coin(self, coin_id):
        self.coin_calls.append(coin_id)
        if self.fail or coin_id not in self.coins:
            raise UpstreamFetchError(f"CoinGecko /coins/{coin_id} returned 404")
        return self.coins[coin_id]

    async def fetch_market_chart(self, coin_id, days):
        self.chart_calls.append((coin_id, days))
        if self.fail:
            raise UpstreamFetchError(f"CoinGecko /coins/{coin_id}/market_chart unreachable")
        now_ms = int(time.time() * 1000)
        # hourly points ending one minute ago, oldest first like the real API
        return [
            [now_ms - 60_000 - i * 3_600_000, 3000.0 + i]
            for i in reversed(range(self.chart_points))
        ]

    async def fetch_markets(self, page=1, per_page=50):
        self.market_calls.append((page, per_page))
        if self.fail:
            raise UpstreamFetchError("CoinGecko /coins/markets returned 503")
        return [
            {"id": "bitcoin", "symbol": "btc", "name": "Bitcoin", "current_price": 65000.0},
            {"id": "ethereum", "symbol": "eth", "name": "Ethereum", "current_price": 3200.0},
        ][:per_page]

    async def aclose(self):
        self.closed = True


def _memory_engine():
    return create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture()
async def engine():
    eng = _memory_engine()
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture()
def history_store(session_factory):
    return HistoryStore(session_factory)


@pytest.fixture()
def favorites_store(session_factory):
    return FavoritesStore(session_factory)


@pytest.fixture()
def fake_clock():
    return FakeClock()


@pytest.fixture()
def fake_coingecko():
    return FakeCoinGecko()


@pytest.fixture()
def price_service(fake_coingecko, fake_clock, history_store):
    return PriceService(
        client=fake_coingecko,
        cache=PriceCache(ttl_seconds=60, clock=fake_clock),
        history=history_store,
    )


def _wire_app(monkeypatch, tmp_path, fake_coingecko):
    """Point the real app at a scratch SQLite file and fake CoinGecko."""
    import crypto_tracker.app as app_module

    # file-backed so concurrent backfill sessions get their own connections
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tracker.sqlite'}")

    async def _init_db(*a, **k):
        await init_db(test_engine)

    monkeypatch.setattr(app_module, "init_db", _init_db)
    monkeypatch.setattr(app_module, "engine", test_engine)
    monkeypatch.setattr(
        app_module,
        "AsyncSessionLocal",
        async_sessionmaker(test_engine, expire_on_commit=False),
    )
    monkeypatch.setattr(app_module, "CoinGeckoClient", lambda *a, **k: fake_coingecko)
    return app_module.app


@pytest.fixture()
def app_client(monkeypatch, tmp_path, fake_coingecko):
    from fastapi.testclient import TestClient

    with TestClient(_wire_app(monkeypatch, tmp_path, fake_coingecko)) as c:
        yield c


@pytest.fixture()
def lenient_client(monkeypatch, tmp_path, fake_coingecko):
    """Like app_client, but unhandled errors come back as 500 responses."""
    from fastapi.testclient import TestClient

    app = _wire_app(monkeypatch, tmp_path, fake_coingecko)
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
