from crypto_tracker.schemas import CurrencyPrices, PriceSnapshot
from crypto_tracker.services.cache import PriceCache


def _snapshot(usd=100.0):
    return PriceSnapshot(
        id="bitcoin",
        symbol="btc",
        name="Bitcoin",
        current_price=CurrencyPrices(usd=usd),
    )


def test_get_missing_symbol(fake_clock):
    cache = PriceCache(clock=fake_clock)
    assert cache.get("btc") is None


def test_entry_valid_until_ttl_boundary(fake_clock):
    cache = PriceCache(ttl_seconds=60, clock=fake_clock)
    snap = _snapshot()
    cache.put("btc", snap)

    fake_clock.advance(59.999)
    assert cache.get("btc") is snap

    fake_clock.advance(0.001)
    assert cache.get("btc") is None
    # expired entries are ignored, not purged
    assert len(cache) == 1


def test_put_overwrites_and_restamps(fake_clock):
    cache = PriceCache(ttl_seconds=60, clock=fake_clock)
    cache.put("btc", _snapshot(1.0))
    fake_clock.advance(50)
    newer = _snapshot(2.0)
    cache.put("btc", newer)
    fake_clock.advance(50)
    assert cache.get("btc") is newer


def test_keys_are_case_insensitive(fake_clock):
    cache = PriceCache(clock=fake_clock)
    snap = _snapshot()
    cache.put("BTC", snap)
    assert cache.get("btc") is snap
    cache.clear()
    assert cache.get("btc") is None
