import httpx
import pytest

from crypto_tracker.errors import UpstreamFetchError
from crypto_tracker.services.coingecko import API_KEY_HEADER, CoinGeckoClient


def _client(handler, **kwargs):
    kwargs.setdefault("backoff", 0)
    return CoinGeckoClient(
        base_url="https://cg.test/api/v3", transport=httpx.MockTransport(handler), **kwargs
    )


@pytest.mark.asyncio
async def test_fetch_coin_requests_market_data():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "bitcoin"})

    client = _client(handler)
    assert await client.fetch_coin("bitcoin") == {"id": "bitcoin"}
    await client.aclose()

    assert seen[0].url.path == "/api/v3/coins/bitcoin"
    assert seen[0].url.params["market_data"] == "true"
    assert API_KEY_HEADER not in seen[0].headers


@pytest.mark.asyncio
async def test_api_key_sent_as_header():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=[])

    client = _client(handler, api_key="secret")
    await client.fetch_markets(page=2, per_page=10)
    await client.aclose()

    assert seen[0].headers[API_KEY_HEADER] == "secret"
    assert seen[0].url.params["page"] == "2"
    assert seen[0].url.params["per_page"] == "10"
    assert seen[0].url.params["order"] == "market_cap_desc"


@pytest.mark.asyncio
async def test_market_chart_returns_price_pairs():
    def handler(request):
        assert request.url.params["days"] == "3"
        assert request.url.params["vs_currency"] == "usd"
        return httpx.Response(200, json={"prices": [[1, 2.0], [3, 4.0]], "market_caps": []})

    client = _client(handler)
    assert await client.fetch_market_chart("ethereum", 3) == [[1, 2.0], [3, 4.0]]
    await client.aclose()


@pytest.mark.asyncio
async def test_retries_on_rate_limit_then_succeeds():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] < 3:
            return httpx.Response(429)
        return httpx.Response(200, json={"id": "bitcoin"})

    client = _client(handler, retries=3)
    assert await client.fetch_coin("bitcoin") == {"id": "bitcoin"}
    assert calls["n"] == 3
    await client.aclose()


@pytest.mark.asyncio
async def test_gives_up_after_retries_on_transport_error():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        raise httpx.ConnectError("network down", request=request)

    client = _client(handler, retries=2)
    with pytest.raises(UpstreamFetchError):
        await client.fetch_coin("bitcoin")
    assert calls["n"] == 2
    await client.aclose()


@pytest.mark.asyncio
async def test_client_error_is_not_retried():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        return httpx.Response(404, json={"error": "coin not found"})

    client = _client(handler, retries=3)
    with pytest.raises(UpstreamFetchError) as excinfo:
        await client.fetch_coin("not-a-coin")
    assert "404" in excinfo.value.message
    assert calls["n"] == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_malformed_payloads_raise():
    def handler(request):
        if request.url.path.endswith("market_chart"):
            return httpx.Response(200, json={"unexpected": True})
        return httpx.Response(200, text="<html>not json</html>")

    client = _client(handler)
    with pytest.raises(UpstreamFetchError):
        await client.fetch_market_chart("bitcoin", 1)
    with pytest.raises(UpstreamFetchError):
        await client.fetch_coin("bitcoin")
    await client.aclose()
