import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from crypto_tracker.config import (
    COINGECKO_API_KEY,
    COINGECKO_BASE_URL,
    FETCH_RETRIES,
    HTTP_TIMEOUT,
    RETRY_BACKOFF,
)
from crypto_tracker.errors import UpstreamFetchError

logger = logging.getLogger("crypto_tracker.coingecko")

API_KEY_HEADER = "x-cg-pro-api-key"
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class CoinGeckoClient:
    """Thin async client for the CoinGecko v3 REST API.

    GETs are retried with exponential backoff on transport errors, 429 and
    5xx responses. Any other failure raises UpstreamFetchError right away.
    """

    def __init__(
        self,
        base_url: str = COINGECKO_BASE_URL,
        api_key: Optional[str] = COINGECKO_API_KEY,
        timeout: float = HTTP_TIMEOUT,
        retries: int = FETCH_RETRIES,
        backoff: float = RETRY_BACKOFF,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"accept": "application/json"}
        if api_key:
            headers[API_KEY_HEADER] = api_key
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self.retries = max(1, retries)
        self.backoff = backoff

    async def fetch_coin(self, coin_id: str) -> Dict[str, Any]:
        params = {
            "localization": "false",
            "tickers": "false",
            "market_data": "true",
            "community_data": "false",
            "developer_data": "false",
        }
        return await self._get_json(f"/coins/{coin_id}", params)

    async def fetch_market_chart(self, coin_id: str, days: int) -> List[List[float]]:
        data = await self._get_json(
            f"/coins/{coin_id}/market_chart", {"vs_currency": "usd", "days": days}
        )
        try:
            return list(data["prices"])
        except (KeyError, TypeError) as e:
            raise UpstreamFetchError(
                f"Malformed market chart payload for {coin_id}"
            ) from e

    async def fetch_markets(self, page: int = 1, per_page: int = 50) -> List[Dict[str, Any]]:
        params = {
            "vs_currency": "usd",
            "order": "market_cap_desc",
            "per_page": per_page,
            "page": page,
            "sparkline": "false",
        }
        data = await self._get_json("/coins/markets", params)
        if not isinstance(data, list):
            raise UpstreamFetchError("Malformed markets payload")
        return data

    async def aclose(self):
        await self._client.aclose()

    async def _get_json(self, path: str, params: Dict[str, Any]):
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = await self._client.get(path, params=params)
                if resp.status_code in RETRYABLE_STATUS and attempt < self.retries:
                    logger.warning(
                        f"CoinGecko {path} returned {resp.status_code}, attempt {attempt}"
                    )
                    await asyncio.sleep(self.backoff * 2 ** (attempt - 1))
                    continue
                resp.raise_for_status()
                data = resp.json()
                logger.debug(f"CoinGecko {path} ok (attempt {attempt})")
                return data
            except httpx.HTTPStatusError as e:
                raise UpstreamFetchError(
                    f"CoinGecko {path} returned {e.response.status_code}"
                ) from e
            except httpx.TransportError as e:
                if attempt < self.retries:
                    logger.warning(f"CoinGecko {path} unreachable (attempt {attempt}): {e}")
                    await asyncio.sleep(self.backoff * 2 ** (attempt - 1))
                    continue
                raise UpstreamFetchError(f"CoinGecko {path} unreachable: {e}") from e
            except ValueError as e:
                raise UpstreamFetchError(f"CoinGecko {path} returned invalid JSON") from e
