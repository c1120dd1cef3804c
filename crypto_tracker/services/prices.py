"""Price fetch orchestration: cache, remote fetch, history recording and backfill."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Set

from crypto_tracker.database import utcnow
from crypto_tracker.errors import (
    PersistenceError,
    PriceFetchFailed,
    PriceHistoryFetchFailed,
    UpstreamFetchError,
    ValidationError,
)
from crypto_tracker.models.price_history import PriceHistory
from crypto_tracker.schemas import (
    CurrencyPrices,
    HistoryPoint,
    PriceHistoryResponse,
    PriceSnapshot,
)
from crypto_tracker.services.cache import PriceCache
from crypto_tracker.services.coingecko import CoinGeckoClient
from crypto_tracker.services.history import HistoryStore
from crypto_tracker.services.symbols import normalize_symbol, resolve_coin_id

logger = logging.getLogger("crypto_tracker.prices")

DEFAULT_HISTORY_DAYS = 7
MAX_PER_PAGE = 250


def snapshot_from_coin(data: Dict[str, Any]) -> PriceSnapshot:
    """Build a PriceSnapshot from a CoinGecko /coins/{id} payload.

    Raises UpstreamFetchError when the payload is missing required fields.
    """
    try:
        market = data["market_data"]
        current = market["current_price"]
        image = data.get("image") or {}
        return PriceSnapshot(
            id=data["id"],
            symbol=data["symbol"],
            name=data["name"],
            image=image.get("large") if isinstance(image, dict) else image,
            current_price=CurrencyPrices(
                usd=float(current["usd"]),
                eur=current.get("eur"),
                gbp=current.get("gbp"),
            ),
            market_cap=(market.get("market_cap") or {}).get("usd"),
            price_change_24h=market.get("price_change_percentage_24h"),
            last_updated=market.get("last_updated"),
        )
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        raise UpstreamFetchError(
            f"Malformed coin payload for {data.get('id') if isinstance(data, dict) else data!r}"
        ) from e


class PriceService:
    def __init__(
        self,
        client: CoinGeckoClient,
        cache: PriceCache,
        history: HistoryStore,
        strict_history_writes: bool = False,
        now: Callable[[], datetime] = utcnow,
    ):
        self.client = client
        self.cache = cache
        self.history = history
        self.strict_history_writes = strict_history_writes
        self._now = now
        self._backfills: Set[asyncio.Task] = set()

    async def get_current_price(self, symbol: str) -> PriceSnapshot:
        sym = normalize_symbol(symbol)
        cached = self.cache.get(sym)
        if cached is not None:
            logger.debug(f"Price cache hit for {sym}")
            return cached

        coin_id = resolve_coin_id(sym)
        logger.info(f"Price cache miss for {sym}; fetching {coin_id} from CoinGecko")
        try:
            snapshot = snapshot_from_coin(await self.client.fetch_coin(coin_id))
        except UpstreamFetchError as e:
            logger.error(f"Price fetch failed for {sym}: {e}")
            raise PriceFetchFailed(sym) from e

        self.cache.put(sym, snapshot)
        await self._record_price(sym, snapshot)
        return snapshot

    async def get_price_history(
        self, symbol: str, days: int = DEFAULT_HISTORY_DAYS
    ) -> PriceHistoryResponse:
        sym = normalize_symbol(symbol)
        start = self._window_start(days)

        local = await self.history.range(sym, start)
        if local:
            logger.info(f"History for {sym}: {len(local)} local rows since {start.isoformat()}")
            return PriceHistoryResponse(
                symbol=sym,
                data=[
                    HistoryPoint(
                        timestamp=int(r.timestamp.timestamp() * 1000), price=r.price
                    )
                    for r in local
                ],
            )

        coin_id = resolve_coin_id(sym)
        logger.info(f"No local history for {sym}; fetching {days}d chart for {coin_id}")
        try:
            series = await self.client.fetch_market_chart(coin_id, days)
            points = [
                HistoryPoint(timestamp=int(ts), price=float(price)) for ts, price in series
            ]
        except UpstreamFetchError as e:
            logger.error(f"History fetch failed for {sym}: {e}")
            raise PriceHistoryFetchFailed(sym) from e
        except (TypeError, ValueError) as e:
            logger.error(f"Malformed history series for {sym}: {e}")
            raise PriceHistoryFetchFailed(sym) from e

        if points:
            self._schedule_backfill(sym, points)
        return PriceHistoryResponse(symbol=sym, data=points)

    async def list_cryptocurrencies(self, page: int = 1, per_page: int = 50) -> List[dict]:
        if page < 1 or per_page < 1 or per_page > MAX_PER_PAGE:
            raise ValidationError(
                f"Page must be >= 1 and perPage must be between 1 and {MAX_PER_PAGE}"
            )
        try:
            return await self.client.fetch_markets(page=page, per_page=per_page)
        except UpstreamFetchError as e:
            logger.error(f"Markets fetch failed (page={page}, per_page={per_page}): {e}")
            raise UpstreamFetchError("Failed to fetch cryptocurrencies list") from e

    def _window_start(self, days: int) -> datetime:
        # very large windows clamp to the earliest representable time
        try:
            return self._now() - timedelta(days=days)
        except OverflowError:
            return datetime.min.replace(tzinfo=timezone.utc)

    async def purge_history(self, retention_days: int) -> int:
        cutoff = self._window_start(retention_days)
        return await self.history.purge_older_than(cutoff)

    async def drain_backfills(self):
        """Wait for all pending backfill tasks to finish."""
        while self._backfills:
            await asyncio.gather(*list(self._backfills), return_exceptions=True)

    @property
    def pending_backfills(self) -> int:
        return len(self._backfills)

    async def _record_price(self, sym: str, snapshot: PriceSnapshot):
        record = PriceHistory(
            symbol=sym, price=float(snapshot.current_price.usd), timestamp=self._now()
        )
        try:
            await self.history.save(record)
        except PersistenceError:
            if self.strict_history_writes:
                raise
            logger.exception(f"History write failed for {sym}; serving fetched price anyway")

    def _schedule_backfill(self, sym: str, points: List[HistoryPoint]):
        task = asyncio.create_task(self._backfill(sym, points), name=f"backfill-{sym}")
        self._backfills.add(task)
        task.add_done_callback(self._backfill_done)

    def _backfill_done(self, task: asyncio.Task):
        self._backfills.discard(task)
        if task.cancelled():
            logger.warning(f"Backfill task {task.get_name()} cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Backfill task {task.get_name()} crashed: {exc!r}")

    async def _backfill(self, sym: str, points: List[HistoryPoint]):
        saved = 0
        for point in points:
            record = PriceHistory(
                symbol=sym,
                price=point.price,
                timestamp=datetime.fromtimestamp(point.timestamp / 1000, tz=timezone.utc),
            )
            try:
                await self.history.save(record)
                saved += 1
            except PersistenceError as e:
                logger.error(f"Failed to save backfilled price for {sym}: {e}")
        logger.info(f"Backfilled {saved}/{len(points)} history points for {sym}")
