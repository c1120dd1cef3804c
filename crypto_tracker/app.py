import asyncio
import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crypto_tracker.config import (
    CORS_ORIGINS,
    HISTORY_RETENTION_DAYS,
    LOG_LEVEL,
    PRICE_CACHE_TTL,
    PURGE_INTERVAL,
    STRICT_HISTORY_WRITES,
)
from crypto_tracker.database import AsyncSessionLocal, engine, init_db
from crypto_tracker.errors import CryptoTrackerError, NotFoundError, ValidationError
from crypto_tracker.schemas import (
    CryptocurrencyListResponse,
    FavoriteCreate,
    FavoriteOut,
    ListMeta,
    PriceHistoryResponse,
    PriceSnapshot,
)
from crypto_tracker.services.cache import PriceCache
from crypto_tracker.services.coingecko import CoinGeckoClient
from crypto_tracker.services.favorites import FavoritesStore
from crypto_tracker.services.history import HistoryStore
from crypto_tracker.services.prices import DEFAULT_HISTORY_DAYS, PriceService
from crypto_tracker.services.symbols import normalize_symbol

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("crypto_tracker.app")

app = FastAPI(title="Crypto Tracker")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CryptoTrackerError)
async def domain_error_handler(request: Request, exc: CryptoTrackerError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "message": str(exc.errors())},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    # the server error middleware re-raises, so the traceback is logged there
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc!r}")
    return JSONResponse(
        status_code=500, content={"error": "Server error", "message": str(exc)}
    )


# dependencies
def get_price_service(request: Request) -> PriceService:
    return request.app.state.price_service


def get_favorites_store(request: Request) -> FavoritesStore:
    return request.app.state.favorites_store


def _parse_int(raw: Optional[str], default: int) -> int:
    # non-numeric or missing values fall back to the default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


@app.on_event("startup")
async def startup_event():
    logger.info("Starting up application")
    await init_db()
    app.state.coingecko = CoinGeckoClient()
    app.state.price_cache = PriceCache(ttl_seconds=PRICE_CACHE_TTL)
    app.state.history_store = HistoryStore(AsyncSessionLocal)
    app.state.favorites_store = FavoritesStore(AsyncSessionLocal)
    app.state.price_service = PriceService(
        client=app.state.coingecko,
        cache=app.state.price_cache,
        history=app.state.history_store,
        strict_history_writes=STRICT_HISTORY_WRITES,
    )
    if HISTORY_RETENTION_DAYS > 0:
        app.state.purge_task = asyncio.create_task(history_purger())
        logger.info(
            f"History retention {HISTORY_RETENTION_DAYS}d, purging every {PURGE_INTERVAL}s"
        )
    else:
        app.state.purge_task = None
    logger.info(
        f"Startup complete: cache_ttl={PRICE_CACHE_TTL}s, strict_history_writes={STRICT_HISTORY_WRITES}"
    )


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down application")
    task = getattr(app.state, "purge_task", None)
    if task:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    service = getattr(app.state, "price_service", None)
    if service is not None:
        if service.pending_backfills:
            logger.info(f"Waiting for {service.pending_backfills} backfill task(s)")
        await service.drain_backfills()
        await service.client.aclose()
    await engine.dispose()
    logger.info("Shutdown complete")


@app.get("/health")
async def health():
    logger.debug("Health check requested")
    return {"status": "ok"}


@app.get("/price/{symbol}", response_model=PriceSnapshot)
async def current_price(
    symbol: str, service: PriceService = Depends(get_price_service)
):
    logger.info(f"Current price requested for {symbol}")
    return await service.get_current_price(symbol)


@app.get("/history/{symbol}", response_model=PriceHistoryResponse)
@app.get("/history/{symbol}/{days}", response_model=PriceHistoryResponse)
async def price_history(
    symbol: str,
    days: Optional[str] = None,
    service: PriceService = Depends(get_price_service),
):
    days_num = _parse_int(days, DEFAULT_HISTORY_DAYS)
    if days_num < 1:
        days_num = DEFAULT_HISTORY_DAYS
    logger.info(f"Price history requested for {symbol} ({days_num}d)")
    return await service.get_price_history(symbol, days_num)


@app.get(
    "/cryptocurrencies",
    response_model=CryptocurrencyListResponse,
    response_model_by_alias=True,
)
async def cryptocurrencies(
    page: Optional[str] = Query(None),
    per_page: Optional[str] = Query(None, alias="perPage"),
    service: PriceService = Depends(get_price_service),
):
    page_num = _parse_int(page, 1)
    per_page_num = _parse_int(per_page, 50)
    data = await service.list_cryptocurrencies(page_num, per_page_num)
    return CryptocurrencyListResponse(
        data=data, meta=ListMeta(page=page_num, per_page=per_page_num, count=len(data))
    )


@app.get("/favorites", response_model=List[FavoriteOut])
async def list_favorites(store: FavoritesStore = Depends(get_favorites_store)):
    return await store.list_all()


@app.post("/favorites", response_model=FavoriteOut, status_code=201)
async def add_favorite(
    payload: FavoriteCreate, store: FavoritesStore = Depends(get_favorites_store)
):
    if not (payload.symbol or "").strip() or not (payload.name or "").strip():
        raise ValidationError("Symbol and name are required")
    return await store.add(payload.symbol, payload.name)


@app.delete("/favorites/{symbol}")
async def remove_favorite(
    symbol: str, store: FavoritesStore = Depends(get_favorites_store)
):
    sym = normalize_symbol(symbol)
    removed = await store.remove(sym)
    if removed == 0:
        raise NotFoundError(f"Favorite with symbol {sym} not found")
    return {"message": f"Removed {sym} from favorites"}


# Background retention purge
async def history_purger():
    while True:
        await asyncio.sleep(PURGE_INTERVAL)
        try:
            removed = await app.state.price_service.purge_history(HISTORY_RETENTION_DAYS)
            logger.info(f"Retention purge removed {removed} rows")
        except Exception:
            logger.exception("Retention purge failed")
