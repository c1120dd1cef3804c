import os

DATABASE_URL = os.getenv(
    "DATABASE_URL", "sqlite+aiosqlite:///./db/crypto_tracker.sqlite"
)
COINGECKO_BASE_URL = os.getenv(
    "COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3"
)
COINGECKO_API_KEY = os.getenv("COINGECKO_API_KEY") or None

PRICE_CACHE_TTL = float(os.getenv("PRICE_CACHE_TTL", "60"))  # seconds
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10"))  # seconds
FETCH_RETRIES = int(os.getenv("FETCH_RETRIES", "3"))
RETRY_BACKOFF = float(os.getenv("RETRY_BACKOFF", "1.0"))  # seconds, doubled per attempt

# when set, a failed history write on a cache miss fails the price request
STRICT_HISTORY_WRITES = os.getenv("STRICT_HISTORY_WRITES", "0").lower() in (
    "1",
    "true",
    "yes",
    "y",
)

HISTORY_RETENTION_DAYS = int(os.getenv("HISTORY_RETENTION_DAYS", "0"))  # 0 disables purge
PURGE_INTERVAL = float(os.getenv("PURGE_INTERVAL", "3600"))  # seconds

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
