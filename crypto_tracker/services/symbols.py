from crypto_tracker.errors import ValidationError

# ticker -> CoinGecko coin id
SYMBOL_TO_COIN_ID = {
    "btc": "bitcoin",
    "eth": "ethereum",
    "usdt": "tether",
    "usdc": "usd-coin",
    "bnb": "binancecoin",
    "xrp": "ripple",
    "sol": "solana",
    "ada": "cardano",
    "doge": "dogecoin",
    "dot": "polkadot",
}


def normalize_symbol(symbol: str) -> str:
    """Canonical (stripped, lowercase) form used for every cache/history/favorite key."""
    key = (symbol or "").strip().lower()
    if not key:
        raise ValidationError("Symbol is required")
    return key


def resolve_coin_id(symbol: str) -> str:
    """Map a ticker to its CoinGecko id.

    Unknown symbols are passed through as-is, on the assumption that the caller
    already supplied a coin id; an invalid one fails at the remote API.
    """
    key = symbol.strip().lower()
    return SYMBOL_TO_COIN_ID.get(key, key)
