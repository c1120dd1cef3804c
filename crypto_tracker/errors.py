"""Domain errors, each carrying the HTTP status and error title it renders as."""


class CryptoTrackerError(Exception):
    status_code = 500
    error = "Server error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.error, "message": self.message}


class ValidationError(CryptoTrackerError):
    status_code = 400
    error = "Invalid request"


class NotFoundError(CryptoTrackerError):
    status_code = 404
    error = "Not found"


class ConflictError(CryptoTrackerError):
    status_code = 409
    error = "Duplicate favorite"


class UpstreamFetchError(CryptoTrackerError):
    error = "Upstream fetch failed"


class PriceFetchFailed(UpstreamFetchError):
    error = "Failed to fetch price data"

    def __init__(self, symbol: str):
        super().__init__(f"Failed to fetch price data for {symbol}")
        self.symbol = symbol


class PriceHistoryFetchFailed(UpstreamFetchError):
    error = "Failed to fetch price history"

    def __init__(self, symbol: str):
        super().__init__(f"Failed to fetch price history for {symbol}")
        self.symbol = symbol


class PersistenceError(CryptoTrackerError):
    error = "Storage failure"
