"""Custom exceptions for the stockcorr package."""


class StockCorrError(Exception):
    """Base exception for stockcorr errors."""
    pass


class ValidationError(StockCorrError):
    """Raised when a request is malformed (ticker count, ticker format, minutes)."""
    pass


class AuthError(StockCorrError):
    """Raised when upstream authentication fails or returns a malformed response."""
    pass


class FetchError(StockCorrError):
    """
    Raised when price history cannot be retrieved from upstream.

    Attributes:
        ticker: Ticker whose history was requested
        cause: Underlying exception, if any
    """

    def __init__(self, message: str, ticker: str, cause: Exception = None):
        super().__init__(message)
        self.ticker = ticker
        self.cause = cause


class ConfigError(StockCorrError):
    """Raised when required configuration is missing."""
    pass
