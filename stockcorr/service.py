"""
Aggregation service.

Orchestrates the price fetcher and the statistics functions for the two
supported queries (single-ticker average, two-ticker correlation) and shapes
their response records.
"""

import logging
import re
from typing import Optional, Sequence

import httpx

from stockcorr.analytics.statistics import average_price, correlate
from stockcorr.auth import CredentialCache
from stockcorr.config import Settings
from stockcorr.data_sources.prices import PriceFetcher
from stockcorr.entities import AveragePriceResult, CorrelationReport, StockSummary
from stockcorr.errors import ValidationError


logger = logging.getLogger(__name__)

# Letters, digits, dots (BRK.A) and hyphens (BF-B); must start alphanumeric
TICKER_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9.\-]*$")
MAX_TICKER_LENGTH = 10


def validate_ticker(ticker) -> str:
    """Return the stripped ticker, or raise ValidationError if it is malformed."""
    if not isinstance(ticker, str):
        raise ValidationError(f"Invalid ticker: {ticker!r}")
    ticker = ticker.strip()
    if not ticker or len(ticker) > MAX_TICKER_LENGTH:
        raise ValidationError(f"Invalid ticker: {ticker!r}")
    if not TICKER_PATTERN.match(ticker):
        raise ValidationError(f"Invalid ticker format: {ticker!r}")
    return ticker


def validate_minutes(minutes, default: int) -> int:
    """Apply the default for None, reject anything that is not a positive int."""
    if minutes is None:
        return default
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        raise ValidationError(f"minutes must be an integer, got {minutes!r}")
    if minutes <= 0:
        raise ValidationError(f"minutes must be positive, got {minutes}")
    return minutes


class AggregationService:
    """
    Answers average-price and correlation queries.

    Representation Invariants:
        - fetcher is the only path to upstream
        - no request state is kept between calls
    """

    def __init__(self, fetcher: PriceFetcher, settings: Optional[Settings] = None):
        self.fetcher = fetcher
        self.settings = settings or fetcher.settings

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AggregationService":
        """Wire a credential cache and fetcher that share one HTTP client."""
        settings = settings or Settings()
        client = httpx.Client(timeout=settings.request_timeout)
        credentials = CredentialCache(settings, client=client)
        return cls(PriceFetcher(credentials, settings, client=client), settings)

    def close(self) -> None:
        self.fetcher.close()

    def __enter__(self) -> "AggregationService":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def get_average_price(self, ticker: str, minutes: Optional[int] = None) -> AveragePriceResult:
        """
        Average price of one ticker over the look-back window.

        Preconditions:
            - ticker is a valid symbol
            - minutes is None (default window) or a positive integer

        Postconditions:
            - averageStockPrice is 0 when upstream returned no prices

        Raises:
            ValidationError: If ticker or minutes is invalid
            FetchError, AuthError: If upstream fails
        """
        ticker = validate_ticker(ticker)
        minutes = validate_minutes(minutes, self.settings.default_minutes)

        history = self.fetcher.fetch_history(ticker, minutes)
        return AveragePriceResult(
            average_stock_price=average_price(history),
            price_history=history
        )

    def get_correlation(
        self,
        tickers: Sequence[str],
        minutes: Optional[int] = None
    ) -> CorrelationReport:
        """
        Pearson correlation between exactly two tickers, plus their averages.

        Validation happens before any upstream call is made.

        Preconditions:
            - tickers holds exactly two distinct valid symbols
            - minutes is None (default window) or a positive integer

        Postconditions:
            - correlation is NaN (undefined) when fewer than two paired points
              exist or either series is constant

        Raises:
            ValidationError: If the ticker list or minutes is invalid
            FetchError, AuthError: If upstream fails for either ticker
        """
        if tickers is None or isinstance(tickers, str) or len(tickers) != 2:
            raise ValidationError("API requires 2 tickers for analysis")

        ticker_a, ticker_b = (validate_ticker(t) for t in tickers)
        if ticker_a == ticker_b:
            raise ValidationError("API requires 2 distinct tickers for analysis")
        minutes = validate_minutes(minutes, self.settings.default_minutes)

        history_a = self.fetcher.fetch_history(ticker_a, minutes)
        history_b = self.fetcher.fetch_history(ticker_b, minutes)

        result = correlate(history_a, history_b)
        if not result.is_defined:
            logger.info(
                "Correlation undefined for %s-%s (%d and %d points)",
                ticker_a, ticker_b, len(history_a), len(history_b)
            )

        return CorrelationReport(
            correlation=result,
            stocks={
                ticker_a: StockSummary(average_price(history_a), history_a),
                ticker_b: StockSummary(average_price(history_b), history_b),
            }
        )
