"""
Core entity classes for the stockcorr package.

These classes represent the credential held by the cache, the price samples
returned by upstream, and the result records handed back to callers.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterator, Optional, Tuple
import numpy as np


@dataclass(frozen=True)
class Credential:
    """
    A bearer token together with the moment it stops being handed out.

    Attributes:
        token: Opaque bearer token
        expires_at: Epoch seconds after which the token is considered stale.
            Already reduced by the expiry buffer at creation time.

    Representation Invariants:
        - token is non-empty
    """
    token: str
    expires_at: float

    def __post_init__(self):
        """Validate representation invariants."""
        if not self.token:
            raise ValueError("token cannot be empty")

    def is_valid(self, now: float) -> bool:
        """Return True if the credential can still be used at time `now`."""
        return now < self.expires_at

    def __repr__(self) -> str:
        # Never expose the token itself
        return f"Credential(expires_at={self.expires_at:.0f})"


@dataclass(frozen=True)
class PricePoint:
    """
    A single price sample as reported by upstream.

    Attributes:
        price: Observed price
        timestamp: Time of the last update for this price
    """
    price: float
    timestamp: datetime

    def to_dict(self) -> dict:
        """Serialize using the upstream field names."""
        ts = self.timestamp
        if ts.utcoffset() == timedelta(0):
            stamp = ts.replace(tzinfo=None).isoformat() + "Z"
        else:
            stamp = ts.isoformat()
        return {"price": self.price, "lastUpdatedAt": stamp}


@dataclass(frozen=True)
class PriceHistory:
    """
    Ordered sequence of price samples for one ticker.

    Order is exactly as returned by upstream; it is not sorted by timestamp.

    Attributes:
        ticker: Ticker symbol
        points: Price samples, may be empty
    """
    ticker: str
    points: Tuple[PricePoint, ...] = ()

    @property
    def prices(self) -> np.ndarray:
        """Return the prices as a float array, in upstream order."""
        return np.array([p.price for p in self.points], dtype=float)

    def to_list(self) -> list:
        return [p.to_dict() for p in self.points]

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[PricePoint]:
        return iter(self.points)

    def __repr__(self) -> str:
        return f"PriceHistory({self.ticker}, {len(self)} points)"


@dataclass(frozen=True)
class CorrelationResult:
    """
    Pearson correlation between two tickers.

    Attributes:
        coefficient: Value in [-1, 1], or NaN when the correlation is undefined
        ticker_a: First ticker
        ticker_b: Second ticker
    """
    coefficient: float
    ticker_a: str
    ticker_b: str

    @property
    def is_defined(self) -> bool:
        """False when fewer than two points or a zero-variance series were given."""
        return not math.isnan(self.coefficient)

    def to_json_value(self) -> Optional[float]:
        """Return the coefficient, with undefined correlation mapped to None (JSON null)."""
        return self.coefficient if self.is_defined else None

    def __repr__(self) -> str:
        corr = f"{self.coefficient:.3f}" if self.is_defined else "undefined"
        return f"CorrelationResult({self.ticker_a}-{self.ticker_b}, corr={corr})"


@dataclass(frozen=True)
class AveragePriceResult:
    """Response of the average-price query."""
    average_stock_price: float
    price_history: PriceHistory

    def to_dict(self) -> dict:
        return {
            "averageStockPrice": self.average_stock_price,
            "priceHistory": self.price_history.to_list(),
        }


@dataclass(frozen=True)
class StockSummary:
    """Per-ticker block of the correlation response."""
    average_price: float
    price_history: PriceHistory

    def to_dict(self) -> dict:
        return {
            "averagePrice": self.average_price,
            "priceHistory": self.price_history.to_list(),
        }


@dataclass(frozen=True)
class CorrelationReport:
    """
    Response of the correlation query.

    Representation Invariants:
        - stocks has exactly the two tickers of correlation as keys
    """
    correlation: CorrelationResult
    stocks: Dict[str, StockSummary] = field(default_factory=dict)

    def __post_init__(self):
        """Validate representation invariants."""
        expected = {self.correlation.ticker_a, self.correlation.ticker_b}
        if set(self.stocks) != expected:
            raise ValueError(f"stocks must contain exactly {sorted(expected)}")

    def to_dict(self) -> dict:
        return {
            "correlation": self.correlation.to_json_value(),
            "stocks": {ticker: summary.to_dict() for ticker, summary in self.stocks.items()},
        }
