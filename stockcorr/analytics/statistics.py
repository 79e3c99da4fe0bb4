"""
Summary statistics over price histories.

This module provides pure functions (no I/O, no state) for the average price
of a history and the Pearson correlation between two histories.
"""

import numpy as np
from stockcorr.entities import CorrelationResult, PriceHistory


def average_price(history: PriceHistory) -> float:
    """
    Arithmetic mean of all prices in a history.

    Postconditions:
        - Returns 0.0 for an empty history

    Args:
        history: Price history (any order)

    Returns:
        Mean price
    """
    if len(history) == 0:
        return 0.0
    return float(np.mean(history.prices))


def pearson_correlation(a: PriceHistory, b: PriceHistory) -> float:
    """
    Pearson correlation coefficient between two price histories.

    Both histories are truncated to n = min(len(a), len(b)) using their first
    n points in original order. Points are paired by position, not by
    timestamp.

    Preconditions:
        - a and b are PriceHistory objects (may be empty)

    Postconditions:
        - Returns a value in [-1, 1], or NaN when the correlation is undefined
          (n < 2, or either truncated series has zero variance)
        - Inputs are not modified

    Args:
        a: First price history
        b: Second price history

    Returns:
        Sample covariance divided by the product of sample standard deviations
        (Bessel's correction, denominator n - 1)
    """
    n = min(len(a), len(b))
    if n < 2:
        return float("nan")

    prices_a = a.prices[:n]
    prices_b = b.prices[:n]

    dev_a = prices_a - prices_a.mean()
    dev_b = prices_b - prices_b.mean()

    cov = np.sum(dev_a * dev_b) / (n - 1)
    std_a = np.sqrt(np.sum(dev_a * dev_a) / (n - 1))
    std_b = np.sqrt(np.sum(dev_b * dev_b) / (n - 1))

    if std_a == 0 or std_b == 0:
        return float("nan")

    # Rounding can push |r| marginally above 1
    return float(np.clip(cov / (std_a * std_b), -1.0, 1.0))


def correlate(a: PriceHistory, b: PriceHistory) -> CorrelationResult:
    """Pearson correlation of two histories, labelled with their tickers."""
    return CorrelationResult(
        coefficient=pearson_correlation(a, b),
        ticker_a=a.ticker,
        ticker_b=b.ticker
    )
