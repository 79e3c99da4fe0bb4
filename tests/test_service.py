"""
Tests for the aggregation service.

Tests cover:
- Average price end-to-end against a mocked upstream
- Correlation payload shape
- Validation before any upstream call
- Error propagation
"""

import math
from unittest.mock import Mock

import pytest

from stockcorr.auth import CredentialCache
from stockcorr.data_sources.prices import PriceFetcher
from stockcorr.entities import PriceHistory
from stockcorr.errors import FetchError, ValidationError
from stockcorr.service import AggregationService, validate_minutes, validate_ticker
from conftest import FakeUpstream, make_settings, price_rows


def make_service(upstream):
    settings = make_settings()
    client = upstream.client()
    fetcher = PriceFetcher(CredentialCache(settings, client=client), settings, client=client)
    return AggregationService(fetcher, settings)


class TestValidation:
    """Tests for input validation helpers."""

    @pytest.mark.parametrize("ticker", ["AMD", "BRK.A", "BF-B", " nvda "])
    def test_valid_tickers(self, ticker):
        assert validate_ticker(ticker) == ticker.strip()

    @pytest.mark.parametrize("ticker", ["", "   ", "..", "A/B", "AMD?x=1", "TOOLONGTICKER", None, 5])
    def test_invalid_tickers(self, ticker):
        with pytest.raises(ValidationError):
            validate_ticker(ticker)

    def test_minutes_default(self):
        assert validate_minutes(None, 50) == 50

    @pytest.mark.parametrize("minutes", [0, -1, 1.5, "10", True])
    def test_invalid_minutes(self, minutes):
        with pytest.raises(ValidationError, match="minutes"):
            validate_minutes(minutes, 50)


class TestGetAveragePrice:
    """Tests for AggregationService.get_average_price."""

    def test_end_to_end_average(self):
        """Test averaging upstream prices [100, 102, 101]."""
        upstream = FakeUpstream(prices={"X": price_rows([100, 102, 101])})
        result = make_service(upstream).get_average_price("X", 50)

        assert result.average_stock_price == pytest.approx(101.0)
        payload = result.to_dict()
        assert payload["averageStockPrice"] == pytest.approx(101.0)
        assert [p["price"] for p in payload["priceHistory"]] == [100, 102, 101]
        assert payload["priceHistory"][0]["lastUpdatedAt"] == "2025-05-08T04:00:00Z"

    def test_default_minutes(self):
        upstream = FakeUpstream(prices={"X": price_rows([1.0])})
        make_service(upstream).get_average_price("X")
        assert upstream.history_calls[0][1] == "50"

    def test_empty_history_average_is_zero(self):
        upstream = FakeUpstream(prices={"X": []})
        result = make_service(upstream).get_average_price("X", 10)
        assert result.to_dict() == {"averageStockPrice": 0.0, "priceHistory": []}

    def test_invalid_minutes_before_upstream(self):
        upstream = FakeUpstream()
        with pytest.raises(ValidationError):
            make_service(upstream).get_average_price("X", 0)
        assert upstream.auth_calls == 0

    def test_fetch_error_propagates(self):
        upstream = FakeUpstream()
        upstream.history_statuses = [503]
        with pytest.raises(FetchError):
            make_service(upstream).get_average_price("X", 50)


class TestGetCorrelation:
    """Tests for AggregationService.get_correlation."""

    def test_correlation_payload(self):
        """Test the full correlation response shape."""
        upstream = FakeUpstream(prices={
            "AMD": price_rows([100, 102, 104, 103]),
            "NVDA": price_rows([200, 204, 208, 206]),
        })
        report = make_service(upstream).get_correlation(["AMD", "NVDA"], 30)
        payload = report.to_dict()

        assert payload["correlation"] == pytest.approx(1.0)
        assert set(payload["stocks"]) == {"AMD", "NVDA"}
        assert payload["stocks"]["AMD"]["averagePrice"] == pytest.approx(102.25)
        assert payload["stocks"]["NVDA"]["averagePrice"] == pytest.approx(204.5)
        assert len(payload["stocks"]["NVDA"]["priceHistory"]) == 4
        assert [call[:2] for call in upstream.history_calls] == [("AMD", "30"), ("NVDA", "30")]
        assert upstream.auth_calls == 1

    def test_undefined_correlation_is_null(self):
        """Test that a constant series yields a null correlation, not an error."""
        upstream = FakeUpstream(prices={
            "AMD": price_rows([100, 100, 100]),
            "NVDA": price_rows([1, 2, 3]),
        })
        report = make_service(upstream).get_correlation(["AMD", "NVDA"])

        assert math.isnan(report.correlation.coefficient)
        assert report.to_dict()["correlation"] is None

    @pytest.mark.parametrize("tickers", [[], ["AMD"], ["AMD", "NVDA", "GOOG"], "AMD", None])
    def test_wrong_ticker_count_rejected_before_upstream(self, tickers):
        """Test that anything but two tickers fails without calling upstream."""
        fetcher = Mock(spec=PriceFetcher)
        fetcher.settings = make_settings()
        service = AggregationService(fetcher)

        with pytest.raises(ValidationError, match="requires 2 tickers"):
            service.get_correlation(tickers, 50)
        fetcher.fetch_history.assert_not_called()

    def test_duplicate_tickers_rejected(self):
        fetcher = Mock(spec=PriceFetcher)
        fetcher.settings = make_settings()

        with pytest.raises(ValidationError, match="distinct"):
            AggregationService(fetcher).get_correlation(["AMD", "AMD"])
        fetcher.fetch_history.assert_not_called()

    def test_second_fetch_failure_propagates(self):
        fetcher = Mock(spec=PriceFetcher)
        fetcher.settings = make_settings()
        fetcher.fetch_history.side_effect = [
            PriceHistory("AMD"),
            FetchError("boom", ticker="NVDA"),
        ]

        with pytest.raises(FetchError) as exc_info:
            AggregationService(fetcher).get_correlation(["AMD", "NVDA"])
        assert exc_info.value.ticker == "NVDA"
