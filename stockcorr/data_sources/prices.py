"""
Price history retrieval from the upstream evaluation service.

This module handles authenticated requests for a ticker's recent prices,
with one transparent retry when the cached token is rejected.
"""

import logging
import re
from datetime import datetime
from typing import Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError as SchemaError, validator

from stockcorr.auth import CredentialCache
from stockcorr.config import Settings
from stockcorr.entities import PriceHistory, PricePoint
from stockcorr.errors import FetchError


logger = logging.getLogger(__name__)

# Re-authenticate and retry at most this many times after a 401
MAX_AUTH_RETRIES = 1

_EXTRA_FRACTION = re.compile(r"(\.\d{6})\d+")


class UpstreamPrice(BaseModel):
    """One element of the upstream price-history array."""
    price: float
    lastUpdatedAt: datetime

    @validator("lastUpdatedAt", pre=True)
    def trim_nanoseconds(cls, v):
        # Upstream reports nanoseconds; datetime holds microseconds
        if isinstance(v, str):
            v = _EXTRA_FRACTION.sub(r"\1", v)
        return v


class PriceFetcher:
    """
    Fetches price history for one ticker at a time.

    Uses the injected CredentialCache for bearer tokens. A 401 response
    invalidates the credential and the request is retried exactly once
    with a fresh token; every other failure is raised immediately.
    """

    def __init__(
        self,
        credentials: CredentialCache,
        settings: Optional[Settings] = None,
        client: Optional[httpx.Client] = None,
        max_auth_retries: int = MAX_AUTH_RETRIES
    ):
        self.credentials = credentials
        self.settings = settings or credentials.settings
        self._client = client
        self.max_auth_retries = max_auth_retries

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.settings.request_timeout)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def history_url(self, ticker: str) -> str:
        return f"{self.settings.base_url}/stocks/{quote(ticker, safe='')}"

    def fetch_history(self, ticker: str, minutes: int) -> PriceHistory:
        """
        Download the price history for a ticker over the last `minutes` minutes.

        Preconditions:
            - ticker is a validated, non-empty symbol
            - minutes is a positive integer

        Postconditions:
            - Returns a PriceHistory in the order upstream reported it
            - At most 1 + max_auth_retries history requests were issued

        Args:
            ticker: Stock ticker symbol
            minutes: Look-back window in minutes

        Returns:
            PriceHistory (possibly empty)

        Raises:
            FetchError: If the request fails, times out, returns an error status
                (including a 401 on the retried request) or a malformed body
            AuthError: If a token cannot be obtained, including the
                re-authentication after a 401
        """
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
            raise ValueError(f"minutes must be a positive integer, got {minutes!r}")

        retries_left = self.max_auth_retries
        while True:
            token = self.credentials.get_token()
            response = self._request(ticker, minutes, token)
            if response.status_code == httpx.codes.UNAUTHORIZED and retries_left > 0:
                retries_left -= 1
                logger.warning("Upstream rejected token for %s, re-authenticating", ticker)
                self.credentials.invalidate(token)
                continue
            break

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Error fetching stock prices for %s: status %s",
                ticker, response.status_code
            )
            raise FetchError(
                f"Upstream returned status {response.status_code} for {ticker}",
                ticker=ticker,
                cause=e
            ) from e

        history = self._parse(ticker, response)
        logger.info("Fetched %d prices for %s (last %d minutes)", len(history), ticker, minutes)
        return history

    def _request(self, ticker: str, minutes: int, token: str) -> httpx.Response:
        try:
            return self.client.get(
                self.history_url(ticker),
                params={"minutes": minutes},
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.settings.request_timeout
            )
        except httpx.HTTPError as e:
            logger.error("Error fetching stock prices for %s: %s", ticker, e)
            raise FetchError(
                f"Failed to fetch prices for {ticker}: {e}",
                ticker=ticker,
                cause=e
            ) from e

    def _parse(self, ticker: str, response: httpx.Response) -> PriceHistory:
        """Convert the upstream body into a PriceHistory."""
        try:
            body = response.json()
        except ValueError as e:
            raise FetchError(f"Invalid JSON in price response for {ticker}", ticker, e) from e

        # A latest-price query answers with {"stock": {...}} instead of an array
        if isinstance(body, dict) and "stock" in body:
            items = [body["stock"]]
        elif isinstance(body, list):
            items = body
        else:
            raise FetchError(f"Unexpected price response shape for {ticker}", ticker)

        points = []
        for item in items:
            if not isinstance(item, dict):
                raise FetchError(f"Malformed price entry for {ticker}: {item!r}", ticker)
            try:
                entry = UpstreamPrice(**item)
            except SchemaError as e:
                raise FetchError(f"Malformed price entry for {ticker}", ticker, e) from e
            points.append(PricePoint(price=entry.price, timestamp=entry.lastUpdatedAt))

        return PriceHistory(ticker=ticker, points=tuple(points))
