"""Shared test doubles for the upstream evaluation service."""

import threading
import time

import httpx
import pytest

from stockcorr.config import Settings


BASE_URL = "http://upstream.test/evaluation-service"


def make_settings(**overrides) -> Settings:
    """Settings with every client credential filled in."""
    values = dict(
        base_url=BASE_URL,
        email="student@example.edu",
        name="Test Student",
        roll_no="42",
        access_code="abc123",
        client_id="client-id",
        client_secret="client-secret",
        request_timeout=10.0,
        port=5000,
    )
    values.update(overrides)
    return Settings(**values)


def price_rows(prices, start_minute=0):
    """Upstream-shaped history rows for a list of prices."""
    return [
        {"price": p, "lastUpdatedAt": f"2025-05-08T04:{start_minute + i:02d}:00.000000Z"}
        for i, p in enumerate(prices)
    ]


class FakeUpstream:
    """
    In-memory stand-in for the evaluation service, served via httpx.MockTransport.

    Attributes:
        prices: ticker -> list of upstream rows returned by the history endpoint
        history_statuses: status codes returned (in order) by the next history
            calls before falling back to 200
        auth_statuses: same, for the next /auth calls
        auth_calls: number of /auth requests received
        history_calls: (ticker, minutes, Authorization header) per history request
    """

    def __init__(self, prices=None, expires_in=3600, auth_delay=0.0):
        self.prices = prices or {}
        self.expires_in = expires_in
        self.auth_delay = auth_delay
        self.history_statuses = []
        self.auth_statuses = []
        self.auth_response = None
        self.history_error = None
        self.auth_calls = 0
        self.auth_bodies = []
        self.history_calls = []
        self._lock = threading.Lock()

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/auth"):
            with self._lock:
                self.auth_calls += 1
                number = self.auth_calls
            self.auth_bodies.append(request.content)
            if self.auth_delay:
                time.sleep(self.auth_delay)
            if self.auth_statuses:
                status = self.auth_statuses.pop(0)
                if status != 200:
                    return httpx.Response(status, json={"message": "error"})
            if self.auth_response is not None:
                return self.auth_response
            return httpx.Response(200, json={
                "token_type": "Bearer",
                "access_token": f"token-{number}",
                "expires_in": self.expires_in,
            })

        if "/stocks/" in path:
            ticker = path.rsplit("/", 1)[-1]
            self.history_calls.append((
                ticker,
                request.url.params.get("minutes"),
                request.headers.get("Authorization"),
            ))
            if self.history_error is not None:
                raise self.history_error
            if self.history_statuses:
                status = self.history_statuses.pop(0)
                if status != 200:
                    return httpx.Response(status, json={"message": "error"})
            return httpx.Response(200, json=self.prices.get(ticker, []))

        return httpx.Response(404)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def upstream():
    return FakeUpstream()
