"""
Bearer-token cache for the upstream evaluation service.

This module holds a single credential per cache instance and refreshes it on
demand. Refresh is serialized so that concurrent callers never issue duplicate
authentication requests.
"""

import logging
import threading
import time
from typing import Callable, Optional

import httpx
from pydantic import BaseModel, ValidationError as SchemaError

from stockcorr.config import Settings
from stockcorr.entities import Credential
from stockcorr.errors import AuthError


logger = logging.getLogger(__name__)


class TokenResponse(BaseModel):
    """Fields of the upstream auth response that the cache relies on."""
    access_token: str
    expires_in: int


class CredentialCache:
    """
    Caches one bearer token and its buffered expiry.

    The credential is created lazily on the first call to get_token(),
    reused while valid, and dropped by invalidate() (e.g. after a 401).

    Representation Invariants:
        - self._credential is None or a Credential obtained from upstream
        - self._credential is only read or replaced while holding self._lock
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the cache.

        Args:
            settings: Upstream location, client credentials and timeouts
            client: Optional shared HTTP client (created lazily if omitted)
            clock: Returns the current time in epoch seconds
        """
        self.settings = settings or Settings()
        self._client = client
        self._clock = clock
        self._credential: Optional[Credential] = None
        self._lock = threading.Lock()

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.settings.request_timeout)
        return self._client

    @property
    def auth_url(self) -> str:
        return f"{self.settings.base_url}/auth"

    def get_token(self) -> str:
        """
        Return a usable bearer token, authenticating if needed.

        Preconditions:
            - settings carry all client credentials

        Postconditions:
            - The returned token comes from a credential that is either still
              within its buffered validity window or was just issued
            - At most one authentication request is in flight per cache

        Returns:
            Bearer token string

        Raises:
            AuthError: If the auth call fails or its response is malformed
            ConfigError: If client credentials are missing
        """
        with self._lock:
            now = self._clock()
            if self._credential is not None and self._credential.is_valid(now):
                return self._credential.token

            self._credential = self._authenticate(now)
            return self._credential.token

    def invalidate(self, rejected_token: Optional[str] = None) -> None:
        """
        Drop the cached credential so the next get_token() re-authenticates.

        Args:
            rejected_token: Token that upstream refused. When given, the cache
                is only cleared if it still holds that token, so a credential
                another caller has just refreshed is kept.
        """
        with self._lock:
            if self._credential is None:
                return
            if rejected_token is not None and self._credential.token != rejected_token:
                return
            self._credential = None
        logger.debug("Upstream credential invalidated")

    def _authenticate(self, now: float) -> Credential:
        """Perform the upstream auth call. Caller must hold self._lock."""
        self.settings.validate()
        logger.info("Requesting new upstream access token")

        try:
            response = self.client.post(
                self.auth_url,
                json=self.settings.auth_payload(),
                timeout=self.settings.request_timeout
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("Authentication rejected with status %s", e.response.status_code)
            raise AuthError(
                f"Authentication rejected with status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error("Authentication request failed: %s", e)
            raise AuthError(f"Error obtaining authentication token: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise AuthError("Authentication response is not valid JSON") from e

        if not isinstance(body, dict):
            raise AuthError("Authentication response must be a JSON object")

        try:
            parsed = TokenResponse(**body)
        except SchemaError as e:
            logger.error("Malformed authentication response")
            raise AuthError(f"Malformed authentication response: {e}") from e

        if not parsed.access_token.strip():
            raise AuthError("Authentication response contains an empty access_token")

        if parsed.expires_in <= 0:
            raise AuthError(
                f"Malformed authentication response: expires_in must be positive, got {parsed.expires_in}"
            )

        # Short-lived tokens keep half their lifetime so expires_at stays ahead of now
        buffer = min(self.settings.token_expiry_buffer, parsed.expires_in / 2)
        expires_at = now + parsed.expires_in - buffer
        logger.info("Obtained upstream access token (valid for %ss)", parsed.expires_in)
        return Credential(token=parsed.access_token, expires_at=expires_at)
