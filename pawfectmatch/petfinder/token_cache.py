"""Client-credentials token cache for the Petfinder API."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

import requests

from pawfectmatch.config import (
    DEFAULT_PETFINDER_BASE_URL,
    DEFAULT_TIMEOUT_SECONDS,
    TOKEN_SAFETY_MARGIN_SECONDS,
)
from pawfectmatch.errors import AuthError
from pawfectmatch.models import Credential

logger = logging.getLogger(__name__)


class TokenCache:
    """Hold one access token and exchange credentials when it expires.

    Args:
        client_id: Petfinder API key.
        client_secret: Petfinder API secret.
        base_url: API root, without the ``/oauth2/token`` suffix.
        http: Object exposing ``post`` like the ``requests`` module.
        now: Clock returning epoch seconds.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        base_url: str = DEFAULT_PETFINDER_BASE_URL,
        http=requests,
        now: Callable[[], float] = time.time,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = f"{base_url.rstrip('/')}/oauth2/token"
        self._http = http
        self._now = now
        self._timeout = timeout
        self._credential: Credential | None = None
        self._lock = threading.Lock()

    @property
    def credential(self) -> Credential | None:
        return self._credential

    def get_token(self) -> str:
        """Return a valid access token, refreshing it first if needed."""
        credential = self._credential
        if credential is not None and credential.is_valid(self._now()):
            return credential.value

        with self._lock:
            # Another thread may have refreshed while we waited.
            credential = self._credential
            if credential is not None and credential.is_valid(self._now()):
                return credential.value
            credential = self._exchange()
            self._credential = credential
            return credential.value

    def invalidate(self) -> None:
        """Forget the cached token so the next call exchanges again."""
        with self._lock:
            self._credential = None

    def _exchange(self) -> Credential:
        issued_at = self._now()
        try:
            response = self._http.post(
                self._token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                },
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise AuthError(f"Token request failed: {exc}") from exc

        if response.status_code != 200:
            raise AuthError(f"Token request returned HTTP {response.status_code}")

        try:
            payload = response.json()
            value = str(payload["access_token"])
            expires_in = int(payload["expires_in"])
        except (ValueError, KeyError, TypeError) as exc:
            raise AuthError("Token response was malformed.") from exc
        if not value:
            raise AuthError("Token response did not include an access token.")

        expires_at = issued_at + expires_in - TOKEN_SAFETY_MARGIN_SECONDS
        logger.info(f"Obtained Petfinder access token valid for {expires_in}s.")
        return Credential(value=value, expires_at=expires_at)
