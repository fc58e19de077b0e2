from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional, Sequence

import httpx
import jwt

from firekv.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME_SECONDS = 3600
EXPIRY_SKEW_SECONDS = 60


class ServiceAccountCredentials:
    """Mints and caches OAuth bearer tokens for a Google service account.

    A signed RS256 assertion (iss/scope/aud/iat/exp) is exchanged at the token
    endpoint for an access token. The token is kept in memory only and reused
    until ``expires_in - 60`` seconds after it was issued.

    Refresh is single-flight: concurrent callers that find the cache stale
    wait on the same lock and reuse whichever token the first one minted.
    """

    def __init__(
        self,
        *,
        client_email: str,
        private_key: str,
        token_uri: str,
        scopes: Sequence[str],
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._client_email = client_email
        self._private_key = private_key
        self._token_uri = token_uri
        self._scope = " ".join(scopes)
        self._http = http_client
        self._clock = clock
        self._lock = asyncio.Lock()

        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "ServiceAccountCredentials":
        return cls(
            client_email=settings.client_email,
            private_key=settings.private_key.get_secret_value(),
            token_uri=settings.token_uri,
            scopes=settings.scopes,
            **kwargs,
        )

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def expires_at(self) -> float:
        return self._expires_at

    def _is_valid(self) -> bool:
        return self._token is not None and self._clock() < self._expires_at

    def build_assertion(self) -> str:
        """Return the compact-serialized, signed JWT used for the token grant."""
        now = int(self._clock())
        payload = {
            "iss": self._client_email,
            "scope": self._scope,
            "aud": self._token_uri,
            "iat": now,
            "exp": now + ASSERTION_LIFETIME_SECONDS,
        }
        try:
            return jwt.encode(payload, self._private_key, algorithm="RS256", headers={"typ": "JWT"})
        except (ValueError, TypeError, jwt.PyJWTError) as exc:
            logger.error("Error signing service-account assertion: %s", exc)
            raise AuthenticationError(f"Failed to sign assertion: {exc}") from exc

    async def get_token(self) -> str:
        if self._is_valid():
            return self._token  # type: ignore[return-value]

        async with self._lock:
            if self._is_valid():
                return self._token  # type: ignore[return-value]
            return await self._refresh()

    async def _refresh(self) -> str:
        assertion = self.build_assertion()
        data = {"grant_type": JWT_BEARER_GRANT, "assertion": assertion}

        if self._http is not None:
            resp = await self._http.post(self._token_uri, data=data)
        else:
            async with httpx.AsyncClient() as client:
                resp = await client.post(self._token_uri, data=data)

        try:
            body = resp.json()
        except ValueError:
            body = {"raw": resp.text}

        access_token = body.get("access_token") if isinstance(body, dict) else None
        if not access_token:
            logger.error(
                "Error getting access token: %s",
                body,
                extra={"status_code": resp.status_code},
            )
            raise AuthenticationError("Failed to obtain access token")

        expires_in = int(body.get("expires_in", ASSERTION_LIFETIME_SECONDS))
        self._token = access_token
        self._expires_at = self._clock() + expires_in - EXPIRY_SKEW_SECONDS
        logger.debug("Minted access token for %s (valid %ss)", self._client_email, expires_in)
        return access_token

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0


__all__ = ["ServiceAccountCredentials", "JWT_BEARER_GRANT"]
