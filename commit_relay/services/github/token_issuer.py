"""
GitHub App installation tokens.

Flow:
1. Load the App credential bundle from the secret store
2. Sign a short-lived RS256 JWT as the App (iss = app id)
3. Exchange it at POST /app/installations/{id}/access_tokens

No retries happen here; callers decide whether to retry.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

import httpx
from cachetools import TTLCache  # type: ignore[import-untyped]
from jose import jwt
from jose.exceptions import JOSEError

from commit_relay.core.exceptions import ExchangeFailed, SecretUnavailable
from commit_relay.core.secrets import AppCredentials, SecretStore
from commit_relay.services.github.constants import (
    APP_JWT_CLOCK_SKEW_SECONDS,
    APP_JWT_LIFETIME_SECONDS,
    INSTALLATION_TOKEN_REFRESH_MARGIN_SECONDS,
)
from commit_relay.services.github.helpers import github_headers
from commit_relay.services.github.http_client import get_github_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallationToken:
    """Installation access token as returned by GitHub."""

    token: str
    expires_at: datetime | None = None

    def is_fresh(self, now: float, margin: float = INSTALLATION_TOKEN_REFRESH_MARGIN_SECONDS) -> bool:
        """True while the token is usable for at least ``margin`` more seconds."""
        if self.expires_at is None:
            return False
        return self.expires_at.timestamp() - margin > now


def build_app_jwt(app_id: str, private_key: str, now: float | None = None) -> str:
    """
    Sign the JWT that authenticates as the GitHub App itself.

    Raises:
        SecretUnavailable: If the private key cannot sign RS256
    """
    issued = int(time.time() if now is None else now)
    claims = {
        "iat": issued - APP_JWT_CLOCK_SKEW_SECONDS,
        "exp": issued + APP_JWT_LIFETIME_SECONDS,
        "iss": str(app_id),
    }
    try:
        return jwt.encode(claims, private_key, algorithm="RS256")
    except JOSEError:
        logger.error("GitHub App private key could not sign a JWT")
        raise SecretUnavailable("GitHub App private key is invalid") from None


def _parse_expires_at(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class InstallationTokenCache:
    """
    Installation tokens keyed by installation id.

    One instance is created per process and injected into TokenIssuer.
    A per-installation lock makes concurrent misses share one exchange.
    """

    def __init__(
        self,
        maxsize: int = 32,
        ttl: float = 3600,
        refresh_margin: float = INSTALLATION_TOKEN_REFRESH_MARGIN_SECONDS,
    ) -> None:
        self._tokens: TTLCache[str, InstallationToken] = TTLCache(maxsize=maxsize, ttl=ttl)
        self._locks: dict[str, asyncio.Lock] = {}
        self.refresh_margin = refresh_margin

    def get(self, installation_id: str, now: float) -> InstallationToken | None:
        token = self._tokens.get(installation_id)
        if token is not None and token.is_fresh(now, self.refresh_margin):
            return token
        return None

    def put(self, installation_id: str, token: InstallationToken) -> None:
        self._tokens[installation_id] = token

    def lock(self, installation_id: str) -> asyncio.Lock:
        return self._locks.setdefault(installation_id, asyncio.Lock())

    def clear(self) -> None:
        self._tokens.clear()
        self._locks.clear()

    def __len__(self) -> int:
        return len(self._tokens)


class TokenIssuer:
    """Issues installation tokens for the configured GitHub App."""

    def __init__(
        self,
        secret_store: SecretStore,
        secret_id: str,
        *,
        api_url: str = "https://api.github.com",
        user_agent: str = "commit-relay",
        cache: InstallationTokenCache | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.secret_store = secret_store
        self.secret_id = secret_id
        self.api_url = api_url.rstrip("/")
        self.user_agent = user_agent
        self.cache = cache
        self._clock = clock

    async def issue_installation_token(self) -> InstallationToken:
        """
        Return an installation token, exchanging a fresh App JWT if needed.

        Raises:
            SecretUnavailable: Credentials missing, incomplete or unusable
            ExchangeFailed: Transport error or non-2xx from GitHub
        """
        credentials = await self._load_credentials()
        installation_id = str(credentials.installation_id)

        if self.cache is None:
            return await self._exchange(credentials)

        cached = self.cache.get(installation_id, self._clock())
        if cached is not None:
            return cached

        async with self.cache.lock(installation_id):
            # Another request may have refreshed while we waited
            cached = self.cache.get(installation_id, self._clock())
            if cached is not None:
                return cached
            token = await self._exchange(credentials)
            self.cache.put(installation_id, token)
            return token

    async def _load_credentials(self) -> AppCredentials:
        try:
            credentials = await self.secret_store.get_credentials(self.secret_id)
        except SecretUnavailable:
            raise
        except Exception as e:
            logger.exception(f"Failed to load GitHub App credentials: {e}")
            raise SecretUnavailable() from e

        if not credentials.can_issue_tokens:
            logger.error("GitHub App credentials are missing appId, privateKey or installationId")
            raise SecretUnavailable("GitHub App credentials are incomplete")
        return credentials

    async def _exchange(self, credentials: AppCredentials) -> InstallationToken:
        app_jwt = build_app_jwt(
            str(credentials.app_id), str(credentials.private_key), now=self._clock()
        )
        url = f"{self.api_url}/app/installations/{credentials.installation_id}/access_tokens"

        client = get_github_client()
        try:
            response = await client.post(url, headers=github_headers(app_jwt, self.user_agent))
        except httpx.HTTPError as e:
            logger.warning(f"Installation token request failed: {e!r}")
            raise ExchangeFailed(upstream_body=str(e)) from e

        if not response.is_success:
            logger.warning(
                f"Installation token exchange returned {response.status_code} "
                f"for installation {credentials.installation_id}"
            )
            raise ExchangeFailed(
                f"Installation token exchange failed: HTTP {response.status_code}",
                upstream_status=response.status_code,
                upstream_body=response.text,
            )

        try:
            data = response.json()
        except ValueError:
            data = None
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise ExchangeFailed(
                "Installation token missing from GitHub response",
                upstream_status=response.status_code,
                upstream_body=response.text,
            )

        logger.info(f"Issued installation token for installation {credentials.installation_id}")
        return InstallationToken(token=token, expires_at=_parse_expires_at(data.get("expires_at")))
