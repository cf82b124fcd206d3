"""API dependencies: wiring of stores, token issuer, ingestor and relay.

Process-wide collaborators (secret store, token cache) are built once and
cached; per-request objects are cheap and built on every call. Tests swap
any of them via ``app.dependency_overrides``.
"""

from functools import lru_cache

from fastapi import Depends

from commit_relay.config import settings
from commit_relay.core.database import async_session_maker
from commit_relay.core.secrets import EnvironmentSecretStore, SecretStore
from commit_relay.domain.commit_operations import CommitStore, SqlCommitStore
from commit_relay.services.github.token_issuer import InstallationTokenCache, TokenIssuer
from commit_relay.services.proxy_relay import ProxyRelay
from commit_relay.services.webhook_ingestor import WebhookIngestor


@lru_cache
def get_secret_store() -> SecretStore:
    return EnvironmentSecretStore()


@lru_cache
def get_token_cache() -> InstallationTokenCache | None:
    """Shared installation token cache, or None when caching is disabled."""
    if not settings.github_token_cache_enabled:
        return None
    return InstallationTokenCache()


def get_commit_store() -> CommitStore:
    return SqlCommitStore(async_session_maker)


def get_token_issuer(
    secret_store: SecretStore = Depends(get_secret_store),
    cache: InstallationTokenCache | None = Depends(get_token_cache),
) -> TokenIssuer:
    return TokenIssuer(
        secret_store,
        settings.github_app_credentials_secret,
        api_url=settings.github_api_url,
        user_agent=settings.github_user_agent,
        cache=cache,
    )


def get_webhook_ingestor(
    secret_store: SecretStore = Depends(get_secret_store),
    commit_store: CommitStore = Depends(get_commit_store),
) -> WebhookIngestor:
    return WebhookIngestor(
        secret_store,
        settings.github_app_credentials_secret,
        commit_store,
        ttl_seconds=settings.commit_ttl_seconds,
        require_secret=settings.webhook_require_secret,
    )


def get_proxy_relay(
    token_issuer: TokenIssuer = Depends(get_token_issuer),
    commit_store: CommitStore = Depends(get_commit_store),
) -> ProxyRelay:
    return ProxyRelay(
        token_issuer,
        commit_store,
        api_url=settings.github_api_url,
        user_agent=settings.github_user_agent,
    )
