"""Root conftest — shared fixtures for unit and API tests.

Provides:
- A throwaway RSA key pair for GitHub App JWT signing
- Credential bundles and a static secret store
- A mocked GitHub HTTP client
- An API client with dependency overrides cleared after each test

Nothing here touches a database or the network.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from commit_relay.core.secrets import AppCredentials, StaticSecretStore

from tests.helpers.fakes import SECRET_ID, WEBHOOK_SECRET


@pytest.fixture(scope="session")
def rsa_key_pair() -> tuple[str, str]:
    """(private PEM, public PEM) generated once per test session."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = (
        key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )
    return private_pem, public_pem


@pytest.fixture
def app_credentials(rsa_key_pair) -> AppCredentials:
    private_pem, _ = rsa_key_pair
    return AppCredentials(
        app_id="123456",
        private_key=private_pem,
        installation_id="7890",
        webhook_secret=WEBHOOK_SECRET,
    )


@pytest.fixture
def secret_store(app_credentials) -> StaticSecretStore:
    return StaticSecretStore({SECRET_ID: app_credentials})


@pytest.fixture
def mock_github_client():
    """Patch the shared GitHub client used by the token exchange and GraphQL calls."""
    client = AsyncMock()
    with (
        patch(
            "commit_relay.services.github.token_issuer.get_github_client",
            return_value=client,
        ),
        patch(
            "commit_relay.services.github.graphql.get_github_client",
            return_value=client,
        ),
    ):
        yield client


@pytest.fixture
def fastapi_app():
    """The FastAPI app with dependency overrides reset after the test."""
    from commit_relay.api import deps
    from commit_relay.main import app

    yield app
    app.dependency_overrides.clear()
    deps.get_token_cache.cache_clear()
    deps.get_secret_store.cache_clear()


@pytest.fixture
def anyio_backend() -> str:
    """Run anyio-marked tests on asyncio, the only backend the app supports."""
    return "asyncio"
