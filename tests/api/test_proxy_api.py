"""API tests for GET/OPTIONS /api/v1/github with the relay's collaborators faked."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from commit_relay.api.deps import get_proxy_relay
from commit_relay.config import settings
from commit_relay.core.exceptions import SecretUnavailable
from commit_relay.services.github.token_issuer import InstallationToken
from commit_relay.services.proxy_relay import ProxyRelay

from tests.helpers.fakes import InMemoryCommitStore
from tests.helpers.mock_factories import make_commit_record

URL = "/api/v1/github"


@pytest.fixture
def issuer() -> AsyncMock:
    issuer = AsyncMock()
    issuer.issue_installation_token.return_value = InstallationToken("ghs_api", None)
    return issuer


@pytest.fixture
def store() -> InMemoryCommitStore:
    return InMemoryCommitStore(
        [
            make_commit_record(repo="dmleblanc/site", timestamp=1_760_000_000_000 + i, sha=f"{i:040x}")
            for i in range(3)
        ]
        + [make_commit_record(repo="dmleblanc/other", timestamp=1_760_000_000_100)]
    )


@pytest.fixture
async def client(fastapi_app, issuer, store):
    fastapi_app.dependency_overrides[get_proxy_relay] = lambda: ProxyRelay(issuer, store)
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as c:
        yield c


def _assert_cors(response) -> None:
    assert response.headers["access-control-allow-origin"] == settings.cors_origin
    assert response.headers["access-control-allow-methods"] == "GET, OPTIONS"
    assert response.headers["access-control-allow-headers"] == "Content-Type"


class TestPreflight:
    @pytest.mark.anyio
    async def test_options_returns_empty_200_with_cors(self, fastapi_app):
        relay_factory = MagicMock()
        fastapi_app.dependency_overrides[get_proxy_relay] = relay_factory

        async with AsyncClient(
            transport=ASGITransport(app=fastapi_app), base_url="http://test"
        ) as c:
            response = await c.options(URL, headers={"Origin": settings.cors_origin})

        assert response.status_code == 200
        assert response.content == b""
        _assert_cors(response)
        relay_factory.assert_not_called()


class TestValidation:
    @pytest.mark.anyio
    async def test_missing_username_is_400(self, client):
        response = await client.get(URL, params={"endpoint": "commits"})

        assert response.status_code == 400
        assert response.json() == {"error": "Username is required"}
        _assert_cors(response)

    @pytest.mark.anyio
    async def test_unknown_endpoint_is_400(self, client):
        response = await client.get(URL, params={"username": "alice", "endpoint": "bogus"})

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid endpoint")
        _assert_cors(response)


class TestCommits:
    @pytest.mark.anyio
    async def test_commits_newest_first_cached_one_minute(self, client):
        response = await client.get(URL, params={"username": "alice", "endpoint": "commits"})

        assert response.status_code == 200
        assert response.headers["cache-control"] == "public, max-age=60"
        _assert_cors(response)
        body = response.json()
        assert [e["repo"]["name"] for e in body] == ["dmleblanc/other"] + ["dmleblanc/site"] * 3
        assert all(e["type"] == "PushEvent" for e in body)

    @pytest.mark.anyio
    async def test_include_repos_query_param(self, client):
        response = await client.get(
            URL, params={"username": "alice", "endpoint": "events", "includeRepos": "site"}
        )

        assert response.status_code == 200
        assert {e["repo"]["name"] for e in response.json()} == {"dmleblanc/site"}

    @pytest.mark.anyio
    async def test_store_failure_is_empty_200(self, fastapi_app, issuer):
        broken = InMemoryCommitStore(scan_error=ConnectionError("db down"))
        fastapi_app.dependency_overrides[get_proxy_relay] = lambda: ProxyRelay(issuer, broken)

        async with AsyncClient(
            transport=ASGITransport(app=fastapi_app), base_url="http://test"
        ) as c:
            response = await c.get(URL, params={"username": "alice", "endpoint": "commits"})

        assert response.status_code == 200
        assert response.json() == []


class TestContributions:
    @pytest.mark.anyio
    async def test_calendar_cached_five_minutes(self, client):
        calendar = {"data": {"user": {"contributionsCollection": {"contributionCalendar": {}}}}}
        with patch(
            "commit_relay.services.proxy_relay.fetch_contribution_calendar",
            new_callable=AsyncMock,
            return_value=calendar,
        ):
            response = await client.get(
                URL, params={"username": "alice", "endpoint": "contributions"}
            )

        assert response.status_code == 200
        assert response.headers["cache-control"] == "public, max-age=300"
        assert response.json() == calendar

    @pytest.mark.anyio
    async def test_missing_credentials_is_500(self, client, issuer):
        issuer.issue_installation_token.side_effect = SecretUnavailable()

        response = await client.get(URL, params={"username": "alice", "endpoint": "contributions"})

        assert response.status_code == 500
        assert response.json() == {"error": "GitHub token not configured"}
        _assert_cors(response)


class TestHealth:
    @pytest.mark.anyio
    async def test_health(self, fastapi_app):
        async with AsyncClient(
            transport=ASGITransport(app=fastapi_app), base_url="http://test"
        ) as c:
            response = await c.get("/health")

        assert response.json() == {"status": "healthy"}
