"""
Read path for the portfolio site.

``contributions`` goes to the GitHub GraphQL API with an installation token.
``events`` and ``commits`` are served from stored webhook commits and never
touch GitHub.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from commit_relay.core.exceptions import (
    AuthError,
    BadRequest,
    RelayInternalError,
    UpstreamAuthFailed,
)
from commit_relay.domain.commit_operations import DEFAULT_SCAN_LIMIT, CommitStore
from commit_relay.models.commit import CommitRecord
from commit_relay.services.github.exceptions import GitHubAPIError
from commit_relay.services.github.graphql import fetch_contribution_calendar
from commit_relay.services.github.token_issuer import TokenIssuer

logger = logging.getLogger(__name__)

CONTRIBUTIONS = "contributions"
EVENTS = "events"
COMMITS = "commits"
VALID_ENDPOINTS = (CONTRIBUTIONS, EVENTS, COMMITS)

CONTRIBUTIONS_MAX_AGE = 300
COMMITS_MAX_AGE = 60
RECENT_COMMITS_LIMIT = 10


@dataclass
class RelayResult:
    """JSON body plus how long clients may cache it."""

    body: Any
    max_age: int


def parse_include_repos(raw: str | None) -> list[str] | None:
    """Split a comma-separated repo allow-list; blank input means no filter."""
    if not raw:
        return None
    repos = [name.strip() for name in raw.split(",") if name.strip()]
    return repos or None


def repo_is_included(record: CommitRecord, include_repos: list[str] | None) -> bool:
    """Match a record's repo against short or full names in the allow-list."""
    if not include_repos:
        return True
    return record.short_repo_name in include_repos or record.repo in include_repos


def format_timestamp(timestamp_ms: int) -> str:
    """Epoch milliseconds as ISO 8601 UTC, e.g. ``2026-01-15T09:30:00.123Z``."""
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_push_event(record: CommitRecord) -> dict[str, Any]:
    """Shape a stored commit like a GitHub PushEvent from the events API."""
    item = record.to_item()
    return {
        "id": item["sha"],
        "type": "PushEvent",
        "public": True,
        "created_at": format_timestamp(item["timestamp"]),
        "repo": {"name": item["repo"]},
        "payload": {
            "commits": [
                {
                    "sha": item["sha"],
                    "message": item["message"],
                    "author": {
                        "name": item["author"]["name"],
                        "email": item["author"]["email"],
                    },
                    "url": item["url"],
                }
            ]
        },
    }


class ProxyRelay:
    """Serves contribution calendars and recent commits for one username."""

    def __init__(
        self,
        token_issuer: TokenIssuer,
        commit_store: CommitStore,
        *,
        api_url: str = "https://api.github.com",
        user_agent: str = "commit-relay",
    ) -> None:
        self.token_issuer = token_issuer
        self.commit_store = commit_store
        self.api_url = api_url
        self.user_agent = user_agent

    async def relay(
        self,
        username: str | None,
        endpoint: str | None,
        include_repos: list[str] | None = None,
    ) -> RelayResult:
        """
        Serve one proxy request.

        Raises:
            BadRequest: Missing username or unknown endpoint
            UpstreamAuthFailed: No installation token could be obtained
            RelayInternalError: Any other failure; detail is logged only
        """
        if not username or not username.strip():
            raise BadRequest("Username is required")
        if endpoint not in VALID_ENDPOINTS:
            raise BadRequest('Invalid endpoint. Use "contributions", "events", or "commits"')

        try:
            if endpoint == CONTRIBUTIONS:
                return await self._contributions(username)
            return await self._recent_commits(username, include_repos)
        except (BadRequest, UpstreamAuthFailed):
            raise
        except GitHubAPIError as e:
            logger.error(f"GitHub API error relaying {endpoint} for {username}: {e.message}")
            raise RelayInternalError() from e
        except Exception as e:
            logger.exception(f"Error relaying {endpoint} for {username}: {e}")
            raise RelayInternalError() from e

    async def _contributions(self, username: str) -> RelayResult:
        try:
            installation_token = await self.token_issuer.issue_installation_token()
        except AuthError as e:
            logger.error(f"Error getting GitHub installation token: {e.message}")
            raise UpstreamAuthFailed() from e

        body = await fetch_contribution_calendar(
            installation_token.token,
            username,
            api_url=self.api_url,
            user_agent=self.user_agent,
        )
        return RelayResult(body=body, max_age=CONTRIBUTIONS_MAX_AGE)

    async def _recent_commits(
        self, username: str, include_repos: list[str] | None
    ) -> RelayResult:
        return RelayResult(
            body=await self.recent_commit_events(username, include_repos),
            max_age=COMMITS_MAX_AGE,
        )

    async def recent_commit_events(
        self, username: str, include_repos: list[str] | None = None
    ) -> list[dict[str, Any]]:
        """Newest stored commits by ``username`` as PushEvent-shaped dicts."""
        try:
            records = await self.commit_store.scan_by_author(username, DEFAULT_SCAN_LIMIT)
        except Exception as e:
            logger.error(f"Error reading recent commits for {username}: {e}")
            return []

        matching = [
            record
            for record in records
            if record.author_username == username and repo_is_included(record, include_repos)
        ]
        logger.debug(
            f"Recent commits for {username}: {len(records)} scanned, {len(matching)} matched"
        )

        matching.sort(key=lambda record: record.timestamp, reverse=True)
        return [to_push_event(record) for record in matching[:RECENT_COMMITS_LIMIT]]
