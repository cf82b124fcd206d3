"""
GitHub API helper utilities.

Rate limit parsing, request headers and error response processing shared by
the token exchange and GraphQL calls.
"""

import logging

import httpx

from commit_relay.services.github.constants import GITHUB_ACCEPT, GITHUB_API_VERSION
from commit_relay.services.github.exceptions import GitHubAPIError

logger = logging.getLogger(__name__)


class RateLimitInfo:
    """Rate limit information from GitHub API response."""

    def __init__(self, response: httpx.Response) -> None:
        self.remaining = response.headers.get("X-RateLimit-Remaining")
        self.reset = response.headers.get("X-RateLimit-Reset")

    @property
    def reset_timestamp(self) -> int | None:
        """Get reset timestamp as integer, or None if not available."""
        return int(self.reset) if self.reset else None

    @property
    def is_exhausted(self) -> bool:
        """Check if rate limit is exhausted."""
        return self.remaining is not None and int(self.remaining) == 0


def github_headers(bearer: str, user_agent: str) -> dict[str, str]:
    """Headers for an authenticated GitHub API request."""
    return {
        "Authorization": f"Bearer {bearer}",
        "Accept": GITHUB_ACCEPT,
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "User-Agent": user_agent,
    }


def handle_error_response(response: httpx.Response, context: str) -> None:
    """
    Raise for any non-2xx GitHub API response.

    Args:
        response: The HTTP response from GitHub API
        context: What was being requested, for the error message

    Raises:
        GitHubAPIError: For authentication, authorization, or other API errors
    """
    if response.is_success:
        return

    rate_info = RateLimitInfo(response)
    logger.warning(f"GitHub API error for {context}: {response.status_code}")

    if response.status_code == 401:
        raise GitHubAPIError("Invalid or expired GitHub token", 401)
    elif response.status_code == 404:
        raise GitHubAPIError(f"Resource not found: {context}", 404)
    elif response.status_code == 403:
        if rate_info.is_exhausted:
            raise GitHubAPIError(
                "GitHub API rate limit exceeded",
                403,
                rate_limit_reset=rate_info.reset_timestamp,
            )
        raise GitHubAPIError("GitHub API forbidden", 403)
    raise GitHubAPIError(f"GitHub API error: {response.status_code}", response.status_code)
