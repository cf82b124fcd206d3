"""GitHub GraphQL reads used by the proxy."""

import logging
from typing import Any

from commit_relay.services.github.constants import CONTRIBUTIONS_QUERY
from commit_relay.services.github.exceptions import GitHubAPIError
from commit_relay.services.github.helpers import github_headers, handle_error_response
from commit_relay.services.github.http_client import get_github_client

logger = logging.getLogger(__name__)


async def fetch_contribution_calendar(
    token: str,
    username: str,
    *,
    api_url: str = "https://api.github.com",
    user_agent: str = "commit-relay",
) -> Any:
    """
    Fetch a user's contribution calendar for the trailing year.

    Returns the GraphQL response body unchanged:
    ``data.user.contributionsCollection.contributionCalendar`` holds
    ``totalContributions`` and ``weeks`` of seven ``contributionDays``
    starting on Sunday.

    Raises:
        GitHubAPIError: On a non-2xx response or a body that is not JSON
    """
    client = get_github_client()
    response = await client.post(
        f"{api_url.rstrip('/')}/graphql",
        headers={**github_headers(token, user_agent), "Content-Type": "application/json"},
        json={"query": CONTRIBUTIONS_QUERY, "variables": {"username": username}},
    )
    handle_error_response(response, f"contributions for {username}")

    try:
        body = response.json()
    except ValueError:
        raise GitHubAPIError("GitHub GraphQL returned a non-JSON body", response.status_code) from None

    if isinstance(body, dict) and body.get("errors"):
        logger.warning(f"GraphQL errors for {username}: {body['errors']}")
    return body
