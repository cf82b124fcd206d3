"""
GitHub service package.

Module structure:
- token_issuer.py: GitHub App JWT signing and installation token exchange
- graphql.py: Contribution calendar query
- http_client.py: Shared httpx client
- helpers.py: Request headers, rate limit and error handling
- exceptions.py: Custom exceptions
- constants.py: API constants and the GraphQL query
"""

from commit_relay.services.github.exceptions import GitHubAPIError
from commit_relay.services.github.graphql import fetch_contribution_calendar
from commit_relay.services.github.helpers import RateLimitInfo, handle_error_response
from commit_relay.services.github.http_client import close_github_client, get_github_client
from commit_relay.services.github.token_issuer import (
    InstallationToken,
    InstallationTokenCache,
    TokenIssuer,
    build_app_jwt,
)

__all__ = [
    # Token issuance
    "TokenIssuer",
    "InstallationToken",
    "InstallationTokenCache",
    "build_app_jwt",
    # Reads
    "fetch_contribution_calendar",
    # HTTP client lifecycle
    "get_github_client",
    "close_github_client",
    # Utilities
    "handle_error_response",
    "RateLimitInfo",
    # Exceptions
    "GitHubAPIError",
]
