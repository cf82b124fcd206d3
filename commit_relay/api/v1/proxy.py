"""
GitHub proxy endpoint consumed by the portfolio site.

GET /api/v1/github?username=...&endpoint=contributions|events|commits[&includeRepos=a,b]
"""

import logging

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse

from commit_relay.api.deps import get_proxy_relay
from commit_relay.config import settings
from commit_relay.core.exceptions import RelayError
from commit_relay.services.proxy_relay import ProxyRelay, parse_include_repos

router = APIRouter(prefix="/github", tags=["github"])
logger = logging.getLogger(__name__)


def cors_headers() -> dict[str, str]:
    """CORS headers scoped to the single configured site origin."""
    return {
        "Access-Control-Allow-Origin": settings.cors_origin,
        "Access-Control-Allow-Methods": "GET, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
    }


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=cors_headers())


@router.options("")
async def proxy_preflight() -> Response:
    """CORS preflight: answered before any dependency or business logic."""
    return Response(status_code=status.HTTP_200_OK, headers=cors_headers())


@router.get("")
async def relay_github(
    username: str | None = Query(None),
    endpoint: str | None = Query(None),
    include_repos: str | None = Query(None, alias="includeRepos"),
    relay: ProxyRelay = Depends(get_proxy_relay),
) -> Response:
    """Relay a contribution calendar or recent commits for ``username``."""
    try:
        result = await relay.relay(username, endpoint, parse_include_repos(include_repos))
    except RelayError as e:
        if e.status_code >= 500:
            logger.error(f"Proxy request failed ({endpoint}): {e.message}")
        return _error(e.status_code, e.message)
    except Exception as e:
        logger.exception(f"Unhandled proxy error ({endpoint}): {e}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    return JSONResponse(
        content=result.body,
        headers={
            **cors_headers(),
            "Cache-Control": f"public, max-age={result.max_age}",
        },
    )
