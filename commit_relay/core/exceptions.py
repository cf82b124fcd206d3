"""Domain errors for the webhook and proxy paths.

Each error carries the HTTP status it maps to and a ``message`` that is safe
to return to the caller. Internal detail goes to the logs, never the message.
"""

from fastapi import status


class RelayServiceError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ─────────────────────────────────────────────────────────────────────────────
# Credential / token exchange
# ─────────────────────────────────────────────────────────────────────────────


class AuthError(RelayServiceError):
    """GitHub App credentials could not be turned into an installation token."""

    default_message = "GitHub authentication failed"


class SecretUnavailable(AuthError):
    """The credential bundle could not be loaded or is incomplete."""

    default_message = "GitHub App credentials unavailable"


class ExchangeFailed(AuthError):
    """The installation token exchange failed in transport or upstream."""

    default_message = "Installation token exchange failed"

    def __init__(
        self,
        message: str | None = None,
        upstream_status: int | None = None,
        upstream_body: str = "",
    ):
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body
        super().__init__(message)


# ─────────────────────────────────────────────────────────────────────────────
# Webhook ingestion
# ─────────────────────────────────────────────────────────────────────────────


class WebhookError(RelayServiceError):
    """Webhook delivery could not be processed."""


class BadPayload(WebhookError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid JSON payload"


class InvalidSignature(WebhookError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid signature"


class WebhookInternalError(WebhookError):
    """Unexpected failure outside the per-commit writes."""


# ─────────────────────────────────────────────────────────────────────────────
# Proxy relay
# ─────────────────────────────────────────────────────────────────────────────


class RelayError(RelayServiceError):
    """Proxy request could not be served."""


class BadRequest(RelayError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class UpstreamAuthFailed(RelayError):
    default_message = "GitHub token not configured"


class RelayInternalError(RelayError):
    """Unexpected failure while relaying; detail is logged only."""
