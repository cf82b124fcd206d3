"""
GitHub push webhook ingestion.

Verifies the X-Hub-Signature-256 HMAC over the raw body, then stores one
commit record per pushed commit. Commits in a push share the receipt time;
record ``i`` gets ``receipt_ms + i`` so (repo, timestamp) stays unique.

Writes are best-effort per commit: a failed put is logged and the rest of
the batch is still processed.
"""

import hashlib
import hmac
import json
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from commit_relay.core.exceptions import (
    BadPayload,
    InvalidSignature,
    SecretUnavailable,
    WebhookInternalError,
)
from commit_relay.core.secrets import SecretStore
from commit_relay.domain.commit_operations import CommitStore
from commit_relay.models.commit import CommitRecord

logger = logging.getLogger(__name__)

EVENT_HEADER = "x-github-event"
SIGNATURE_HEADER = "x-hub-signature-256"
SIGNATURE_PREFIX = "sha256="
NOREPLY_DOMAIN = "users.noreply.github.com"
UNKNOWN_USERNAME = "unknown"

THIRTY_DAYS_SECONDS = 30 * 24 * 60 * 60


@dataclass
class WebhookAck:
    """Outcome of one webhook delivery."""

    event: str
    received: int = 0
    stored: int = 0
    failed: int = 0


def compute_signature(secret: str, body: bytes) -> str:
    """Signature GitHub sends for ``body``: ``sha256=<hex hmac>``."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Constant-time check of an X-Hub-Signature-256 value against ``body``."""
    received = signature.strip()
    if received.startswith(SIGNATURE_PREFIX):
        received = received[len(SIGNATURE_PREFIX) :]
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


def _email_local_part(email: str | None) -> str | None:
    if not email or "@" not in email:
        return None
    local, domain = email.rsplit("@", 1)
    if domain.lower() == NOREPLY_DOMAIN:
        # 12345+octocat@users.noreply.github.com
        local = local.split("+", 1)[-1]
    return local or None


def resolve_username(author: Mapping[str, Any], committer: Mapping[str, Any]) -> str:
    """
    Best-effort GitHub username for a pushed commit.

    Order: author username, committer username, no-reply email local part,
    any email local part, then "unknown".
    """
    for candidate in (author.get("username"), committer.get("username")):
        if candidate:
            return str(candidate)

    email = author.get("email")
    return _email_local_part(str(email) if email else None) or UNKNOWN_USERNAME


def build_commit_record(
    repo: str,
    commit: Mapping[str, Any],
    position: int,
    received_at: float,
    ttl_seconds: int = THIRTY_DAYS_SECONDS,
) -> CommitRecord:
    """Map one commit of a push payload onto a CommitRecord."""
    author = commit.get("author") or {}
    committer = commit.get("committer") or {}
    return CommitRecord(
        repo=repo,
        timestamp=int(received_at * 1000) + position,
        ttl=int(received_at) + ttl_seconds,
        sha=commit["id"],
        message=commit.get("message") or "",
        url=commit.get("url") or "",
        author_name=author.get("name"),
        author_email=author.get("email"),
        author_username=resolve_username(author, committer),
        added=list(commit.get("added") or []),
        removed=list(commit.get("removed") or []),
        modified=list(commit.get("modified") or []),
    )


class WebhookIngestor:
    """Verifies GitHub webhook deliveries and persists push commits."""

    def __init__(
        self,
        secret_store: SecretStore,
        secret_id: str,
        commit_store: CommitStore,
        *,
        ttl_seconds: int = THIRTY_DAYS_SECONDS,
        require_secret: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.secret_store = secret_store
        self.secret_id = secret_id
        self.commit_store = commit_store
        self.ttl_seconds = ttl_seconds
        self.require_secret = require_secret
        self._clock = clock

    async def ingest(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookAck:
        """
        Process one webhook delivery.

        Raises:
            BadPayload: Body is not JSON
            InvalidSignature: Signature mismatch (or missing, when a secret is required)
            WebhookInternalError: Push payload is structurally malformed
        """
        normalized = {key.lower(): value for key, value in headers.items()}
        event = normalized.get(EVENT_HEADER, "")

        try:
            payload = json.loads(raw_body) if raw_body else {}
        except ValueError:
            logger.warning(f"Rejected {event or 'unknown'} webhook: body is not JSON")
            raise BadPayload() from None

        signature = normalized.get(SIGNATURE_HEADER)
        if signature:
            if not await self._signature_is_valid(raw_body, signature):
                logger.warning(f"Rejected {event or 'unknown'} webhook: invalid signature")
                raise InvalidSignature()
        elif self.require_secret:
            logger.warning(f"Rejected {event or 'unknown'} webhook: missing signature")
            raise InvalidSignature()

        if event != "push":
            logger.info(f"Ignoring webhook event: {event or 'unknown'}")
            return WebhookAck(event=event)

        try:
            return await self._handle_push(payload)
        except Exception as e:
            logger.exception(f"Push webhook processing failed: {e}")
            raise WebhookInternalError() from e

    async def _signature_is_valid(self, raw_body: bytes, signature: str) -> bool:
        try:
            credentials = await self.secret_store.get_credentials(self.secret_id)
            secret = credentials.webhook_secret
        except SecretUnavailable:
            secret = None
        except Exception as e:
            logger.exception(f"Failed to load webhook secret: {e}")
            secret = None

        if not secret:
            if self.require_secret:
                logger.error("No webhook secret configured, rejecting signed delivery")
                return False
            logger.warning("No webhook secret configured, skipping signature verification")
            return True

        return verify_signature(raw_body, signature, secret)

    async def _handle_push(self, payload: Mapping[str, Any]) -> WebhookAck:
        repo = payload["repository"]["full_name"]
        commits = payload.get("commits") or []
        if not isinstance(commits, list):
            raise TypeError("commits must be a list")

        received_at = self._clock()
        records = [
            build_commit_record(repo, commit, i, received_at, self.ttl_seconds)
            for i, commit in enumerate(commits)
        ]
        logger.info(f"Processing {len(records)} commits for {repo}")

        ack = WebhookAck(event="push", received=len(records))
        for record in records:
            try:
                await self.commit_store.put(record)
            except Exception as e:
                ack.failed += 1
                logger.error(f"Error storing commit {record.sha}: {e}")
                continue
            ack.stored += 1
            logger.info(f"Stored commit: {record.sha[:7]} - {record.message[:50]}")

        if ack.failed:
            logger.warning(f"Push for {repo}: {ack.stored} stored, {ack.failed} failed")
        return ack
