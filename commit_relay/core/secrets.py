"""GitHub App credential bundles.

The bundle is a JSON object stored under an opaque secret id:

    {"appId": ..., "privateKey": "-----BEGIN ...", "installationId": ..., "webhookSecret": ...}

Fly.io, Docker and Kubernetes all inject secrets as environment variables,
so the default store resolves the secret id as an environment variable name.
"""

import json
import logging
import os
from collections.abc import Mapping
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from commit_relay.core.exceptions import SecretUnavailable

logger = logging.getLogger(__name__)


class AppCredentials(BaseModel):
    """GitHub App credential bundle. Every field may be absent."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    app_id: str | None = Field(default=None, alias="appId")
    private_key: str | None = Field(default=None, alias="privateKey")
    installation_id: str | None = Field(default=None, alias="installationId")
    webhook_secret: str | None = Field(default=None, alias="webhookSecret")

    @field_validator("app_id", "installation_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str | None:
        # GitHub shows these as numbers; bundles store them either way
        if value is None or value == "":
            return None
        return str(value)

    @field_validator("private_key", mode="before")
    @classmethod
    def _restore_newlines(cls, value: Any) -> str | None:
        if not value:
            return None
        key = str(value)
        if "\\n" in key and "\n" not in key:
            key = key.replace("\\n", "\n")
        return key

    @property
    def can_issue_tokens(self) -> bool:
        return bool(self.app_id and self.private_key and self.installation_id)


class SecretStore(Protocol):
    async def get_credentials(self, secret_id: str) -> AppCredentials: ...


def parse_credentials(raw: str | bytes) -> AppCredentials:
    """Parse a JSON credential bundle, raising SecretUnavailable on bad input."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        raise SecretUnavailable("Credential bundle is not valid JSON") from None

    if not isinstance(data, dict):
        raise SecretUnavailable("Credential bundle must be a JSON object")

    try:
        return AppCredentials.model_validate(data)
    except ValidationError:
        raise SecretUnavailable("Credential bundle has invalid fields") from None


class EnvironmentSecretStore:
    """Resolve secret ids as environment variables holding JSON bundles."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ if environ is not None else os.environ

    async def get_credentials(self, secret_id: str) -> AppCredentials:
        raw = self._environ.get(secret_id)
        if not raw:
            logger.error(f"Secret {secret_id!r} is not set")
            raise SecretUnavailable()
        return parse_credentials(raw)


class StaticSecretStore:
    """In-memory bundles keyed by secret id, for local development."""

    def __init__(self, bundles: Mapping[str, AppCredentials] | None = None) -> None:
        self._bundles = dict(bundles or {})

    def set(self, secret_id: str, credentials: AppCredentials) -> None:
        self._bundles[secret_id] = credentials

    async def get_credentials(self, secret_id: str) -> AppCredentials:
        try:
            return self._bundles[secret_id]
        except KeyError:
            raise SecretUnavailable() from None
