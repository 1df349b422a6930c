"""Canonical Pydantic models shared across all idmauth modules.

This is the single source of truth for data shapes in the project:

**Configuration** -- :class:`AuthContext`, the immutable value that carries
the token endpoint, the localization flag, and the context fields merged
into every credential payload. Serialised as JSON in the user's config
directory by :mod:`idmauth.config`.

**Exchange results** -- :class:`OutcomeKind` and :class:`ExchangeOutcome`,
produced once per sign-in attempt by
:func:`~idmauth.auth.classify.classify_response`.

**Stored cookies** -- :class:`CookieRecord`, one entry in a
:class:`~idmauth.store.hosts.MemoryCookieHost` and the on-disk format of
:class:`~idmauth.store.hosts.FileCookieHost`.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

DEFAULT_ENDPOINT = "https://comps2.idmod.org/"
DEFAULT_TOKEN_KEY = "IDMToken"


def _default_context() -> dict[str, Any]:
    return {"ApplicationName": "COMPS", "ClientVersion": 11}


# --- Configuration ---


class AuthContext(BaseModel):
    """Process-wide, read-only configuration for the store and the authenticator.

    Built once at startup (see :func:`~idmauth.config.resolve_context`) and
    handed to both :class:`~idmauth.store.ScopedStore` and
    :class:`~idmauth.auth.CredentialAuthenticator`. The model is frozen and
    :attr:`context` is a read-only mapping; the authenticator copies it into
    each payload.

    Example::

        AuthContext(
            endpoint="https://comps.idmod.org",
            context={"ApplicationName": "COMPS", "ClientVersion": 11},
        )
    """

    model_config = ConfigDict(frozen=True)

    endpoint: str = Field(
        default=DEFAULT_ENDPOINT,
        description="Base URL of the token service (normalised to end with '/')",
    )
    localize: bool = Field(
        default=True,
        description="Scope reserved keys to an explicit domain when writing",
    )
    context: Mapping[str, Any] = Field(
        default_factory=_default_context,
        validate_default=True,
        description="Fields merged into every credential payload",
    )
    token_key: str = Field(
        default=DEFAULT_TOKEN_KEY,
        description="Store key the issued token is persisted under",
    )
    reserved_keys: frozenset[str] = Field(
        default_factory=frozenset,
        description="Additional store keys subject to domain enforcement",
    )
    timeout: float = Field(default=30.0, description="HTTP timeout in seconds")

    @field_validator("endpoint")
    @classmethod
    def _normalise_endpoint(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("endpoint must not be empty")
        return value if value.endswith("/") else value + "/"

    @field_validator("context")
    @classmethod
    def _freeze_context(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    @field_serializer("context")
    def _dump_context(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return dict(value)

    @property
    def token_url(self) -> str:
        """The full URL the credential payload is POSTed to."""
        return f"{self.endpoint}tokens?format=json"

    @property
    def origin(self) -> str:
        """Scheme and host of the endpoint, used as the cookie host's URL."""
        parts = urlsplit(self.endpoint)
        return f"{parts.scheme}://{parts.netloc}/"

    @property
    def domain_enforced_keys(self) -> frozenset[str]:
        """The reserved application keys; always contains :attr:`token_key`."""
        return self.reserved_keys | {self.token_key}


# --- Exchange results ---


class OutcomeKind(str, enum.Enum):
    """Tag of an :class:`ExchangeOutcome`."""

    SUCCESS = "success"
    UNVERIFIED = "unverified"
    REJECTED = "rejected"
    MALFORMED = "malformed"
    EMPTY = "empty"


class ExchangeOutcome(BaseModel):
    """Result of one credential exchange.

    Only the fields relevant to :attr:`kind` are populated:

    * ``SUCCESS`` -- :attr:`token`, and :attr:`token_stored` once the
      authenticator has tried to persist it.
    * ``UNVERIFIED`` -- :attr:`message` (the reason) and, when the server
      supplied one, :attr:`response_message`.
    * ``REJECTED`` -- :attr:`status_code` and :attr:`message`.
    * ``MALFORMED`` / ``EMPTY`` -- :attr:`message` only.

    :attr:`body` always holds the parsed JSON object when there was one.
    """

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    status_code: int = 0
    token: Optional[str] = None
    message: Optional[str] = None
    response_message: Optional[str] = None
    body: Optional[dict[str, Any]] = None
    token_stored: bool = False

    @property
    def is_success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


# --- Stored cookies ---


class CookieRecord(BaseModel):
    """A single cookie held by a cookie host.

    The ``(name, domain, path)`` triple identifies a record; writing a
    cookie with the same triple replaces it. ``host_only`` records were
    written without a ``domain`` attribute and are visible only to the
    exact host that set them.
    """

    name: str
    value: str
    domain: str
    path: str = "/"
    host_only: bool = True
    secure: bool = False
    expires_at: Optional[datetime] = Field(
        default=None,
        description="UTC expiry; None means a session cookie",
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_session(self) -> bool:
        return self.expires_at is None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= now
