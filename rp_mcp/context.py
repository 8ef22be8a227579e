"""Per-call backend context: host, project and credential.

Two resolvers share one interface and are picked once at startup:

* ``StaticContextResolver`` for the stdio transport, built from process
  configuration and returning the same immutable context for every call.
* ``HeaderContextResolver`` for the HTTP transport, building a fresh context
  from the headers of every request. Nothing is cached between requests; the
  session id is carried along for logging only.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .config import Settings
from .errors import AuthenticationFailed, ConfigurationError, ValidationFailed

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "authorization"
PROJECT_HEADER = "x-project"
REQUEST_ID_HEADER = "x-request-id"

MIN_TOKEN_LENGTH = 16


@dataclass(frozen=True)
class CallContext:
    """Backend host, project and token under which one call executes."""

    host: str
    token: str = field(repr=False)
    project: Optional[str] = None
    default_project: Optional[str] = None
    correlation_id: str = ""
    session_id: Optional[str] = None

    def project_for(self, requested: Optional[str] = None) -> str:
        """Pick the project: header project, then argument, then default."""
        project = self.project or (requested or "").strip() or self.default_project
        if not project:
            raise ValidationFailed(
                "project", "no project given and no default project is configured"
            )
        return project


def is_valid_token(token: str) -> bool:
    """Accept UUID-formatted API keys and other long opaque tokens."""
    token = token.strip()
    if not token:
        return False
    try:
        uuid.UUID(token)
        return True
    except ValueError:
        return len(token) >= MIN_TOKEN_LENGTH


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    # Starlette headers are case-insensitive already, plain dicts are not.
    value = headers.get(name)
    if value is None:
        for key, candidate in headers.items():
            if key.lower() == name:
                value = candidate
                break
    if value is None:
        return None
    value = value.strip()
    return value or None


class StaticContextResolver:
    """Single-tenant resolver: one context for the lifetime of the process."""

    def __init__(self, settings: Settings):
        if not settings.rp_host:
            raise ConfigurationError("RP_HOST is required")
        if not settings.rp_api_token:
            raise ConfigurationError("RP_API_TOKEN is required for stdio mode")
        self._host = settings.rp_host
        self._token = settings.rp_api_token
        self._default_project = settings.rp_project

    def resolve(
        self,
        headers: Optional[Mapping[str, str]] = None,
        session_id: Optional[str] = None,
    ) -> CallContext:
        # Per-call correlation id only; host, token and project never change.
        return CallContext(
            host=self._host,
            token=self._token,
            default_project=self._default_project,
            correlation_id=new_correlation_id(),
            session_id=session_id,
        )


class HeaderContextResolver:
    """Multi-tenant resolver: credentials come from each request's headers."""

    def __init__(self, host: str, default_project: Optional[str] = None):
        if not host:
            raise ConfigurationError("RP_HOST is required")
        self._host = host
        self._default_project = default_project

    def resolve(
        self,
        headers: Optional[Mapping[str, str]] = None,
        session_id: Optional[str] = None,
    ) -> CallContext:
        headers = headers or {}
        correlation_id = _header(headers, REQUEST_ID_HEADER) or new_correlation_id()

        authorization = _header(headers, AUTHORIZATION_HEADER)
        if authorization is None:
            logger.debug("[%s] no Authorization header", correlation_id)
            raise AuthenticationFailed("Missing Authorization header with a Bearer token")

        scheme, _, token = authorization.partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            raise AuthenticationFailed("Authorization header must use the Bearer scheme")
        if not is_valid_token(token):
            logger.debug("[%s] bearer token rejected by format check", correlation_id)
            raise AuthenticationFailed("Invalid ReportPortal API token")

        return CallContext(
            host=self._host,
            token=token,
            project=_header(headers, PROJECT_HEADER),
            default_project=self._default_project,
            correlation_id=correlation_id,
            session_id=session_id,
        )
