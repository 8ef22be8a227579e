"""Error taxonomy shared by every layer of the server."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union


class ErrorKind(str, Enum):
    """Closed set of error kinds reported to callers."""

    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    BACKEND_REJECTED = "backend_rejected"


class RPToolError(Exception):
    """Base exception for classified tool errors."""

    kind: ErrorKind = ErrorKind.BACKEND_REJECTED

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.status_code is not None:
            payload["status_code"] = self.status_code
        return payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status_code={self.status_code!r})"


class ValidationFailed(RPToolError):
    """Caller input is missing or malformed. Never reaches the backend."""

    kind = ErrorKind.VALIDATION

    def __init__(self, field: str, reason: str, message: Optional[str] = None):
        super().__init__(message or f"{field}: {reason}")
        self.field = field
        self.reason = reason

    @classmethod
    def from_problems(cls, problems: List[Tuple[str, str]]) -> "ValidationFailed":
        """Combine ``(field, reason)`` problems; the first one names the error."""
        field, reason = problems[0]
        return cls(field, reason, "; ".join(f"{f}: {r}" for f, r in problems))


class AuthenticationFailed(RPToolError):
    """Credential is missing or was refused."""

    kind = ErrorKind.AUTHENTICATION


class NotFound(RPToolError):
    """Requested entity or operation does not exist."""

    kind = ErrorKind.NOT_FOUND


class BackendUnavailable(RPToolError):
    """Network failure or timeout talking to the backend."""

    kind = ErrorKind.BACKEND_UNAVAILABLE


class BackendRejected(RPToolError):
    """Backend answered with an error that has no more specific kind."""

    kind = ErrorKind.BACKEND_REJECTED


class BackendError(Exception):
    """Raw non-success HTTP answer from the ReportPortal API."""

    def __init__(self, status_code: int, message: str, body: str = ""):
        super().__init__(f"{status_code} {message}")
        self.status_code = status_code
        self.message = message
        self.body = body


class ConfigurationError(Exception):
    """Startup configuration is invalid; the server must not start serving."""


class RegistryError(ConfigurationError):
    """Operation registry was built inconsistently."""


class PromptDefinitionError(ConfigurationError):
    """An external prompt definition file could not be loaded."""

    def __init__(self, path: Union[str, Path], reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = Path(path)
        self.reason = reason
