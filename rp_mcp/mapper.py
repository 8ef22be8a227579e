"""Mapping of handler results and failures onto MCP / JSON-RPC payloads."""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, List

import httpx

from .data.reportportal_client import Attachment
from .errors import (
    AuthenticationFailed,
    BackendError,
    BackendRejected,
    BackendUnavailable,
    ErrorKind,
    NotFound,
    RPToolError,
)

logger = logging.getLogger(__name__)

# JSON-RPC 2.0 reserved codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

ERROR_CODES: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: INVALID_PARAMS,
    ErrorKind.AUTHENTICATION: -32001,
    ErrorKind.BACKEND_REJECTED: -32002,
    ErrorKind.BACKEND_UNAVAILABLE: -32003,
    ErrorKind.NOT_FOUND: -32004,
}

UNAVAILABLE_MESSAGE = "ReportPortal is unavailable, try again later"
TIMEOUT_MESSAGE = "ReportPortal did not answer in time"


def classify(exc: BaseException) -> RPToolError:
    """Map any failure onto exactly one error kind."""
    if isinstance(exc, RPToolError):
        return exc
    if isinstance(exc, BackendError):
        if exc.status_code in (401, 403):
            return AuthenticationFailed(
                f"ReportPortal refused the credentials: {exc.message}", exc.status_code
            )
        if exc.status_code == 404:
            return NotFound(exc.message or "Entity not found", exc.status_code)
        detail = exc.body or exc.message
        return BackendRejected(f"ReportPortal error {exc.status_code}: {detail}", exc.status_code)
    if isinstance(exc, httpx.TimeoutException):
        return BackendUnavailable(TIMEOUT_MESSAGE)
    if isinstance(exc, httpx.TransportError):
        return BackendUnavailable(UNAVAILABLE_MESSAGE)
    return BackendRejected(str(exc) or type(exc).__name__)


def error_code(kind: ErrorKind) -> int:
    return ERROR_CODES[kind]


def to_error_payload(error: RPToolError) -> Dict[str, Any]:
    """JSON-RPC ``error`` member for a classified failure."""
    return {
        "code": error_code(error.kind),
        "message": error.message,
        "data": {"kind": error.kind.value, "status_code": error.status_code},
    }


def protocol_error(code: int, message: str) -> Dict[str, Any]:
    return {"code": code, "message": message}


def _text_block(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


def _attachment_block(attachment: Attachment) -> Dict[str, Any]:
    if attachment.is_text:
        resource = {
            "uri": attachment.uri,
            "mimeType": attachment.media_type,
            "text": attachment.text(),
        }
    else:
        resource = {
            "uri": attachment.uri,
            "mimeType": attachment.media_type,
            "blob": base64.b64encode(attachment.content).decode("ascii"),
        }
    return {"type": "resource", "resource": resource}


def to_content(result: Any) -> List[Dict[str, Any]]:
    """Serialize a handler result into MCP content blocks."""
    if isinstance(result, Attachment):
        return [_attachment_block(result)]
    if isinstance(result, str):
        return [_text_block(result)]
    return [_text_block(json.dumps(result, ensure_ascii=False))]


def to_tool_result(result: Any) -> Dict[str, Any]:
    return {"content": to_content(result)}


def to_resource_contents(uri: str, result: Any) -> Dict[str, Any]:
    """``resources/read`` result: one JSON text entry for the given URI."""
    return {
        "contents": [
            {
                "uri": uri,
                "mimeType": "application/json",
                "text": json.dumps(result, ensure_ascii=False),
            }
        ]
    }
