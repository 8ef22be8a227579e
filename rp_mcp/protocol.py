"""JSON-RPC 2.0 envelope handling and MCP method routing.

Shared by the stdio loop and the HTTP app: both hand over a decoded JSON
payload plus the caller's headers and get back the response payload, or
``None`` when nothing must be sent (notifications).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from . import __version__
from .dispatcher import Dispatcher
from .errors import RPToolError, ValidationFailed
from .mapper import INTERNAL_ERROR, INVALID_REQUEST, METHOD_NOT_FOUND, protocol_error, to_error_payload

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "reportportal-mcp-server"

RequestId = Optional[Union[int, str]]


class MethodNotFound(Exception):
    """No handler for the requested JSON-RPC method."""


class JSONRPCRequest(BaseModel):
    jsonrpc: str = "2.0"
    method: str
    params: Dict[str, Any] = Field(default_factory=dict)
    id: RequestId = None


class JSONRPCResponse(BaseModel):
    jsonrpc: str = "2.0"
    result: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None
    id: RequestId = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            payload["error"] = self.error
        else:
            payload["result"] = self.result if self.result is not None else {}
        return payload


def error_response(request_id: RequestId, error: Dict[str, Any]) -> Dict[str, Any]:
    return JSONRPCResponse(id=request_id, error=error).to_dict()


def initialize_result() -> Dict[str, Any]:
    return {
        "protocolVersion": PROTOCOL_VERSION,
        "capabilities": {
            "tools": {"listChanged": False},
            "prompts": {"listChanged": False},
            "resources": {"subscribe": False, "listChanged": False},
        },
        "serverInfo": {"name": SERVER_NAME, "version": __version__},
    }


def _require_str(params: Mapping[str, Any], key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailed(key, "field required")
    return value.strip()


def _arguments(params: Mapping[str, Any]) -> Dict[str, Any]:
    arguments = params.get("arguments")
    if arguments is None:
        return {}
    if not isinstance(arguments, dict):
        raise ValidationFailed("arguments", "must be an object")
    return arguments


async def _route(
    request: JSONRPCRequest,
    dispatcher: Dispatcher,
    headers: Mapping[str, str],
    session_id: Optional[str],
) -> Optional[Dict[str, Any]]:
    method = request.method
    params = request.params

    if method == "initialize":
        return initialize_result()
    if method == "ping":
        return {}
    if method == "tools/list":
        return {"tools": dispatcher.list_tools()}
    if method == "tools/call":
        return await dispatcher.call_tool(
            _require_str(params, "name"),
            _arguments(params),
            headers=headers,
            session_id=session_id,
        )
    if method == "prompts/list":
        return {"prompts": dispatcher.list_prompts()}
    if method == "prompts/get":
        return await dispatcher.get_prompt(_require_str(params, "name"), _arguments(params))
    if method == "resources/templates/list":
        return {"resourceTemplates": dispatcher.list_resource_templates()}
    if method == "resources/read":
        return await dispatcher.read_resource(
            _require_str(params, "uri"), headers=headers, session_id=session_id
        )
    raise MethodNotFound(method)


async def handle_request(
    raw: Any,
    dispatcher: Dispatcher,
    headers: Optional[Mapping[str, str]] = None,
    session_id: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Handle one decoded JSON-RPC message."""
    request_id = raw.get("id") if isinstance(raw, dict) else None
    try:
        request = JSONRPCRequest.model_validate(raw)
    except ValidationError as exc:
        logger.debug("Invalid JSON-RPC request: %s", exc)
        if not isinstance(request_id, (int, str)):
            request_id = None
        return error_response(request_id, protocol_error(INVALID_REQUEST, "Invalid Request"))

    if request.method.startswith("notifications/"):
        logger.debug("Notification %s", request.method)
        return None

    try:
        result = await _route(request, dispatcher, headers or {}, session_id)
    except RPToolError as exc:
        response = error_response(request.id, to_error_payload(exc))
    except MethodNotFound:
        response = error_response(
            request.id, protocol_error(METHOD_NOT_FOUND, f"Method not found: {request.method}")
        )
    except Exception as exc:
        logger.error("Internal error handling %s", request.method, exc_info=exc)
        response = error_response(request.id, protocol_error(INTERNAL_ERROR, f"Internal error: {exc}"))
    else:
        response = JSONRPCResponse(id=request.id, result=result).to_dict()

    # A message without an id is a notification: it runs but is never answered.
    if "id" not in raw:
        logger.debug("No response for id-less %s", request.method)
        return None
    return response


async def handle_payload(
    payload: Any,
    dispatcher: Dispatcher,
    headers: Optional[Mapping[str, str]] = None,
    session_id: Optional[str] = None,
) -> Union[Dict[str, Any], List[Dict[str, Any]], None]:
    """Handle a single message or a batch; batch members run concurrently."""
    if isinstance(payload, list):
        if not payload:
            return error_response(None, protocol_error(INVALID_REQUEST, "Invalid Request: empty batch"))
        responses = await asyncio.gather(
            *(handle_request(item, dispatcher, headers, session_id) for item in payload)
        )
        answered = [response for response in responses if response is not None]
        return answered or None
    return await handle_request(payload, dispatcher, headers, session_id)
