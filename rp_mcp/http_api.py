#!/usr/bin/env python3
"""
HTTP API Server - FastAPI app exposing the MCP JSON-RPC endpoint
Multi-tenant transport: every request carries its own ReportPortal token
"""

from __future__ import annotations

import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from . import __version__
from .dispatcher import Dispatcher
from .mapper import PARSE_ERROR, protocol_error
from .protocol import PROTOCOL_VERSION, SERVER_NAME, error_response, handle_payload

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
MCP_PATHS = ("/mcp", "/api/mcp", "/jsonrpc")


def _starts_session(payload: Any) -> bool:
    messages = payload if isinstance(payload, list) else [payload]
    return any(isinstance(message, dict) and message.get("method") == "initialize" for message in messages)


def create_app(dispatcher: Dispatcher) -> FastAPI:
    """Create the FastAPI application serving ``dispatcher``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("HTTP transport ready on %s", ", ".join(MCP_PATHS))
        try:
            yield
        finally:
            await dispatcher.aclose()

    app = FastAPI(
        title="ReportPortal MCP Server",
        description="MCP JSON-RPC endpoint with ReportPortal tools and prompts",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health_check():
        """Simple health check endpoint"""
        return {
            "ok": True,
            "tools": len(dispatcher.list_tools()),
            "prompts": len(dispatcher.list_prompts()),
        }

    @app.get("/info")
    async def server_info():
        """Server name, version and the MCP endpoints it serves"""
        return {
            "name": SERVER_NAME,
            "version": __version__,
            "protocolVersion": PROTOCOL_VERSION,
            "transport": "http",
            "endpoints": list(MCP_PATHS),
        }

    async def mcp_endpoint(request: Request) -> Response:
        """JSON-RPC endpoint for MCP clients, single messages or batches"""
        try:
            payload = json.loads(await request.body())
        except ValueError as exc:
            return JSONResponse(error_response(None, protocol_error(PARSE_ERROR, f"Parse error: {exc}")))

        session_id = request.headers.get(SESSION_HEADER)
        if _starts_session(payload):
            session_id = uuid.uuid4().hex
            logger.debug("Issued session %s", session_id)

        result = await handle_payload(payload, dispatcher, request.headers, session_id)
        headers = {SESSION_HEADER: session_id} if session_id else {}
        if result is None:
            return Response(status_code=202, headers=headers)
        return JSONResponse(result, headers=headers)

    for path in MCP_PATHS:
        app.add_api_route(path, mcp_endpoint, methods=["POST"])

    return app
