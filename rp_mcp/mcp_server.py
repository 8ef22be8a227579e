#!/usr/bin/env python3
"""ReportPortal MCP Server entrypoint."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import IO, Optional

import click
import uvicorn
from pydantic import ValidationError

from .config import HTTP_MODE, STDIO_MODE, Settings
from .context import HeaderContextResolver, StaticContextResolver
from .dispatcher import Dispatcher
from .errors import ConfigurationError
from .http_api import create_app
from .mapper import PARSE_ERROR, protocol_error
from .mcp import create_registry
from .protocol import error_response, handle_payload

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    # stdout carries the stdio protocol stream, logs go to stderr only
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, stream=sys.stderr, force=True)


def build_dispatcher(settings: Settings) -> Dispatcher:
    """Build the registry and the resolver matching the transport mode."""
    registry = create_registry(settings.rp_prompts_dir)
    if settings.is_http:
        resolver = HeaderContextResolver(settings.rp_host, settings.rp_project)
    else:
        resolver = StaticContextResolver(settings)
    return Dispatcher(registry, resolver, timeout=settings.rp_connection_timeout)


async def serve_stdio(
    dispatcher: Dispatcher,
    stdin: Optional[IO[str]] = None,
    stdout: Optional[IO[str]] = None,
) -> None:
    """Serve newline-delimited JSON-RPC over stdin/stdout until EOF."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    session_id = uuid.uuid4().hex

    while True:
        line = await asyncio.to_thread(stdin.readline)
        if not line:
            break
        line = line.strip()
        if not line:
            continue

        try:
            payload = json.loads(line)
        except json.JSONDecodeError as exc:
            response = error_response(None, protocol_error(PARSE_ERROR, f"Parse error: {exc}"))
        else:
            response = await handle_payload(payload, dispatcher, session_id=session_id)

        if response is not None:
            stdout.write(json.dumps(response, ensure_ascii=False) + "\n")
            stdout.flush()
    logger.info("stdin closed, stopping")


async def _run_stdio(dispatcher: Dispatcher) -> None:
    try:
        await serve_stdio(dispatcher)
    finally:
        await dispatcher.aclose()


@click.command()
@click.option("--mode", type=click.Choice([STDIO_MODE, HTTP_MODE]), default=None, help="Transport mode (env MCP_MODE)")
@click.option("--rp-host", default=None, help="ReportPortal base URL (env RP_HOST)")
@click.option("--token", default=None, help="ReportPortal API token for stdio mode (env RP_API_TOKEN)")
@click.option("--project", default=None, help="Default ReportPortal project (env RP_PROJECT)")
@click.option("--host", default=None, help="HTTP bind host (env MCP_SERVER_HOST)")
@click.option("--port", type=int, default=None, help="HTTP bind port (env MCP_SERVER_PORT)")
@click.option(
    "--prompts-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory with prompt YAML files (env RP_PROMPTS_DIR)",
)
@click.option("--log-level", default=None, help="Logging level (env LOG_LEVEL)")
def main(
    mode: Optional[str],
    rp_host: Optional[str],
    token: Optional[str],
    project: Optional[str],
    host: Optional[str],
    port: Optional[int],
    prompts_dir: Optional[Path],
    log_level: Optional[str],
) -> None:
    """Run the ReportPortal MCP server."""
    configure_logging(log_level or "INFO")

    overrides = {
        "mcp_mode": mode,
        "rp_host": rp_host,
        "rp_api_token": token,
        "rp_project": project,
        "mcp_server_host": host,
        "mcp_server_port": port,
        "rp_prompts_dir": prompts_dir,
        "log_level": log_level,
    }
    try:
        settings = Settings(**{key: value for key, value in overrides.items() if value is not None})
        configure_logging(settings.log_level)
        settings.validate_for_mode()
        dispatcher = build_dispatcher(settings)
    except (ConfigurationError, ValidationError) as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(1)

    try:
        if settings.is_http:
            logger.info(
                "Starting ReportPortal MCP Server (http) on %s:%s",
                settings.mcp_server_host,
                settings.mcp_server_port,
            )
            uvicorn.run(
                create_app(dispatcher),
                host=settings.mcp_server_host,
                port=settings.mcp_server_port,
                log_level=settings.log_level.lower(),
            )
        else:
            logger.info("Starting ReportPortal MCP Server (stdio) for %s", settings.rp_host)
            asyncio.run(_run_stdio(dispatcher))
    except KeyboardInterrupt:
        logger.info("Server interrupted by user")


if __name__ == "__main__":
    main()
