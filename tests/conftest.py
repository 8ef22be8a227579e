#!/usr/bin/env python3
"""
Pytest configuration and fixtures for ReportPortal MCP Server tests.
"""

import pytest
import pytest_asyncio

from rp_mcp.config import Settings
from rp_mcp.context import CallContext, HeaderContextResolver, StaticContextResolver
from rp_mcp.data.reportportal_client import ReportPortalClient
from rp_mcp.dispatcher import Dispatcher
from rp_mcp.mcp import create_registry

from tests.support import PROJECT, RP_HOST, TOKEN_A, RecordingBackend


@pytest.fixture
def stdio_settings():
    """Settings for single-tenant stdio mode."""
    return Settings(
        _env_file=None,
        mcp_mode="stdio",
        rp_host=RP_HOST,
        rp_api_token=TOKEN_A,
        rp_project=PROJECT,
    )


@pytest.fixture
def http_settings():
    """Settings for multi-tenant http mode."""
    return Settings(
        _env_file=None,
        mcp_mode="http",
        rp_host=RP_HOST,
        rp_project=PROJECT,
    )


@pytest.fixture(scope="session")
def registry():
    """Frozen registry with built-in tools and packaged prompts."""
    return create_registry()


@pytest.fixture
def backend():
    """Recording ReportPortal test double."""
    return RecordingBackend()


@pytest.fixture
def call_context():
    """Context of a stdio call against the demo project."""
    return CallContext(host=RP_HOST, token=TOKEN_A, default_project=PROJECT, correlation_id="test-cid")


@pytest_asyncio.fixture
async def rp_client(backend, call_context):
    """ReportPortal client talking to the recording backend."""
    http = backend.http_client()
    yield ReportPortalClient(http, call_context)
    await http.aclose()


@pytest_asyncio.fixture
async def stdio_dispatcher(registry, backend, stdio_settings):
    """Dispatcher in single-tenant mode backed by the recording backend."""
    dispatcher = Dispatcher(registry, StaticContextResolver(stdio_settings), http_client=backend.http_client())
    yield dispatcher
    await dispatcher.aclose()


@pytest_asyncio.fixture
async def http_dispatcher(registry, backend):
    """Dispatcher in multi-tenant mode backed by the recording backend."""
    dispatcher = Dispatcher(registry, HeaderContextResolver(RP_HOST, PROJECT), http_client=backend.http_client())
    yield dispatcher
    await dispatcher.aclose()


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "scenario: mark test as a scenario test"
    )
