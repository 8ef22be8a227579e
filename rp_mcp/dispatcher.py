"""Per-call dispatch: context -> validation -> handler -> mapped result.

Every call walks ``received -> context-resolved -> validated -> dispatched``
and ends ``succeeded`` or ``failed``. Failures are classified exactly once
and re-raised as ``RPToolError``; there are no retries at this layer.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

import httpx

from .context import CallContext
from .data.reportportal_client import ReportPortalClient, stateless_cookie_jar
from .errors import BackendError, RPToolError
from .mapper import classify, to_resource_contents, to_tool_result
from .mcp_tools import RESOURCE_TEMPLATES, read_resource
from .registry import OperationKind, OperationRegistry

logger = logging.getLogger(__name__)

ClientFactory = Callable[[CallContext], ReportPortalClient]


class ContextResolver(Protocol):
    def resolve(
        self,
        headers: Optional[Mapping[str, str]] = None,
        session_id: Optional[str] = None,
    ) -> CallContext:
        ...


class Dispatcher:
    """Runs tools, prompts and resource reads against a frozen registry."""

    def __init__(
        self,
        registry: OperationRegistry,
        resolver: ContextResolver,
        http_client: Optional[httpx.AsyncClient] = None,
        client_factory: Optional[ClientFactory] = None,
        timeout: float = 30.0,
    ):
        self.registry = registry.freeze()
        self.resolver = resolver
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        # Tenants share this pool, so no cookie may outlive the call that received it.
        self._http.cookies = stateless_cookie_jar()
        self._client_factory = client_factory or (lambda context: ReportPortalClient(self._http, context))

    async def aclose(self) -> None:
        await self._http.aclose()

    # Listings need no credentials

    def list_tools(self) -> List[Dict[str, Any]]:
        return [descriptor.to_tool() for descriptor in self.registry.tools()]

    def list_prompts(self) -> List[Dict[str, Any]]:
        return [descriptor.to_prompt() for descriptor in self.registry.prompts()]

    def list_resource_templates(self) -> List[Dict[str, str]]:
        return [dict(template) for template in RESOURCE_TEMPLATES]

    async def get_prompt(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        descriptor = self.registry.resolve(name, OperationKind.PROMPT)
        values = descriptor.validate(arguments)
        return await descriptor.handler(values)

    # Calls against the backend

    async def call_tool(
        self,
        name: str,
        arguments: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        logger.debug("tools/call %s received (session=%s)", name, session_id)
        context: Optional[CallContext] = None
        try:
            context = self.resolver.resolve(headers or {}, session_id)
            self._transition(context, name, "context-resolved")

            descriptor = self.registry.resolve(name, OperationKind.TOOL)
            params = descriptor.validate(arguments)
            self._transition(context, name, "validated")

            client = self._client_factory(context)
            self._transition(context, name, "dispatched")
            result = await descriptor.handler(client, context, params)
        except Exception as exc:
            raise self._failed(context, name, exc)

        self._transition(context, name, "succeeded")
        return to_tool_result(result)

    async def read_resource(
        self,
        uri: str,
        headers: Optional[Mapping[str, str]] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        label = f"resource {uri}"
        context: Optional[CallContext] = None
        try:
            context = self.resolver.resolve(headers or {}, session_id)
            self._transition(context, label, "context-resolved")
            client = self._client_factory(context)
            self._transition(context, label, "dispatched")
            result = await read_resource(client, context, uri)
        except Exception as exc:
            raise self._failed(context, label, exc)

        self._transition(context, label, "succeeded")
        return to_resource_contents(uri, result)

    @staticmethod
    def _transition(context: CallContext, name: str, state: str) -> None:
        logger.debug(
            "[%s] %s %s (session=%s)", context.correlation_id, name, state, context.session_id
        )

    @staticmethod
    def _failed(context: Optional[CallContext], name: str, exc: Exception) -> RPToolError:
        error = classify(exc)
        correlation_id = context.correlation_id if context else "-"
        if isinstance(exc, (RPToolError, BackendError, httpx.HTTPError)):
            logger.warning("[%s] %s failed: %s %s", correlation_id, name, error.kind.value, error.message)
        else:
            logger.error("[%s] %s failed unexpectedly", correlation_id, name, exc_info=exc)
        if error is not exc:
            error.__cause__ = exc
        return error
