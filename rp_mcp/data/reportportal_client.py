"""Async ReportPortal REST client bound to one call context."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..context import CallContext
from ..errors import BackendError
from ..schemas.filters import BackendQuery, QueryParams

logger = logging.getLogger(__name__)

TEXT_MEDIA_TYPES = (
    "application/json",
    "application/xml",
    "application/javascript",
    "application/x-yaml",
    "application/yaml",
    "application/csv",
)

QUALITY_GATE_PLUGIN = "quality gate"
QUALITY_GATE_COMMAND = "startQualityGate"


@dataclass(frozen=True)
class Attachment:
    """Raw attachment content downloaded from the file storage."""

    content: bytes
    media_type: str
    uri: str

    @property
    def is_text(self) -> bool:
        media_type = self.media_type.split(";", 1)[0].strip().lower()
        return (
            media_type.startswith("text/")
            or media_type in TEXT_MEDIA_TYPES
            or media_type.endswith(("+json", "+xml"))
        )

    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase or "request failed"
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.reason_phrase or "request failed"


def stateless_cookie_jar() -> CookieJar:
    """Cookie jar that refuses every ``Set-Cookie``."""
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


class ReportPortalClient:
    """Thin wrapper over ``httpx.AsyncClient`` issuing ReportPortal API calls.

    The underlying ``httpx.AsyncClient`` must carry a ``stateless_cookie_jar``
    so it holds connections only. The token is attached to every request from
    the call context, so one pool may serve calls of different tenants.
    """

    def __init__(self, http: httpx.AsyncClient, context: CallContext):
        self._http = http
        self._context = context

    @property
    def context(self) -> CallContext:
        return self._context

    def _url(self, path: str) -> str:
        return f"{self._context.host}/api{path}"

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[QueryParams] = None,
        json: Optional[Any] = None,
    ) -> httpx.Response:
        logger.debug("[%s] %s %s", self._context.correlation_id, method, path)
        response = await self._http.request(
            method,
            self._url(path),
            params=params,
            json=json,
            headers={
                "Authorization": f"Bearer {self._context.token}",
                "Accept": "application/json",
                "X-Request-ID": self._context.correlation_id,
            },
        )
        if response.status_code >= 400:
            raise BackendError(response.status_code, _error_message(response), response.text)
        return response

    async def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._request(method, path, **kwargs)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"message": response.text}

    # Launches

    async def list_launches(self, project: str, query: BackendQuery) -> Dict[str, Any]:
        return await self._json("GET", f"/v1/{quote(project)}/launch", params=query.to_params())

    async def get_launch(self, project: str, launch_id: int) -> Dict[str, Any]:
        return await self._json("GET", f"/v1/{quote(project)}/launch/{launch_id}")

    async def delete_launch(self, project: str, launch_id: int) -> Dict[str, Any]:
        return await self._json("DELETE", f"/v1/{quote(project)}/launch/{launch_id}")

    async def force_finish_launch(self, project: str, launch_id: int) -> Dict[str, Any]:
        end_time = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return await self._json(
            "PUT",
            f"/v1/{quote(project)}/launch/{launch_id}/stop",
            json={"endTime": end_time, "status": "STOPPED"},
        )

    async def analyze_launch(
        self,
        project: str,
        launch_id: int,
        analyzer_mode: str,
        analyzer_type: str,
        item_modes: List[str],
    ) -> Dict[str, Any]:
        return await self._json(
            "POST",
            f"/v1/{quote(project)}/launch/analyze",
            json={
                "launchId": launch_id,
                "analyzerMode": analyzer_mode.upper(),
                "analyzerTypeName": analyzer_type.upper(),
                "analyzeItemsMode": list(item_modes),
            },
        )

    async def create_clusters(self, project: str, launch_id: int, remove_numbers: bool) -> Dict[str, Any]:
        return await self._json(
            "POST",
            f"/v1/{quote(project)}/launch/cluster",
            json={"launchId": launch_id, "removeNumbers": remove_numbers},
        )

    async def run_quality_gate(self, project: str, launch_id: int) -> Dict[str, Any]:
        return await self._json(
            "PUT",
            f"/v1/plugin/{quote(project)}/{quote(QUALITY_GATE_PLUGIN)}/{QUALITY_GATE_COMMAND}",
            json={"async": False, "launchId": launch_id},
        )

    # Test items

    async def list_test_items(self, project: str, query: BackendQuery) -> Dict[str, Any]:
        return await self._json("GET", f"/v2/{quote(project)}/item", params=query.to_params())

    async def get_test_item(self, project: str, item_id: int) -> Dict[str, Any]:
        return await self._json("GET", f"/v1/{quote(project)}/item/{item_id}")

    async def list_nested_logs(self, project: str, parent_id: int, query: BackendQuery) -> Dict[str, Any]:
        return await self._json(
            "GET", f"/v1/{quote(project)}/log/nested/{parent_id}", params=query.to_params()
        )

    async def get_attachment(self, project: str, content_id: int) -> Attachment:
        response = await self._request("GET", f"/v1/data/{quote(project)}/{content_id}")
        return Attachment(
            content=response.content,
            media_type=response.headers.get("content-type", "application/octet-stream"),
            uri=str(response.request.url),
        )

    async def get_project(self, project: str) -> Dict[str, Any]:
        return await self._json("GET", f"/v1/project/{quote(project)}")

    async def define_issue_type(self, project: str, item_ids: List[int], issue_type: str) -> Any:
        return await self._json(
            "PUT",
            f"/v1/{quote(project)}/item",
            json={
                "issues": [
                    {"testItemId": item_id, "issue": {"issueType": issue_type}}
                    for item_id in item_ids
                ]
            },
        )
