"""Shared test doubles and constants."""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

RP_HOST = "https://rp.example.com"
PROJECT = "demo"
TOKEN_A = "11111111-2222-3333-4444-555555555555"
TOKEN_B = "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee"


class RecordingBackend:
    """ReportPortal test double recording every request it receives."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self._routes: Dict[Tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def add(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        status: int = 200,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        def reply(request: httpx.Request) -> httpx.Response:
            if content is not None:
                return httpx.Response(status, content=content, headers=headers)
            return httpx.Response(status, json=json_body if json_body is not None else {}, headers=headers)

        self._routes[(method, path)] = reply

    def add_handler(self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self._routes[(method, path)] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self._routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"errorCode": 4041, "message": "Not found"})
        return route(request)

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last.content)


def bearer(token: str = TOKEN_A, project: Optional[str] = None) -> Dict[str, str]:
    headers = {"Authorization": f"Bearer {token}"}
    if project:
        headers["X-Project"] = project
    return headers
