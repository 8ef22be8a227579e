#!/usr/bin/env python3
"""
Unit tests for the ReportPortal REST client (data/reportportal_client.py).
"""

import pytest

from rp_mcp.errors import BackendError
from rp_mcp.schemas.filters import BackendQuery, FilterToken, Operator, SortSpec
from rp_mcp.schemas.pagination import PageRequest

from tests.support import TOKEN_A


class TestRequests:
    """Requests sent to the backend."""

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_list_launches_sends_credential_and_query(self, rp_client, backend):
        backend.add("GET", "/api/v1/demo/launch", {"content": [], "page": {"totalElements": 0}})
        query = BackendQuery(
            filters=(FilterToken("name", Operator.CNT, "nightly"),),
            sort=(SortSpec("startTime"),),
            page=PageRequest(),
        )

        result = await rp_client.list_launches("demo", query)

        assert result["page"]["totalElements"] == 0
        request = backend.last
        assert request.headers["Authorization"] == f"Bearer {TOKEN_A}"
        assert request.headers["X-Request-ID"] == "test-cid"
        assert request.url.params.multi_items() == [
            ("filter.cnt.name", "nightly"),
            ("page.page", "1"),
            ("page.size", "20"),
            ("page.sort", "startTime,DESC"),
        ]

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_force_finish_body(self, rp_client, backend):
        backend.add("PUT", "/api/v1/demo/launch/5/stop", {"message": "stopped"})

        await rp_client.force_finish_launch("demo", 5)

        body = backend.last_json()
        assert body["status"] == "STOPPED"
        assert body["endTime"].endswith("Z")

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_analyze_body(self, rp_client, backend):
        backend.add("POST", "/api/v1/demo/launch/analyze", {"message": "started"})

        await rp_client.analyze_launch("demo", 5, "current_launch", "autoAnalyzer", ["to_investigate"])

        assert backend.last_json() == {
            "launchId": 5,
            "analyzerMode": "CURRENT_LAUNCH",
            "analyzerTypeName": "AUTOANALYZER",
            "analyzeItemsMode": ["to_investigate"],
        }

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_quality_gate_path_is_quoted(self, rp_client, backend):
        backend.add("PUT", "/api/v1/plugin/demo/quality gate/startQualityGate", {"status": "PASSED"})

        result = await rp_client.run_quality_gate("demo", 8)

        assert result == {"status": "PASSED"}
        assert b"quality%20gate" in backend.last.url.raw_path
        assert backend.last_json() == {"async": False, "launchId": 8}

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_define_issue_type_body(self, rp_client, backend):
        backend.add("PUT", "/api/v1/demo/item", [{"id": 1}])

        await rp_client.define_issue_type("demo", [1, 2], "pb001")

        assert backend.last_json() == {
            "issues": [
                {"testItemId": 1, "issue": {"issueType": "pb001"}},
                {"testItemId": 2, "issue": {"issueType": "pb001"}},
            ]
        }

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_empty_body(self, rp_client, backend):
        backend.add("DELETE", "/api/v1/demo/launch/3", content=b"")

        assert await rp_client.delete_launch("demo", 3) == {}


class TestAttachments:
    """Attachment downloads."""

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_text_attachment(self, rp_client, backend):
        backend.add(
            "GET",
            "/api/v1/data/demo/77",
            content=b"stack trace",
            headers={"Content-Type": "text/plain"},
        )

        attachment = await rp_client.get_attachment("demo", 77)

        assert attachment.is_text is True
        assert attachment.text() == "stack trace"
        assert attachment.uri == "https://rp.example.com/api/v1/data/demo/77"

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_binary_attachment(self, rp_client, backend):
        backend.add("GET", "/api/v1/data/demo/78", content=b"\x89PNG", headers={"Content-Type": "image/png"})

        attachment = await rp_client.get_attachment("demo", 78)

        assert attachment.is_text is False
        assert attachment.content == b"\x89PNG"


class TestBackendErrors:
    """Non-success answers become BackendError."""

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_message_from_body(self, rp_client, backend):
        backend.add("GET", "/api/v1/demo/launch/9", {"errorCode": 4040, "message": "Launch '9' not found"}, status=404)

        with pytest.raises(BackendError) as exc_info:
            await rp_client.get_launch("demo", 9)

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Launch '9' not found"

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_message_from_reason_phrase(self, rp_client, backend):
        backend.add("GET", "/api/v1/project/demo", content=b"<html>oops</html>", status=502)

        with pytest.raises(BackendError) as exc_info:
            await rp_client.get_project("demo")

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "Bad Gateway"
        assert exc_info.value.body == "<html>oops</html>"
