#!/usr/bin/env python3
"""
MCP Tools - ReportPortal operations
Business logic of every tool, independent of the transport that calls it.
Each handler receives a client bound to the caller's context plus validated arguments.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Tuple

from .context import CallContext
from .data.reportportal_client import Attachment, ReportPortalClient
from .errors import BackendRejected, NotFound, ValidationFailed
from .schemas.filters import (
    ATTRIBUTE_FIELD,
    ITEM_STATUSES,
    LOG_LEVELS,
    Direction,
    FieldKind,
    FilterField,
    FilterSpec,
    Operator,
    SortSpec,
    build_query,
)
from .schemas.pagination import PageRequest
from .schemas.requests import (
    AttachmentQuery,
    AutoAnalysisQuery,
    DefectTypesQuery,
    ItemLogsQuery,
    LastLaunchQuery,
    LaunchesQuery,
    LaunchIdQuery,
    TestItemIdQuery,
    TestItemsQuery,
    TestSuitesQuery,
    UniqueErrorAnalysisQuery,
    UpdateDefectTypeQuery,
)

logger = logging.getLogger(__name__)

ITEM_SORT_FIELDS = ("startTime", "endTime", "name", "status", "type", "id")

LAUNCH_FILTERS = FilterSpec(
    fields=(
        FilterField("name", "name", FieldKind.TEXT),
        FilterField("description", "description", FieldKind.TEXT),
        FilterField("owner", "user", FieldKind.LIST),
        FilterField("number_gte", "number", FieldKind.NUMBER, Operator.GTE),
        FilterField("start_time", "startTime", FieldKind.TIME),
        FilterField("attributes", ATTRIBUTE_FIELD, FieldKind.ATTRIBUTE),
        FilterField("attribute_keys", ATTRIBUTE_FIELD, FieldKind.ATTRIBUTE_KEY),
    ),
    sort_fields=("startTime", "number", "name", "status", "endTime"),
    default_sort=(SortSpec("startTime", Direction.DESC), SortSpec("number", Direction.DESC)),
)

TEST_ITEM_FILTERS = FilterSpec(
    fields=(
        FilterField("name", "name", FieldKind.TEXT),
        FilterField("description", "description", FieldKind.TEXT),
        FilterField("status", "status", FieldKind.ENUM, choices=ITEM_STATUSES),
        FilterField("has_retries", "hasRetries", FieldKind.FLAG),
        FilterField("parent_id", "parentId", FieldKind.ID),
        FilterField("start_time", "startTime", FieldKind.TIME),
        FilterField("issue_comment", "issueComment", FieldKind.TEXT),
        FilterField("ignore_analyzer", "ignoreAnalyzer", FieldKind.FLAG),
        FilterField("ticket_id", "ticketId", FieldKind.TEXT, Operator.HAS),
        FilterField("pattern_name", "patternName", FieldKind.TEXT, Operator.ANY),
        FilterField("auto_analyzed", "autoAnalyzed", FieldKind.FLAG),
        FilterField("attributes", ATTRIBUTE_FIELD, FieldKind.ATTRIBUTE),
        FilterField("attribute_keys", ATTRIBUTE_FIELD, FieldKind.ATTRIBUTE_KEY),
    ),
    sort_fields=ITEM_SORT_FIELDS,
    default_sort=(SortSpec("startTime", Direction.DESC),),
)

TEST_SUITE_FILTERS = FilterSpec(
    fields=(
        FilterField("name", "name", FieldKind.TEXT),
        FilterField("description", "description", FieldKind.TEXT),
        FilterField("parent_id", "parentId", FieldKind.ID),
        FilterField("start_time", "startTime", FieldKind.TIME),
        FilterField("attributes", ATTRIBUTE_FIELD, FieldKind.ATTRIBUTE),
        FilterField("attribute_keys", ATTRIBUTE_FIELD, FieldKind.ATTRIBUTE_KEY),
    ),
    sort_fields=ITEM_SORT_FIELDS,
    default_sort=(SortSpec("startTime", Direction.ASC),),
)

LOG_FILTERS = FilterSpec(
    fields=(
        FilterField("level", "level", FieldKind.ENUM, Operator.GTE, choices=LOG_LEVELS),
        FilterField("message", "message", FieldKind.TEXT),
        FilterField("has_attachment", "binaryContent", FieldKind.FLAG, Operator.EX),
        FilterField("status", "status", FieldKind.ENUM, choices=ITEM_STATUSES),
    ),
    sort_fields=("logTime", "level"),
    default_sort=(SortSpec("logTime", Direction.ASC),),
)

ITEM_BASE_PARAMS: Tuple[Tuple[str, str], ...] = (
    ("providerType", "launch"),
    ("filter.eq.hasStats", "true"),
    ("filter.eq.hasChildren", "false"),
    ("filter.in.type", "STEP"),
)

SUITE_BASE_PARAMS: Tuple[Tuple[str, str], ...] = (
    ("providerType", "launch"),
    ("filter.in.type", "SUITE,TEST"),
)

RESOURCE_TEMPLATES: List[Dict[str, str]] = [
    {
        "uriTemplate": "reportportal://{project}/launch/{launch_id}",
        "name": "reportportal-launch-by-id",
        "description": "Launch with the given ID",
        "mimeType": "application/json",
    },
    {
        "uriTemplate": "reportportal://{project}/testitem/{test_item_id}",
        "name": "reportportal-test-item-by-id",
        "description": "Test item with the given ID",
        "mimeType": "application/json",
    },
]

_RESOURCE_URI = re.compile(r"^reportportal://(?P<project>[^/]+)/(?P<kind>launch|testitem)/(?P<entity_id>\d+)$")


# Launches

async def get_launches(client: ReportPortalClient, context: CallContext, params: LaunchesQuery) -> Dict[str, Any]:
    """Get a page of launches with optional filters.

    Text filters match by "contains", time bounds accept epoch values or
    RFC 3339 timestamps, and sorting defaults to the most recent launch first.
    """
    project = context.project_for(params.project)
    query = build_query(LAUNCH_FILTERS, params.model_dump(), page=params.page_request())
    return await client.list_launches(project, query)


async def get_last_launch_by_name(
    client: ReportPortalClient, context: CallContext, params: LastLaunchQuery
) -> Dict[str, Any]:
    """Get the most recent launch whose name contains the given value."""
    project = context.project_for(params.project)
    query = build_query(
        LAUNCH_FILTERS,
        {"name": params.launch},
        page=PageRequest(page=1, page_size=1),
    )
    page = await client.list_launches(project, query)
    launches = page.get("content") or []
    if not launches:
        raise NotFound(f"No launch found with name {params.launch!r}")
    return launches[0]


async def get_launch_by_id(client: ReportPortalClient, context: CallContext, params: LaunchIdQuery) -> Dict[str, Any]:
    """Get a launch by its ID."""
    return await client.get_launch(context.project_for(params.project), params.launch_id)


async def launch_force_finish(
    client: ReportPortalClient, context: CallContext, params: LaunchIdQuery
) -> Dict[str, Any]:
    """Force-finish a running launch, marking it STOPPED."""
    project = context.project_for(params.project)
    logger.info("[%s] force finishing launch %s in %s", context.correlation_id, params.launch_id, project)
    return await client.force_finish_launch(project, params.launch_id)


async def launch_delete(client: ReportPortalClient, context: CallContext, params: LaunchIdQuery) -> Dict[str, Any]:
    """Delete a launch and everything reported into it."""
    project = context.project_for(params.project)
    logger.info("[%s] deleting launch %s in %s", context.correlation_id, params.launch_id, project)
    return await client.delete_launch(project, params.launch_id)


async def run_auto_analysis(
    client: ReportPortalClient, context: CallContext, params: AutoAnalysisQuery
) -> Dict[str, Any]:
    """Run the auto analyzer on a launch."""
    return await client.analyze_launch(
        context.project_for(params.project),
        params.launch_id,
        params.analyzer_mode,
        params.analyzer_type,
        params.analyzer_item_modes,
    )


async def run_unique_error_analysis(
    client: ReportPortalClient, context: CallContext, params: UniqueErrorAnalysisQuery
) -> Dict[str, Any]:
    """Run unique error analysis, clustering the errors of a launch."""
    return await client.create_clusters(
        context.project_for(params.project), params.launch_id, params.remove_numbers
    )


async def run_quality_gate(client: ReportPortalClient, context: CallContext, params: LaunchIdQuery) -> Dict[str, Any]:
    """Run the quality gate plugin on a launch and return its verdict."""
    return await client.run_quality_gate(context.project_for(params.project), params.launch_id)


# Test items

async def get_test_items_by_filter(
    client: ReportPortalClient, context: CallContext, params: TestItemsQuery
) -> Dict[str, Any]:
    """Get a page of test steps of a launch with optional filters.

    Status accepts one value or a comma-separated list, e.g. FAILED or
    FAILED,INTERRUPTED. Attributes are comma-separated key:value pairs.
    """
    project = context.project_for(params.project)
    query = build_query(
        TEST_ITEM_FILTERS,
        params.model_dump(),
        page=params.page_request(),
        base=ITEM_BASE_PARAMS + (("launchId", str(params.launch_id)),),
    )
    return await client.list_test_items(project, query)


async def get_test_suites_by_filter(
    client: ReportPortalClient, context: CallContext, params: TestSuitesQuery
) -> Dict[str, Any]:
    """Get a page of suites and tests of a launch with optional filters."""
    project = context.project_for(params.project)
    query = build_query(
        TEST_SUITE_FILTERS,
        params.model_dump(),
        page=params.page_request(),
        base=SUITE_BASE_PARAMS + (("launchId", str(params.launch_id)),),
    )
    return await client.list_test_items(project, query)


async def get_test_item_by_id(
    client: ReportPortalClient, context: CallContext, params: TestItemIdQuery
) -> Dict[str, Any]:
    """Get a test item by its ID."""
    return await client.get_test_item(context.project_for(params.project), params.test_item_id)


async def get_test_item_logs_by_filter(
    client: ReportPortalClient, context: CallContext, params: ItemLogsQuery
) -> Dict[str, Any]:
    """Get a page of logs of a test item, oldest first.

    ``level`` is a minimal level: ERROR also returns FATAL logs.
    """
    project = context.project_for(params.project)
    query = build_query(LOG_FILTERS, params.model_dump(), page=params.page_request())
    return await client.list_nested_logs(project, params.parent_item_id, query)


async def get_test_item_attachment_by_id(
    client: ReportPortalClient, context: CallContext, params: AttachmentQuery
) -> Attachment:
    """Download an attachment; text is returned as text, anything else base64 encoded."""
    return await client.get_attachment(context.project_for(params.project), params.attachment_content_id)


async def get_project_defect_types(
    client: ReportPortalClient, context: CallContext, params: DefectTypesQuery
) -> Dict[str, Any]:
    """List the defect types configured for the project, grouped by type."""
    project_info = await client.get_project(context.project_for(params.project))
    sub_types = (project_info.get("configuration") or {}).get("subTypes")
    if sub_types is None:
        raise BackendRejected("Project configuration carries no defect types")
    return sub_types


async def update_defect_type_for_test_items(
    client: ReportPortalClient, context: CallContext, params: UpdateDefectTypeQuery
) -> Any:
    """Assign a defect type to test items, e.g. pb001 for product bugs."""
    project = context.project_for(params.project)
    logger.info(
        "[%s] setting defect type %s on %d items in %s",
        context.correlation_id,
        params.defect_type_id,
        len(params.test_items_ids),
        project,
    )
    return await client.define_issue_type(project, params.test_items_ids, params.defect_type_id)


# Resources

def parse_resource_uri(uri: str) -> Tuple[str, str, int]:
    """Split ``reportportal://{project}/{launch|testitem}/{id}``."""
    match = _RESOURCE_URI.match(uri or "")
    if match is None:
        raise ValidationFailed("uri", f"unsupported resource URI {uri!r}")
    return match.group("project"), match.group("kind"), int(match.group("entity_id"))


async def read_resource(client: ReportPortalClient, context: CallContext, uri: str) -> Dict[str, Any]:
    """Read a launch or test item addressed by a resource URI.

    The project always comes from the URI; ``X-Project`` does not apply here.
    """
    project, kind, entity_id = parse_resource_uri(uri)
    logger.debug("[%s] reading %s %d in %s", context.correlation_id, kind, entity_id, project)
    if kind == "launch":
        return await client.get_launch(project, entity_id)
    return await client.get_test_item(project, entity_id)
