"""Tool registrations for test item, log and defect operations."""

from __future__ import annotations

from ...mcp_tools import (
    get_project_defect_types,
    get_test_item_attachment_by_id,
    get_test_item_by_id,
    get_test_item_logs_by_filter,
    get_test_items_by_filter,
    get_test_suites_by_filter,
    update_defect_type_for_test_items,
)
from ...registry import OperationRegistry
from ...schemas.requests import (
    AttachmentQuery,
    DefectTypesQuery,
    ItemLogsQuery,
    TestItemIdQuery,
    TestItemsQuery,
    TestSuitesQuery,
    UpdateDefectTypeQuery,
)


def register_test_item_tools(registry: OperationRegistry) -> None:
    """Register test item tools on the given registry."""
    registry.tool(TestItemsQuery)(get_test_items_by_filter)
    registry.tool(TestSuitesQuery)(get_test_suites_by_filter)
    registry.tool(TestItemIdQuery)(get_test_item_by_id)
    registry.tool(ItemLogsQuery)(get_test_item_logs_by_filter)
    registry.tool(AttachmentQuery)(get_test_item_attachment_by_id)
    registry.tool(DefectTypesQuery)(get_project_defect_types)
    registry.tool(UpdateDefectTypeQuery)(update_defect_type_for_test_items)
