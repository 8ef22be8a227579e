"""Tool registrations for launch operations."""

from __future__ import annotations

from ...mcp_tools import (
    get_last_launch_by_name,
    get_launch_by_id,
    get_launches,
    launch_delete,
    launch_force_finish,
    run_auto_analysis,
    run_quality_gate,
    run_unique_error_analysis,
)
from ...registry import OperationRegistry
from ...schemas.requests import (
    AutoAnalysisQuery,
    LastLaunchQuery,
    LaunchesQuery,
    LaunchIdQuery,
    UniqueErrorAnalysisQuery,
)


def register_launch_tools(registry: OperationRegistry) -> None:
    """Register launch-related tools on the given registry."""
    registry.tool(LaunchesQuery)(get_launches)
    registry.tool(LastLaunchQuery)(get_last_launch_by_name)
    registry.tool(LaunchIdQuery)(get_launch_by_id)
    registry.tool(LaunchIdQuery)(launch_force_finish)
    registry.tool(LaunchIdQuery)(launch_delete)
    registry.tool(AutoAnalysisQuery)(run_auto_analysis)
    registry.tool(UniqueErrorAnalysisQuery)(run_unique_error_analysis)
    registry.tool(LaunchIdQuery)(run_quality_gate)
