"""Pydantic schemas describing incoming arguments for ReportPortal tools."""

from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional

from pydantic import BeforeValidator, Field, field_validator

from .base import StrippingModel
from .pagination import PageRequest


def _reject_bool(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("must be an integer")
    return value


def _epoch_to_str(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("must be a timestamp")
    if isinstance(value, (int, float)):
        return str(int(value))
    return value


def _join_list(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return ",".join(str(item).strip() for item in value if str(item).strip())
    return value


Identifier = Annotated[int, BeforeValidator(_reject_bool), Field(ge=0)]
OptionalIdentifier = Optional[Identifier]
TimeBound = Annotated[Optional[str], BeforeValidator(_epoch_to_str)]
CommaList = Annotated[Optional[str], BeforeValidator(_join_list)]

AnalyzerMode = Literal[
    "all",
    "launch_name",
    "current_launch",
    "previous_launch",
    "current_and_the_same_name",
]
AnalyzerType = Literal["autoAnalyzer", "patternAnalyzer"]
AnalyzerItemMode = Literal["to_investigate", "auto_analyzed", "manually_analyzed"]

PROJECT_DESCRIPTION = "ReportPortal project name; the configured default project is used when omitted"
SORT_DESCRIPTION = "Sort expression, e.g. desc(startTime) or asc(name),desc(number)"
ATTRIBUTES_DESCRIPTION = "Comma-separated key:value attribute pairs, e.g. env:prod,priority:high. Use attribute_keys to match a key alone"
ATTRIBUTE_KEYS_DESCRIPTION = "Comma-separated attribute keys that must be present"


class ProjectQuery(StrippingModel):
    """Arguments shared by every tool."""

    project: Optional[str] = Field(default=None, description=PROJECT_DESCRIPTION)


class PagedQuery(PageRequest):
    """Base for list tools: project, page cursor and sort expression."""

    project: Optional[str] = Field(default=None, description=PROJECT_DESCRIPTION)
    sort: Optional[str] = Field(default=None, description=SORT_DESCRIPTION)

    def page_request(self) -> PageRequest:
        return PageRequest(page=self.page, page_size=self.page_size)


class LaunchesQuery(PagedQuery):
    """Parameters for listing launches."""

    name: Optional[str] = Field(default=None, description="Launch name contains")
    description: Optional[str] = Field(default=None, description="Launch description contains")
    owner: CommaList = Field(default=None, description="Comma-separated owner user names")
    number_gte: Optional[int] = Field(default=None, ge=0, description="Launch number greater than or equal")
    start_time_from: TimeBound = Field(default=None, description="Started at or after (epoch or RFC 3339)")
    start_time_to: TimeBound = Field(default=None, description="Started at or before (epoch or RFC 3339)")
    attributes: CommaList = Field(default=None, description=ATTRIBUTES_DESCRIPTION)
    attribute_keys: CommaList = Field(default=None, description=ATTRIBUTE_KEYS_DESCRIPTION)

    @field_validator("number_gte", mode="before")
    @classmethod
    def validate_number(cls, value: Any) -> Any:
        return _reject_bool(value)


class LastLaunchQuery(ProjectQuery):
    """Parameters for fetching the most recent launch by name."""

    launch: str = Field(description="Launch name")

    @field_validator("launch")
    @classmethod
    def validate_launch(cls, value: str) -> str:
        if not value:
            raise ValueError("launch must not be empty")
        return value


class LaunchIdQuery(ProjectQuery):
    """Parameters for tools acting on a single launch."""

    launch_id: Identifier = Field(description="Launch ID")


class AutoAnalysisQuery(LaunchIdQuery):
    """Parameters for running the auto analyzer on a launch."""

    analyzer_mode: AnalyzerMode = Field(default="current_launch", description="Analyzer mode")
    analyzer_type: AnalyzerType = Field(default="autoAnalyzer", description="Analyzer type")
    analyzer_item_modes: List[AnalyzerItemMode] = Field(
        default_factory=lambda: ["to_investigate"],
        description="Analyzer item modes",
    )

    @field_validator("analyzer_item_modes")
    @classmethod
    def validate_item_modes(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("analyzer_item_modes must not be empty")
        return value


class UniqueErrorAnalysisQuery(LaunchIdQuery):
    """Parameters for unique error (cluster) analysis."""

    remove_numbers: bool = Field(default=False, description="Remove numbers from analyzed logs")


class TestItemsQuery(PagedQuery):
    """Parameters for listing test steps of a launch."""

    __test__ = False

    launch_id: Identifier = Field(description="Launch ID")
    name: Optional[str] = Field(default=None, description="Test item name contains")
    description: Optional[str] = Field(default=None, description="Test item description contains")
    status: CommaList = Field(default=None, description="Status, or comma-separated statuses, e.g. FAILED")
    has_retries: Optional[bool] = Field(default=None, description="Only items with (true) or without (false) retries")
    parent_id: OptionalIdentifier = Field(default=None, description="Parent test item ID")
    start_time_from: TimeBound = Field(default=None, description="Started at or after (epoch or RFC 3339)")
    start_time_to: TimeBound = Field(default=None, description="Started at or before (epoch or RFC 3339)")
    issue_comment: Optional[str] = Field(default=None, description="Issue comment contains")
    ignore_analyzer: Optional[bool] = Field(default=None, description="Items ignored by the auto analyzer")
    ticket_id: Optional[str] = Field(default=None, description="Linked bug tracker ticket ID")
    pattern_name: Optional[str] = Field(default=None, description="Matched pattern name")
    auto_analyzed: Optional[bool] = Field(default=None, description="Items analyzed by the auto analyzer")
    attributes: CommaList = Field(default=None, description=ATTRIBUTES_DESCRIPTION)
    attribute_keys: CommaList = Field(default=None, description=ATTRIBUTE_KEYS_DESCRIPTION)


class TestSuitesQuery(PagedQuery):
    """Parameters for listing suites and tests of a launch."""

    __test__ = False

    launch_id: Identifier = Field(description="Launch ID")
    name: Optional[str] = Field(default=None, description="Suite name contains")
    description: Optional[str] = Field(default=None, description="Suite description contains")
    parent_id: OptionalIdentifier = Field(default=None, description="Parent suite ID")
    start_time_from: TimeBound = Field(default=None, description="Started at or after (epoch or RFC 3339)")
    start_time_to: TimeBound = Field(default=None, description="Started at or before (epoch or RFC 3339)")
    attributes: CommaList = Field(default=None, description=ATTRIBUTES_DESCRIPTION)
    attribute_keys: CommaList = Field(default=None, description=ATTRIBUTE_KEYS_DESCRIPTION)


class TestItemIdQuery(ProjectQuery):
    """Parameters for fetching a single test item."""

    __test__ = False

    test_item_id: Identifier = Field(description="Test item ID")


class ItemLogsQuery(PagedQuery):
    """Parameters for listing the logs nested under a test item."""

    parent_item_id: Identifier = Field(description="Test item ID whose logs are listed")
    level: Optional[str] = Field(default="TRACE", description="Minimal log level, e.g. ERROR")
    message: Optional[str] = Field(default=None, description="Log message contains")
    has_attachment: Optional[bool] = Field(default=None, description="Only logs carrying an attachment")
    status: CommaList = Field(default=None, description="Status of nested items")


class AttachmentQuery(ProjectQuery):
    """Parameters for downloading an attachment."""

    attachment_content_id: Identifier = Field(description="Attachment binary content ID")


class DefectTypesQuery(ProjectQuery):
    """Parameters for listing the defect types of a project."""


class UpdateDefectTypeQuery(ProjectQuery):
    """Parameters for reassigning the defect type of test items."""

    test_items_ids: List[Identifier] = Field(description="IDs of the test items to update")
    defect_type_id: str = Field(description="Defect type locator, e.g. pb001")

    @field_validator("test_items_ids")
    @classmethod
    def validate_ids(cls, value: List[int]) -> List[int]:
        if not value:
            raise ValueError("test_items_ids must not be empty")
        return value

    @field_validator("defect_type_id")
    @classmethod
    def validate_defect_type(cls, value: str) -> str:
        if not value:
            raise ValueError("defect_type_id must not be empty")
        return value
