#!/usr/bin/env python3
"""
Unit tests for page normalization and tool argument schemas.
"""

import pytest
from pydantic import ValidationError

from rp_mcp.errors import ValidationFailed
from rp_mcp.schemas.base import validation_failure
from rp_mcp.schemas.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, PageRequest, normalize_page
from rp_mcp.schemas.requests import (
    AutoAnalysisQuery,
    LastLaunchQuery,
    LaunchesQuery,
    TestItemsQuery,
    UpdateDefectTypeQuery,
)


class TestNormalizePage:
    """Test normalize_page function."""

    @pytest.mark.unit
    def test_defaults(self):
        page = normalize_page()

        assert page.page == 1
        assert page.page_size == DEFAULT_PAGE_SIZE
        assert page.offset == 0

    @pytest.mark.unit
    def test_offset_is_derived_from_one_based_page(self):
        page = normalize_page(page=3, page_size=50)

        assert page.offset == 100
        assert page.to_params() == [("page.page", "3"), ("page.size", "50")]

    @pytest.mark.unit
    def test_upper_bound_is_inclusive(self):
        assert normalize_page(page_size=MAX_PAGE_SIZE).page_size == MAX_PAGE_SIZE

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "page, page_size, field",
        [
            (0, None, "page"),
            (-1, None, "page"),
            (None, 0, "page_size"),
            (None, MAX_PAGE_SIZE + 1, "page_size"),
            (True, None, "page"),
            (None, "many", "page_size"),
        ],
    )
    def test_out_of_range(self, page, page_size, field):
        with pytest.raises(ValidationFailed) as exc_info:
            normalize_page(page=page, page_size=page_size)
        assert exc_info.value.field == field

    @pytest.mark.unit
    def test_numeric_strings_are_accepted(self):
        assert normalize_page(page="2", page_size="10").offset == 10


class TestArgumentSchemas:
    """Validation of tool argument models."""

    @pytest.mark.unit
    def test_launch_query_joins_lists(self):
        query = LaunchesQuery(owner=["alice", " bob "], attributes=["env:prod"], start_time_from=1704067200)

        assert query.owner == "alice,bob"
        assert query.attributes == "env:prod"
        assert query.start_time_from == "1704067200"
        assert query.page_request() == PageRequest()

    @pytest.mark.unit
    def test_unknown_arguments_are_ignored(self):
        query = LaunchesQuery.model_validate({"name": " nightly ", "verbose": True})
        assert query.name == "nightly"

    @pytest.mark.unit
    def test_number_rejects_bool(self):
        with pytest.raises(ValidationError):
            LaunchesQuery(number_gte=True)

    @pytest.mark.unit
    def test_launch_id_is_required(self):
        with pytest.raises(ValidationError) as exc_info:
            TestItemsQuery.model_validate({"status": "FAILED"})

        error = validation_failure(exc_info.value)
        assert error.field == "launch_id"

    @pytest.mark.unit
    def test_negative_identifier(self):
        with pytest.raises(ValidationError):
            TestItemsQuery(launch_id=-5)

    @pytest.mark.unit
    def test_empty_launch_name(self):
        with pytest.raises(ValidationError) as exc_info:
            LastLaunchQuery(launch="   ")

        error = validation_failure(exc_info.value)
        assert error.field == "launch"
        assert error.reason == "launch must not be empty"

    @pytest.mark.unit
    def test_auto_analysis_defaults(self):
        query = AutoAnalysisQuery(launch_id=7)

        assert query.analyzer_mode == "current_launch"
        assert query.analyzer_type == "autoAnalyzer"
        assert query.analyzer_item_modes == ["to_investigate"]

    @pytest.mark.unit
    def test_auto_analysis_rejects_unknown_mode(self):
        with pytest.raises(ValidationError):
            AutoAnalysisQuery(launch_id=7, analyzer_mode="everything")

    @pytest.mark.unit
    def test_defect_update_needs_items(self):
        with pytest.raises(ValidationError) as exc_info:
            UpdateDefectTypeQuery(test_items_ids=[], defect_type_id="pb001")
        assert validation_failure(exc_info.value).field == "test_items_ids"

    @pytest.mark.unit
    def test_validation_failure_lists_every_problem(self):
        with pytest.raises(ValidationError) as exc_info:
            UpdateDefectTypeQuery.model_validate({})

        error = validation_failure(exc_info.value)
        assert "test_items_ids" in error.message
        assert "defect_type_id" in error.message
