"""Page/page-size normalization for ReportPortal listings."""

from __future__ import annotations

from typing import Any, ClassVar, List, Optional, Tuple

from pydantic import Field, ValidationError, field_validator

from .base import StrippingModel, validation_failure

FIRST_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 300


class PageRequest(StrippingModel):
    """One-based page cursor, as ReportPortal expects it in ``page.page``."""

    page: int = Field(default=FIRST_PAGE, description="Page number, starting at 1")
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, description="Number of records per page")

    page_size_max: ClassVar[int] = MAX_PAGE_SIZE

    @field_validator("page", mode="before")
    @classmethod
    def reject_bool_page(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("page must be an integer")
        return value

    @field_validator("page_size", mode="before")
    @classmethod
    def reject_bool_page_size(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("page_size must be an integer")
        return value

    @field_validator("page")
    @classmethod
    def validate_page(cls, value: int) -> int:
        if value < FIRST_PAGE:
            raise ValueError("page must be >= 1")
        return value

    @field_validator("page_size")
    @classmethod
    def validate_page_size(cls, value: int) -> int:
        if value < 1 or value > cls.page_size_max:
            raise ValueError(f"page_size must be between 1 and {cls.page_size_max}")
        return value

    @property
    def offset(self) -> int:
        """Zero-based index of the first record on this page."""
        return (self.page - FIRST_PAGE) * self.page_size

    def to_params(self) -> List[Tuple[str, str]]:
        return [("page.page", str(self.page)), ("page.size", str(self.page_size))]


def normalize_page(page: Optional[Any] = None, page_size: Optional[Any] = None) -> PageRequest:
    """Build a PageRequest from raw optional inputs, applying defaults."""
    values = {}
    if page is not None:
        values["page"] = page
    if page_size is not None:
        values["page_size"] = page_size
    try:
        return PageRequest(**values)
    except ValidationError as exc:
        raise validation_failure(exc) from exc
