"""Shared pydantic base classes for incoming parameters."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, ValidationError

from ..errors import ValidationFailed


class StrippingModel(BaseModel):
    """Base model that strips leading/trailing whitespace from string fields."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, frozen=True)


def validation_failure(error: ValidationError) -> ValidationFailed:
    """Convert a pydantic error into a ValidationFailed naming the fields."""
    problems = []
    for err in error.errors():
        location = ".".join(str(loc) for loc in err.get("loc", ())) or "params"
        message = str(err.get("msg", "invalid value"))
        problems.append((location, message.removeprefix("Value error, ")))
    if not problems:
        problems.append(("params", "invalid parameters"))
    return ValidationFailed.from_problems(problems)
