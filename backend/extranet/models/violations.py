"""Violation models - step validation failures."""

from enum import Enum

from pydantic import BaseModel


class ViolationKind(str, Enum):
    """Categories of step validation rules."""

    REQUIRED = "required"
    LENGTH = "length"
    COUNT = "count"
    RANGE = "range"
    CONSISTENCY = "consistency"


class Violation(BaseModel):
    """The first rule a step slice failed.

    Steps report a single aggregated violation; navigation stays blocked and
    no network call is made while one is present.
    """

    kind: ViolationKind
    code: str  # Machine-usable short code, e.g., "TITLE_TOO_LONG"
    message: str  # Human-readable description
    field: str | None = None
