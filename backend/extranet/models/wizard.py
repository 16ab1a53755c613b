"""Wizard step outcomes and views."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from backend.extranet.models.violations import Violation


class OutcomeKind(str, Enum):
    """What happened when a step action ran."""

    advanced = "advanced"  # committed, go to `address`
    redirected = "redirected"  # precondition missing, silent redirect
    blocked = "blocked"  # validation failed, stay on the step
    failed = "failed"  # remote commit failed, stay on the step
    reauth = "reauth"  # session expired, offer re-login


class StepOutcome(BaseModel):
    """Result of a step action, consumed by the view layer."""

    kind: OutcomeKind
    address: str | None = None
    message: str | None = None
    violation: Violation | None = None
    created_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class StepView(BaseModel):
    """Hydrated state of a step.

    When `outcome` is set the step could not be shown (missing precondition,
    expired session or unreachable service) and the view should follow it.
    """

    step: str
    address: str
    values: dict[str, Any] = Field(default_factory=dict)
    outcome: StepOutcome | None = None
