"""Declarative per-step validation rules and the generic validator.

Each step lists its rules in evaluation order; the first failing rule is the
one reported.
"""

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from backend.extranet.models.common import (
    GUIDE_LANGUAGE_CODES,
    AvailabilityMode,
    DropoffType,
    MeetingType,
    PickupTimeOption,
)
from backend.extranet.models.violations import Violation, ViolationKind

TITLE_LIMIT = 80
OPTION_TITLE_LIMIT = 60
PRESENTATION_LIMIT = 200
DESCRIPTION_LIMIT = 3000
MEETING_DESCRIPTION_LIMIT = 1000
MIN_RECOMMENDATIONS = 3
MIN_INCLUSIONS = 3

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

Predicate = Callable[[Mapping[str, Any]], bool]


@dataclass(frozen=True)
class Rule:
    """One validation rule.

    `check` returns True when the values satisfy the rule. `applies` gates the
    rule on other fields (e.g. only for pickup service).
    """

    code: str
    kind: ViolationKind
    message: str
    field: str | None
    check: Predicate
    applies: Predicate | None = None

    def violation(self) -> Violation:
        return Violation(kind=self.kind, code=self.code, message=self.message, field=self.field)


def _text(values: Mapping[str, Any], field: str) -> str:
    value = values.get(field)
    return value.strip() if isinstance(value, str) else ""


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    return True


# Rule constructors


def required(field: str, code: str, message: str, *, when: Predicate | None = None) -> Rule:
    """Field must be present and non-blank."""
    return Rule(code, ViolationKind.REQUIRED, message, field, lambda v: _has_value(v.get(field)), when)


def max_length(field: str, limit: int, code: str, message: str) -> Rule:
    """Text field must not exceed `limit` characters."""
    return Rule(code, ViolationKind.LENGTH, message, field, lambda v: len(v.get(field) or "") <= limit)


def min_items(
    field: str, minimum: int, code: str, message: str, *, when: Predicate | None = None
) -> Rule:
    """List field must hold at least `minimum` entries."""
    return Rule(
        code, ViolationKind.COUNT, message, field, lambda v: len(v.get(field) or []) >= minimum, when
    )


def in_range(
    field: str, low: int, high: int, code: str, message: str, *, when: Predicate | None = None
) -> Rule:
    """Integer field must lie in [low, high]; absent values fail."""

    def check(values: Mapping[str, Any]) -> bool:
        value = values.get(field)
        return isinstance(value, int) and low <= value <= high

    return Rule(code, ViolationKind.RANGE, message, field, check, when)


def consistent(
    field: str | None, code: str, message: str, check: Predicate, *, when: Predicate | None = None
) -> Rule:
    """Arbitrary cross-field rule."""
    return Rule(code, ViolationKind.CONSISTENCY, message, field, check, when)


def validate(rules: Sequence[Rule], values: Mapping[str, Any]) -> Violation | None:
    """Evaluate rules in order and report the first failure.

    Args:
        rules: Step rule table
        values: Slice values keyed by snake_case field name

    Returns:
        Violation for the first failing rule, or None if all pass
    """
    for rule in rules:
        if rule.applies is not None and not rule.applies(values):
            continue
        if not rule.check(values):
            return rule.violation()
    return None


# Predicates shared by the rule tables


def _is_meeting_point(v: Mapping[str, Any]) -> bool:
    return v.get("meeting_type") == MeetingType.meeting_point


def _is_pickup(v: Mapping[str, Any]) -> bool:
    return v.get("meeting_type") == MeetingType.pickup_service


def _fixed_duration(v: Mapping[str, Any]) -> bool:
    return not v.get("is_open_duration")


def _open_duration(v: Mapping[str, Any]) -> bool:
    return bool(v.get("is_open_duration"))


def _valid_languages(v: Mapping[str, Any]) -> bool:
    return all(code in GUIDE_LANGUAGE_CODES for code in v.get("guide_languages") or [])


def _positive_or_unlimited(v: Mapping[str, Any]) -> bool:
    size = v.get("max_group_size")
    return size is None or (isinstance(size, int) and size > 0)


def _slot_times_valid(v: Mapping[str, Any]) -> bool:
    opening_hours = v.get("availability_mode") == AvailabilityMode.opening_hours
    for slot in v.get("weekly_schedule") or []:
        start = slot.get("start_time") or ""
        end = slot.get("end_time")
        if not _HHMM.match(start):
            return False
        if opening_hours:
            if not end or not _HHMM.match(end) or end == start:
                return False
    return True


def _end_after_start(v: Mapping[str, Any]) -> bool:
    start, end = v.get("start_date"), v.get("end_date")
    return start is None or end is None or end >= start


def _max_not_below_min(v: Mapping[str, Any]) -> bool:
    low, high = v.get("min_participants"), v.get("max_participants")
    return high is None or (isinstance(low, int) and high >= low)


def _tier_prices_present(v: Mapping[str, Any]) -> bool:
    return all(_has_value(t.get("client_pays")) for t in v.get("tiers") or [])


ACTIVITY_RULES: dict[str, tuple[Rule, ...]] = {
    "createCategory": (
        required("category_id", "CATEGORY_REQUIRED", "Select a category to continue."),
    ),
    "createTitle": (
        required("title", "TITLE_REQUIRED", "The title is required."),
        max_length("title", TITLE_LIMIT, "TITLE_TOO_LONG", f"The title cannot exceed {TITLE_LIMIT} characters."),
    ),
    "createDescription": (
        required("presentation", "PRESENTATION_REQUIRED", "Both the presentation and the description are required."),
        required("description", "DESCRIPTION_REQUIRED", "Both the presentation and the description are required."),
        max_length(
            "presentation",
            PRESENTATION_LIMIT,
            "PRESENTATION_TOO_LONG",
            f"The presentation cannot exceed {PRESENTATION_LIMIT} characters.",
        ),
        max_length(
            "description",
            DESCRIPTION_LIMIT,
            "DESCRIPTION_TOO_LONG",
            f"The description cannot exceed {DESCRIPTION_LIMIT} characters.",
        ),
        consistent(
            "points_of_interest",
            "MULTIPLE_MAIN_POI",
            "Only one point of interest can be the main one.",
            lambda v: sum(1 for p in v.get("points_of_interest") or [] if p.get("is_main_destination")) <= 1,
        ),
    ),
    "createRecommendations": (
        min_items(
            "recommendations",
            MIN_RECOMMENDATIONS,
            "RECOMMENDATIONS_MIN",
            f"Add at least {MIN_RECOMMENDATIONS} recommendations.",
        ),
    ),
    "createRestrictions": (),
    "createInclude": (
        min_items("inclusions", MIN_INCLUSIONS, "INCLUSIONS_MIN", f"Add at least {MIN_INCLUSIONS} inclusions."),
    ),
    "createNotIncluded": (),
}

OPTION_RULES: dict[str, tuple[Rule, ...]] = {
    "createOptionSetup": (
        required("title", "OPTION_TITLE_REQUIRED", "The option title is required."),
        max_length(
            "title",
            OPTION_TITLE_LIMIT,
            "OPTION_TITLE_TOO_LONG",
            f"The option title cannot exceed {OPTION_TITLE_LIMIT} characters.",
        ),
        consistent(
            "max_group_size", "GROUP_SIZE_INVALID", "The group size must be positive or unlimited.", _positive_or_unlimited
        ),
        consistent("guide_languages", "LANGUAGE_UNKNOWN", "Unknown guide language.", _valid_languages),
        in_range("duration_days", 0, 30, "DURATION_DAYS_RANGE", "Days must be between 0 and 30.", when=_fixed_duration),
        in_range("duration_hours", 0, 23, "DURATION_HOURS_RANGE", "Hours must be between 0 and 23.", when=_fixed_duration),
        in_range(
            "duration_minutes", 0, 59, "DURATION_MINUTES_RANGE", "Minutes must be between 0 and 59.", when=_fixed_duration
        ),
        in_range(
            "validity_days", 1, 365, "VALIDITY_DAYS_RANGE", "Validity must be between 1 and 365 days.", when=_open_duration
        ),
    ),
    "createOptionMeetingPickup": (
        required(
            "meeting_point_address",
            "MEETING_POINT_REQUIRED",
            "Add the meeting point address.",
            when=_is_meeting_point,
        ),
        min_items(
            "pickup_points",
            1,
            "PICKUP_POINTS_REQUIRED",
            "Add at least one pickup address or zone.",
            when=_is_pickup,
        ),
        required(
            "custom_pickup_timing",
            "CUSTOM_PICKUP_REQUIRED",
            "Specify the custom pickup timing.",
            when=lambda v: _is_pickup(v) and v.get("pickup_time_option") == PickupTimeOption.custom,
        ),
        min_items(
            "return_addresses",
            1,
            "RETURN_ADDRESS_REQUIRED",
            "Add at least one return address.",
            when=lambda v: _is_pickup(v) and v.get("dropoff_type") == DropoffType.different_location,
        ),
        max_length(
            "meeting_point_description",
            MEETING_DESCRIPTION_LIMIT,
            "MEETING_DESCRIPTION_TOO_LONG",
            f"The description cannot exceed {MEETING_DESCRIPTION_LIMIT} characters.",
        ),
    ),
    "availabilityPricing": (),
    "cutOff": (),
}

SCHEDULE_RULES: dict[int, tuple[Rule, ...]] = {
    1: (
        required("schedule_name", "SCHEDULE_NAME_REQUIRED", "The schedule name is required."),
        required("start_date", "START_DATE_REQUIRED", "The start date is required."),
        consistent("end_date", "END_BEFORE_START", "The end date cannot be before the start date.", _end_after_start),
        min_items("weekly_schedule", 1, "SLOTS_REQUIRED", "Add at least one time slot."),
        consistent("weekly_schedule", "SLOT_TIME_INVALID", "Time slots need valid, distinct times.", _slot_times_valid),
    ),
    2: (required("pricing_category", "PRICING_CATEGORY_REQUIRED", "Select a pricing category."),),
    3: (
        consistent(
            "min_participants",
            "MIN_PARTICIPANTS_RANGE",
            "The minimum must be at least 1.",
            lambda v: isinstance(v.get("min_participants"), int) and v["min_participants"] >= 1,
        ),
        consistent(
            "max_participants", "MAX_BELOW_MIN", "The maximum cannot be lower than the minimum.", _max_not_below_min
        ),
    ),
    4: (
        min_items("tiers", 1, "TIERS_REQUIRED", "Add at least one price tier."),
        consistent("tiers", "TIER_PRICE_REQUIRED", "Every price tier needs a price.", _tier_prices_present),
    ),
}


def rules_for(step_key: str) -> tuple[Rule, ...]:
    """Rule table of an activity or booking-option step (empty if none)."""
    if step_key in ACTIVITY_RULES:
        return ACTIVITY_RULES[step_key]
    return OPTION_RULES.get(step_key, ())
