"""Common types and enums shared across all models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model for payloads exchanged with the catalog service.

    Fields are snake_case in Python and camelCase on the wire; both spellings
    are accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True
    )

    def to_wire(self, *, exclude_none: bool = False) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape expected by the catalog service."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=exclude_none)


class Geo(BaseModel):
    """Geographic coordinates (WGS84)."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class AvailabilityMode(str, Enum):
    """How departures of a booking option are expressed."""

    time_slots = "TIME_SLOTS"
    opening_hours = "OPENING_HOURS"


class PricingMode(str, Enum):
    """Whether price tiers are charged per participant or per group."""

    per_person = "PER_PERSON"
    per_group = "PER_GROUP"


class MeetingType(str, Enum):
    """Arrival method for a booking option."""

    meeting_point = "MEETING_POINT"
    pickup_service = "REFERENCE_CITY_WITH_LIST"


class PickupNotification(str, Enum):
    """When the traveller is told the pickup time."""

    at_start_time = "AT_START_TIME"
    day_before = "DAY_BEFORE"
    hours_24_before = "24H_BEFORE"


class PickupTimeOption(str, Enum):
    """Pickup window relative to the activity start."""

    min_30_before = "30_MIN_BEFORE"
    min_60_before = "60_MIN_BEFORE"
    min_90_before = "90_MIN_BEFORE"
    min_120_before = "120_MIN_BEFORE"
    custom = "CUSTOM"
    same_as_start = "SAME_AS_START"


class DropoffType(str, Enum):
    """Where travellers are returned after the activity."""

    same_as_pickup = "SAME_AS_PICKUP"
    different_location = "DIFFERENT_LOCATION"
    no_dropoff = "NO_DROPOFF"


class PricingCategory(str, Enum):
    """Per-person pricing category chosen in the schedule detail flow."""

    same = "same"
    age_based = "ageBased"


GUIDE_LANGUAGE_CODES: tuple[str, ...] = ("es", "en", "fr", "de", "it", "pt", "ru", "zh", "ja", "ar")
