"""Booking option draft, schedules, price tiers and sub-wizard slices."""

from datetime import date
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from backend.extranet.models.common import (
    AvailabilityMode,
    DropoffType,
    MeetingType,
    PickupNotification,
    PickupTimeOption,
    PricingCategory,
    PricingMode,
    WireModel,
)

UNLIMITED_GROUP_SIZE = -1


def _unlimited_as_none(v: Any) -> Any:
    """Map the -1 "unlimited" sentinel used by forms to None."""
    if v == UNLIMITED_GROUP_SIZE:
        return None
    return v


class PickupPoint(WireModel):
    """A pickup zone or specific place offered by the pickup service."""

    city_id: int = 0
    name: str
    address: str
    latitude: float = 0.0
    longitude: float = 0.0
    notes: str = ""


class PriceTier(WireModel):
    """One price point for a participant range."""

    id: int | None = None
    min_participants: int = 1
    max_participants: int | None = None
    total_price: float = 0.0
    commission_percent: float = 0.0
    price_per_participant: float = 0.0
    currency: str = "USD"

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator("max_participants", mode="before")
    @classmethod
    def unlimited_max(cls, v: Any) -> Any:
        return _unlimited_as_none(v)


class Schedule(WireModel):
    """A recurring weekly slot with an optional season and its own tiers."""

    id: int | None = None
    title: str | None = None
    day_of_week: int = Field(..., ge=0, le=6)
    start_time: str | None = None
    end_time: str | None = None
    is_active: bool = True
    season_start_date: str | None = None
    season_end_date: str | None = None
    price_tiers: list[PriceTier] = Field(default_factory=list)


class BookingOptionDraft(WireModel):
    """Snapshot of a booking option as returned by the catalog service."""

    id: str
    title: str | None = None
    is_active: bool = True
    group_max_size: int | None = Field(
        None, validation_alias=AliasChoices("groupMaxSize", "maxGroupSize", "group_max_size")
    )
    group_min_size: int | None = None
    guide_languages: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("guideLanguages", "languages", "guide_languages"),
    )
    is_private: bool = False
    is_open_duration: bool = False
    duration_days: int | None = None
    duration_hours: int | None = None
    duration_minutes: int | None = None
    validity_days: int | None = None
    meeting_type: MeetingType | None = None
    meeting_point_id: int | None = None
    meeting_point_address: str | None = None
    meeting_point_description: str | None = None
    meeting_point_latitude: float | None = None
    meeting_point_longitude: float | None = None
    pickup_points: list[PickupPoint] = Field(default_factory=list)
    pickup_notification_when: PickupNotification | None = None
    pickup_time_option: PickupTimeOption | None = None
    custom_pickup_minutes: int | None = None
    dropoff_type: DropoffType | None = None
    transport_mode_id: int | None = None
    availability_mode: AvailabilityMode | None = None
    pricing_mode: PricingMode | None = None
    schedules: list[Schedule] = Field(default_factory=list)
    price_tiers: list[PriceTier] = Field(default_factory=list)

    @field_validator("group_max_size", mode="before")
    @classmethod
    def unlimited_group(cls, v: Any) -> Any:
        return _unlimited_as_none(v)

    @field_validator("guide_languages", "pickup_points", "schedules", "price_tiers", mode="before")
    @classmethod
    def none_as_empty(cls, v: object) -> object:
        return [] if v is None else v


# Sub-wizard slices


class SetupSlice(WireModel):
    """Setup step: title, group size, languages, privacy and duration."""

    title: str = ""
    max_group_size: int | None = None
    guide_languages: list[str] = Field(default_factory=list)
    is_private: bool = False
    is_open_duration: bool = False
    duration_days: int | None = 0
    duration_hours: int | None = 0
    duration_minutes: int | None = 0
    validity_days: int | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        return v.strip()

    @field_validator("max_group_size", mode="before")
    @classmethod
    def unlimited_group(cls, v: Any) -> Any:
        return _unlimited_as_none(v)

    def normalized(self) -> "SetupSlice":
        """Clear the fields of the duration mode that is not selected."""
        if self.is_open_duration:
            return self.model_copy(
                update={"duration_days": None, "duration_hours": None, "duration_minutes": None}
            )
        return self.model_copy(update={"validity_days": None})


class MeetingPickupSlice(WireModel):
    """Meeting/pickup step, branching on `meeting_type`."""

    meeting_type: MeetingType = MeetingType.meeting_point
    meeting_point_id: int | None = None
    meeting_point_address: str = ""
    meeting_point_latitude: float | None = None
    meeting_point_longitude: float | None = None
    meeting_point_description: str = ""
    pickup_points: list[PickupPoint] = Field(default_factory=list)
    pickup_notification_when: PickupNotification = PickupNotification.at_start_time
    pickup_time_option: PickupTimeOption = PickupTimeOption.same_as_start
    custom_pickup_timing: str = ""
    dropoff_type: DropoffType = DropoffType.same_as_pickup
    return_addresses: list[str] = Field(default_factory=list)
    transport_mode_id: int | None = None


class AvailabilityPricingSlice(WireModel):
    """Availability & pricing mode selection."""

    availability_mode: AvailabilityMode = AvailabilityMode.time_slots
    pricing_mode: PricingMode = PricingMode.per_person


class WeeklySlot(WireModel):
    """One departure (or opening window) on a weekday."""

    day_of_week: int = Field(..., ge=0, le=6)
    start_time: str
    end_time: str | None = None


class ScheduleException(WireModel):
    """A date on which the schedule does not run."""

    date: str = ""
    description: str = ""


class ScheduleDetailSlice(WireModel):
    """Schedule detail step 1: season and weekly slots."""

    schedule_name: str = ""
    start_date: date | None = None
    end_date: date | None = None
    weekly_schedule: list[WeeklySlot] = Field(default_factory=list)
    exceptions: list[ScheduleException] = Field(default_factory=list)


class PricingCategorySlice(WireModel):
    """Schedule detail step 2: per-person pricing category."""

    pricing_category: PricingCategory | None = None


class CapacitySlice(WireModel):
    """Schedule detail step 3: group size bounds."""

    min_participants: int = 1
    max_participants: int | None = None

    @field_validator("max_participants", mode="before")
    @classmethod
    def unlimited_max(cls, v: Any) -> Any:
        return _unlimited_as_none(v)


class PriceTierInput(WireModel):
    """A price tier as typed in the form; prices are free text."""

    min_participants: int = 1
    max_participants: int | None = None
    client_pays: str = ""

    @field_validator("max_participants", mode="before")
    @classmethod
    def unlimited_max(cls, v: Any) -> Any:
        return _unlimited_as_none(v)


class PriceTiersSlice(WireModel):
    """Schedule detail step 4: price tiers for the option's participant range."""

    tiers: list[PriceTierInput] = Field(default_factory=list)
    currency: str = "USD"


class CutOffSlot(WireModel):
    """A per-slot cut-off override as sent to the catalog service."""

    time_slot: str
    cut_off_minutes: int


class CutOffSlice(WireModel):
    """Cut-off step form values."""

    default_cut_off_minutes: int = 30
    enable_last_minute_bookings: bool = False
    different_cut_off_times: bool = False
    overrides: dict[str, int] = Field(default_factory=dict)


class AvailabilityPricingInfo(WireModel):
    """Availability and pricing modes currently stored for an option."""

    availability_mode: AvailabilityMode = AvailabilityMode.time_slots
    pricing_mode: PricingMode = PricingMode.per_person


class Capacity(WireModel):
    """Stored group size bounds for an option."""

    group_min_size: int | None = None
    group_max_size: int | None = None

    @field_validator("group_max_size", mode="before")
    @classmethod
    def unlimited_group(cls, v: Any) -> Any:
        return _unlimited_as_none(v)


class TimeSlotList(WireModel):
    """Departure times of an option, as listed for cut-off configuration."""

    time_slots: list[str] = Field(default_factory=list)
    title: str | None = None
    start_date: str | None = None

    @field_validator("time_slots", mode="before")
    @classmethod
    def flatten_slots(cls, v: Any) -> list[str]:
        """Slots arrive as plain strings or as objects carrying the time."""
        if not v:
            return []
        slots: list[str] = []
        for item in v:
            if isinstance(item, dict):
                value = item.get("time") or item.get("startTime") or item.get("timeSlot")
                if value:
                    slots.append(str(value))
            elif item:
                slots.append(str(item))
        return slots
