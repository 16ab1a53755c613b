"""Models package - re-exports for convenience."""

from backend.extranet.models.activity import (
    ActivityDraft,
    ActivityImage,
    BookingOptionSummary,
    PointOfInterest,
)
from backend.extranet.models.booking_option import (
    BookingOptionDraft,
    PickupPoint,
    PriceTier,
    Schedule,
    TimeSlotList,
)
from backend.extranet.models.common import (
    AvailabilityMode,
    DropoffType,
    Geo,
    MeetingType,
    PickupNotification,
    PickupTimeOption,
    PricingCategory,
    PricingMode,
)
from backend.extranet.models.responses import (
    Category,
    CommitResult,
    Completeness,
    Destination,
    PlaceResult,
    TransportMode,
)
from backend.extranet.models.violations import Violation, ViolationKind
from backend.extranet.models.wizard import OutcomeKind, StepOutcome, StepView

__all__ = [
    # Common
    "Geo",
    "AvailabilityMode",
    "PricingMode",
    "MeetingType",
    "PickupNotification",
    "PickupTimeOption",
    "DropoffType",
    "PricingCategory",
    # Activity
    "ActivityDraft",
    "ActivityImage",
    "BookingOptionSummary",
    "PointOfInterest",
    # Booking option
    "BookingOptionDraft",
    "PickupPoint",
    "PriceTier",
    "Schedule",
    "TimeSlotList",
    # Responses
    "CommitResult",
    "Completeness",
    "Category",
    "Destination",
    "TransportMode",
    "PlaceResult",
    # Violations
    "Violation",
    "ViolationKind",
    # Wizard
    "OutcomeKind",
    "StepOutcome",
    "StepView",
]
