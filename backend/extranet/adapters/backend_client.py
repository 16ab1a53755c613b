"""Draft persistence client for the remote catalog service."""

import logging
from typing import Any

import httpx

from backend.extranet.models.activity import (
    ActivityDraft,
    BookingOptionSummary,
    CategorySlice,
    DescriptionSlice,
    ImageCommitEntry,
    IncludesSlice,
    NotIncludesSlice,
    RecommendationsSlice,
    RestrictionsSlice,
    TitleSlice,
)
from backend.extranet.models.booking_option import (
    AvailabilityPricingInfo,
    AvailabilityPricingSlice,
    BookingOptionDraft,
    Capacity,
    CutOffSlot,
    MeetingPickupSlice,
    PriceTier,
    ScheduleException,
    SetupSlice,
    TimeSlotList,
    WeeklySlot,
)
from backend.extranet.models.common import MeetingType, PickupTimeOption
from backend.extranet.models.responses import (
    Category,
    CommitResult,
    Completeness,
    Destination,
    TransportMode,
)

logger = logging.getLogger(__name__)


class DraftClientError(Exception):
    """The catalog service could not be reached or returned an unusable response."""

    pass


class SessionExpiredError(Exception):
    """The catalog service rejected the session (401/403)."""

    pass


def _unwrap(payload: Any) -> Any:
    """Strip the `{success, data}` envelope some endpoints use.

    Raises:
        DraftClientError: If the envelope reports failure
    """
    if isinstance(payload, dict) and "success" in payload and "data" in payload:
        if not payload["success"]:
            raise DraftClientError(payload.get("message") or "request failed")
        return payload["data"]
    return payload


class DraftPersistenceClient:
    """Per-step read/write contract against the catalog service.

    Every call forwards the merchant's bearer session. Commit calls return a
    CommitResult, including `success=False` results for rejected requests;
    transport failures raise DraftClientError and expired sessions raise
    SessionExpiredError.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout_ms: int = 10000,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize client.

        Args:
            base_url: Catalog service base URL
            token: Bearer session token to forward
            timeout_ms: Request timeout
            client: Optional httpx client (for testing with mocks)
        """
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._close_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_ms / 1000)

    async def aclose(self) -> None:
        """Close the underlying httpx client if this instance created it."""
        if self._close_client:
            await self._client.aclose()

    async def __aenter__(self) -> "DraftPersistenceClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                f"{self._base_url}{path}",
                params=params,
                json=json,
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Catalog request failed: {method} {path} ({type(e).__name__})")
            raise DraftClientError(f"{method} {path} failed") from e

        if response.status_code in (401, 403):
            raise SessionExpiredError(f"{method} {path} rejected with {response.status_code}")
        return response

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._send("GET", path, params=params)
        if response.is_error:
            raise DraftClientError(f"GET {path} returned {response.status_code}")
        try:
            return _unwrap(response.json())
        except ValueError as e:
            raise DraftClientError(f"GET {path} returned invalid JSON") from e

    async def _commit(self, method: str, path: str, payload: Any = None) -> CommitResult:
        response = await self._send(method, path, json=payload)
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and "success" in body:
            return CommitResult.model_validate(body)
        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            return CommitResult(success=False, message=message)
        return CommitResult(success=True)

    # Draft lifecycle

    async def create_category(self, category: CategorySlice) -> CommitResult:
        """Create the activity draft from its category (step 1)."""
        return await self._commit("POST", "/activities/category", {"categoryId": category.category_id})

    async def get_activity(self, activity_id: str, lang: str, currency: str) -> ActivityDraft:
        """Load the current activity snapshot."""
        data = await self._get(
            f"/activities/{activity_id}", {"lang": lang, "currency": currency.upper()}
        )
        return ActivityDraft.model_validate(data)

    async def save_title(self, activity_id: str, data: TitleSlice, lang: str) -> CommitResult:
        """Commit the title slice."""
        return await self._commit(
            "POST", "/activities/title", {"id": activity_id, "title": data.title, "lang": lang}
        )

    async def save_description(
        self, activity_id: str, data: DescriptionSlice, lang: str
    ) -> CommitResult:
        """Commit presentation, description and points of interest."""
        payload = {
            "id": activity_id,
            "presentation": data.presentation,
            "description": data.description,
            "pointOfInterests": [p.to_wire() for p in data.points_of_interest],
            "lang": lang,
        }
        return await self._commit("POST", "/activities/description", payload)

    async def save_recommendations(
        self, activity_id: str, data: RecommendationsSlice, lang: str
    ) -> CommitResult:
        """Commit recommendations."""
        return await self._commit(
            "POST",
            "/activities/recommendations",
            {"id": activity_id, "recommendations": data.recommendations, "lang": lang},
        )

    async def save_restrictions(
        self, activity_id: str, data: RestrictionsSlice, lang: str
    ) -> CommitResult:
        """Commit restrictions (may be empty)."""
        return await self._commit(
            "POST",
            "/activities/restrictions",
            {"id": activity_id, "restrictions": data.restrictions, "lang": lang},
        )

    async def save_includes(self, activity_id: str, data: IncludesSlice, lang: str) -> CommitResult:
        """Commit inclusions."""
        return await self._commit(
            "POST",
            "/activities/includes",
            {"id": activity_id, "inclusions": data.inclusions, "lang": lang},
        )

    async def save_not_includes(
        self, activity_id: str, data: NotIncludesSlice, lang: str
    ) -> CommitResult:
        """Commit exclusions (may be empty)."""
        return await self._commit(
            "POST",
            "/activities/not-includes",
            {"id": activity_id, "notInclusions": data.not_inclusions, "lang": lang},
        )

    async def save_images(self, activity_id: str, images: list[ImageCommitEntry]) -> CommitResult:
        """Commit the final ordered image list."""
        return await self._commit(
            "POST",
            "/activities/images",
            {"id": activity_id, "images": [i.to_wire() for i in images]},
        )

    async def delete_image(self, image_id: int) -> CommitResult:
        """Delete a persisted image record."""
        return await self._commit("DELETE", f"/images/{image_id}")

    async def add_booking_option(self, activity_id: str, option_id: str) -> CommitResult:
        """Attach a booking option to its activity."""
        return await self._commit(
            "POST", "/activities/booking-option", {"id": activity_id, "optionId": option_id}
        )

    async def skip_itinerary(self, activity_id: str, lang: str) -> CommitResult:
        """Finalize the activity without an itinerary."""
        return await self._commit(
            "POST", "/activities/skip-itinerary", {"activityId": activity_id, "lang": lang}
        )

    # Booking option lifecycle

    async def create_booking_option(self, activity_id: str) -> CommitResult:
        """Create an empty booking option under the activity."""
        return await self._commit("POST", "/booking-options", {"activityId": activity_id})

    async def list_booking_options(
        self, activity_id: str, lang: str, currency: str
    ) -> list[BookingOptionSummary]:
        """List the booking options of an activity."""
        data = await self._get(
            "/booking-options/search",
            {"activityId": activity_id, "lang": lang, "currency": currency.upper()},
        )
        return [BookingOptionSummary.model_validate(item) for item in data or []]

    async def get_booking_option(
        self, activity_id: str, option_id: str, lang: str, currency: str
    ) -> BookingOptionDraft:
        """Load the current booking option snapshot."""
        data = await self._get(
            f"/booking-options/{option_id}",
            {"activityId": activity_id, "lang": lang, "currency": currency.upper()},
        )
        return BookingOptionDraft.model_validate(data)

    async def save_setup(self, activity_id: str, option_id: str, data: SetupSlice) -> CommitResult:
        """Commit the setup slice; fields of the unselected duration mode go as null."""
        payload = data.normalized().to_wire()
        payload.update({"activityId": activity_id, "bookingOptionId": option_id})
        return await self._commit("POST", "/booking-options/setup", payload)

    async def save_meeting_pickup(
        self, activity_id: str, option_id: str, data: MeetingPickupSlice, lang: str
    ) -> CommitResult:
        """Commit the meeting point or pickup configuration."""
        payload: dict[str, Any] = {
            "activityId": activity_id,
            "bookingOptionId": option_id,
            "lang": lang,
            "meetingType": data.meeting_type.value,
        }
        if data.meeting_type == MeetingType.meeting_point:
            payload.update(
                {
                    "meetingPointId": data.meeting_point_id,
                    "meetingPointAddress": data.meeting_point_address or None,
                    "meetingPointDescription": data.meeting_point_description or None,
                    "meetingPointLatitude": data.meeting_point_latitude,
                    "meetingPointLongitude": data.meeting_point_longitude,
                }
            )
        else:
            custom_minutes = None
            if data.pickup_time_option == PickupTimeOption.custom:
                try:
                    custom_minutes = int(data.custom_pickup_timing.strip())
                except ValueError:
                    custom_minutes = 0
            payload.update(
                {
                    "meetingPointDescription": data.meeting_point_description or None,
                    "pickupPoints": [p.to_wire() for p in data.pickup_points],
                    "pickupNotificationWhen": data.pickup_notification_when.value,
                    "pickupTimeOption": data.pickup_time_option.value,
                    "customPickupMinutes": custom_minutes,
                    "dropoffType": data.dropoff_type.value,
                    "transportModeId": data.transport_mode_id,
                }
            )
        return await self._commit("POST", "/booking-options/meeting-pickup", payload)

    async def save_availability_pricing(
        self, activity_id: str, option_id: str, data: AvailabilityPricingSlice
    ) -> CommitResult:
        """Commit availability and pricing modes."""
        payload = data.to_wire()
        payload.update({"activityId": activity_id, "bookingOptionId": option_id})
        return await self._commit("POST", "/booking-options/availability-pricing", payload)

    async def create_departure_times(
        self,
        activity_id: str,
        option_id: str,
        *,
        title: str,
        lang: str,
        start_date: str,
        end_date: str | None,
        weekly_schedule: list[WeeklySlot],
        exceptions: list[ScheduleException],
    ) -> CommitResult:
        """Create a schedule (season, weekly slots and exceptions)."""
        payload = {
            "activityId": activity_id,
            "bookingOptionId": option_id,
            "title": title,
            "lang": lang,
            "startDate": start_date,
            "endDate": end_date,
            "weeklySchedule": [s.to_wire(exclude_none=True) for s in weekly_schedule],
            "exceptions": [e.to_wire() for e in exceptions],
        }
        return await self._commit("POST", "/booking-options/availability-pricing/departure-time", payload)

    async def create_capacity(self, activity_id: str, option_id: str, group_min_size: int) -> CommitResult:
        """Store the minimum group size."""
        return await self._commit(
            "POST",
            "/booking-options/availability-pricing/capacity",
            {"activityId": activity_id, "bookingOptionId": option_id, "groupMinSize": group_min_size},
        )

    async def create_price_tiers(
        self, activity_id: str, option_id: str, tiers: list[PriceTier]
    ) -> CommitResult:
        """Store the price tiers of an option."""
        return await self._commit(
            "POST",
            "/booking-options/availability-pricing/price-per-person",
            {
                "activityId": activity_id,
                "bookingOptionId": option_id,
                "bookingPriceTiers": [t.to_wire(exclude_none=False) for t in tiers],
            },
        )

    async def get_availability_pricing_mode(self, option_id: str) -> AvailabilityPricingInfo:
        """Modes stored for the option."""
        data = await self._get(f"/booking-options/{option_id}/availability-pricing/mode")
        return AvailabilityPricingInfo.model_validate(data)

    async def get_capacity(self, option_id: str) -> Capacity:
        """Group size bounds stored for the option."""
        data = await self._get(f"/booking-options/{option_id}/availability-pricing/capacity")
        return Capacity.model_validate(data)

    async def is_availability_pricing_complete(self, option_id: str) -> Completeness:
        """Ask the service whether availability & pricing is fully configured."""
        data = await self._get(f"/booking-options/{option_id}/availability-pricing/completed")
        return Completeness.model_validate(data)

    async def reset_availability_pricing(self, option_id: str) -> CommitResult:
        """Discard every schedule and tier of the option."""
        return await self._commit("POST", f"/booking-options/{option_id}/availability-pricing/reset")

    async def list_time_slots(self, option_id: str) -> TimeSlotList:
        """Departure times of the option."""
        data = await self._get(f"/booking-options/{option_id}/time-slots")
        return TimeSlotList.model_validate(data or {})

    async def save_cut_off(
        self,
        activity_id: str,
        option_id: str,
        *,
        default_cut_off_minutes: int,
        is_last_minutes_after_first: bool,
        cut_off_times: list[CutOffSlot],
    ) -> CommitResult:
        """Commit cut-off settings."""
        payload = {
            "activityId": activity_id,
            "bookingOptionId": option_id,
            "defaultCutOffMinutes": default_cut_off_minutes,
            "isLastMinutesAfterFirst": is_last_minutes_after_first,
            "cutOffTimesRequest": [c.to_wire() for c in cut_off_times],
        }
        return await self._commit("POST", "/booking-options/cut-off", payload)

    # Reference data

    async def get_categories(self, lang: str) -> list[Category]:
        """Activity categories."""
        data = await self._get("/categories", {"lang": lang})
        return [Category.model_validate(item) for item in data or []]

    async def get_destinations(self) -> list[Destination]:
        """Destination cities."""
        data = await self._get("/places")
        return [Destination.model_validate(item) for item in data or []]

    async def get_transport_modes(self, lang: str) -> list[TransportMode]:
        """Transport modes for pickup services."""
        data = await self._get("/transport-modes", {"lang": lang})
        return [TransportMode.model_validate(item) for item in data or []]
