"""Booking-option sub-wizard: setup, meeting/pickup, availability & pricing, cut-off."""

import logging
from typing import Any

from backend.extranet.availability.aggregator import summarize
from backend.extranet.availability.cutoff import CutOffForm, CutOffValueError, slot_ids
from backend.extranet.db.step_cache import cut_off_key
from backend.extranet.destinations.location_text import format_location_text
from backend.extranet.models.booking_option import (
    AvailabilityPricingSlice,
    BookingOptionDraft,
    CutOffSlice,
    MeetingPickupSlice,
    SetupSlice,
    TimeSlotList,
)
from backend.extranet.models.common import MeetingType, PricingMode
from backend.extranet.models.responses import RESET_SUCCESS_CODE, CommitResult
from backend.extranet.models.violations import Violation, ViolationKind
from backend.extranet.models.wizard import OutcomeKind, StepOutcome, StepView
from backend.extranet.navigation.addressing import build_address, step_path
from backend.extranet.orchestration import state
from backend.extranet.orchestration.graph import (
    OPTION_GRAPH,
    OPTIONS_STEP_INDEX,
    SCHEDULE_DETAIL_STEP,
    OptionStep,
    precondition_redirect,
    step_address,
)
from backend.extranet.orchestration.state import WizardContext
from backend.extranet.orchestration.validation import rules_for

logger = logging.getLogger(__name__)


def schedule_detail_address(ctx: WizardContext, detail_step: int) -> str:
    """Address of one step of the schedule detail flow."""
    params = ctx.params.with_(step_index=OPTIONS_STEP_INDEX, detail_step=detail_step)
    return build_address(step_path(SCHEDULE_DETAIL_STEP), params)


def _setup_values(draft: BookingOptionDraft) -> dict[str, Any]:
    return {
        "title": draft.title or "",
        "max_group_size": draft.group_max_size,
        "guide_languages": draft.guide_languages,
        "is_private": draft.is_private,
        "is_open_duration": draft.is_open_duration,
        "duration_days": draft.duration_days,
        "duration_hours": draft.duration_hours,
        "duration_minutes": draft.duration_minutes,
        "validity_days": draft.validity_days,
    }


def _meeting_values(draft: BookingOptionDraft) -> dict[str, Any]:
    values: dict[str, Any] = {
        "meeting_type": draft.meeting_type or MeetingType.meeting_point,
        "meeting_point_id": draft.meeting_point_id,
        "meeting_point_address": draft.meeting_point_address or "",
        "meeting_point_latitude": draft.meeting_point_latitude,
        "meeting_point_longitude": draft.meeting_point_longitude,
        "meeting_point_description": draft.meeting_point_description or "",
        "pickup_points": [p.model_dump() for p in draft.pickup_points],
        "pickup_notification_when": draft.pickup_notification_when,
        "pickup_time_option": draft.pickup_time_option,
        "custom_pickup_timing": (
            str(draft.custom_pickup_minutes) if draft.custom_pickup_minutes else ""
        ),
        "dropoff_type": draft.dropoff_type,
        "transport_mode_id": draft.transport_mode_id,
        "location_text": None,
    }
    if (
        draft.meeting_point_address
        and draft.meeting_point_latitude is not None
        and draft.meeting_point_longitude is not None
    ):
        values["location_text"] = format_location_text(
            draft.title or "",
            draft.meeting_point_address,
            draft.meeting_point_latitude,
            draft.meeting_point_longitude,
        )
    return values


class BookingOptionWizard:
    """Steps of one booking option, entered from the activity's options step."""

    def __init__(self, ctx: WizardContext) -> None:
        self._ctx = ctx

    def _address(self, step_key: str) -> str:
        return step_address(step_key, self._ctx.params)

    def _guard(self, step_key: str) -> StepOutcome | None:
        target = precondition_redirect(step_key, self._ctx.params, has_session=self._ctx.has_session)
        return state.redirected(target) if target else None

    def back(self, step_key: str) -> str | None:
        """Address of the previous step; setup goes back to the options list."""
        previous = OPTION_GRAPH.predecessor(step_key)
        return self._address(previous) if previous else None

    async def _load_draft(self) -> BookingOptionDraft | StepOutcome:
        ctx = self._ctx
        loaded = await state.load(
            lambda: ctx.client.get_booking_option(ctx.activity_id, ctx.option_id, ctx.lang, ctx.currency)
        )
        return loaded  # type: ignore[return-value]

    async def _load_time_slots(self) -> TimeSlotList | StepOutcome:
        ctx = self._ctx
        loaded = await state.load(lambda: ctx.client.list_time_slots(ctx.option_id))
        return loaded  # type: ignore[return-value]

    # Hydration

    async def hydrate(self, step_key: str) -> StepView:
        """Load the option snapshot and return the step's current values."""
        address = self._address(step_key)
        guard = self._guard(step_key)
        if guard is not None:
            return StepView(step=step_key, address=address, outcome=guard)

        if step_key == OptionStep.cut_off.value:
            values = await self._cut_off_values()
        else:
            draft = await self._load_draft()
            if isinstance(draft, StepOutcome):
                return StepView(step=step_key, address=address, outcome=draft)
            if step_key == OptionStep.setup.value:
                values = _setup_values(draft)
            elif step_key == OptionStep.meeting_pickup.value:
                values = _meeting_values(draft)
            else:
                values = self._availability_values(draft)

        if isinstance(values, StepOutcome):
            return StepView(step=step_key, address=address, outcome=values)
        return StepView(step=step_key, address=address, values=values)

    def _availability_values(self, draft: BookingOptionDraft) -> dict[str, Any]:
        pricing_mode = draft.pricing_mode or PricingMode.per_person
        summary = summarize(
            draft.schedules,
            pricing_mode,
            draft.price_tiers,
            draft.group_min_size,
            draft.group_max_size,
            self._ctx.settings.display_timezone,
        )
        return {
            "availability_mode": draft.availability_mode,
            "pricing_mode": draft.pricing_mode,
            "has_schedules": bool(draft.schedules),
            "weekly": [
                {"day_of_week": c.day_of_week, "name": c.name, "labels": c.labels, "placeholder": c.is_placeholder}
                for c in summary.weekly
            ],
            "date_range": summary.date_range.label,
            "open_ended": summary.date_range.open_ended,
            "price_range": summary.price_range,
            "participants": summary.participants,
        }

    async def _cut_off_values(self) -> dict[str, Any] | StepOutcome:
        slots = await self._load_time_slots()
        if isinstance(slots, StepOutcome):
            return slots
        form = self._cached_form(slots.time_slots)
        return {
            "time_slots": slots.time_slots,
            "slot_ids": slot_ids(slots.time_slots),
            "title": slots.title,
            "start_date": slots.start_date,
            "default_cut_off_minutes": form.default_minutes,
            "enable_last_minute_bookings": form.last_minute_bookings,
            "different_cut_off_times": form.different_times,
            "overrides": form.overrides,
            "effective": form.effective_all(),
        }

    def _cached_form(self, time_slots: list[str]) -> CutOffForm:
        """Cut-off form seeded from the mirror when it still matches the listed slots."""
        ctx = self._ctx
        form = CutOffForm(time_slots=time_slots, default_minutes=ctx.settings.default_cutoff_minutes)
        cached = ctx.cache.get(cut_off_key(ctx.option_id))
        if not cached:
            return form
        try:
            form.set_default(int(cached.get("default_minutes", form.default_minutes)))
            form.last_minute_bookings = bool(cached.get("last_minute_bookings"))
            if cached.get("different_times"):
                form.enable_per_slot()
                for slot, minutes in (cached.get("overrides") or {}).items():
                    if slot in time_slots:
                        form.set_override(slot, int(minutes))
        except (CutOffValueError, TypeError, ValueError):
            logger.info(f"Ignoring stale cut-off cache for option {ctx.option_id}")
            return CutOffForm(time_slots=time_slots, default_minutes=ctx.settings.default_cutoff_minutes)
        return form

    # Setup and meeting/pickup

    async def submit_setup(self, raw: dict[str, Any]) -> StepOutcome:
        """Validate and commit the setup step."""
        step_key = OptionStep.setup.value
        guard = self._guard(step_key)
        if guard is not None:
            return guard

        parsed = state.parse_slice(SetupSlice, raw)
        if isinstance(parsed, StepOutcome):
            return parsed
        setup = parsed.normalized()  # type: ignore[union-attr]
        blocked = state.check_rules(step_key, rules_for(step_key), setup.model_dump())
        if blocked is not None:
            return blocked

        ctx = self._ctx

        def to_meeting(result: CommitResult) -> StepOutcome:
            params = ctx.params.with_(option_id=result.id_created or ctx.option_id)
            return state.advanced(
                step_address(OptionStep.meeting_pickup.value, params), created_id=result.id_created
            )

        return await state.commit(
            ctx,
            step_key,
            lambda: ctx.client.save_setup(ctx.activity_id, ctx.option_id, setup),
            to_meeting,
        )

    async def submit_meeting(self, raw: dict[str, Any]) -> StepOutcome:
        """Validate and commit the meeting point or pickup configuration."""
        step_key = OptionStep.meeting_pickup.value
        guard = self._guard(step_key)
        if guard is not None:
            return guard

        parsed = state.parse_slice(MeetingPickupSlice, raw)
        if isinstance(parsed, StepOutcome):
            return parsed
        blocked = state.check_rules(step_key, rules_for(step_key), parsed.model_dump())
        if blocked is not None:
            return blocked

        ctx = self._ctx
        return await state.commit(
            ctx,
            step_key,
            lambda: ctx.client.save_meeting_pickup(ctx.activity_id, ctx.option_id, parsed, ctx.lang),  # type: ignore[arg-type]
            lambda _result: state.advanced(self._address(OptionStep.availability_pricing.value)),
        )

    # Availability & pricing

    async def add_schedule(self, raw: dict[str, Any], *, confirm_reset: bool = False) -> StepOutcome:
        """Store the modes and open the schedule detail flow.

        An option holds a single schedule configuration: when schedules
        already exist they are discarded first, which needs `confirm_reset`.
        """
        step_key = OptionStep.availability_pricing.value
        guard = self._guard(step_key)
        if guard is not None:
            return guard

        parsed = state.parse_slice(AvailabilityPricingSlice, raw)
        if isinstance(parsed, StepOutcome):
            return parsed

        draft = await self._load_draft()
        if isinstance(draft, StepOutcome):
            return draft

        ctx = self._ctx
        if draft.schedules:
            if not confirm_reset:
                return state.blocked(
                    Violation(
                        kind=ViolationKind.CONSISTENCY,
                        code="RESET_CONFIRMATION_REQUIRED",
                        message="Adding a schedule replaces the current availability and prices.",
                        field="schedules",
                    )
                )
            reset = await state.commit(
                ctx,
                step_key,
                lambda: ctx.client.reset_availability_pricing(ctx.option_id),
                self._check_reset,
            )
            if reset.kind != OutcomeKind.advanced:
                return reset

        return await state.commit(
            ctx,
            step_key,
            lambda: ctx.client.save_availability_pricing(ctx.activity_id, ctx.option_id, parsed),  # type: ignore[arg-type]
            lambda _result: state.advanced(schedule_detail_address(ctx, 1)),
        )

    def _check_reset(self, result: CommitResult) -> StepOutcome:
        if result.success_code != RESET_SUCCESS_CODE:
            return state.failed(result.message)
        return state.advanced(self._address(OptionStep.availability_pricing.value))

    async def continue_availability(self) -> StepOutcome:
        """Advance to cut-off once the catalog service reports the option complete."""
        step_key = OptionStep.availability_pricing.value
        guard = self._guard(step_key)
        if guard is not None:
            return guard

        ctx = self._ctx
        completeness = await state.load(lambda: ctx.client.is_availability_pricing_complete(ctx.option_id))
        if isinstance(completeness, StepOutcome):
            return completeness
        if not completeness.is_complete:  # type: ignore[attr-defined]
            return state.blocked(
                Violation(
                    kind=ViolationKind.CONSISTENCY,
                    code="AVAILABILITY_INCOMPLETE",
                    message="Finish configuring availability and prices to continue.",
                    field=None,
                )
            )
        return state.advanced(self._address(OptionStep.cut_off.value))

    # Cut-off

    async def submit_cut_off(self, raw: dict[str, Any]) -> StepOutcome:
        """Commit cut-off settings and return to the options list."""
        step_key = OptionStep.cut_off.value
        guard = self._guard(step_key)
        if guard is not None:
            return guard

        parsed = state.parse_slice(CutOffSlice, raw)
        if isinstance(parsed, StepOutcome):
            return parsed
        slots = await self._load_time_slots()
        if isinstance(slots, StepOutcome):
            return slots

        values: CutOffSlice = parsed  # type: ignore[assignment]
        try:
            form = CutOffForm(
                time_slots=slots.time_slots,
                default_minutes=values.default_cut_off_minutes,
                last_minute_bookings=values.enable_last_minute_bookings,
            )
            if values.different_cut_off_times:
                form.enable_per_slot()
                for slot, minutes in values.overrides.items():
                    form.set_override(slot, minutes)
        except CutOffValueError as e:
            return state.blocked(
                Violation(kind=ViolationKind.RANGE, code="CUTOFF_VALUE", message=str(e), field="cut_off_minutes")
            )
        except KeyError as e:
            return state.blocked(
                Violation(
                    kind=ViolationKind.CONSISTENCY,
                    code="CUTOFF_UNKNOWN_SLOT",
                    message=f"Unknown time slot {e.args[0]}.",
                    field="overrides",
                )
            )

        ctx = self._ctx

        def to_options(_result: CommitResult) -> StepOutcome:
            ctx.cache.set(cut_off_key(ctx.option_id), form.snapshot(), ctx.settings.step_cache_ttl_seconds)
            return state.advanced(self._address(OPTION_GRAPH.successor(step_key) or step_key))

        return await state.commit(
            ctx,
            step_key,
            lambda: ctx.client.save_cut_off(
                ctx.activity_id,
                ctx.option_id,
                default_cut_off_minutes=form.default_minutes,
                is_last_minutes_after_first=form.last_minute_bookings,
                cut_off_times=form.to_request(),
            ),
            to_options,
        )
