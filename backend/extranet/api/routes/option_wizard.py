"""Booking-option endpoints - setup, meeting/pickup, availability & pricing, cut-off."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from backend.extranet.api.dependencies import get_wizard_context, guard_in_flight
from backend.extranet.models.wizard import StepOutcome, StepView
from backend.extranet.orchestration.graph import OptionStep
from backend.extranet.orchestration.option_steps import BookingOptionWizard
from backend.extranet.orchestration.schedule_flow import ScheduleDetailFlow
from backend.extranet.orchestration.state import WizardContext

router = APIRouter(prefix="/extranet/activity", tags=["booking-option"])


@router.get("/createOptionSetup", response_model=StepView)
async def hydrate_setup(ctx: Annotated[WizardContext, Depends(get_wizard_context)]) -> StepView:
    """Current setup values of the option."""
    return await BookingOptionWizard(ctx).hydrate(OptionStep.setup.value)


@router.post("/createOptionSetup", response_model=StepOutcome)
async def commit_setup(
    values: dict[str, Any],
    ctx: Annotated[WizardContext, Depends(get_wizard_context)],
) -> StepOutcome:
    """Commit title, group size, languages and duration."""
    return await guard_in_flight(BookingOptionWizard(ctx).submit_setup(values))


@router.get("/createOptionMeetingPickup", response_model=StepView)
async def hydrate_meeting(ctx: Annotated[WizardContext, Depends(get_wizard_context)]) -> StepView:
    """Current meeting point or pickup configuration."""
    return await BookingOptionWizard(ctx).hydrate(OptionStep.meeting_pickup.value)


@router.post("/createOptionMeetingPickup", response_model=StepOutcome)
async def commit_meeting(
    values: dict[str, Any],
    ctx: Annotated[WizardContext, Depends(get_wizard_context)],
) -> StepOutcome:
    """Commit the meeting point or pickup configuration."""
    return await guard_in_flight(BookingOptionWizard(ctx).submit_meeting(values))


@router.get("/availabilityPricing", response_model=StepView)
async def hydrate_availability(ctx: Annotated[WizardContext, Depends(get_wizard_context)]) -> StepView:
    """Modes and the schedule summary (weekly grid, season, prices, participants)."""
    return await BookingOptionWizard(ctx).hydrate(OptionStep.availability_pricing.value)


@router.post("/availabilityPricing/schedules", response_model=StepOutcome)
async def add_schedule(
    values: dict[str, Any],
    ctx: Annotated[WizardContext, Depends(get_wizard_context)],
    confirm_reset: Annotated[bool, Query(alias="confirmReset")] = False,
) -> StepOutcome:
    """Store the modes and open the schedule detail flow.

    Existing schedules are discarded only with `confirmReset=true`.
    """
    return await guard_in_flight(BookingOptionWizard(ctx).add_schedule(values, confirm_reset=confirm_reset))


@router.post("/availabilityPricing/continue", response_model=StepOutcome)
async def continue_availability(ctx: Annotated[WizardContext, Depends(get_wizard_context)]) -> StepOutcome:
    """Go to cut-off once the catalog service reports the option complete."""
    return await BookingOptionWizard(ctx).continue_availability()


@router.get("/availabilityPricing/create", response_model=StepView)
async def hydrate_schedule_step(
    ctx: Annotated[WizardContext, Depends(get_wizard_context)],
    step: Annotated[int, Query(ge=1, le=4)] = 1,
) -> StepView:
    """Starting values of one schedule detail step."""
    return await ScheduleDetailFlow(ctx).hydrate(step)


@router.post("/availabilityPricing/create", response_model=StepOutcome)
async def commit_schedule_step(
    values: dict[str, Any],
    ctx: Annotated[WizardContext, Depends(get_wizard_context)],
    step: Annotated[int, Query(ge=1, le=4)] = 1,
) -> StepOutcome:
    """Validate and store one schedule detail step."""
    return await guard_in_flight(ScheduleDetailFlow(ctx).submit(step, values))


@router.get("/cutOff", response_model=StepView)
async def hydrate_cut_off(ctx: Annotated[WizardContext, Depends(get_wizard_context)]) -> StepView:
    """Listed time slots with the default and per-slot cut-offs."""
    return await BookingOptionWizard(ctx).hydrate(OptionStep.cut_off.value)


@router.post("/cutOff", response_model=StepOutcome)
async def commit_cut_off(
    values: dict[str, Any],
    ctx: Annotated[WizardContext, Depends(get_wizard_context)],
) -> StepOutcome:
    """Commit cut-off settings and return to the options list."""
    return await guard_in_flight(BookingOptionWizard(ctx).submit_cut_off(values))
