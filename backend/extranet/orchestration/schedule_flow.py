"""Schedule detail flow: schedule, pricing category, capacity and price tiers."""

import logging
from typing import Any

from backend.extranet.availability.pricing import DEFAULT_AGE_GROUPS, build_price_tiers
from backend.extranet.db.step_cache import pricing_category_key
from backend.extranet.models.booking_option import (
    AvailabilityPricingInfo,
    Capacity,
    CapacitySlice,
    PriceTiersSlice,
    PricingCategorySlice,
    ScheduleDetailSlice,
)
from backend.extranet.models.common import PricingMode
from backend.extranet.models.violations import Violation, ViolationKind
from backend.extranet.models.wizard import StepOutcome, StepView
from backend.extranet.orchestration import state
from backend.extranet.orchestration.graph import OptionStep, precondition_redirect, step_address
from backend.extranet.orchestration.option_steps import schedule_detail_address
from backend.extranet.orchestration.state import WizardContext
from backend.extranet.orchestration.validation import SCHEDULE_RULES

logger = logging.getLogger(__name__)

DETAIL_STEPS = (1, 2, 3, 4)


class ScheduleDetailFlow:
    """Four-step flow creating one schedule configuration of a booking option.

    Per-group pricing has no pricing category, so step 2 is skipped. Once the
    tiers are stored the flow returns to the availability & pricing overview.
    """

    def __init__(self, ctx: WizardContext) -> None:
        self._ctx = ctx

    def _guard(self) -> StepOutcome | None:
        target = precondition_redirect(
            OptionStep.availability_pricing.value, self._ctx.params, has_session=self._ctx.has_session
        )
        return state.redirected(target) if target else None

    def _unknown_step(self, detail_step: int) -> StepOutcome | None:
        if detail_step in DETAIL_STEPS:
            return None
        return state.redirected(schedule_detail_address(self._ctx, 1))

    async def _modes(self) -> AvailabilityPricingInfo | StepOutcome:
        ctx = self._ctx
        return await state.load(lambda: ctx.client.get_availability_pricing_mode(ctx.option_id))  # type: ignore[return-value]

    async def _capacity(self) -> Capacity | StepOutcome:
        ctx = self._ctx
        return await state.load(lambda: ctx.client.get_capacity(ctx.option_id))  # type: ignore[return-value]

    def next_step(self, detail_step: int, pricing_mode: PricingMode) -> int | None:
        """Following detail step, or None after the last one."""
        if detail_step == 1 and pricing_mode == PricingMode.per_group:
            return 3
        if detail_step >= DETAIL_STEPS[-1]:
            return None
        return detail_step + 1

    def previous_step(self, detail_step: int, pricing_mode: PricingMode) -> int | None:
        """Preceding detail step, or None on the first one."""
        if detail_step == 3 and pricing_mode == PricingMode.per_group:
            return 1
        if detail_step <= DETAIL_STEPS[0]:
            return None
        return detail_step - 1

    def _advance(self, detail_step: int, pricing_mode: PricingMode) -> StepOutcome:
        following = self.next_step(detail_step, pricing_mode)
        if following is None:
            return state.advanced(step_address(OptionStep.availability_pricing.value, self._ctx.params))
        return state.advanced(schedule_detail_address(self._ctx, following))

    # Hydration

    async def hydrate(self, detail_step: int) -> StepView:
        """Values a detail step starts from."""
        address = schedule_detail_address(self._ctx, detail_step)
        outcome = self._guard() or self._unknown_step(detail_step)
        if outcome is not None:
            return StepView(step=f"schedule:{detail_step}", address=address, outcome=outcome)

        modes = await self._modes()
        if isinstance(modes, StepOutcome):
            return StepView(step=f"schedule:{detail_step}", address=address, outcome=modes)

        ctx = self._ctx
        values: dict[str, Any] = {
            "availability_mode": modes.availability_mode,
            "pricing_mode": modes.pricing_mode,
        }
        if detail_step == 2:
            cached = ctx.cache.get(pricing_category_key(ctx.option_id)) or {}
            values["pricing_category"] = cached.get("pricing_category")
            values["age_groups"] = [
                {"name": g.name, "min_age": g.min_age, "max_age": g.max_age} for g in DEFAULT_AGE_GROUPS
            ]
        elif detail_step in (3, 4):
            capacity = await self._capacity()
            if isinstance(capacity, StepOutcome):
                return StepView(step=f"schedule:{detail_step}", address=address, outcome=capacity)
            values["min_participants"] = capacity.group_min_size or 1
            values["max_participants"] = capacity.group_max_size
            if detail_step == 4:
                values["currency"] = ctx.currency.upper()
                values["commission_percent"] = ctx.settings.default_commission_percent
        return StepView(step=f"schedule:{detail_step}", address=address, values=values)

    # Commit

    async def submit(self, detail_step: int, raw: dict[str, Any]) -> StepOutcome:
        """Validate and store one detail step.

        Args:
            detail_step: Step number (1-4)
            raw: Form values

        Returns:
            Step outcome; the last step leads back to the availability overview
        """
        outcome = self._guard() or self._unknown_step(detail_step)
        if outcome is not None:
            return outcome

        modes = await self._modes()
        if isinstance(modes, StepOutcome):
            return modes

        if detail_step == 1:
            return await self._submit_schedule(raw, modes)
        if detail_step == 2:
            return self._submit_pricing_category(raw, modes)
        if detail_step == 3:
            return await self._submit_capacity(raw, modes)
        return await self._submit_tiers(raw, modes)

    async def _submit_schedule(self, raw: dict[str, Any], modes: AvailabilityPricingInfo) -> StepOutcome:
        parsed = state.parse_slice(ScheduleDetailSlice, raw)
        if isinstance(parsed, StepOutcome):
            return parsed
        values = parsed.model_dump()
        values["availability_mode"] = modes.availability_mode
        blocked = state.check_rules("schedule:1", SCHEDULE_RULES[1], values)
        if blocked is not None:
            return blocked

        ctx = self._ctx
        schedule: ScheduleDetailSlice = parsed  # type: ignore[assignment]
        exceptions = [e for e in schedule.exceptions if e.date.strip()]
        return await state.commit(
            ctx,
            "schedule:1",
            lambda: ctx.client.create_departure_times(
                ctx.activity_id,
                ctx.option_id,
                title=schedule.schedule_name.strip(),
                lang=ctx.lang,
                start_date=schedule.start_date.isoformat(),  # type: ignore[union-attr]
                end_date=schedule.end_date.isoformat() if schedule.end_date else None,
                weekly_schedule=schedule.weekly_schedule,
                exceptions=exceptions,
            ),
            lambda _result: self._advance(1, modes.pricing_mode),
        )

    def _submit_pricing_category(self, raw: dict[str, Any], modes: AvailabilityPricingInfo) -> StepOutcome:
        if modes.pricing_mode == PricingMode.per_group:
            return self._advance(2, modes.pricing_mode)

        parsed = state.parse_slice(PricingCategorySlice, raw)
        if isinstance(parsed, StepOutcome):
            return parsed
        blocked = state.check_rules("schedule:2", SCHEDULE_RULES[2], parsed.model_dump())
        if blocked is not None:
            return blocked

        ctx = self._ctx
        category: PricingCategorySlice = parsed  # type: ignore[assignment]
        ctx.cache.set(
            pricing_category_key(ctx.option_id),
            {"pricing_category": category.pricing_category.value},  # type: ignore[union-attr]
            ctx.settings.step_cache_ttl_seconds,
        )
        return self._advance(2, modes.pricing_mode)

    async def _submit_capacity(self, raw: dict[str, Any], modes: AvailabilityPricingInfo) -> StepOutcome:
        parsed = state.parse_slice(CapacitySlice, raw)
        if isinstance(parsed, StepOutcome):
            return parsed
        blocked = state.check_rules("schedule:3", SCHEDULE_RULES[3], parsed.model_dump())
        if blocked is not None:
            return blocked

        ctx = self._ctx
        capacity: CapacitySlice = parsed  # type: ignore[assignment]
        return await state.commit(
            ctx,
            "schedule:3",
            lambda: ctx.client.create_capacity(ctx.activity_id, ctx.option_id, capacity.min_participants),
            lambda _result: self._advance(3, modes.pricing_mode),
        )

    async def _submit_tiers(self, raw: dict[str, Any], modes: AvailabilityPricingInfo) -> StepOutcome:
        parsed = state.parse_slice(PriceTiersSlice, raw)
        if isinstance(parsed, StepOutcome):
            return parsed
        blocked = state.check_rules("schedule:4", SCHEDULE_RULES[4], parsed.model_dump())
        if blocked is not None:
            return blocked

        capacity = await self._capacity()
        if isinstance(capacity, StepOutcome):
            return capacity

        ctx = self._ctx
        slice_: PriceTiersSlice = parsed  # type: ignore[assignment]
        tiers = build_price_tiers(
            slice_.tiers,
            currency=slice_.currency or ctx.currency,
            commission_percent=ctx.settings.default_commission_percent,
            group_min=capacity.group_min_size or 1,
            group_max=capacity.group_max_size,
        )
        if not tiers:
            return state.blocked(
                Violation(
                    kind=ViolationKind.COUNT,
                    code="TIERS_REQUIRED",
                    message="Add at least one price tier.",
                    field="tiers",
                )
            )
        return await state.commit(
            ctx,
            "schedule:4",
            lambda: ctx.client.create_price_tiers(ctx.activity_id, ctx.option_id, tiers),
            lambda _result: self._advance(4, modes.pricing_mode),
        )
