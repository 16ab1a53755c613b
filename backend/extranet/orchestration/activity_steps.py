"""Activity wizard steps: hydrate, validate, commit, move on."""

import logging
from typing import Any

from pydantic import BaseModel

from backend.extranet.adapters.backend_client import DraftClientError, SessionExpiredError
from backend.extranet.adapters.places import PlacesClient
from backend.extranet.destinations.selector import DestinationSelector
from backend.extranet.media.reconciler import MediaReconciler, MediaUploadError, PendingFile
from backend.extranet.models.activity import (
    ActivityDraft,
    CategorySlice,
    DescriptionSlice,
    IncludesSlice,
    NotIncludesSlice,
    RecommendationsSlice,
    RestrictionsSlice,
    TitleSlice,
)
from backend.extranet.models.responses import CommitResult
from backend.extranet.models.violations import Violation, ViolationKind
from backend.extranet.models.wizard import OutcomeKind, StepOutcome, StepView
from backend.extranet.navigation.addressing import activity_list_address
from backend.extranet.orchestration import state
from backend.extranet.orchestration.graph import (
    ACTIVITY_GRAPH,
    REVIEW_STEP,
    ActivityStep,
    OptionStep,
    precondition_redirect,
    save_and_exit_address,
    step_address,
)
from backend.extranet.orchestration.commit import CommitCancelledError, CommitContext, CommitTimeoutError
from backend.extranet.orchestration.state import WizardContext
from backend.extranet.orchestration.validation import MIN_INCLUSIONS, MIN_RECOMMENDATIONS, rules_for

logger = logging.getLogger(__name__)

SKIP_SUCCESS_MESSAGE = "Activity created successfully"
SKIP_FAILURE_MESSAGE = "The itinerary could not be skipped"

# Slice model per list/text step
_SLICES: dict[str, type[BaseModel]] = {
    ActivityStep.category.value: CategorySlice,
    ActivityStep.title.value: TitleSlice,
    ActivityStep.description.value: DescriptionSlice,
    ActivityStep.recommendations.value: RecommendationsSlice,
    ActivityStep.restrictions.value: RestrictionsSlice,
    ActivityStep.includes.value: IncludesSlice,
    ActivityStep.not_includes.value: NotIncludesSlice,
}


def _pad(values: list[str], minimum: int) -> list[str]:
    """Form rows for a list step: stored entries plus blanks up to the minimum."""
    return values + [""] * max(0, minimum - len(values))


class ActivityWizard:
    """The ten-step activity wizard."""

    def __init__(
        self,
        ctx: WizardContext,
        places: PlacesClient | None = None,
        media: MediaReconciler | None = None,
    ) -> None:
        """Initialize wizard.

        Args:
            ctx: Wizard context for the current address
            places: Place lookups used to refresh stored POIs (optional)
            media: Image working set for the images step (optional)
        """
        self._ctx = ctx
        self._places = places
        self._media = media

    def _address(self, step_key: str) -> str:
        return step_address(step_key, self._ctx.params)

    def _guard(self, step_key: str) -> StepOutcome | None:
        target = precondition_redirect(step_key, self._ctx.params, has_session=self._ctx.has_session)
        return state.redirected(target) if target else None

    def _next(self, step_key: str, save_and_exit: bool) -> str:
        if save_and_exit:
            return save_and_exit_address()
        return self._address(ACTIVITY_GRAPH.successor(step_key) or REVIEW_STEP)

    def back(self, step_key: str) -> str | None:
        """Address of the previous step, if any."""
        previous = ACTIVITY_GRAPH.predecessor(step_key)
        return self._address(previous) if previous else None

    # Hydration

    async def hydrate(self, step_key: str) -> StepView:
        """Load the draft and return the step's current values.

        Re-entering a step with a committed draft reproduces what was
        committed; local edits never survive a reload.
        """
        address = self._address(step_key)
        guard = self._guard(step_key)
        if guard is not None:
            return StepView(step=step_key, address=address, outcome=guard)

        if not self._ctx.params.activity_id:
            return StepView(step=step_key, address=address, values={"category_id": None})

        ctx = self._ctx
        loaded = await state.load(lambda: ctx.client.get_activity(ctx.activity_id, ctx.lang, ctx.currency))
        if isinstance(loaded, StepOutcome):
            return StepView(step=step_key, address=address, outcome=loaded)
        assert isinstance(loaded, ActivityDraft)

        values = await self._values_for(step_key, loaded)
        if isinstance(values, StepOutcome):
            return StepView(step=step_key, address=address, outcome=values)
        return StepView(step=step_key, address=address, values=values)

    async def _values_for(self, step_key: str, draft: ActivityDraft) -> dict[str, Any] | StepOutcome:
        if step_key == ActivityStep.category.value:
            return {"category_id": draft.category_id}
        if step_key == ActivityStep.title.value:
            return {"title": draft.title or ""}
        if step_key == ActivityStep.description.value:
            lookup = self._places.get_place_details if self._places else None
            selector = await DestinationSelector.hydrate(draft.points_of_interest, lookup)
            return {
                "presentation": draft.presentation or "",
                "description": draft.description or "",
                "points_of_interest": [p.model_dump() for p in selector.to_payload()],
                "main_place_ref": selector.main_ref,
            }
        if step_key == ActivityStep.recommendations.value:
            return {"recommendations": _pad(draft.recommendations, MIN_RECOMMENDATIONS)}
        if step_key == ActivityStep.restrictions.value:
            return {"restrictions": draft.restrictions}
        if step_key == ActivityStep.includes.value:
            return {"inclusions": _pad(draft.includes, MIN_INCLUSIONS)}
        if step_key == ActivityStep.not_includes.value:
            return {"not_inclusions": [v for v in draft.not_includes if v and v.strip()]}
        if step_key == ActivityStep.images.value:
            ordered = sorted(draft.images, key=lambda i: not i.is_cover)
            return {
                "images": [
                    {"id": i.id, "url": i.image_url, "cover": n == 0} for n, i in enumerate(ordered)
                ]
            }
        if step_key == ActivityStep.options.value:
            ctx = self._ctx
            options = await state.load(
                lambda: ctx.client.list_booking_options(ctx.activity_id, ctx.lang, ctx.currency)
            )
            if isinstance(options, StepOutcome):
                return options
            return {"booking_options": [o.model_dump() for o in options]}  # type: ignore[attr-defined]
        return {}

    # Text and list steps

    async def submit(
        self, step_key: str, raw: dict[str, Any], *, save_and_exit: bool = False
    ) -> StepOutcome:
        """Validate and commit one of steps 1-7.

        Args:
            step_key: Step being submitted
            raw: Form values
            save_and_exit: Commit, then leave to the dashboard instead of advancing

        Returns:
            Step outcome
        """
        guard = self._guard(step_key)
        if guard is not None:
            return guard

        parsed = state.parse_slice(_SLICES[step_key], raw)
        if isinstance(parsed, StepOutcome):
            return parsed
        blocked = state.check_rules(step_key, rules_for(step_key), parsed.model_dump())
        if blocked is not None:
            return blocked

        ctx = self._ctx
        if step_key == ActivityStep.category.value:
            return await state.commit(
                ctx,
                step_key,
                lambda: ctx.client.create_category(parsed),  # type: ignore[arg-type]
                lambda result: self._after_create(result, save_and_exit),
            )

        save = getattr(ctx.client, ACTIVITY_GRAPH.get(step_key).commit or "")
        return await state.commit(
            ctx,
            step_key,
            lambda: save(ctx.activity_id, parsed, ctx.lang),
            lambda _result: state.advanced(self._next(step_key, save_and_exit)),
        )

    def _after_create(self, result: CommitResult, save_and_exit: bool = False) -> StepOutcome:
        if not result.id_created:
            return state.failed(result.message)
        if save_and_exit:
            return state.advanced(save_and_exit_address(), created_id=result.id_created)
        params = self._ctx.params.with_(activity_id=result.id_created)
        return state.advanced(
            step_address(ActivityStep.title.value, params), created_id=result.id_created
        )

    # Images

    async def submit_images(
        self, files: list[PendingFile], *, save_and_exit: bool = False
    ) -> StepOutcome:
        """Validate new files, upload them and commit the final image list.

        The working set starts from the persisted images; `files` are the
        newly picked ones.
        """
        step_key = ActivityStep.images.value
        guard = self._guard(step_key)
        if guard is not None:
            return guard
        if self._media is None:
            raise RuntimeError("images step needs a MediaReconciler")

        ctx = self._ctx
        draft = await state.load(lambda: ctx.client.get_activity(ctx.activity_id, ctx.lang, ctx.currency))
        if isinstance(draft, StepOutcome):
            return draft
        self._media.load(draft.images)  # type: ignore[attr-defined]

        report = await self._media.add_files(files)
        rejected = {a.filename: a.error for a in report.rejected}
        if not self._media.can_continue:
            violation = Violation(
                kind=ViolationKind.COUNT,
                code="IMAGES_COUNT",
                message="Between 3 and 5 images are required.",
                field="images",
            )
            outcome = state.blocked(violation)
            outcome.data["rejected"] = rejected
            return outcome

        media = self._media
        try:
            outcome = await state.commit(
                ctx,
                step_key,
                lambda: media.commit(ctx.client, ctx.activity_id),
                lambda _result: state.advanced(self._next(step_key, save_and_exit)),
            )
        except MediaUploadError as e:
            outcome = state.failed("Some images could not be uploaded.")
            outcome.data["failed_uploads"] = e.failed
        outcome.data["rejected"] = rejected
        return outcome

    async def remove_image(self, image_id: int) -> StepOutcome:
        """Delete a persisted image: storage blob first (best-effort), then the record."""
        step_key = ActivityStep.images.value
        guard = self._guard(step_key)
        if guard is not None:
            return guard
        if self._media is None:
            raise RuntimeError("images step needs a MediaReconciler")

        ctx = self._ctx
        draft = await state.load(lambda: ctx.client.get_activity(ctx.activity_id, ctx.lang, ctx.currency))
        if isinstance(draft, StepOutcome):
            return draft
        self._media.load(draft.images)  # type: ignore[attr-defined]

        target = next((a for a in self._media.items if a.id == image_id), None)
        if target is None:
            return state.failed("Image not found.")
        media = self._media
        return await state.commit(
            ctx,
            f"{step_key}:remove",
            lambda: media.remove(target.key, ctx.client),  # type: ignore[arg-type,return-value]
            lambda _result: StepOutcome(
                kind=OutcomeKind.advanced,
                address=self._address(step_key),
                data={"remaining": len(media.items)},
            ),
        )

    # Booking options

    async def create_option(self) -> StepOutcome:
        """Create a booking option and enter its setup step."""
        step_key = ActivityStep.options.value
        guard = self._guard(step_key)
        if guard is not None:
            return guard

        ctx = self._ctx

        def to_setup(result: CommitResult) -> StepOutcome:
            if not result.id_created:
                return state.failed(result.message)
            params = ctx.params.with_(option_id=result.id_created)
            return state.advanced(step_address(OptionStep.setup.value, params), created_id=result.id_created)

        return await state.commit(
            ctx, step_key, lambda: ctx.client.create_booking_option(ctx.activity_id), to_setup
        )

    async def continue_options(self) -> StepOutcome:
        """Attach every active booking option and move on to the itinerary."""
        step_key = ActivityStep.options.value
        guard = self._guard(step_key)
        if guard is not None:
            return guard

        ctx = self._ctx
        options = await state.load(
            lambda: ctx.client.list_booking_options(ctx.activity_id, ctx.lang, ctx.currency)
        )
        if isinstance(options, StepOutcome):
            return options
        active = [o for o in options if o.is_active]  # type: ignore[attr-defined]
        if not active:
            return state.blocked(
                Violation(
                    kind=ViolationKind.COUNT,
                    code="ACTIVE_OPTION_REQUIRED",
                    message="Create at least one active booking option.",
                    field="booking_options",
                )
            )

        async def attach_all() -> CommitResult:
            for option in active:
                result = await ctx.client.add_booking_option(ctx.activity_id, option.id)
                if not result.success:
                    return result
            return CommitResult(success=True)

        return await state.commit(
            ctx,
            step_key,
            attach_all,
            lambda _result: state.advanced(self._address(ActivityStep.itinerary.value)),
        )

    # Itinerary

    async def skip_itinerary(self) -> StepOutcome:
        """Finalize the activity without an itinerary.

        The server message is shown either way, and acknowledging it leads
        to the activity list. If the call itself fails the merchant is sent
        to the review step instead.
        """
        step_key = ActivityStep.itinerary.value
        guard = self._guard(step_key)
        if guard is not None:
            return guard

        ctx = self._ctx
        list_address = activity_list_address(ctx.params.lang, ctx.params.currency)
        try:
            result = await ctx.runner.run(
                CommitContext(draft_key=ctx.draft_key(), step="skipItinerary"),
                lambda: ctx.client.skip_itinerary(ctx.activity_id, ctx.lang),
                ctx.cancel_token,
            )
        except SessionExpiredError:
            return state.reauth()
        except (DraftClientError, CommitTimeoutError, CommitCancelledError) as e:
            logger.warning(f"Skip itinerary failed: {type(e).__name__}")
            return state.redirected(self._address(REVIEW_STEP))

        if result.success:
            return state.advanced(list_address, message=result.message or SKIP_SUCCESS_MESSAGE)
        return StepOutcome(
            kind=OutcomeKind.failed,
            address=list_address,
            message=result.message or SKIP_FAILURE_MESSAGE,
        )

    def continue_itinerary(self) -> StepOutcome:
        """Go to the review step."""
        step_key = ActivityStep.itinerary.value
        guard = self._guard(step_key)
        if guard is not None:
            return guard
        return state.advanced(self._address(REVIEW_STEP))
