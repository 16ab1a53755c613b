"""Activity wizard endpoints - hydrate and commit the ten activity steps."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Base64Bytes, BaseModel, Field

from backend.extranet.adapters.places import PlacesClient
from backend.extranet.api.dependencies import (
    get_media_reconciler,
    get_places_client,
    get_wizard_context,
    guard_in_flight,
)
from backend.extranet.media.reconciler import MediaReconciler, PendingFile
from backend.extranet.models.wizard import StepOutcome, StepView
from backend.extranet.orchestration.activity_steps import ActivityWizard
from backend.extranet.orchestration.graph import ActivityStep
from backend.extranet.orchestration.state import WizardContext

router = APIRouter(prefix="/extranet/activity", tags=["activity"])

# Steps committed through the generic form endpoint
FORM_STEPS = (
    ActivityStep.category,
    ActivityStep.title,
    ActivityStep.description,
    ActivityStep.recommendations,
    ActivityStep.restrictions,
    ActivityStep.includes,
    ActivityStep.not_includes,
)


class UploadedImage(BaseModel):
    """A newly picked image, sent base64-encoded."""

    filename: str = Field(..., min_length=1)
    content_type: str
    content: Base64Bytes


class ImagesRequest(BaseModel):
    """Request body for committing the image step."""

    files: list[UploadedImage] = Field(default_factory=list)


@router.post("/createImages", response_model=StepOutcome)
async def commit_images(
    request: ImagesRequest,
    ctx: Annotated[WizardContext, Depends(get_wizard_context)],
    media: Annotated[MediaReconciler, Depends(get_media_reconciler)],
    save_and_exit: Annotated[bool, Query(alias="saveAndExit")] = False,
) -> StepOutcome:
    """Validate and upload new images, then commit the final list.

    Persisted images stay as they are; remove them with DELETE first.
    """
    wizard = ActivityWizard(ctx, media=media)
    files = [PendingFile(f.filename, f.content_type, f.content) for f in request.files]
    return await guard_in_flight(wizard.submit_images(files, save_and_exit=save_and_exit))


@router.delete("/createImages/{image_id}", response_model=StepOutcome)
async def delete_image(
    image_id: int,
    ctx: Annotated[WizardContext, Depends(get_wizard_context)],
    media: Annotated[MediaReconciler, Depends(get_media_reconciler)],
) -> StepOutcome:
    """Remove a persisted image (storage blob best-effort, then the record)."""
    return await guard_in_flight(ActivityWizard(ctx, media=media).remove_image(image_id))


@router.post("/createOptions/new", response_model=StepOutcome)
async def create_option(
    ctx: Annotated[WizardContext, Depends(get_wizard_context)],
) -> StepOutcome:
    """Create a booking option and go to its setup step."""
    return await guard_in_flight(ActivityWizard(ctx).create_option())


@router.post("/createOptions/continue", response_model=StepOutcome)
async def continue_options(
    ctx: Annotated[WizardContext, Depends(get_wizard_context)],
) -> StepOutcome:
    """Attach the active booking options and go to the itinerary step."""
    return await guard_in_flight(ActivityWizard(ctx).continue_options())


@router.post("/createItinerary/skip", response_model=StepOutcome)
async def skip_itinerary(
    ctx: Annotated[WizardContext, Depends(get_wizard_context)],
) -> StepOutcome:
    """Finalize the activity without an itinerary."""
    return await guard_in_flight(ActivityWizard(ctx).skip_itinerary())


@router.post("/createItinerary/continue", response_model=StepOutcome)
async def continue_itinerary(
    ctx: Annotated[WizardContext, Depends(get_wizard_context)],
) -> StepOutcome:
    """Go to the review step."""
    return ActivityWizard(ctx).continue_itinerary()


@router.get("/{step}", response_model=StepView)
async def hydrate_step(
    step: ActivityStep,
    ctx: Annotated[WizardContext, Depends(get_wizard_context)],
    places: Annotated[PlacesClient | None, Depends(get_places_client)],
) -> StepView:
    """Current values of an activity step, loaded from the draft."""
    return await ActivityWizard(ctx, places=places).hydrate(step.value)


@router.post("/{step}", response_model=StepOutcome)
async def commit_step(
    step: ActivityStep,
    values: dict[str, Any],
    ctx: Annotated[WizardContext, Depends(get_wizard_context)],
    save_and_exit: Annotated[bool, Query(alias="saveAndExit")] = False,
) -> StepOutcome:
    """Validate and commit a form step (category through exclusions)."""
    if step not in FORM_STEPS:
        raise HTTPException(
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            detail=f"{step.value} is committed through its own actions",
        )
    return await guard_in_flight(ActivityWizard(ctx).submit(step.value, values, save_and_exit=save_and_exit))
