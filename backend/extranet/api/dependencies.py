"""FastAPI dependencies wiring the wizard to its collaborators."""

from collections.abc import AsyncGenerator, Awaitable
from functools import lru_cache
from typing import Annotated, TypeVar

import redis
from fastapi import Depends, HTTPException, Request, status

from backend.extranet.adapters.backend_client import DraftPersistenceClient
from backend.extranet.adapters.places import PlacesClient
from backend.extranet.adapters.storage import HttpObjectStorage, ObjectStorage
from backend.extranet.api.auth import SessionContext, get_session_context
from backend.extranet.config import Settings, get_settings
from backend.extranet.db.step_cache import InMemoryStepCache, RedisStepCache, StepCache
from backend.extranet.media.reconciler import MediaReconciler
from backend.extranet.media.validation import ImageLimits
from backend.extranet.navigation.addressing import parse_address
from backend.extranet.orchestration.commit import CommitInFlightError, CommitRunner
from backend.extranet.orchestration.state import WizardContext
from backend.extranet.utils.logging import StructuredCommitLogger
from backend.extranet.utils.metrics import PrometheusCommitMetrics

T = TypeVar("T")


@lru_cache
def get_commit_runner() -> CommitRunner:
    """Process-wide commit runner; the in-flight guard spans requests."""
    settings = get_settings()
    return CommitRunner(
        timeout_ms=settings.commit_timeout_ms,
        metrics=PrometheusCommitMetrics(),
        logger=StructuredCommitLogger(),
    )


@lru_cache
def get_step_cache() -> StepCache:
    """Redis-backed step cache when configured, in-memory otherwise."""
    settings = get_settings()
    if settings.redis_url:
        client = redis.from_url(settings.redis_url, decode_responses=True)  # type: ignore[no-untyped-call]
        return RedisStepCache(client)
    return InMemoryStepCache()


async def get_backend_client(
    session: Annotated[SessionContext, Depends(get_session_context)],
) -> AsyncGenerator[DraftPersistenceClient, None]:
    """Catalog client forwarding the merchant session.

    Yields:
        DraftPersistenceClient, closed after the request
    """
    settings = get_settings()
    async with DraftPersistenceClient(
        settings.backend_base_url, token=session.token, timeout_ms=settings.backend_timeout_ms
    ) as client:
        yield client


async def get_object_storage(
    session: Annotated[SessionContext, Depends(get_session_context)],
) -> AsyncGenerator[ObjectStorage, None]:
    """Object storage client for image uploads."""
    storage = HttpObjectStorage(get_settings().storage_base_url, token=session.token)
    try:
        yield storage
    finally:
        await storage.aclose()


async def get_places_client() -> AsyncGenerator[PlacesClient | None, None]:
    """Places client, or None when no API key is configured."""
    settings = get_settings()
    if not settings.places_api_key:
        yield None
        return
    client = PlacesClient(
        settings.places_api_key,
        base_url=settings.places_base_url,
        default_radius_m=settings.places_search_radius_m,
    )
    try:
        yield client
    finally:
        await client.aclose()


def get_media_reconciler(
    storage: Annotated[ObjectStorage, Depends(get_object_storage)],
) -> MediaReconciler:
    """Image working set with the configured limits."""
    settings = get_settings()
    return MediaReconciler(
        storage,
        limits=ImageLimits(
            max_bytes=settings.image_max_bytes,
            min_width_px=settings.image_min_width_px,
            timeout_ms=settings.image_validation_timeout_ms,
        ),
        min_count=settings.image_min_count,
        max_count=settings.image_max_count,
        upload_prefix=settings.storage_upload_prefix,
    )


def get_wizard_context(
    request: Request,
    session: Annotated[SessionContext, Depends(get_session_context)],
    client: Annotated[DraftPersistenceClient, Depends(get_backend_client)],
    runner: Annotated[CommitRunner, Depends(get_commit_runner)],
    cache: Annotated[StepCache, Depends(get_step_cache)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> WizardContext:
    """Wizard context for the address the request was made at."""
    ctx = WizardContext(
        params=parse_address(str(request.url)),
        client=client,
        runner=runner,
        settings=settings,
        has_session=session.has_session,
        cache=cache,
    )
    if session.session_id:
        ctx.session_id = session.session_id
    return ctx


async def guard_in_flight(action: Awaitable[T]) -> T:
    """Await a step action, answering a concurrent commit on the same draft with 409.

    Raises:
        HTTPException: 409 if a commit for the draft is already running
    """
    try:
        return await action
    except CommitInFlightError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
