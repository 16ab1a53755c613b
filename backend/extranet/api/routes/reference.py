"""Reference data endpoints - categories, destinations, transport modes, place search."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from backend.extranet.adapters.backend_client import (
    DraftClientError,
    DraftPersistenceClient,
    SessionExpiredError,
)
from backend.extranet.adapters.places import PlacesClient, PlacesLookupError
from backend.extranet.api.auth import SessionContext, require_session
from backend.extranet.api.dependencies import get_backend_client, get_places_client
from backend.extranet.config import Settings, get_settings
from backend.extranet.models.common import Geo
from backend.extranet.models.responses import Category, Destination, PlaceResult, TransportMode

router = APIRouter(prefix="/reference", tags=["reference"])


def _upstream_error(e: Exception) -> HTTPException:
    if isinstance(e, SessionExpiredError):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.get("/categories", response_model=list[Category])
async def list_categories(
    _session: Annotated[SessionContext, Depends(require_session)],
    client: Annotated[DraftPersistenceClient, Depends(get_backend_client)],
    settings: Annotated[Settings, Depends(get_settings)],
    lang: str | None = None,
) -> list[Category]:
    """Activity categories."""
    try:
        return await client.get_categories(lang or settings.default_lang)
    except (SessionExpiredError, DraftClientError) as e:
        raise _upstream_error(e) from e


@router.get("/destinations", response_model=list[Destination])
async def list_destinations(
    _session: Annotated[SessionContext, Depends(require_session)],
    client: Annotated[DraftPersistenceClient, Depends(get_backend_client)],
) -> list[Destination]:
    """Destination cities."""
    try:
        return await client.get_destinations()
    except (SessionExpiredError, DraftClientError) as e:
        raise _upstream_error(e) from e


@router.get("/transport-modes", response_model=list[TransportMode])
async def list_transport_modes(
    _session: Annotated[SessionContext, Depends(require_session)],
    client: Annotated[DraftPersistenceClient, Depends(get_backend_client)],
    settings: Annotated[Settings, Depends(get_settings)],
    lang: str | None = None,
) -> list[TransportMode]:
    """Transport modes for pickup services."""
    try:
        return await client.get_transport_modes(lang or settings.default_lang)
    except (SessionExpiredError, DraftClientError) as e:
        raise _upstream_error(e) from e


@router.get("/places/search", response_model=list[PlaceResult])
async def search_places(
    _session: Annotated[SessionContext, Depends(require_session)],
    places: Annotated[PlacesClient | None, Depends(get_places_client)],
    settings: Annotated[Settings, Depends(get_settings)],
    q: Annotated[str, Query()] = "",
    lat: float | None = None,
    lng: float | None = None,
    radius: Annotated[int | None, Query(gt=0)] = None,
) -> list[PlaceResult]:
    """Points of interest around a destination, optionally matching a text query.

    Without a query the nearby places are listed.
    """
    if places is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Place search not configured")

    center = Geo(
        lat=settings.default_center_lat if lat is None else lat,
        lng=settings.default_center_lng if lng is None else lng,
    )
    try:
        if q.strip():
            return await places.search_text(q.strip(), center, radius)
        return await places.search_nearby(center, radius)
    except PlacesLookupError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
