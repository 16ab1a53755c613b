"""Place search adapter (Google Places API v1) and debounced search-as-you-type."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from backend.extranet.models.common import Geo
from backend.extranet.models.responses import PlaceResult

logger = logging.getLogger(__name__)

_FIELD_MASK = "places.id,places.displayName,places.formattedAddress,places.location,places.types"
_DETAILS_FIELD_MASK = "id,displayName,formattedAddress,location,types"


class PlacesLookupError(Exception):
    """The place search service failed."""

    pass


def _parse_place(item: dict[str, Any]) -> PlaceResult:
    location = item.get("location") or {}
    display_name = item.get("displayName") or {}
    return PlaceResult(
        place_id=item["id"],
        name=display_name.get("text", "") if isinstance(display_name, dict) else str(display_name),
        formatted_address=item.get("formattedAddress", ""),
        latitude=location.get("latitude", 0.0),
        longitude=location.get("longitude", 0.0),
        types=item.get("types") or [],
    )


class PlacesClient:
    """Read-only place lookups keyed by external place id."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://places.googleapis.com/v1",
        default_radius_m: int = 10000,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize client.

        Args:
            api_key: Places API key
            base_url: Places API base URL
            default_radius_m: Radius used when callers do not pass one
            client: Optional httpx client (for testing with mocks)
        """
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._default_radius_m = default_radius_m
        self._close_client = client is None
        self._client = client or httpx.AsyncClient(timeout=10.0)

    async def aclose(self) -> None:
        """Close the underlying httpx client if this instance created it."""
        if self._close_client:
            await self._client.aclose()

    def _headers(self, field_mask: str) -> dict[str, str]:
        return {"X-Goog-Api-Key": self._api_key, "X-Goog-FieldMask": field_mask}

    @staticmethod
    def _circle(center: Geo, radius_m: float) -> dict[str, Any]:
        return {
            "circle": {
                "center": {"latitude": center.lat, "longitude": center.lng},
                "radius": float(radius_m),
            }
        }

    async def _post(self, path: str, body: dict[str, Any]) -> list[PlaceResult]:
        try:
            response = await self._client.post(
                f"{self._base_url}{path}", json=body, headers=self._headers(_FIELD_MASK)
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise PlacesLookupError(f"Place search failed: {type(e).__name__}") from e
        return [_parse_place(item) for item in response.json().get("places") or []]

    async def search_nearby(self, center: Geo, radius_m: float | None = None) -> list[PlaceResult]:
        """Places around a center point."""
        body = {"locationRestriction": self._circle(center, radius_m or self._default_radius_m)}
        return await self._post("/places:searchNearby", body)

    async def search_text(
        self, query: str, center: Geo, radius_m: float | None = None
    ) -> list[PlaceResult]:
        """Text search biased to a circle around the center point."""
        body = {
            "textQuery": query,
            "locationBias": self._circle(center, radius_m or self._default_radius_m),
        }
        return await self._post("/places:searchText", body)

    async def get_place_details(self, place_id: str) -> PlaceResult:
        """Details of one place by its external id."""
        try:
            response = await self._client.get(
                f"{self._base_url}/places/{place_id}", headers=self._headers(_DETAILS_FIELD_MASK)
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise PlacesLookupError(f"Place details failed for {place_id}") from e
        return _parse_place(response.json())


SearchFn = Callable[[str], Awaitable[list[PlaceResult]]]


class DebouncedSearch:
    """Search-as-you-type with debounce and stale-response rejection.

    Each call waits `debounce_ms`; a newer call cancels a pending wait. Every
    lookup that is actually issued gets the next sequence number, and its
    result is only returned if no newer lookup was issued meanwhile.
    """

    def __init__(
        self,
        search_fn: SearchFn,
        debounce_ms: int = 500,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize search.

        Args:
            search_fn: Lookup to run for a query
            debounce_ms: Quiet period before a lookup is issued
            sleep_fn: Injectable sleep function (default: asyncio.sleep)
        """
        self._search_fn = search_fn
        self._debounce_s = debounce_ms / 1000
        self._sleep = sleep_fn or asyncio.sleep
        self._pending: asyncio.Task[None] | None = None
        self._issued = 0

    @property
    def latest_sequence(self) -> int:
        """Sequence number of the most recently issued lookup."""
        return self._issued

    async def search(self, query: str) -> list[PlaceResult] | None:
        """Debounced lookup.

        Returns:
            Results, or None if this call was superseded (during the debounce
            wait or while its lookup was in flight) or the query is blank
        """
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()

        wait = asyncio.ensure_future(self._sleep(self._debounce_s))
        self._pending = wait
        try:
            await wait
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            return None

        if not query.strip():
            return None

        self._issued += 1
        sequence = self._issued
        results = await self._search_fn(query)
        if sequence != self._issued:
            logger.debug(f"Discarding stale place results for {query!r} (seq {sequence})")
            return None
        return results
