"""Response envelopes and reference data returned by the catalog service."""

from pydantic import Field

from backend.extranet.models.common import WireModel

RESET_SUCCESS_CODE = "AVAILABILITY_PRICING_RESET"


class CommitResult(WireModel):
    """Outcome of a create/update call.

    `id_created` is only present when the call created an entity.
    """

    success: bool
    message: str | None = None
    id_created: str | None = None
    success_code: str | None = None


class Completeness(WireModel):
    """Server-side verdict on whether availability & pricing is fully configured."""

    is_complete: bool = False


class Category(WireModel):
    """Activity category."""

    id: int
    name: str


class Destination(WireModel):
    """Destination city that owns points of interest."""

    id: int
    city_name: str
    country_id: int | None = None
    latitude: float | None = None
    longitude: float | None = None
    active: bool = True
    activity_count: int = 0


class TransportMode(WireModel):
    """Transport used by a pickup service."""

    id: int
    name: str


class PlaceResult(WireModel):
    """A place returned by the place-search collaborator."""

    place_id: str
    name: str
    formatted_address: str = ""
    latitude: float
    longitude: float
    types: list[str] = Field(default_factory=list)
