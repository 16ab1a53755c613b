"""Activity draft snapshot and per-step slices."""

from pydantic import Field, field_validator

from backend.extranet.models.common import WireModel


def _clean_lines(values: list[str]) -> list[str]:
    """Trim entries and drop blank ones."""
    return [v.strip() for v in values if v and v.strip()]


class PointOfInterest(WireModel):
    """A point of interest inside a destination.

    `place_id` is the owning destination id and `google_place_id` is the
    external place reference used to rehydrate details.
    """

    name: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    place_id: int
    google_place_id: str
    is_main_destination: bool = False


class ActivityImage(WireModel):
    """An image already persisted for an activity."""

    id: int
    image_url: str
    is_cover: bool = False


class BookingOptionSummary(WireModel):
    """Booking option as listed under its activity."""

    id: str
    title: str | None = None
    is_active: bool = True


class ActivityDraft(WireModel):
    """Snapshot of an activity draft as returned by the catalog service."""

    id: str
    category_id: int | None = None
    title: str | None = None
    presentation: str | None = None
    description: str | None = None
    points_of_interest: list[PointOfInterest] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    restrictions: list[str] = Field(default_factory=list)
    includes: list[str] = Field(default_factory=list)
    not_includes: list[str] = Field(default_factory=list)
    images: list[ActivityImage] = Field(default_factory=list)
    booking_options: list[BookingOptionSummary] = Field(default_factory=list)

    @field_validator(
        "points_of_interest",
        "recommendations",
        "restrictions",
        "includes",
        "not_includes",
        "images",
        "booking_options",
        mode="before",
    )
    @classmethod
    def none_as_empty(cls, v: object) -> object:
        """The service sends null for sections that were never filled."""
        return [] if v is None else v


# Step slices: the fields each step edits and commits.


class CategorySlice(WireModel):
    """Step 1: category selection."""

    category_id: int | None = None


class TitleSlice(WireModel):
    """Step 2: activity title."""

    title: str = ""

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        """Titles are committed trimmed."""
        return v.strip()


class DescriptionSlice(WireModel):
    """Step 3: presentation, long description and points of interest."""

    presentation: str = ""
    description: str = ""
    points_of_interest: list[PointOfInterest] = Field(default_factory=list)

    @field_validator("presentation", "description")
    @classmethod
    def strip_text(cls, v: str) -> str:
        """Texts are committed trimmed."""
        return v.strip()


class RecommendationsSlice(WireModel):
    """Step 4: at least three recommendations."""

    recommendations: list[str] = Field(default_factory=list)

    @field_validator("recommendations")
    @classmethod
    def clean(cls, v: list[str]) -> list[str]:
        return _clean_lines(v)


class RestrictionsSlice(WireModel):
    """Step 5: optional restrictions."""

    restrictions: list[str] = Field(default_factory=list)

    @field_validator("restrictions")
    @classmethod
    def clean(cls, v: list[str]) -> list[str]:
        return _clean_lines(v)


class IncludesSlice(WireModel):
    """Step 6: at least three inclusions."""

    inclusions: list[str] = Field(default_factory=list)

    @field_validator("inclusions")
    @classmethod
    def clean(cls, v: list[str]) -> list[str]:
        return _clean_lines(v)


class NotIncludesSlice(WireModel):
    """Step 7: optional exclusions."""

    not_inclusions: list[str] = Field(default_factory=list)

    @field_validator("not_inclusions")
    @classmethod
    def clean(cls, v: list[str]) -> list[str]:
        return _clean_lines(v)


class ImageCommitEntry(WireModel):
    """One entry of the final image list sent on commit."""

    url: str
    cover: bool = False
