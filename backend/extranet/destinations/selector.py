"""Destination and point-of-interest selection with a single main POI."""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from backend.extranet.models.activity import PointOfInterest
from backend.extranet.models.responses import PlaceResult

logger = logging.getLogger(__name__)

DetailsLookup = Callable[[str], Awaitable[PlaceResult]]


@dataclass(frozen=True)
class SelectedPoi:
    """A POI chosen inside a destination, identified by its external place id."""

    place_ref: str
    name: str
    latitude: float
    longitude: float
    destination_id: int


@dataclass
class DestinationSelector:
    """Selected POIs across destinations.

    POIs are stored once, in selection order. The main POI is a single
    optional place reference; the per-destination grouping is derived.
    """

    pois: list[SelectedPoi] = field(default_factory=list)
    main_ref: str | None = None
    current_destination: int | None = None

    def select_destination(self, destination_id: int) -> list[SelectedPoi]:
        """Switch the destination being viewed and return its POIs."""
        self.current_destination = destination_id
        return self.pois_for(destination_id)

    def pois_for(self, destination_id: int) -> list[SelectedPoi]:
        """POIs selected inside one destination."""
        return [p for p in self.pois if p.destination_id == destination_id]

    def by_destination(self) -> dict[int, list[SelectedPoi]]:
        """POIs grouped per destination, in first-selection order."""
        grouped: dict[int, list[SelectedPoi]] = {}
        for poi in self.pois:
            grouped.setdefault(poi.destination_id, []).append(poi)
        return grouped

    def is_main(self, poi: SelectedPoi) -> bool:
        return poi.place_ref == self.main_ref

    def add(self, poi: SelectedPoi) -> bool:
        """Add a POI to its destination.

        The first POI added anywhere becomes main. A place that is already
        selected (in any destination) is ignored.

        Returns:
            True if the POI was added
        """
        if any(p.place_ref == poi.place_ref for p in self.pois):
            return False
        self.pois.append(poi)
        if self.main_ref is None:
            self.main_ref = poi.place_ref
        return True

    def remove(self, place_ref: str) -> None:
        """Remove a POI; if it was main, the first remaining POI becomes main."""
        self.pois = [p for p in self.pois if p.place_ref != place_ref]
        if self.main_ref == place_ref:
            self.main_ref = self.pois[0].place_ref if self.pois else None

    def set_main(self, place_ref: str) -> None:
        """Designate a selected POI as main.

        Raises:
            KeyError: If the POI is not selected
        """
        if not any(p.place_ref == place_ref for p in self.pois):
            raise KeyError(place_ref)
        self.main_ref = place_ref

    def to_payload(self) -> list[PointOfInterest]:
        """POIs as committed with the description step."""
        return [
            PointOfInterest(
                name=p.name,
                latitude=round(p.latitude, 8),
                longitude=round(p.longitude, 8),
                place_id=p.destination_id,
                google_place_id=p.place_ref,
                is_main_destination=self.is_main(p),
            )
            for p in self.pois
        ]

    @classmethod
    async def hydrate(
        cls,
        stored: Sequence[PointOfInterest],
        details_lookup: DetailsLookup | None = None,
    ) -> "DestinationSelector":
        """Rebuild the selection from stored POIs.

        Place details are refreshed through `details_lookup` when given; a
        failed lookup falls back to the stored name and coordinates.
        """
        selector = cls()
        main_ref: str | None = None
        for poi in stored:
            name, lat, lng = poi.name, poi.latitude, poi.longitude
            if details_lookup is not None and poi.google_place_id:
                try:
                    details = await details_lookup(poi.google_place_id)
                    name, lat, lng = details.name or name, details.latitude, details.longitude
                except Exception as e:
                    logger.warning(
                        f"Place details unavailable for {poi.google_place_id}: {type(e).__name__}"
                    )
            selector.add(
                SelectedPoi(
                    place_ref=poi.google_place_id,
                    name=name,
                    latitude=lat,
                    longitude=lng,
                    destination_id=poi.place_id,
                )
            )
            if poi.is_main_destination and main_ref is None:
                main_ref = poi.google_place_id
        selector.main_ref = main_ref
        return selector
