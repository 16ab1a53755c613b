"""Shared pytest fixtures for all test suites.

The catalog service is faked in memory and served through httpx.MockTransport,
so adapters, wizards and routes run their real HTTP code paths.
"""

import io
import json
from collections.abc import AsyncGenerator, Callable, Iterator
from typing import Annotated, Any

import httpx
import pytest
import pytest_asyncio
from fastapi import Depends
from fastapi.testclient import TestClient
from PIL import Image

from backend.extranet.adapters.backend_client import DraftPersistenceClient
from backend.extranet.adapters.storage import ObjectStorage, ProgressCallback, StorageUploadError
from backend.extranet.api.auth import SessionContext, get_session_context
from backend.extranet.api.dependencies import (
    get_backend_client,
    get_commit_runner,
    get_object_storage,
    get_places_client,
    get_step_cache,
)
from backend.extranet.config import Settings
from backend.extranet.db.step_cache import InMemoryStepCache
from backend.extranet.main import app
from backend.extranet.navigation.addressing import AddressParams
from backend.extranet.orchestration.commit import CommitRunner
from backend.extranet.orchestration.state import WizardContext

CATALOG_URL = "http://catalog.test"
STORAGE_URL = "http://storage.test"
TOKEN = "merchant-token"


class FakeCatalog:
    """In-memory catalog service speaking the wizard's REST contract."""

    def __init__(self) -> None:
        self.activities: dict[str, dict[str, Any]] = {}
        self.options: dict[str, dict[str, Any]] = {}
        self.attached: list[tuple[str, str]] = []
        self.cut_offs: dict[str, dict[str, Any]] = {}
        self.requests: list[tuple[str, str, Any]] = []
        self.failures: dict[tuple[str, str], tuple[int, Any]] = {}
        self.expired = False
        self.skip_message = "Actividad creada sin itinerario"
        self._next_id = 100
        self._next_image_id = 500
        self._next_schedule_id = 900

    # Test controls

    def fail(self, method: str, path: str, status_code: int = 200, body: Any = None) -> None:
        """Answer `method path` with a canned response instead of the normal behaviour."""
        self.failures[(method, path)] = (status_code, body)

    def seed_activity(self, **fields: Any) -> str:
        """Create an activity snapshot directly; returns its id."""
        activity_id = self._new_id()
        self.activities[activity_id] = {**self._empty_activity(activity_id), **fields}
        return activity_id

    def seed_option(self, activity_id: str, **fields: Any) -> str:
        """Create a booking option snapshot directly; returns its id."""
        option_id = self._new_id()
        self.options[option_id] = {**self._empty_option(option_id, activity_id), **fields}
        return option_id

    def paths(self, method: str | None = None) -> list[str]:
        return [p for m, p, _ in self.requests if method is None or m == method]

    def body_of(self, method: str, path: str) -> Any:
        """Body of the last request sent to `method path`."""
        for m, p, body in reversed(self.requests):
            if m == method and p == path:
                return body
        raise AssertionError(f"no {method} {path} request")

    # Internals

    def _new_id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    @staticmethod
    def _empty_activity(activity_id: str) -> dict[str, Any]:
        return {
            "id": activity_id,
            "categoryId": None,
            "title": None,
            "presentation": None,
            "description": None,
            "pointsOfInterest": None,
            "recommendations": None,
            "restrictions": None,
            "includes": None,
            "notIncludes": None,
            "images": [],
        }

    @staticmethod
    def _empty_option(option_id: str, activity_id: str) -> dict[str, Any]:
        return {
            "id": option_id,
            "activityId": activity_id,
            "title": None,
            "isActive": True,
            "schedules": [],
            "priceTiers": [],
            "availabilityMode": "TIME_SLOTS",
            "pricingMode": "PER_PERSON",
            "groupMinSize": None,
            "groupMaxSize": None,
        }

    @staticmethod
    def _ok(**extra: Any) -> httpx.Response:
        return httpx.Response(200, json={"success": True, **extra})

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.requests.append((request.method, path, body))

        if self.expired or request.headers.get("Authorization") != f"Bearer {TOKEN}":
            return httpx.Response(401, json={"message": "Unauthorized"})
        canned = self.failures.get((request.method, path))
        if canned is not None:
            status_code, canned_body = canned
            return httpx.Response(status_code, json=canned_body)

        if request.method == "GET":
            return self._get(path, request.url.params)
        if request.method == "DELETE" and path.startswith("/images/"):
            image_id = int(path.rsplit("/", 1)[1])
            for activity in self.activities.values():
                activity["images"] = [i for i in activity["images"] if i["id"] != image_id]
            return self._ok()
        return self._post(path, body or {})

    def _get(self, path: str, params: httpx.QueryParams) -> httpx.Response:
        if path.startswith("/activities/"):
            activity = self.activities.get(path.rsplit("/", 1)[1])
            if activity is None:
                return httpx.Response(404, json={"message": "not found"})
            snapshot = {
                **activity,
                "bookingOptions": [
                    {"id": o["id"], "title": o["title"], "isActive": o["isActive"]}
                    for o in self.options.values()
                    if o["activityId"] == activity["id"]
                ],
            }
            return httpx.Response(200, json={"success": True, "data": snapshot})
        if path == "/booking-options/search":
            activity_id = params.get("activityId")
            return httpx.Response(
                200,
                json=[
                    {"id": o["id"], "title": o["title"], "isActive": o["isActive"]}
                    for o in self.options.values()
                    if o["activityId"] == activity_id
                ],
            )
        if path == "/categories":
            return httpx.Response(200, json=[{"id": 7, "name": "Tours"}, {"id": 8, "name": "Gastronomía"}])
        if path == "/places":
            return httpx.Response(200, json=[{"id": 1, "cityName": "Lima", "countryId": 51, "active": True}])
        if path == "/transport-modes":
            return httpx.Response(200, json=[{"id": 1, "name": "Van"}])

        parts = path.strip("/").split("/")
        if parts[0] != "booking-options" or parts[1] not in self.options:
            return httpx.Response(404, json={"message": "not found"})
        option = self.options[parts[1]]
        tail = "/".join(parts[2:])
        if tail == "":
            return httpx.Response(200, json=option)
        if tail == "availability-pricing/mode":
            return httpx.Response(
                200, json={"availabilityMode": option["availabilityMode"], "pricingMode": option["pricingMode"]}
            )
        if tail == "availability-pricing/capacity":
            return httpx.Response(
                200, json={"groupMinSize": option["groupMinSize"], "groupMaxSize": option["groupMaxSize"]}
            )
        if tail == "availability-pricing/completed":
            return httpx.Response(200, json={"isComplete": bool(option["schedules"] and option["priceTiers"])})
        if tail == "time-slots":
            return httpx.Response(
                200, json={"timeSlots": [{"time": s["startTime"]} for s in option["schedules"]], "title": option["title"]}
            )
        return httpx.Response(404, json={"message": "not found"})

    def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        if path == "/activities/category":
            activity_id = self.seed_activity(categoryId=body["categoryId"])
            return self._ok(idCreated=activity_id)
        if path == "/activities/booking-option":
            self.attached.append((body["id"], body["optionId"]))
            return self._ok()
        if path == "/activities/skip-itinerary":
            return self._ok(message=self.skip_message)
        if path.startswith("/activities/"):
            return self._update_activity(path.rsplit("/", 1)[1], body)
        if path == "/booking-options":
            option_id = self.seed_option(body["activityId"])
            return self._ok(idCreated=option_id)
        if path.startswith("/booking-options/") and path.endswith("/availability-pricing/reset"):
            option = self.options[path.split("/")[2]]
            option["schedules"], option["priceTiers"] = [], []
            return self._ok(successCode="AVAILABILITY_PRICING_RESET")

        option = self.options.get(str(body.get("bookingOptionId")))
        if option is None:
            return httpx.Response(404, json={"success": False, "message": "option not found"})
        fields = {k: v for k, v in body.items() if k not in ("activityId", "bookingOptionId", "lang")}
        if path == "/booking-options/availability-pricing/departure-time":
            for slot in fields["weeklySchedule"]:
                self._next_schedule_id += 1
                option["schedules"].append(
                    {
                        "id": self._next_schedule_id,
                        "title": fields["title"],
                        "dayOfWeek": slot["dayOfWeek"],
                        "startTime": slot["startTime"],
                        "endTime": slot.get("endTime"),
                        "isActive": True,
                        "seasonStartDate": fields["startDate"],
                        "seasonEndDate": fields["endDate"],
                        "priceTiers": [],
                    }
                )
        elif path == "/booking-options/availability-pricing/capacity":
            option["groupMinSize"] = fields["groupMinSize"]
        elif path == "/booking-options/availability-pricing/price-per-person":
            option["priceTiers"] = fields["bookingPriceTiers"]
        elif path == "/booking-options/cut-off":
            self.cut_offs[option["id"]] = fields
        else:
            if "maxGroupSize" in fields:
                fields["groupMaxSize"] = fields.pop("maxGroupSize")
            option.update(fields)
        return self._ok()

    def _update_activity(self, section: str, body: dict[str, Any]) -> httpx.Response:
        activity = self.activities.get(str(body.get("id")))
        if activity is None:
            return httpx.Response(404, json={"success": False, "message": "activity not found"})
        if section == "title":
            activity["title"] = body["title"]
        elif section == "description":
            activity["presentation"] = body["presentation"]
            activity["description"] = body["description"]
            activity["pointsOfInterest"] = body["pointOfInterests"]
        elif section == "recommendations":
            activity["recommendations"] = body["recommendations"]
        elif section == "restrictions":
            activity["restrictions"] = body["restrictions"]
        elif section == "includes":
            activity["includes"] = body["inclusions"]
        elif section == "not-includes":
            activity["notIncludes"] = body["notInclusions"]
        elif section == "images":
            known = {i["imageUrl"]: i["id"] for i in activity["images"]}
            images = []
            for entry in body["images"]:
                image_id = known.get(entry["url"])
                if image_id is None:
                    self._next_image_id += 1
                    image_id = self._next_image_id
                images.append({"id": image_id, "imageUrl": entry["url"], "isCover": entry["cover"]})
            activity["images"] = images
        else:
            return httpx.Response(404, json={"success": False, "message": "unknown section"})
        return self._ok()


class FakeStorage(ObjectStorage):
    """In-memory object storage."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.failing_names: set[str] = set()
        self.delete_fails = False

    async def upload(
        self,
        content: bytes,
        path: str,
        content_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        if any(path.endswith(name) for name in self.failing_names):
            raise StorageUploadError(f"upload of {path} failed")
        url = f"{STORAGE_URL}/{path}"
        self.objects[url] = content
        if on_progress is not None:
            on_progress(100)
        return url

    async def delete(self, url: str) -> None:
        if self.delete_fails:
            raise StorageUploadError("storage unavailable")
        self.deleted.append(url)
        self.objects.pop(url, None)


def make_image(width: int, height: int = 8, fmt: str = "PNG") -> bytes:
    """Encoded image of the given size."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 120, 40)).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def settings() -> Settings:
    return Settings(backend_base_url=CATALOG_URL, storage_base_url=STORAGE_URL, redis_url=None)


@pytest.fixture
def wide_image() -> bytes:
    """A PNG wide enough for the image step."""
    return make_image(1280)


@pytest.fixture
def image_factory() -> Callable[..., bytes]:
    return make_image


@pytest_asyncio.fixture
async def catalog_client(catalog: FakeCatalog) -> AsyncGenerator[DraftPersistenceClient, None]:
    """Draft client wired to the fake catalog."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(catalog.handler))
    yield DraftPersistenceClient(CATALOG_URL, token=TOKEN, client=http)
    await http.aclose()


@pytest.fixture
def make_context(
    catalog_client: DraftPersistenceClient, settings: Settings
) -> Callable[..., WizardContext]:
    """Build a wizard context for some address parameters."""
    runner = CommitRunner()
    cache = InMemoryStepCache()

    def factory(has_session: bool = True, session_id: str | None = None, **params: Any) -> WizardContext:
        params.setdefault("lang", "es")
        params.setdefault("currency", "USD")
        ctx = WizardContext(
            params=AddressParams(**params),
            client=catalog_client,
            runner=runner,
            settings=settings,
            has_session=has_session,
            cache=cache,
        )
        if session_id is not None:
            ctx.session_id = session_id
        return ctx

    return factory


@pytest.fixture
def api_client(catalog: FakeCatalog, storage: FakeStorage) -> Iterator[TestClient]:
    """Test client with the catalog, storage and caches faked."""
    runner = CommitRunner()
    cache = InMemoryStepCache()

    async def backend_override(
        session: Annotated[SessionContext, Depends(get_session_context)],
    ) -> AsyncGenerator[DraftPersistenceClient, None]:
        http = httpx.AsyncClient(transport=httpx.MockTransport(catalog.handler))
        try:
            yield DraftPersistenceClient(CATALOG_URL, token=session.token, client=http)
        finally:
            await http.aclose()

    async def storage_override() -> FakeStorage:
        return storage

    async def places_override() -> None:
        return None

    app.dependency_overrides[get_backend_client] = backend_override
    app.dependency_overrides[get_object_storage] = storage_override
    app.dependency_overrides[get_places_client] = places_override
    app.dependency_overrides[get_commit_runner] = lambda: runner
    app.dependency_overrides[get_step_cache] = lambda: cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
