"""Integration tests for the HTTP surface of the wizard."""

import base64

import pytest
from fastapi import HTTPException

from backend.extranet.api.dependencies import guard_in_flight
from backend.extranet.navigation.addressing import LOGIN_PATH
from backend.extranet.orchestration.commit import CommitInFlightError

AUTH = {"Authorization": "Bearer merchant-token"}
LOCALE = "lang=es&currency=USD"


def test_root(api_client) -> None:
    response = api_client.get("/")

    assert response.status_code == 200
    assert response.json()["message"] == "Extranet Activity Wizard API"


class TestActivityRoutes:
    def test_category_creates_draft(self, api_client, catalog) -> None:
        response = api_client.post(
            f"/extranet/activity/createCategory?{LOCALE}&currentStep=1", json={"categoryId": 7}, headers=AUTH
        )

        assert response.status_code == 200
        body = response.json()
        assert body["kind"] == "advanced"
        assert body["created_id"] == "101"
        assert body["address"] == "/extranet/activity/createTitle?activityId=101&lang=es&currency=USD&currentStep=2"
        assert catalog.activities["101"]["categoryId"] == 7

    def test_hydrate_returns_committed_values(self, api_client, catalog) -> None:
        activity_id = catalog.seed_activity(title="City Walking Tour")

        response = api_client.get(
            f"/extranet/activity/createTitle?activityId={activity_id}&{LOCALE}&currentStep=2", headers=AUTH
        )

        assert response.status_code == 200
        body = response.json()
        assert body["step"] == "createTitle"
        assert body["values"]["title"] == "City Walking Tour"
        assert body["outcome"] is None

    def test_blocked_step_reports_violation(self, api_client, catalog) -> None:
        activity_id = catalog.seed_activity()

        response = api_client.post(
            f"/extranet/activity/createTitle?activityId={activity_id}&{LOCALE}", json={"title": "  "}, headers=AUTH
        )

        assert response.status_code == 200
        assert response.json()["kind"] == "blocked"
        assert response.json()["violation"]["code"] == "TITLE_REQUIRED"

    def test_save_and_exit_flag(self, api_client, catalog) -> None:
        activity_id = catalog.seed_activity()

        response = api_client.post(
            f"/extranet/activity/createTitle?activityId={activity_id}&{LOCALE}&saveAndExit=true",
            json={"title": "City Walking Tour"},
            headers=AUTH,
        )

        assert response.json()["address"] == "/extranet/dashboard"

    def test_without_session_redirects_to_login(self, api_client, catalog) -> None:
        response = api_client.get(f"/extranet/activity/createTitle?activityId=5&{LOCALE}")

        assert response.status_code == 200
        assert response.json()["outcome"]["kind"] == "redirected"
        assert response.json()["outcome"]["address"] == LOGIN_PATH
        assert catalog.requests == []

    def test_malformed_authorization_is_rejected(self, api_client) -> None:
        response = api_client.get(
            f"/extranet/activity/createTitle?activityId=5&{LOCALE}", headers={"Authorization": "Basic abc"}
        )

        assert response.status_code == 401

    def test_action_steps_are_not_form_steps(self, api_client) -> None:
        response = api_client.post(f"/extranet/activity/createOptions?activityId=5&{LOCALE}", json={}, headers=AUTH)

        assert response.status_code == 405

    def test_unknown_step_is_rejected(self, api_client) -> None:
        response = api_client.get(f"/extranet/activity/createNothing?{LOCALE}", headers=AUTH)

        assert response.status_code == 422

    def test_images_are_sent_base64(self, api_client, catalog, storage, image_factory) -> None:
        activity_id = catalog.seed_activity()
        content = base64.b64encode(image_factory(1280)).decode()
        files = [{"filename": f"photo-{i}.png", "content_type": "image/png", "content": content} for i in range(3)]

        response = api_client.post(
            f"/extranet/activity/createImages?activityId={activity_id}&{LOCALE}&currentStep=8",
            json={"files": files},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json()["kind"] == "advanced"
        assert len(catalog.activities[activity_id]["images"]) == 3
        assert len(storage.objects) == 3

    def test_create_option_and_skip_itinerary(self, api_client, catalog) -> None:
        activity_id = catalog.seed_activity()

        created = api_client.post(f"/extranet/activity/createOptions/new?activityId={activity_id}&{LOCALE}", headers=AUTH)
        skipped = api_client.post(
            f"/extranet/activity/createItinerary/skip?activityId={activity_id}&{LOCALE}", headers=AUTH
        )

        assert created.json()["created_id"] in catalog.options
        assert skipped.json()["message"] == "Actividad creada sin itinerario"
        assert skipped.json()["address"] == f"/extranet/list-activities?{LOCALE}"


class TestOptionRoutes:
    @pytest.fixture
    def query(self, catalog) -> str:
        activity_id = catalog.seed_activity()
        option_id = catalog.seed_option(activity_id)
        return f"activityId={activity_id}&{LOCALE}&currentStep=9&optionId={option_id}"

    def test_setup(self, api_client, query) -> None:
        response = api_client.post(
            f"/extranet/activity/createOptionSetup?{query}",
            json={"title": "Standard", "durationHours": 3},
            headers=AUTH,
        )

        assert response.json()["kind"] == "advanced"
        assert response.json()["address"] == f"/extranet/activity/createOptionMeetingPickup?{query}"

    def test_schedule_detail_step(self, api_client, query) -> None:
        response = api_client.post(
            f"/extranet/activity/availabilityPricing/create?{query}&step=1",
            json={
                "scheduleName": "Temporada alta",
                "startDate": "2025-01-10",
                "weeklySchedule": [{"dayOfWeek": 0, "startTime": "09:00"}],
            },
            headers=AUTH,
        )

        assert response.json()["kind"] == "advanced"
        assert response.json()["address"] == f"/extranet/activity/availabilityPricing/create?{query}&step=2"

    def test_schedule_detail_step_out_of_range(self, api_client, query) -> None:
        response = api_client.get(f"/extranet/activity/availabilityPricing/create?{query}&step=9", headers=AUTH)

        assert response.status_code == 422

    def test_cut_off_view(self, api_client, query) -> None:
        response = api_client.get(f"/extranet/activity/cutOff?{query}", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["step"] == "cutOff"


class TestReferenceRoutes:
    def test_categories(self, api_client) -> None:
        response = api_client.get("/reference/categories", headers=AUTH)

        assert response.status_code == 200
        assert response.json()[0] == {"id": 7, "name": "Tours"}

    def test_destinations_use_wire_names(self, api_client) -> None:
        response = api_client.get("/reference/destinations", headers=AUTH)

        assert response.json()[0]["cityName"] == "Lima"

    def test_reference_needs_session(self, api_client) -> None:
        assert api_client.get("/reference/categories").status_code == 401

    def test_expired_session(self, api_client, catalog) -> None:
        catalog.expired = True

        response = api_client.get("/reference/transport-modes", headers=AUTH)

        assert response.status_code == 401
        assert response.json()["detail"] == "Session expired"

    def test_place_search_unconfigured(self, api_client) -> None:
        response = api_client.get("/reference/places/search?q=plaza", headers=AUTH)

        assert response.status_code == 503


class TestInFlightGuard:
    @pytest.mark.asyncio
    async def test_concurrent_commit_becomes_conflict(self) -> None:
        async def busy() -> None:
            raise CommitInFlightError("draft 5 is being saved")

        with pytest.raises(HTTPException) as exc_info:
            await guard_in_flight(busy())

        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_result_passes_through(self) -> None:
        async def done() -> str:
            return "ok"

        assert await guard_in_flight(done()) == "ok"
