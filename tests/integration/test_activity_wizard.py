"""Integration tests for the activity wizard against the fake catalog service."""

import asyncio
from collections.abc import Callable

import pytest

from backend.extranet.media.reconciler import MediaReconciler, PendingFile
from backend.extranet.models.wizard import OutcomeKind
from backend.extranet.navigation.addressing import DASHBOARD_PATH, LOGIN_PATH
from backend.extranet.orchestration.activity_steps import SKIP_FAILURE_MESSAGE, ActivityWizard
from backend.extranet.orchestration.commit import CommitContext, CommitInFlightError
from backend.extranet.orchestration.state import GENERIC_LOAD_ERROR, GENERIC_SAVE_ERROR


def _png(factory: Callable[..., bytes], name: str, width: int = 1280) -> PendingFile:
    return PendingFile(name, "image/png", factory(width))


class TestPreconditions:
    @pytest.mark.asyncio
    async def test_no_session_goes_to_login(self, make_context, catalog) -> None:
        wizard = ActivityWizard(make_context(has_session=False, activity_id="5"))

        view = await wizard.hydrate("createTitle")
        outcome = await wizard.submit("createTitle", {"title": "Tour"})

        assert view.outcome is not None and view.outcome.address == LOGIN_PATH
        assert outcome.kind == OutcomeKind.redirected
        assert catalog.requests == []

    @pytest.mark.asyncio
    async def test_missing_activity_goes_to_category(self, make_context, catalog) -> None:
        view = await ActivityWizard(make_context()).hydrate("createDescription")

        assert view.outcome is not None
        assert view.outcome.kind == OutcomeKind.redirected
        assert view.outcome.address == "/extranet/activity/createCategory?lang=es&currency=USD&currentStep=1"
        assert catalog.requests == []

    @pytest.mark.asyncio
    async def test_category_needs_no_activity(self, make_context) -> None:
        view = await ActivityWizard(make_context()).hydrate("createCategory")

        assert view.outcome is None
        assert view.values == {"category_id": None}


class TestCategoryAndText:
    @pytest.mark.asyncio
    async def test_category_creates_draft_and_carries_new_id(self, make_context, catalog) -> None:
        outcome = await ActivityWizard(make_context()).submit("createCategory", {"categoryId": 7})

        assert outcome.kind == OutcomeKind.advanced
        assert outcome.created_id == "101"
        assert outcome.address == (
            "/extranet/activity/createTitle?activityId=101&lang=es&currency=USD&currentStep=2"
        )
        assert catalog.activities["101"]["categoryId"] == 7

    @pytest.mark.asyncio
    async def test_category_save_and_exit_creates_draft_and_leaves(self, make_context, catalog) -> None:
        outcome = await ActivityWizard(make_context()).submit("createCategory", {"categoryId": 7}, save_and_exit=True)

        assert outcome.kind == OutcomeKind.advanced
        assert outcome.address == DASHBOARD_PATH
        assert outcome.created_id == "101"
        assert catalog.activities["101"]["categoryId"] == 7

    @pytest.mark.asyncio
    async def test_blocked_step_makes_no_call(self, make_context, catalog) -> None:
        outcome = await ActivityWizard(make_context()).submit("createCategory", {})

        assert outcome.kind == OutcomeKind.blocked
        assert outcome.violation is not None and outcome.violation.code == "CATEGORY_REQUIRED"
        assert catalog.requests == []

    @pytest.mark.asyncio
    async def test_malformed_input_is_blocked(self, make_context) -> None:
        outcome = await ActivityWizard(make_context()).submit("createCategory", {"categoryId": "seven"})

        assert outcome.kind == OutcomeKind.blocked
        assert outcome.violation is not None and outcome.violation.code == "INVALID_INPUT"

    @pytest.mark.asyncio
    async def test_committed_values_come_back_on_reentry(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity(categoryId=7)
        wizard = ActivityWizard(make_context(activity_id=activity_id))

        outcome = await wizard.submit("createTitle", {"title": "  City Walking Tour "})
        view = await wizard.hydrate("createTitle")

        assert outcome.kind == OutcomeKind.advanced
        assert outcome.address is not None and "createDescription" in outcome.address
        assert "currentStep=3" in outcome.address
        assert view.values == {"title": "City Walking Tour"}

    @pytest.mark.asyncio
    async def test_save_and_exit_goes_to_dashboard(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity()

        outcome = await ActivityWizard(make_context(activity_id=activity_id)).submit(
            "createRestrictions", {"restrictions": []}, save_and_exit=True
        )

        assert outcome.kind == OutcomeKind.advanced
        assert outcome.address == DASHBOARD_PATH
        assert catalog.activities[activity_id]["restrictions"] == []

    @pytest.mark.asyncio
    async def test_list_steps_pad_to_minimum_and_drop_blanks(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity(recommendations=["Bring water"], notIncludes=["Tips", " "])
        wizard = ActivityWizard(make_context(activity_id=activity_id))

        recommendations = await wizard.hydrate("createRecommendations")
        not_included = await wizard.hydrate("createNotIncluded")

        assert recommendations.values == {"recommendations": ["Bring water", "", ""]}
        assert not_included.values == {"not_inclusions": ["Tips"]}

    @pytest.mark.asyncio
    async def test_includes_commit(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity()

        outcome = await ActivityWizard(make_context(activity_id=activity_id)).submit(
            "createInclude", {"inclusions": ["Guide", "Snacks", "", "Tickets"]}
        )

        assert outcome.kind == OutcomeKind.advanced
        assert catalog.activities[activity_id]["includes"] == ["Guide", "Snacks", "Tickets"]

    @pytest.mark.asyncio
    async def test_description_round_trips_points_of_interest(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity()
        wizard = ActivityWizard(make_context(activity_id=activity_id))
        poi = {
            "name": "Plaza de Armas",
            "latitude": -12.0453,
            "longitude": -77.0311,
            "placeId": 1,
            "googlePlaceId": "ChIJplaza",
            "isMainDestination": True,
        }

        outcome = await wizard.submit(
            "createDescription",
            {"presentation": "Walk the old town", "description": "Three hours on foot.", "pointsOfInterest": [poi]},
        )
        view = await wizard.hydrate("createDescription")

        assert outcome.kind == OutcomeKind.advanced
        assert view.values["main_place_ref"] == "ChIJplaza"
        assert view.values["points_of_interest"][0]["is_main_destination"] is True
        assert view.values["presentation"] == "Walk the old town"


class TestRemoteFailures:
    @pytest.mark.asyncio
    async def test_rejection_keeps_server_message(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity()
        catalog.fail("POST", "/activities/title", 422, {"message": "Title already used"})

        outcome = await ActivityWizard(make_context(activity_id=activity_id)).submit("createTitle", {"title": "Tour"})

        assert outcome.kind == OutcomeKind.failed
        assert outcome.message == "Title already used"

    @pytest.mark.asyncio
    async def test_server_error_without_message_uses_generic_text(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity()
        catalog.fail("POST", "/activities/title", 500)

        outcome = await ActivityWizard(make_context(activity_id=activity_id)).submit("createTitle", {"title": "Tour"})

        assert outcome.kind == OutcomeKind.failed
        assert outcome.message == GENERIC_SAVE_ERROR

    @pytest.mark.asyncio
    async def test_expired_session_offers_reauth(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity()
        catalog.expired = True
        wizard = ActivityWizard(make_context(activity_id=activity_id))

        outcome = await wizard.submit("createTitle", {"title": "Tour"})
        view = await wizard.hydrate("createTitle")

        assert outcome.kind == OutcomeKind.reauth
        assert outcome.address == LOGIN_PATH
        assert view.outcome is not None and view.outcome.kind == OutcomeKind.reauth

    @pytest.mark.asyncio
    async def test_unknown_activity_fails_to_load(self, make_context) -> None:
        view = await ActivityWizard(make_context(activity_id="999")).hydrate("createTitle")

        assert view.outcome is not None
        assert view.outcome.kind == OutcomeKind.failed
        assert view.outcome.message == GENERIC_LOAD_ERROR

    @pytest.mark.asyncio
    async def test_second_commit_on_same_draft_is_refused(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity()
        ctx = make_context(activity_id=activity_id)
        release = asyncio.Event()

        async def slow() -> None:
            await release.wait()

        pending = asyncio.create_task(ctx.runner.run(CommitContext(ctx.draft_key(), "createTitle"), slow))
        await asyncio.sleep(0)

        with pytest.raises(CommitInFlightError):
            await ActivityWizard(ctx).submit("createTitle", {"title": "Tour"})

        release.set()
        await pending

    @pytest.mark.asyncio
    async def test_new_drafts_of_different_merchants_do_not_collide(self, make_context, catalog) -> None:
        first = make_context(session_id="merchant-a")
        second = make_context(session_id="merchant-b")
        release = asyncio.Event()

        async def slow() -> None:
            await release.wait()

        pending = asyncio.create_task(first.runner.run(CommitContext(first.draft_key(), "createCategory"), slow))
        await asyncio.sleep(0)

        outcome = await ActivityWizard(second).submit("createCategory", {"categoryId": 7})

        assert first.draft_key() != second.draft_key()
        assert outcome.kind == OutcomeKind.advanced
        release.set()
        await pending

    @pytest.mark.asyncio
    async def test_new_draft_double_submit_is_refused(self, make_context, catalog) -> None:
        first = make_context(session_id="merchant-a")
        again = make_context(session_id="merchant-a")
        release = asyncio.Event()

        async def slow() -> None:
            await release.wait()

        pending = asyncio.create_task(first.runner.run(CommitContext(first.draft_key(), "createCategory"), slow))
        await asyncio.sleep(0)

        with pytest.raises(CommitInFlightError):
            await ActivityWizard(again).submit("createCategory", {"categoryId": 7})

        release.set()
        await pending


class TestImages:
    @pytest.mark.asyncio
    async def test_new_images_are_uploaded_and_committed(self, make_context, catalog, storage, image_factory) -> None:
        activity_id = catalog.seed_activity()
        wizard = ActivityWizard(make_context(activity_id=activity_id), media=MediaReconciler(storage))

        outcome = await wizard.submit_images([_png(image_factory, f"photo-{i}.png") for i in range(3)])

        assert outcome.kind == OutcomeKind.advanced
        assert outcome.address is not None and "createOptions" in outcome.address
        images = catalog.activities[activity_id]["images"]
        assert len(images) == 3
        assert [i["isCover"] for i in images] == [True, False, False]
        assert len(storage.objects) == 3

    @pytest.mark.asyncio
    async def test_too_few_images_block(self, make_context, catalog, storage, image_factory) -> None:
        activity_id = catalog.seed_activity()
        wizard = ActivityWizard(make_context(activity_id=activity_id), media=MediaReconciler(storage))

        outcome = await wizard.submit_images(
            [_png(image_factory, "wide.png"), _png(image_factory, "narrow.png", width=640)]
        )

        assert outcome.kind == OutcomeKind.blocked
        assert outcome.violation is not None and outcome.violation.code == "IMAGES_COUNT"
        assert outcome.data["rejected"] == {"narrow.png": "TOO_NARROW"}
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_existing_image_stays_cover(self, make_context, catalog, storage, image_factory) -> None:
        activity_id = catalog.seed_activity(
            images=[
                {"id": 11, "imageUrl": "http://cdn.test/old-1.jpg", "isCover": False},
                {"id": 12, "imageUrl": "http://cdn.test/old-2.jpg", "isCover": True},
            ]
        )
        wizard = ActivityWizard(make_context(activity_id=activity_id), media=MediaReconciler(storage))

        view = await wizard.hydrate("createImages")
        outcome = await wizard.submit_images([_png(image_factory, "new.png")])

        assert [i["id"] for i in view.values["images"]] == [12, 11]
        assert outcome.kind == OutcomeKind.advanced
        committed = catalog.body_of("POST", "/activities/images")["images"]
        assert committed[0] == {"url": "http://cdn.test/old-2.jpg", "cover": True}
        assert [e["cover"] for e in committed] == [True, False, False]

    @pytest.mark.asyncio
    async def test_failed_upload_reports_file(self, make_context, catalog, storage, image_factory) -> None:
        activity_id = catalog.seed_activity()
        storage.failing_names.add("b.png")
        wizard = ActivityWizard(make_context(activity_id=activity_id), media=MediaReconciler(storage))

        outcome = await wizard.submit_images([_png(image_factory, n) for n in ("a.png", "b.png", "c.png")])

        assert outcome.kind == OutcomeKind.failed
        assert outcome.data["failed_uploads"] == ["b.png"]
        assert "/activities/images" not in catalog.paths("POST")

    @pytest.mark.asyncio
    async def test_remove_image(self, make_context, catalog, storage) -> None:
        activity_id = catalog.seed_activity(
            images=[{"id": 21, "imageUrl": "http://cdn.test/a.jpg", "isCover": True}]
        )
        wizard = ActivityWizard(make_context(activity_id=activity_id), media=MediaReconciler(storage))

        outcome = await wizard.remove_image(21)
        missing = await wizard.remove_image(99)

        assert outcome.kind == OutcomeKind.advanced
        assert outcome.data == {"remaining": 0}
        assert storage.deleted == ["http://cdn.test/a.jpg"]
        assert catalog.activities[activity_id]["images"] == []
        assert missing.kind == OutcomeKind.failed

    @pytest.mark.asyncio
    async def test_remove_during_another_commit_is_refused(self, make_context, catalog, storage) -> None:
        activity_id = catalog.seed_activity(
            images=[{"id": 21, "imageUrl": "http://cdn.test/a.jpg", "isCover": True}]
        )
        ctx = make_context(activity_id=activity_id)
        release = asyncio.Event()

        async def slow() -> None:
            await release.wait()

        pending = asyncio.create_task(ctx.runner.run(CommitContext(ctx.draft_key(), "createImages"), slow))
        await asyncio.sleep(0)

        with pytest.raises(CommitInFlightError):
            await ActivityWizard(ctx, media=MediaReconciler(storage)).remove_image(21)

        release.set()
        await pending
        assert storage.deleted == []
        assert len(catalog.activities[activity_id]["images"]) == 1


class TestOptionsAndItinerary:
    @pytest.mark.asyncio
    async def test_create_option_enters_setup(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity()

        outcome = await ActivityWizard(make_context(activity_id=activity_id, step_index=9)).create_option()

        assert outcome.kind == OutcomeKind.advanced
        assert outcome.created_id in catalog.options
        assert outcome.address == (
            f"/extranet/activity/createOptionSetup?activityId={activity_id}&lang=es&currency=USD"
            f"&currentStep=9&optionId={outcome.created_id}"
        )

    @pytest.mark.asyncio
    async def test_continue_needs_an_active_option(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity()
        catalog.seed_option(activity_id, isActive=False)

        outcome = await ActivityWizard(make_context(activity_id=activity_id)).continue_options()

        assert outcome.kind == OutcomeKind.blocked
        assert outcome.violation is not None and outcome.violation.code == "ACTIVE_OPTION_REQUIRED"

    @pytest.mark.asyncio
    async def test_continue_attaches_active_options(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity()
        active = catalog.seed_option(activity_id, title="Standard")
        catalog.seed_option(activity_id, isActive=False)
        wizard = ActivityWizard(make_context(activity_id=activity_id))

        view = await wizard.hydrate("createOptions")
        outcome = await wizard.continue_options()

        assert len(view.values["booking_options"]) == 2
        assert outcome.kind == OutcomeKind.advanced
        assert outcome.address is not None and "createItinerary" in outcome.address
        assert catalog.attached == [(activity_id, active)]

    @pytest.mark.asyncio
    async def test_skip_itinerary_shows_server_message_and_lists_activities(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity()

        outcome = await ActivityWizard(make_context(activity_id=activity_id)).skip_itinerary()

        assert outcome.kind == OutcomeKind.advanced
        assert outcome.message == "Actividad creada sin itinerario"
        assert outcome.address == "/extranet/list-activities?lang=es&currency=USD"

    @pytest.mark.asyncio
    async def test_skip_itinerary_rejection_still_lists_activities(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity()
        catalog.fail("POST", "/activities/skip-itinerary", 500)

        outcome = await ActivityWizard(make_context(activity_id=activity_id)).skip_itinerary()

        assert outcome.kind == OutcomeKind.failed
        assert outcome.message == SKIP_FAILURE_MESSAGE
        assert outcome.address == "/extranet/list-activities?lang=es&currency=USD"

    @pytest.mark.asyncio
    async def test_concurrent_skip_is_refused(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity()
        ctx = make_context(activity_id=activity_id)
        release = asyncio.Event()

        async def slow() -> None:
            await release.wait()

        pending = asyncio.create_task(ctx.runner.run(CommitContext(ctx.draft_key(), "skipItinerary"), slow))
        await asyncio.sleep(0)

        with pytest.raises(CommitInFlightError):
            await ActivityWizard(ctx).skip_itinerary()

        release.set()
        await pending
        assert "/activities/skip-itinerary" not in catalog.paths("POST")

    @pytest.mark.asyncio
    async def test_cancelled_skip_goes_to_review(self, make_context, catalog) -> None:
        activity_id = catalog.seed_activity()
        ctx = make_context(activity_id=activity_id)
        ctx.cancel_token.cancel()

        outcome = await ActivityWizard(ctx).skip_itinerary()

        assert outcome.kind == OutcomeKind.redirected
        assert outcome.address is not None and outcome.address.startswith("/extranet/activity/review?")
        assert catalog.paths("POST") == []

    @pytest.mark.asyncio
    async def test_continue_itinerary_goes_to_review(self, make_context) -> None:
        outcome = ActivityWizard(make_context(activity_id="5")).continue_itinerary()

        assert outcome.kind == OutcomeKind.advanced
        assert outcome.address is not None and outcome.address.startswith("/extranet/activity/review?")

    def test_back(self, make_context) -> None:
        wizard = ActivityWizard(make_context(activity_id="5"))

        assert wizard.back("createCategory") is None
        assert wizard.back("createTitle") == "/extranet/activity/createCategory?activityId=5&lang=es&currency=USD&currentStep=1"
