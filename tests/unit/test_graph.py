"""Tests for the activity and booking-option step graphs."""

import pytest

from backend.extranet.navigation.addressing import LOGIN_PATH, AddressParams, parse_address, parse_path
from backend.extranet.orchestration.graph import (
    ACTIVITY_GRAPH,
    OPTION_GRAPH,
    REVIEW_STEP,
    ActivityStep,
    OptionStep,
    Requirement,
    graph_for,
    precondition_redirect,
    save_and_exit_address,
    step_address,
)


class TestActivityGraph:
    """Order, indices and transitions of the activity wizard."""

    def test_ten_steps_in_order_with_indices(self) -> None:
        assert ACTIVITY_GRAPH.keys() == [
            "createCategory",
            "createTitle",
            "createDescription",
            "createRecommendations",
            "createRestrictions",
            "createInclude",
            "createNotIncluded",
            "createImages",
            "createOptions",
            "createItinerary",
        ]
        assert [ACTIVITY_GRAPH.get(k).index for k in ACTIVITY_GRAPH.keys()] == list(range(1, 11))

    def test_only_category_is_enterable_without_activity(self) -> None:
        for key in ACTIVITY_GRAPH.keys():
            definition = ACTIVITY_GRAPH.get(key)
            if key == ActivityStep.category.value:
                assert definition.requires == frozenset()
            else:
                assert Requirement.activity_id in definition.requires

    def test_itinerary_leads_to_review_and_can_be_skipped(self) -> None:
        itinerary = ACTIVITY_GRAPH.get(ActivityStep.itinerary.value)

        assert itinerary.successor == REVIEW_STEP
        assert itinerary.skip == REVIEW_STEP
        assert itinerary.commit is None

    def test_successor_and_predecessor(self) -> None:
        assert ACTIVITY_GRAPH.successor("createTitle") == "createDescription"
        assert ACTIVITY_GRAPH.predecessor("createTitle") == "createCategory"
        assert ACTIVITY_GRAPH.predecessor("createCategory") is None

    def test_unknown_step_raises(self) -> None:
        with pytest.raises(KeyError):
            ACTIVITY_GRAPH.get("createNothing")
        with pytest.raises(KeyError):
            graph_for("createNothing")


class TestOptionGraph:
    """Booking-option sub-wizard."""

    def test_steps_return_to_options(self) -> None:
        assert OPTION_GRAPH.keys() == [
            "createOptionSetup",
            "createOptionMeetingPickup",
            "availabilityPricing",
            "cutOff",
        ]
        assert OPTION_GRAPH.successor(OptionStep.cut_off.value) == ActivityStep.options.value
        assert OPTION_GRAPH.predecessor(OptionStep.setup.value) == ActivityStep.options.value

    def test_every_step_needs_activity_and_option(self) -> None:
        for key in OPTION_GRAPH.keys():
            assert OPTION_GRAPH.get(key).requires == {Requirement.activity_id, Requirement.option_id}

    def test_graph_for(self) -> None:
        assert graph_for("cutOff") is OPTION_GRAPH
        assert graph_for("createImages") is ACTIVITY_GRAPH


class TestStepAddress:
    """Addresses stamped with step indices."""

    def test_activity_step_stamps_its_index_and_drops_option(self) -> None:
        address = step_address("createImages", AddressParams(activity_id="5", lang="es", option_id="9"))

        assert parse_path(address) == "/extranet/activity/createImages"
        assert parse_address(address) == AddressParams(activity_id="5", lang="es", step_index=8)

    def test_option_step_keeps_options_index(self) -> None:
        address = step_address("cutOff", AddressParams(activity_id="5", option_id="9", step_index=3))

        assert parse_address(address).step_index == 9
        assert parse_address(address).option_id == "9"


class TestPreconditions:
    """Entering a step without its requirements redirects silently."""

    def test_no_session_goes_to_login(self) -> None:
        assert precondition_redirect("createTitle", AddressParams(activity_id="1"), has_session=False) == LOGIN_PATH

    def test_missing_activity_goes_to_category(self) -> None:
        target = precondition_redirect("createDescription", AddressParams(lang="es", currency="USD"), has_session=True)

        assert target is not None
        assert parse_path(target) == "/extranet/activity/createCategory"
        assert parse_address(target) == AddressParams(lang="es", currency="USD", step_index=1)

    def test_missing_option_goes_to_options(self) -> None:
        target = precondition_redirect("createOptionSetup", AddressParams(activity_id="1"), has_session=True)

        assert target is not None
        assert parse_path(target) == "/extranet/activity/createOptions"
        assert parse_address(target).activity_id == "1"

    def test_category_needs_nothing(self) -> None:
        assert precondition_redirect("createCategory", AddressParams(), has_session=True) is None

    def test_satisfied_requirements(self) -> None:
        params = AddressParams(activity_id="1", option_id="2")

        assert precondition_redirect("cutOff", params, has_session=True) is None
        assert precondition_redirect("createItinerary", params, has_session=True) is None


def test_save_and_exit_goes_to_dashboard() -> None:
    assert save_and_exit_address() == "/extranet/dashboard"
