"""Step graphs for the activity wizard and the booking-option sub-wizard."""

from dataclasses import dataclass, field
from enum import Enum

from backend.extranet.navigation.addressing import (
    DASHBOARD_PATH,
    LOGIN_PATH,
    AddressParams,
    build_address,
    step_path,
)


class Requirement(str, Enum):
    """Upstream identifier a step needs before it can be entered."""

    activity_id = "activity_id"
    option_id = "option_id"


class ActivityStep(str, Enum):
    """Activity wizard steps (value is the address path segment)."""

    category = "createCategory"
    title = "createTitle"
    description = "createDescription"
    recommendations = "createRecommendations"
    restrictions = "createRestrictions"
    includes = "createInclude"
    not_includes = "createNotIncluded"
    images = "createImages"
    options = "createOptions"
    itinerary = "createItinerary"


class OptionStep(str, Enum):
    """Booking-option sub-wizard steps."""

    setup = "createOptionSetup"
    meeting_pickup = "createOptionMeetingPickup"
    availability_pricing = "availabilityPricing"
    cut_off = "cutOff"


REVIEW_STEP = "review"
SCHEDULE_DETAIL_STEP = "availabilityPricing/create"


@dataclass(frozen=True)
class StepDefinition:
    """Declaration of one step: entry requirements, commit and successor."""

    key: str
    index: int | None
    requires: frozenset[Requirement]
    commit: str | None
    successor: str | None
    predecessor: str | None = None
    skip: str | None = None


@dataclass
class StepGraph:
    """Ordered set of steps with a fixed entry step."""

    name: str
    steps: list[StepDefinition]
    entry: str
    _by_key: dict[str, StepDefinition] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._by_key = {s.key: s for s in self.steps}

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def get(self, key: str) -> StepDefinition:
        """Look up a step by key.

        Raises:
            KeyError: If the step is not part of this graph
        """
        return self._by_key[key]

    def keys(self) -> list[str]:
        """Step keys in order."""
        return [s.key for s in self.steps]

    def successor(self, key: str) -> str | None:
        """Step to go to after a successful commit of `key`."""
        return self.get(key).successor

    def predecessor(self, key: str) -> str | None:
        """Step reached by the back action from `key`."""
        return self.get(key).predecessor


def _activity_graph() -> StepGraph:
    order = list(ActivityStep)
    commits = {
        ActivityStep.category: "create_category",
        ActivityStep.title: "save_title",
        ActivityStep.description: "save_description",
        ActivityStep.recommendations: "save_recommendations",
        ActivityStep.restrictions: "save_restrictions",
        ActivityStep.includes: "save_includes",
        ActivityStep.not_includes: "save_not_includes",
        ActivityStep.images: "save_images",
        ActivityStep.options: "add_booking_option",
        ActivityStep.itinerary: None,
    }
    steps: list[StepDefinition] = []
    for i, step in enumerate(order):
        requires: frozenset[Requirement] = (
            frozenset() if step is ActivityStep.category else frozenset({Requirement.activity_id})
        )
        successor = order[i + 1].value if i + 1 < len(order) else REVIEW_STEP
        predecessor = order[i - 1].value if i > 0 else None
        steps.append(
            StepDefinition(
                key=step.value,
                index=i + 1,
                requires=requires,
                commit=commits[step],
                successor=successor,
                predecessor=predecessor,
                skip=REVIEW_STEP if step is ActivityStep.itinerary else None,
            )
        )
    return StepGraph(name="activity", steps=steps, entry=ActivityStep.category.value)


def _option_graph() -> StepGraph:
    both = frozenset({Requirement.activity_id, Requirement.option_id})
    steps = [
        StepDefinition(
            key=OptionStep.setup.value,
            index=None,
            requires=both,
            commit="save_setup",
            successor=OptionStep.meeting_pickup.value,
            predecessor=ActivityStep.options.value,
        ),
        StepDefinition(
            key=OptionStep.meeting_pickup.value,
            index=None,
            requires=both,
            commit="save_meeting_pickup",
            successor=OptionStep.availability_pricing.value,
            predecessor=OptionStep.setup.value,
        ),
        StepDefinition(
            key=OptionStep.availability_pricing.value,
            index=None,
            requires=both,
            commit="save_availability_pricing",
            successor=OptionStep.cut_off.value,
            predecessor=OptionStep.meeting_pickup.value,
        ),
        StepDefinition(
            key=OptionStep.cut_off.value,
            index=None,
            requires=both,
            commit="save_cut_off",
            successor=ActivityStep.options.value,
            predecessor=OptionStep.availability_pricing.value,
        ),
    ]
    return StepGraph(name="booking_option", steps=steps, entry=OptionStep.setup.value)


ACTIVITY_GRAPH = _activity_graph()
OPTION_GRAPH = _option_graph()
OPTIONS_STEP_INDEX = ACTIVITY_GRAPH.get(ActivityStep.options.value).index


def graph_for(step_key: str) -> StepGraph:
    """Graph owning a step key.

    Raises:
        KeyError: If no graph declares the step
    """
    if step_key in ACTIVITY_GRAPH:
        return ACTIVITY_GRAPH
    if step_key in OPTION_GRAPH:
        return OPTION_GRAPH
    raise KeyError(step_key)


def step_address(step_key: str, params: AddressParams) -> str:
    """Address of a step, stamping the activity step index where it has one.

    Booking-option steps keep the owning "options" step index.
    """
    if step_key in ACTIVITY_GRAPH:
        index = ACTIVITY_GRAPH.get(step_key).index
        params = params.with_(step_index=index, option_id=None, detail_step=None)
    elif step_key in OPTION_GRAPH:
        params = params.with_(step_index=OPTIONS_STEP_INDEX, detail_step=None)
    return build_address(step_path(step_key), params)


def precondition_redirect(
    step_key: str, params: AddressParams, *, has_session: bool
) -> str | None:
    """Check the entry requirements of a step.

    Args:
        step_key: Step being entered
        params: Parameters parsed from the current address
        has_session: Whether the merchant has a session

    Returns:
        Address to redirect to, or None if the step may be entered
    """
    if not has_session:
        return LOGIN_PATH

    definition = graph_for(step_key).get(step_key)
    if Requirement.activity_id in definition.requires and not params.activity_id:
        return step_address(ACTIVITY_GRAPH.entry, AddressParams(lang=params.lang, currency=params.currency))
    if Requirement.option_id in definition.requires and not params.option_id:
        return step_address(ActivityStep.options.value, params)
    return None


def save_and_exit_address() -> str:
    """Where "save and exit" lands after a successful commit."""
    return DASHBOARD_PATH
