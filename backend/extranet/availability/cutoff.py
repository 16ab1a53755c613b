"""Cut-off reconciliation between the global default and per-slot overrides."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from backend.extranet.models.booking_option import CutOffSlot

CUTOFF_CHOICES: tuple[int, ...] = tuple(range(0, 91, 5)) + tuple(range(120, 601, 60))
DEFAULT_CUTOFF_MINUTES = 30


class CutOffValueError(ValueError):
    """Cut-off minutes outside the offered choices."""

    pass


def check_minutes(minutes: int) -> int:
    """Validate a cut-off value against the fixed choices (0 to 600 minutes).

    Raises:
        CutOffValueError: If the value is not one of the choices
    """
    if minutes not in CUTOFF_CHOICES:
        raise CutOffValueError(f"{minutes} is not an offered cut-off value")
    return minutes


def slot_ids(time_slots: Sequence[str]) -> list[str]:
    """Stable ids for listed time slots: slot_1, slot_2, ..."""
    return [f"slot_{i + 1}" for i in range(len(time_slots))]


def effective_cut_off(
    slot: str,
    global_default: int,
    overrides: Mapping[str, int],
    different_times_enabled: bool,
) -> int:
    """Cut-off that applies to one slot.

    With per-slot times disabled every slot uses the default and stored
    overrides are ignored. With them enabled a slot uses its override, or the
    default when it has none.
    """
    check_minutes(global_default)
    if not different_times_enabled:
        return global_default
    value = overrides.get(slot, global_default)
    return check_minutes(value)


@dataclass
class CutOffForm:
    """Editable cut-off state for one booking option.

    `time_slots` are the departure labels as listed by the catalog service;
    overrides are keyed by slot label.
    """

    time_slots: list[str]
    default_minutes: int = DEFAULT_CUTOFF_MINUTES
    different_times: bool = False
    last_minute_bookings: bool = False
    overrides: dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        check_minutes(self.default_minutes)
        for value in self.overrides.values():
            check_minutes(value)

    def set_default(self, minutes: int) -> None:
        """Change the global default. Overrides already seeded keep their value."""
        self.default_minutes = check_minutes(minutes)

    def enable_per_slot(self) -> None:
        """Turn per-slot cut-offs on, seeding every slot from the current default."""
        if self.different_times:
            return
        self.different_times = True
        self.overrides = {slot: self.default_minutes for slot in self.time_slots}

    def disable_per_slot(self) -> None:
        """Turn per-slot cut-offs off; every override falls back to the default."""
        self.different_times = False
        self.overrides = {slot: self.default_minutes for slot in self.time_slots}

    def set_override(self, slot: str, minutes: int) -> None:
        """Set one slot's cut-off.

        Raises:
            KeyError: If the slot is not listed for the option
            CutOffValueError: If the value is not offered
        """
        if slot not in self.time_slots:
            raise KeyError(slot)
        self.overrides[slot] = check_minutes(minutes)

    def apply_to_all(self, source_slot: str) -> None:
        """Copy one slot's cut-off to every slot."""
        value = self.effective(source_slot)
        self.overrides = {slot: value for slot in self.time_slots}

    def effective(self, slot: str) -> int:
        """Effective cut-off for one slot."""
        return effective_cut_off(slot, self.default_minutes, self.overrides, self.different_times)

    def effective_all(self) -> dict[str, int]:
        """Effective cut-off for every slot, in listing order."""
        return {slot: self.effective(slot) for slot in self.time_slots}

    def to_request(self) -> list[CutOffSlot]:
        """Per-slot entries to send; empty when per-slot times are disabled."""
        if not self.different_times:
            return []
        return [CutOffSlot(time_slot=slot, cut_off_minutes=self.effective(slot)) for slot in self.time_slots]

    def snapshot(self) -> dict[str, object]:
        """Serializable copy for the per-option step cache."""
        return {
            "default_minutes": self.default_minutes,
            "different_times": self.different_times,
            "last_minute_bookings": self.last_minute_bookings,
            "overrides": dict(self.overrides),
        }
