"""Tests for cut-off reconciliation."""

import pytest

from backend.extranet.availability.cutoff import (
    CUTOFF_CHOICES,
    CutOffForm,
    CutOffValueError,
    check_minutes,
    effective_cut_off,
    slot_ids,
)


SLOTS = ["09:00", "14:00", "18:00"]


def test_choices_span_zero_to_ten_hours() -> None:
    assert CUTOFF_CHOICES[0] == 0
    assert CUTOFF_CHOICES[-1] == 600
    assert 90 in CUTOFF_CHOICES
    assert 100 not in CUTOFF_CHOICES


def test_check_minutes_rejects_unoffered_value() -> None:
    with pytest.raises(CutOffValueError):
        check_minutes(7)


def test_slot_ids() -> None:
    assert slot_ids(SLOTS) == ["slot_1", "slot_2", "slot_3"]


def test_disabled_ignores_stored_overrides() -> None:
    overrides = {"09:00": 60, "14:00": 120}

    assert all(effective_cut_off(s, 30, overrides, False) == 30 for s in SLOTS)
    assert effective_cut_off("09:00", 30, overrides, True) == 60
    assert effective_cut_off("18:00", 30, overrides, True) == 30


class TestCutOffForm:
    def test_enable_seeds_from_default_once(self) -> None:
        form = CutOffForm(time_slots=list(SLOTS), default_minutes=45)

        form.enable_per_slot()
        form.set_override("14:00", 120)
        form.enable_per_slot()

        assert form.overrides == {"09:00": 45, "14:00": 120, "18:00": 45}

    def test_default_change_keeps_seeded_overrides(self) -> None:
        form = CutOffForm(time_slots=list(SLOTS))
        form.enable_per_slot()

        form.set_default(60)

        assert form.effective_all() == {"09:00": 30, "14:00": 30, "18:00": 30}

    def test_disable_discards_overrides(self) -> None:
        form = CutOffForm(time_slots=list(SLOTS))
        form.enable_per_slot()
        form.set_override("09:00", 0)

        form.disable_per_slot()

        assert form.effective_all() == {"09:00": 30, "14:00": 30, "18:00": 30}
        assert form.to_request() == []

    def test_apply_to_all(self) -> None:
        form = CutOffForm(time_slots=list(SLOTS))
        form.enable_per_slot()
        form.set_override("18:00", 180)

        form.apply_to_all("18:00")

        assert set(form.effective_all().values()) == {180}

    def test_unknown_slot_and_bad_value(self) -> None:
        form = CutOffForm(time_slots=list(SLOTS))

        with pytest.raises(KeyError):
            form.set_override("23:00", 30)
        with pytest.raises(CutOffValueError):
            form.set_override("09:00", 33)

    def test_request_lists_every_slot_when_enabled(self) -> None:
        form = CutOffForm(time_slots=["09:00", "14:00"], default_minutes=15)
        form.enable_per_slot()
        form.set_override("14:00", 240)

        entries = [e.to_wire() for e in form.to_request()]

        assert entries == [
            {"timeSlot": "09:00", "cutOffMinutes": 15},
            {"timeSlot": "14:00", "cutOffMinutes": 240},
        ]

    def test_invalid_construction(self) -> None:
        with pytest.raises(CutOffValueError):
            CutOffForm(time_slots=list(SLOTS), default_minutes=31)

    def test_snapshot(self) -> None:
        form = CutOffForm(time_slots=["09:00"], last_minute_bookings=True)

        assert form.snapshot() == {
            "default_minutes": 30,
            "different_times": False,
            "last_minute_bookings": True,
            "overrides": {},
        }
