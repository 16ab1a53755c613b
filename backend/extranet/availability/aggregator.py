"""Schedule aggregation: weekly grid, merged season range and price range.

Pure functions over a booking option's schedules and tiers. Dates are shown
in a fixed regional convention (es-PE short form, America/Lima), whatever
the viewer's locale.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from backend.extranet.models.booking_option import PriceTier, Schedule
from backend.extranet.models.common import PricingMode

DISPLAY_TIMEZONE = "America/Lima"
WEEKDAYS = ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo")
PLACEHOLDER_SLOT = "08:00"
PLACEHOLDER_START_LABEL = "27 jul 2025"
OPEN_ENDED_LABEL = "Sin fecha de fin"
NO_STARTS_LABEL = "Sin fechas de inicio configuradas"
NO_SCHEDULES_LABEL = "Sin fechas configuradas"
UNDEFINED_PRICE = "undefined"
UNLIMITED_LABEL = "Ilimitado"

_MONTHS_ES_PE = ("ene", "feb", "mar", "abr", "may", "jun", "jul", "ago", "set", "oct", "nov", "dic")


@dataclass(frozen=True)
class DayColumn:
    """One weekday of the weekly grid."""

    day_of_week: int
    name: str
    schedules: list[Schedule]
    labels: list[str]

    @property
    def is_placeholder(self) -> bool:
        return not self.schedules


@dataclass(frozen=True)
class MergedDateRange:
    """Season range across schedules; `end is None` means open-ended."""

    start: datetime | None
    end: datetime | None
    label: str

    @property
    def open_ended(self) -> bool:
        return self.end is None


def parse_season_date(value: str) -> datetime:
    """Parse a stored season date as an instant.

    Date-only values (YYYY-MM-DD) are taken as UTC midnight; timestamps keep
    their offset and default to UTC when naive.
    """
    if len(value) == 10:
        d = date.fromisoformat(value)
        return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_display_date(instant: datetime, tz_name: str = DISPLAY_TIMEZONE) -> str:
    """Format an instant as es-PE short date in the display timezone, e.g. "27 jul 2025"."""
    local = instant.astimezone(ZoneInfo(tz_name))
    return f"{local.day:02d} {_MONTHS_ES_PE[local.month - 1]} {local.year}"


def slot_label(schedule: Schedule) -> str:
    """Label of a slot: start time, plus end time when present."""
    start = schedule.start_time or PLACEHOLDER_SLOT
    if schedule.end_time:
        return f"{start} - {schedule.end_time}"
    return start


def weekly_grid(schedules: Sequence[Schedule]) -> list[DayColumn]:
    """Group active schedules by weekday, keeping input order within a day.

    Args:
        schedules: All schedules of the option

    Returns:
        Seven columns, Monday first; days without active schedules carry the
        placeholder slot label
    """
    by_day: dict[int, list[Schedule]] = {d: [] for d in range(7)}
    for schedule in schedules:
        if schedule.is_active:
            by_day[schedule.day_of_week].append(schedule)

    columns = []
    for day, name in enumerate(WEEKDAYS):
        day_schedules = by_day[day]
        labels = [slot_label(s) for s in day_schedules] or [PLACEHOLDER_SLOT]
        columns.append(DayColumn(day_of_week=day, name=name, schedules=day_schedules, labels=labels))
    return columns


def merge_date_range(
    schedules: Sequence[Schedule], tz_name: str = DISPLAY_TIMEZONE
) -> MergedDateRange:
    """Merge season ranges across schedules.

    No schedules: nothing configured. One schedule: its own start/end, with
    placeholder start and open end when absent. Several: earliest present
    start to latest end; the merged range is open-ended as soon as any
    schedule has no end.
    """
    if not schedules:
        return MergedDateRange(start=None, end=None, label=NO_SCHEDULES_LABEL)
    if len(schedules) == 1:
        only = schedules[0]
        start = parse_season_date(only.season_start_date) if only.season_start_date else None
        end = parse_season_date(only.season_end_date) if only.season_end_date else None
        start_label = format_display_date(start, tz_name) if start else PLACEHOLDER_START_LABEL
        end_label = format_display_date(end, tz_name) if end else OPEN_ENDED_LABEL
        return MergedDateRange(start=start, end=end, label=f"{start_label} - {end_label}")

    starts = [parse_season_date(s.season_start_date) for s in schedules if s.season_start_date]
    ends = [parse_season_date(s.season_end_date) for s in schedules if s.season_end_date]
    open_ended = len(ends) < len(schedules)
    latest = None if open_ended else max(ends)
    if not starts:
        return MergedDateRange(start=None, end=latest, label=NO_STARTS_LABEL)

    earliest = min(starts)
    end_label = format_display_date(latest, tz_name) if latest else OPEN_ENDED_LABEL
    return MergedDateRange(
        start=earliest,
        end=latest,
        label=f"{format_display_date(earliest, tz_name)} - {end_label}",
    )


def _tier_amount(tier: PriceTier, pricing_mode: PricingMode) -> float:
    if pricing_mode == PricingMode.per_person:
        return tier.price_per_participant
    return tier.total_price


def merge_price_range(tiers: Sequence[PriceTier], pricing_mode: PricingMode) -> str:
    """Render the price range of an option.

    Per-person mode uses the price per participant, per-group mode the total
    price. Each bound carries the currency of the first tier holding that
    amount; tiers are not assumed to share a currency.
    """
    if not tiers:
        return UNDEFINED_PRICE

    if len(tiers) == 1:
        only = tiers[0]
        return f"{_tier_amount(only, pricing_mode):.2f} {only.currency.upper()}"

    amounts = [_tier_amount(t, pricing_mode) for t in tiers]
    low, high = min(amounts), max(amounts)
    low_currency = next(t.currency for t in tiers if _tier_amount(t, pricing_mode) == low)
    high_currency = next(t.currency for t in tiers if _tier_amount(t, pricing_mode) == high)
    return f"{low:.2f} {low_currency.upper()} - {high:.2f} {high_currency.upper()}"


def collect_tiers(schedules: Sequence[Schedule], option_tiers: Sequence[PriceTier] = ()) -> list[PriceTier]:
    """All tiers of an option: option-level tiers first, then per-schedule tiers."""
    tiers = list(option_tiers)
    for schedule in schedules:
        tiers.extend(schedule.price_tiers)
    return tiers


def participants_label(group_min: int | None, group_max: int | None) -> str:
    """Participant range label, e.g. "1 - Ilimitado"."""
    return f"{group_min or 1} - {group_max or UNLIMITED_LABEL}"


@dataclass(frozen=True)
class ScheduleSummary:
    """Everything the availability & pricing overview shows."""

    weekly: list[DayColumn]
    date_range: MergedDateRange
    price_range: str
    participants: str


def summarize(
    schedules: Sequence[Schedule],
    pricing_mode: PricingMode,
    option_tiers: Sequence[PriceTier] = (),
    group_min: int | None = None,
    group_max: int | None = None,
    tz_name: str = DISPLAY_TIMEZONE,
) -> ScheduleSummary:
    """Aggregate an option's schedules for display."""
    return ScheduleSummary(
        weekly=weekly_grid(schedules),
        date_range=merge_date_range(schedules, tz_name),
        price_range=merge_price_range(collect_tiers(schedules, option_tiers), pricing_mode),
        participants=participants_label(group_min, group_max),
    )
