"""Price tier helpers for the schedule detail flow."""

import re
from collections.abc import Sequence
from dataclasses import dataclass

from backend.extranet.models.booking_option import PriceTier, PriceTierInput

_TRAILING_CURRENCY = re.compile(r"\s*[A-Za-z]{3}\s*$")


@dataclass(frozen=True)
class AgeGroup:
    """Age band used by age-based pricing."""

    name: str
    min_age: int
    max_age: int


DEFAULT_AGE_GROUPS: tuple[AgeGroup, ...] = (
    AgeGroup("Infantes", 0, 3),
    AgeGroup("Niños", 4, 12),
    AgeGroup("Adultos", 13, 64),
    AgeGroup("Adulto mayor", 65, 99),
)


def parse_price(raw: str) -> float:
    """Parse a typed price, dropping a trailing currency code ("40 USD" -> 40.0).

    Unparseable input counts as 0.
    """
    cleaned = _TRAILING_CURRENCY.sub("", raw or "").strip().replace(",", ".")
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def price_per_participant(client_pays: float, commission_percent: float) -> float:
    """What the merchant receives per participant after commission."""
    return round(client_pays - client_pays * commission_percent / 100, 2)


def connect_tier_ranges(
    tiers: Sequence[PriceTierInput], group_min: int, group_max: int | None
) -> list[PriceTierInput]:
    """Make tier participant ranges contiguous.

    The first tier starts at the group minimum, every following tier starts
    right after the previous tier's maximum, and the last tier is open when
    the group has no maximum.
    """
    connected: list[PriceTierInput] = []
    next_min = max(group_min, 1)
    for i, tier in enumerate(tiers):
        is_last = i == len(tiers) - 1
        max_participants = tier.max_participants
        if is_last and group_max is None:
            max_participants = None
        elif max_participants is not None and max_participants < next_min:
            max_participants = next_min
        connected.append(
            tier.model_copy(update={"min_participants": next_min, "max_participants": max_participants})
        )
        if max_participants is None:
            break
        next_min = max_participants + 1
    return connected


def build_price_tiers(
    tiers: Sequence[PriceTierInput],
    *,
    currency: str,
    commission_percent: float,
    group_min: int,
    group_max: int | None,
) -> list[PriceTier]:
    """Turn typed tiers into the tiers committed to the catalog service."""
    result = []
    for tier in connect_tier_ranges(tiers, group_min, group_max):
        client_pays = parse_price(tier.client_pays)
        result.append(
            PriceTier(
                min_participants=tier.min_participants,
                max_participants=tier.max_participants,
                total_price=client_pays,
                commission_percent=commission_percent,
                price_per_participant=price_per_participant(client_pays, commission_percent),
                currency=(currency or "USD").upper(),
            )
        )
    return result
