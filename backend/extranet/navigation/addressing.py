"""Shareable wizard addresses: build and parse the query-carried step context."""

from dataclasses import dataclass, replace

import httpx

ACTIVITY_BASE_PATH = "/extranet/activity"
DASHBOARD_PATH = "/extranet/dashboard"
ACTIVITY_LIST_PATH = "/extranet/list-activities"
LOGIN_PATH = "/extranet/login"

# Query keys, in the order they are written
_KEYS: tuple[tuple[str, str], ...] = (
    ("activity_id", "activityId"),
    ("lang", "lang"),
    ("currency", "currency"),
    ("step_index", "currentStep"),
    ("option_id", "optionId"),
    ("detail_step", "step"),
)
_INT_FIELDS = frozenset({"step_index", "detail_step"})


@dataclass(frozen=True)
class AddressParams:
    """Identifying parameters carried by every wizard address."""

    activity_id: str | None = None
    lang: str | None = None
    currency: str | None = None
    step_index: int | None = None
    option_id: str | None = None
    detail_step: int | None = None

    def with_(self, **changes: object) -> "AddressParams":
        """Return a copy with some parameters replaced."""
        return replace(self, **changes)  # type: ignore[arg-type]


def step_path(step_key: str) -> str:
    """Path of a wizard step under the activity base path."""
    return f"{ACTIVITY_BASE_PATH}/{step_key}"


def build_address(path: str, params: AddressParams) -> str:
    """Encode step parameters into a shareable address.

    Args:
        path: Absolute path of the target step
        params: Parameters to carry; None values are omitted

    Returns:
        Address string (path plus query)
    """
    query: list[tuple[str, str]] = []
    for attr, key in _KEYS:
        value = getattr(params, attr)
        if value is None:
            continue
        query.append((key, str(value)))
    if not query:
        return path
    return f"{path}?{httpx.QueryParams(query)}"


def parse_address(location: str) -> AddressParams:
    """Decode step parameters from an address.

    Unknown keys are ignored. Step indices that are not integers are
    treated as absent.

    Args:
        location: Address string, absolute URL or path with query

    Returns:
        AddressParams with every carried parameter
    """
    params = httpx.URL(location).params
    values: dict[str, object] = {}
    for attr, key in _KEYS:
        raw = params.get(key)
        if raw is None or raw == "":
            continue
        if attr in _INT_FIELDS:
            try:
                values[attr] = int(raw)
            except ValueError:
                continue
        else:
            values[attr] = raw
    return AddressParams(**values)  # type: ignore[arg-type]


def parse_path(location: str) -> str:
    """Path component of an address."""
    return httpx.URL(location).path


def activity_list_address(lang: str | None, currency: str | None) -> str:
    """Address of the merchant's activity list."""
    return build_address(ACTIVITY_LIST_PATH, AddressParams(lang=lang, currency=currency))
