"""Display text for resolved locations and its inverse."""

import re
from dataclasses import dataclass

_COORDS = re.compile(r"\(([-\d.]+),\s*([-\d.]+)\)\s*$")


@dataclass(frozen=True)
class ParsedLocation:
    """Name, address and coordinates recovered from a location text."""

    name: str
    address: str
    latitude: float
    longitude: float


def format_location_text(name: str, address: str, lat: float, lng: float) -> str:
    """Location text as shown for meeting points and pickup addresses.

    Example: "Plaza de Armas - Jr. de la Union 300 (-12.0464, -77.0428)"
    """
    return f"{name} - {address} ({lat:.4f}, {lng:.4f})"


def parse_location_text(text: str, fallback_name: str = "") -> ParsedLocation:
    """Recover the parts of a location text.

    Missing coordinates parse as 0.0; text without a " - " separator is
    taken as the address, named `fallback_name`.
    """
    text = text.strip()
    match = _COORDS.search(text)
    lat = float(match.group(1)) if match else 0.0
    lng = float(match.group(2)) if match else 0.0
    body = text[: match.start()].rstrip() if match else text

    if " - " in body:
        name, address = body.split(" - ", 1)
    else:
        name, address = fallback_name, body
    return ParsedLocation(name=name.strip(), address=address.strip(), latitude=lat, longitude=lng)
