"""Trip id resolution and line derivation for vehicle positions."""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

from trenes_api.services.feeds.models import UNKNOWN_LINE

SYNTHETIC_TRIP_PREFIX = "SINID"

# Recognized route-code prefixes: Cercanías (commuter) and Rodalies/regional.
LINE_PREFIXES: Dict[str, str] = {
    "C": "commuter",
    "R": "regional",
}

_PREFIX_ALT = "|".join(re.escape(prefix) for prefix in LINE_PREFIXES)
_CODE = r"\d{1,2}[A-Za-z]?"

# Renfe trip ids end with the line code, e.g. "3061D10019C5".
_SUFFIX_RE = re.compile(rf"(?P<prefix>{_PREFIX_ALT})(?P<code>{_CODE})$")
# Ids of the form "C1_001" carry the line as their first segment.
_LEADING_RE = re.compile(rf"^(?P<prefix>{_PREFIX_ALT})(?P<code>{_CODE})_")


def get_field(obj: Any, snake: str, camel: str) -> Any:
    """Read a field published under either its snake_case or camelCase name."""
    if not isinstance(obj, dict):
        return None
    value = obj.get(snake)
    if value is None:
        value = obj.get(camel)
    return value


def to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def vehicle_position(vehicle: Dict[str, Any]) -> tuple[Optional[float], Optional[float]]:
    """Return ``(lat, lon)`` of a vehicle record, ``None`` where missing."""
    position = vehicle.get("position")
    if not isinstance(position, dict):
        return None, None
    return to_float(position.get("latitude")), to_float(position.get("longitude"))


def resolve_trip_id(vehicle: Dict[str, Any]) -> Optional[str]:
    """Determine the trip id of a vehicle-position record.

    The upstream trip id is returned unchanged when present. Otherwise an id
    is synthesized from the position rounded to 3 decimals, so vehicles
    reporting the same rounded position collapse into one trip. Returns
    ``None`` when the vehicle has neither.
    """
    trip_id = get_field(vehicle.get("trip"), "trip_id", "tripId")
    if trip_id is not None and str(trip_id) != "":
        return str(trip_id)

    lat, lon = vehicle_position(vehicle)
    if lat is None or lon is None:
        return None
    return f"{SYNTHETIC_TRIP_PREFIX}_{lat:.3f}_{lon:.3f}"


def derive_line(trip_id: str) -> str:
    """Derive the line label (``C5``, ``R2N``...) encoded in a trip id."""
    if not trip_id:
        return UNKNOWN_LINE

    match = _SUFFIX_RE.search(trip_id) or _LEADING_RE.match(trip_id)
    if match is None:
        return UNKNOWN_LINE
    return match.group("prefix") + match.group("code")
