"""Merge vehicle positions, trip updates and alerts into one train view."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from trenes_api.logging import get_logger
from trenes_api.services.feeds.models import (
    UNKNOWN_LINE,
    UNKNOWN_STATUS,
    Alert,
    MergeResult,
    TrainRecord,
)
from trenes_api.services.feeds.resolver import (
    derive_line,
    get_field,
    resolve_trip_id,
    vehicle_position,
)

logger = get_logger(__name__)

# Protobuf-derived JSON sometimes publishes the enum number instead of its name.
VEHICLE_STOP_STATUS = {
    0: "INCOMING_AT",
    1: "STOPPED_AT",
    2: "IN_TRANSIT_TO",
}


def _first(items: Any) -> Optional[Dict[str, Any]]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return None


def _as_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _vehicle_status(vehicle: Dict[str, Any]) -> str:
    status = get_field(vehicle, "current_status", "currentStatus")
    if isinstance(status, int) and not isinstance(status, bool):
        return VEHICLE_STOP_STATUS.get(status, UNKNOWN_STATUS)
    if isinstance(status, str) and status.strip():
        return status.strip()
    return UNKNOWN_STATUS


def _alert_text(alert: Dict[str, Any]) -> str:
    """First translation of the alert header, or empty string."""
    header = get_field(alert, "header_text", "headerText")
    if not isinstance(header, dict):
        return ""
    translation = _first(header.get("translation"))
    if translation is None:
        return ""
    text = translation.get("text")
    return text.strip() if isinstance(text, str) else ""


def _alert_line(alert: Dict[str, Any]) -> str:
    informed = _first(get_field(alert, "informed_entity", "informedEntity"))
    route_id = get_field(informed, "route_id", "routeId")
    if route_id is None or str(route_id) == "":
        return UNKNOWN_LINE
    return str(route_id)


def merge_vehicles(entities: Iterable[Dict[str, Any]]) -> Dict[str, TrainRecord]:
    """Build train records keyed by trip id, in first-seen order."""
    trains: Dict[str, TrainRecord] = {}
    dropped = 0

    for entity in entities:
        vehicle = entity.get("vehicle")
        if not isinstance(vehicle, dict):
            continue

        trip_id = resolve_trip_id(vehicle)
        if trip_id is None:
            dropped += 1
            continue

        lat, lon = vehicle_position(vehicle)
        trains[trip_id] = TrainRecord(
            trip_id=trip_id,
            line=derive_line(trip_id),
            lat=lat,
            lon=lon,
            status=_vehicle_status(vehicle),
        )

    if dropped:
        logger.debug("Skipped vehicles without trip id or position", count=dropped)
    return trains


def apply_trip_updates(
    trains: Dict[str, TrainRecord],
    entities: Iterable[Dict[str, Any]],
) -> None:
    """Replace trains that have a matching trip update with their delayed copy.

    Updates for trips with no vehicle this cycle are ignored. Within a trip,
    the last stop-time update with a non-zero arrival delay wins.
    """
    for entity in entities:
        update = get_field(entity, "trip_update", "tripUpdate")
        if not isinstance(update, dict):
            continue

        trip_id = get_field(update.get("trip"), "trip_id", "tripId")
        if trip_id is None:
            continue
        key = str(trip_id)
        train = trains.get(key)
        if train is None:
            continue

        stop_time_updates = get_field(update, "stop_time_update", "stopTimeUpdate")
        if not isinstance(stop_time_updates, list):
            continue

        for stu in stop_time_updates:
            if not isinstance(stu, dict) or not isinstance(stu.get("arrival"), dict):
                continue
            delay = _as_int(stu["arrival"].get("delay"))
            if delay:
                # Early arrivals are reported as on time.
                train = replace(train, delay_minutes=max(0, delay // 60))
        trains[key] = train


def collect_alerts(entities: Iterable[Dict[str, Any]]) -> List[Alert]:
    """Extract alerts with non-empty text, keeping duplicates."""
    alerts: List[Alert] = []
    for entity in entities:
        alert = entity.get("alert")
        if not isinstance(alert, dict):
            continue
        description = _alert_text(alert)
        if not description:
            continue
        alerts.append(Alert(line=_alert_line(alert), description=description))
    return alerts


def merge(
    vehicles: Iterable[Dict[str, Any]],
    trip_updates: Iterable[Dict[str, Any]],
    alerts: Iterable[Dict[str, Any]],
) -> MergeResult:
    """Join the three feeds into train records and a raw alert list.

    Trains keep the order in which their trip id was first seen in the
    vehicle feed.
    """
    trains = merge_vehicles(vehicles)
    apply_trip_updates(trains, trip_updates)
    return MergeResult(trains=list(trains.values()), raw_alerts=collect_alerts(alerts))


def dedup_alerts(raw_alerts: Iterable[Alert]) -> List[Alert]:
    """Drop repeated ``(line, description)`` alerts, keeping the first one."""
    seen: set[tuple[str, str]] = set()
    unique: List[Alert] = []
    for alert in raw_alerts:
        if alert.key in seen:
            continue
        seen.add(alert.key)
        unique.append(alert)
    return unique
