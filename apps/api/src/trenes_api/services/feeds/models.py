"""Domain types shared by the feed pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

UNKNOWN_LINE = "??"
UNKNOWN_STATUS = "UNKNOWN"

FEED_VEHICLE_POSITIONS = "vehicle_positions"
FEED_TRIP_UPDATES = "trip_updates"
FEED_ALERTS = "alerts"

FeedStatus = Literal["ok", "unavailable"]


@dataclass(frozen=True)
class FeedResult:
    """Outcome of fetching one feed.

    ``status`` is the tag callers branch on. An ``unavailable`` result always
    carries an empty entity list, so the merge stage can treat it exactly
    like a feed that published nothing.
    """

    feed_type: str
    status: FeedStatus
    entities: Tuple[Dict[str, Any], ...] = ()
    error: Optional[str] = None

    @classmethod
    def ok(cls, feed_type: str, entities: List[Dict[str, Any]]) -> FeedResult:
        return cls(feed_type=feed_type, status="ok", entities=tuple(entities))

    @classmethod
    def unavailable(cls, feed_type: str, error: str) -> FeedResult:
        return cls(feed_type=feed_type, status="unavailable", error=error)

    @property
    def is_available(self) -> bool:
        return self.status == "ok"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "entity_count": len(self.entities),
            "error": self.error,
        }


@dataclass(frozen=True)
class TrainRecord:
    """Merged view of one trip currently reporting a position."""

    trip_id: str
    line: str = UNKNOWN_LINE
    lat: Optional[float] = None
    lon: Optional[float] = None
    status: str = UNKNOWN_STATUS
    delay_minutes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trip_id": self.trip_id,
            "linea": self.line,
            "lat": self.lat,
            "lon": self.lon,
            "estado": self.status,
            "retraso": self.delay_minutes,
        }


@dataclass(frozen=True)
class Alert:
    line: str
    description: str

    @property
    def key(self) -> Tuple[str, str]:
        return (self.line, self.description)

    def to_dict(self) -> Dict[str, Any]:
        return {"linea": self.line, "descripcion": self.description}


@dataclass(frozen=True)
class MergeResult:
    trains: List[TrainRecord]
    raw_alerts: List[Alert]


@dataclass(frozen=True)
class FeedSnapshot:
    """One complete refresh cycle, as stored in the cache.

    Snapshots are never mutated after construction; a refresh builds a new
    one and swaps it in.
    """

    trains: Tuple[TrainRecord, ...] = ()
    alerts: Tuple[Alert, ...] = ()
    fetched_at: float = 0.0
    feeds: Dict[str, FeedResult] = field(default_factory=dict)

    @property
    def timestamp_ms(self) -> int:
        return int(self.fetched_at * 1000)

    @property
    def lines(self) -> List[str]:
        """Sorted, distinct line labels of the current trains."""
        return sorted({train.line for train in self.trains})
