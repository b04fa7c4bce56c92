"""Public train, incident and line endpoints.

Endpoints
---------
GET /api/trenes       – merged trains plus deduplicated incidents
GET /api/incidencias  – deduplicated incidents only
GET /api/lineas       – sorted distinct line labels of the current trains
"""

from __future__ import annotations

from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from trenes_api.services.feeds.cache import FeedCache, get_feed_cache

router = APIRouter(prefix="/api", tags=["trenes"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class Tren(BaseModel):
    trip_id: str
    linea: str
    lat: Optional[float] = None
    lon: Optional[float] = None
    estado: str
    retraso: int


class Incidencia(BaseModel):
    linea: str
    descripcion: str


class TrenesResponse(BaseModel):
    timestamp: int
    trenes: List[Tren]
    incidencias: List[Incidencia]


class IncidenciasResponse(BaseModel):
    timestamp: int
    incidencias: List[Incidencia]


class LineasResponse(BaseModel):
    timestamp: int
    lineas: List[str]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/trenes",
    response_model=TrenesResponse,
    summary="Trains currently reporting a position",
)
async def get_trenes(cache: FeedCache = Depends(get_feed_cache)) -> dict[str, Any]:
    snapshot = await cache.get()
    return {
        "timestamp": snapshot.timestamp_ms,
        "trenes": [train.to_dict() for train in snapshot.trains],
        "incidencias": [alert.to_dict() for alert in snapshot.alerts],
    }


@router.get(
    "/incidencias",
    response_model=IncidenciasResponse,
    summary="Active service alerts",
)
async def get_incidencias(cache: FeedCache = Depends(get_feed_cache)) -> dict[str, Any]:
    snapshot = await cache.get()
    return {
        "timestamp": snapshot.timestamp_ms,
        "incidencias": [alert.to_dict() for alert in snapshot.alerts],
    }


@router.get(
    "/lineas",
    response_model=LineasResponse,
    summary="Lines with at least one train reporting",
)
async def get_lineas(cache: FeedCache = Depends(get_feed_cache)) -> dict[str, Any]:
    snapshot = await cache.get()
    return {"timestamp": snapshot.timestamp_ms, "lineas": snapshot.lines}
