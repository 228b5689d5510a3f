"""FastAPI routes for campus floor loading, feature search and multi-floor routing.

Endpoints:
- Floor data (`/floors/reload`, `/floors`)
- Search (`/features/search`)
- Routing (`/route`, `/route/features`)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator

from wayfinder.config import Settings, load_settings
from wayfinder.loader import FloorLoader, GeoJSONDirectoryLoader, GeometryLoadError, InMemoryLoader
from wayfinder.routing import (
    RouteErrorKind,
    RouteResult,
    RoutingSnapshot,
    SnapshotHolder,
    route_between_features,
    route_between_points,
)
from wayfinder.search import search_features

LOGGER = logging.getLogger(__name__)

API_VERSION = "1.0.0"


@dataclass
class ServiceState:
    """In-memory state shared by all requests."""

    holder: SnapshotHolder = field(default_factory=SnapshotHolder)
    settings: Settings = field(default_factory=Settings)


STATE = ServiceState()


def _floor_id(value: Any) -> str:
    text = str(value).strip()
    if not text:
        raise ValueError("floor id must not be empty")
    return text


class GeoPoint(BaseModel):
    """WGS84 coordinate in degrees."""

    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)


class RouteRequest(BaseModel):
    """Request payload for point-to-point routing."""

    start: GeoPoint
    start_floor: str
    goal: GeoPoint
    goal_floor: str

    @field_validator("start_floor", "goal_floor", mode="before")
    @classmethod
    def normalize_floor(cls, value: Any) -> str:
        return _floor_id(value)


class FeatureRouteRequest(BaseModel):
    """Request payload for feature-to-feature routing."""

    start_feature_id: str
    goal_feature_id: str
    current_floor: str | None = None

    @field_validator("current_floor", mode="before")
    @classmethod
    def normalize_floor(cls, value: Any) -> str | None:
        return None if value is None else _floor_id(value)


class ReloadRequest(BaseModel):
    """Optional floor subset for a reload from the data directory."""

    floors: list[str] | None = None

    @field_validator("floors", mode="before")
    @classmethod
    def normalize_floors(cls, value: Any) -> list[str] | None:
        if value is None:
            return None
        if not isinstance(value, list) or not value:
            raise ValueError("floors must be a non-empty list")
        return [_floor_id(v) for v in value]


class FloorsUpload(BaseModel):
    """GeoJSON FeatureCollections keyed by floor id."""

    floors: dict[str, dict[str, Any]] = Field(..., min_length=1)

    @field_validator("floors")
    @classmethod
    def normalize_floor_keys(cls, value: dict[str, dict[str, Any]]) -> dict[str, dict[str, Any]]:
        normalized: dict[str, dict[str, Any]] = {}
        for key, collection in value.items():
            floor = _floor_id(key)
            if floor in normalized:
                raise ValueError(f"floor {floor!r} is listed more than once")
            normalized[floor] = collection
        return normalized


def _latest_snapshot_or_400() -> RoutingSnapshot:
    """Get the installed routing snapshot or raise 400."""
    snapshot = STATE.holder.current()
    if snapshot is None:
        raise HTTPException(status_code=400, detail="No floor data loaded yet")
    return snapshot


def _install_from(loader: FloorLoader, floors: list[str]) -> dict[str, Any]:
    """Reload floors into a new snapshot; the previous one stays if every floor fails."""
    settings = STATE.settings
    try:
        snapshot = STATE.holder.reload(
            loader,
            floors,
            weights=settings.weights,
            precision=settings.coord_precision,
            default_floor=settings.default_floor,
            floor_names=settings.floor_names,
        )
    except GeometryLoadError as exc:
        raise HTTPException(status_code=400, detail=f"No floor data could be loaded: {exc.message}") from exc
    return {"message": "Floor data loaded", **snapshot.summary()}


def _route_response(result: RouteResult) -> dict[str, Any]:
    """Map a RouteResult onto the HTTP contract."""
    if result.error is not None:
        if result.error.kind in (RouteErrorKind.NO_WALKABLE_GEOMETRY_ON_FLOOR, RouteErrorKind.DISCONNECTED):
            raise HTTPException(status_code=404, detail=f"{result.error.kind.value}: {result.error.message}")
        raise HTTPException(status_code=500, detail=f"{result.error.kind.value}: {result.error.message}")
    return result.to_json_dict()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    STATE.settings = settings if settings is not None else load_settings()

    app = FastAPI(title="Campus Wayfinder API", version=API_VERSION)

    raw_origins = STATE.settings.cors_origins
    if raw_origins == "*":
        cors_origins = ["*"]
        allow_credentials = False
    else:
        cors_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
        allow_credentials = True

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Health endpoint with loaded snapshot metadata."""
        snapshot = STATE.holder.current()
        return {
            "status": "ok",
            "version": app.version,
            "snapshot_version": snapshot.version if snapshot else None,
            "floors": list(snapshot.floors) if snapshot else [],
        }

    @app.post("/floors/reload")
    def reload_floors(payload: ReloadRequest | None = None) -> dict[str, Any]:
        """Reload floor GeoJSON from the configured data directory."""
        floors = (payload.floors if payload and payload.floors else None) or STATE.settings.floors
        loader = GeoJSONDirectoryLoader(STATE.settings.data_dir)
        try:
            return _install_from(loader, floors)
        except HTTPException:
            raise
        except Exception as exc:  # pragma: no cover - safety net
            LOGGER.exception("Floor reload failed")
            raise HTTPException(status_code=500, detail=f"Unexpected floor loading error: {exc}") from exc

    @app.post("/floors")
    def upload_floors(payload: FloorsUpload) -> dict[str, Any]:
        """Replace the routing snapshot with posted FeatureCollections."""
        floors = list(payload.floors)
        loader = InMemoryLoader(payload.floors)
        try:
            return _install_from(loader, floors)
        except HTTPException:
            raise
        except Exception as exc:  # pragma: no cover - safety net
            LOGGER.exception("Floor upload failed")
            raise HTTPException(status_code=500, detail=f"Unexpected floor loading error: {exc}") from exc

    @app.get("/floors")
    async def get_floors() -> dict[str, Any]:
        """Return metadata of the installed snapshot."""
        snapshot = _latest_snapshot_or_400()
        return snapshot.summary()

    @app.get("/features/search")
    async def search(
        q: str = Query(..., description="Room, pathway, building or stair name"),
        floor: str | None = Query(default=None),
        limit: int = Query(default=20, ge=1, le=200),
    ) -> dict[str, Any]:
        """Search features by name on the installed snapshot."""
        snapshot = _latest_snapshot_or_400()
        hits = search_features(snapshot, q, floor=floor, limit=limit)
        return {"query": q, "results": [hit.to_json_dict() for hit in hits]}

    @app.post("/route")
    def route(payload: RouteRequest) -> dict[str, Any]:
        """Compute a floor-aware walking route between two points."""
        snapshot = _latest_snapshot_or_400()
        try:
            result = route_between_points(
                snapshot,
                (payload.start.lat, payload.start.lon),
                payload.start_floor,
                (payload.goal.lat, payload.goal.lon),
                payload.goal_floor,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid route query: {exc}") from exc
        return _route_response(result)

    @app.post("/route/features")
    def route_features(payload: FeatureRouteRequest) -> dict[str, Any]:
        """Compute a route between two features, e.g. rooms picked from search."""
        snapshot = _latest_snapshot_or_400()

        start = snapshot.find_feature(payload.start_feature_id)
        if start is None:
            raise HTTPException(status_code=404, detail=f"start feature '{payload.start_feature_id}' was not found")
        goal = snapshot.find_feature(payload.goal_feature_id)
        if goal is None:
            raise HTTPException(status_code=404, detail=f"goal feature '{payload.goal_feature_id}' was not found")

        try:
            result = route_between_features(snapshot, start, goal, current_floor=payload.current_floor)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid route query: {exc}") from exc
        return _route_response(result)

    return app
