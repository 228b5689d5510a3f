"""Pytest global fixtures and test isolation hooks."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from wayfinder.api import STATE
from wayfinder.config import Settings
from wayfinder.features import Feature, feature_from_geojson, features_from_collection
from wayfinder.routing import RoutingSnapshot, SnapshotHolder, build_snapshot

GeoJSON = dict[str, Any]


@pytest.fixture(autouse=True)
def reset_service_state() -> None:
    """Reset in-memory API state before each test."""
    STATE.holder = SnapshotHolder()
    STATE.settings = Settings()


def _geojson(geom_type: str, coordinates: Any, properties: dict[str, Any], feature_id: str | None) -> GeoJSON:
    payload: GeoJSON = {
        "type": "Feature",
        "geometry": {"type": geom_type, "coordinates": coordinates},
        "properties": properties,
    }
    if feature_id is not None:
        payload["id"] = feature_id
    return payload


@pytest.fixture()
def line() -> Callable[..., GeoJSON]:
    """Factory for GeoJSON LineString features; coordinates are (lon, lat)."""

    def make(coords: list[tuple[float, float]], feature_id: str | None = None, **properties: Any) -> GeoJSON:
        return _geojson("LineString", [list(c) for c in coords], properties, feature_id)

    return make


@pytest.fixture()
def point() -> Callable[..., GeoJSON]:
    """Factory for GeoJSON Point features; coordinate is (lon, lat)."""

    def make(coord: tuple[float, float], feature_id: str | None = None, **properties: Any) -> GeoJSON:
        return _geojson("Point", list(coord), properties, feature_id)

    return make


@pytest.fixture()
def polygon() -> Callable[..., GeoJSON]:
    """Factory for GeoJSON Polygon features from one closed (lon, lat) ring."""

    def make(ring: list[tuple[float, float]], feature_id: str | None = None, **properties: Any) -> GeoJSON:
        return _geojson("Polygon", [[list(c) for c in ring]], properties, feature_id)

    return make


@pytest.fixture()
def parse() -> Callable[..., Feature]:
    """Parse a GeoJSON feature dict into a Feature."""

    def make(payload: GeoJSON, source_floor: str = "0", index: int = 0) -> Feature:
        return feature_from_geojson(payload, source_floor=source_floor, index=index)

    return make


@pytest.fixture()
def campus_geojson(line, point, polygon) -> dict[str, GeoJSON]:
    """Two-floor campus joined by one staircase.

    Floor 0: corridor A(123.7560) - B(123.7561) - S(123.7562) along lat 8.0650.
    Floor 1: corridor S - M(8.0651) - E(8.0652) along lon 123.7562.
    Stairs at S, level "0;1".
    """
    floor0 = [
        line(
            [(123.7560, 8.0650), (123.7561, 8.0650), (123.7562, 8.0650)],
            feature_id="way/corridor-0",
            indoor="corridor",
            level="0",
            pathway="Main Hall",
        ),
        point((123.7562, 8.0650), feature_id="node/stairs", highway="steps", level="0;1", name="Main Stairs"),
        polygon(
            [(123.75598, 8.06495), (123.75602, 8.06495), (123.75602, 8.06505), (123.75598, 8.06505), (123.75598, 8.06495)],
            feature_id="way/library",
            room="Library",
            level="0",
        ),
        polygon(
            [(123.7555, 8.0645), (123.7565, 8.0645), (123.7565, 8.0655), (123.7555, 8.0655), (123.7555, 8.0645)],
            feature_id="way/building",
            building="yes",
        ),
    ]
    floor1 = [
        line(
            [(123.7562, 8.0650), (123.7562, 8.0651), (123.7562, 8.0652)],
            feature_id="way/corridor-1",
            indoor="corridor",
            level="1",
        ),
        point((123.7562, 8.0650), feature_id="node/stairs", highway="steps", level="0;1", name="Main Stairs"),
        polygon(
            [(123.75618, 8.06518), (123.75622, 8.06518), (123.75622, 8.06522), (123.75618, 8.06522), (123.75618, 8.06518)],
            feature_id="way/lab-101",
            room="Lab 101",
            level="1",
        ),
    ]
    return {
        "0": {"type": "FeatureCollection", "features": floor0},
        "1": {"type": "FeatureCollection", "features": floor1},
    }


@pytest.fixture()
def campus_features(campus_geojson) -> dict[str, list[Feature]]:
    """Parsed campus features keyed by floor."""
    return {floor: features_from_collection(payload, source_floor=floor) for floor, payload in campus_geojson.items()}


@pytest.fixture()
def campus_snapshot(campus_features) -> RoutingSnapshot:
    """Routing snapshot of the two-floor campus with default weights."""
    return build_snapshot(campus_features)
