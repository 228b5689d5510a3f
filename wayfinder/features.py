"""Typed floor-plan features parsed from GeoJSON.

A feature is an immutable geometry (Point, LineString or Polygon) plus the
OSM-style tags that give it meaning for routing: walkable corridors and ways,
stairs spanning several levels, rooms and buildings.

Usage example:
    >>> feature = feature_from_geojson(
    ...     {"type": "Feature",
    ...      "geometry": {"type": "Point", "coordinates": [123.75, 8.06]},
    ...      "properties": {"highway": "steps", "level": "0;1"}},
    ...     source_floor="0",
    ... )
    >>> feature.levels
    ('0', '1')
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence

import numpy as np
import shapely
from shapely.errors import GEOSException
from shapely.geometry import shape
from shapely.geometry.base import BaseGeometry

from wayfinder.utils import LatLon

LOGGER = logging.getLogger(__name__)

SUPPORTED_GEOMETRIES = frozenset({"Point", "LineString", "Polygon"})
WALKABLE_HIGHWAYS = frozenset({"service", "footway"})
DEFAULT_FLOOR = "0"
GENERIC_STAIR_NAME = "Stair"


def parse_levels(raw: Any) -> tuple[str, ...]:
    """Split a `;`-delimited level tag into unique floor ids, keeping order."""
    if raw is None:
        return ()
    seen: dict[str, None] = {}
    for part in str(raw).split(";"):
        level = part.strip()
        if level:
            seen.setdefault(level, None)
    return tuple(seen)


def index_midpoint(coords: Sequence[LatLon]) -> LatLon:
    """Return the vertex at index ``len(coords) // 2``.

    This is the representative point used for stairs, rooms and search hits.
    It is not a geometric centroid: every component uses this same anchor so
    that stair nodes, transition lookups and feature endpoints agree.
    """
    if not coords:
        raise ValueError("Cannot take the midpoint of an empty coordinate sequence")
    return coords[len(coords) // 2]


@dataclass(frozen=True, slots=True)
class Feature:
    """One immutable floor-plan feature."""

    id: str
    geometry: BaseGeometry
    coordinates: tuple[LatLon, ...]
    properties: Mapping[str, Any]
    source_floor: str

    @property
    def geom_type(self) -> str:
        return self.geometry.geom_type

    @property
    def levels(self) -> tuple[str, ...]:
        return parse_levels(self.properties.get("level"))

    def floors(self, default_floor: str = DEFAULT_FLOOR) -> tuple[str, ...]:
        """Floors the feature sits on; untagged features sit on the default floor."""
        return self.levels or (default_floor,)

    def on_floor(self, floor: str, default_floor: str = DEFAULT_FLOOR) -> bool:
        return floor in self.floors(default_floor)

    @property
    def is_walkway(self) -> bool:
        """Pedestrian LineString: indoor corridor, service way or footway."""
        if self.geom_type != "LineString":
            return False
        props = self.properties
        return props.get("indoor") == "corridor" or props.get("highway") in WALKABLE_HIGHWAYS

    @property
    def is_stairs(self) -> bool:
        return self.properties.get("highway") == "steps"

    @property
    def is_searchable(self) -> bool:
        props = self.properties
        return bool(
            props.get("room")
            or props.get("pathway")
            or props.get("building") == "yes"
            or props.get("name")
            or self.is_walkway
            or self.is_stairs
        )

    @property
    def anchor(self) -> LatLon:
        return index_midpoint(self.coordinates)

    @property
    def display_name(self) -> str:
        props = self.properties
        if props.get("room"):
            return str(props["room"])
        if props.get("pathway"):
            return str(props["pathway"])
        if props.get("building") == "yes":
            return "Building"
        if props.get("name"):
            return str(props["name"])
        return GENERIC_STAIR_NAME if self.is_stairs else ""

    @property
    def stair_name(self) -> str:
        return str(self.properties.get("name") or GENERIC_STAIR_NAME)


def feature_anchor(feature: Feature, fallback_floor: str) -> tuple[LatLon, str]:
    """Resolve a feature to a routable `(lat, lon)` point and floor.

    The floor is the first listed level, or `fallback_floor` (typically the
    floor currently on screen) when the feature has no level tag.
    """
    levels = feature.levels
    return feature.anchor, levels[0] if levels else fallback_floor


def _lat_lon_sequence(geometry: BaseGeometry) -> tuple[LatLon, ...]:
    coords = geometry.exterior.coords if geometry.geom_type == "Polygon" else geometry.coords
    # GeoJSON positions are (lon, lat[, alt]).
    return tuple((float(c[1]), float(c[0])) for c in coords)


def feature_from_geojson(payload: Mapping[str, Any], source_floor: str, index: int = 0) -> Feature:
    """Parse one GeoJSON Feature object.

    Args:
        payload: GeoJSON feature mapping.
        source_floor: Floor whose file the feature came from.
        index: Position in the source collection, used for fallback ids.

    Returns:
        Parsed immutable Feature.

    Raises:
        ValueError: If the geometry is missing, unsupported or malformed.
    """
    geometry = payload.get("geometry")
    if not isinstance(geometry, Mapping):
        raise ValueError("Feature has no geometry")

    geom_type = geometry.get("type")
    if geom_type not in SUPPORTED_GEOMETRIES:
        raise ValueError(f"Unsupported geometry type: {geom_type!r}")

    try:
        geom = shape(geometry)
    except (GEOSException, TypeError, KeyError, IndexError, AttributeError) as exc:
        raise ValueError(f"Malformed {geom_type} geometry: {exc}") from exc
    if geom.is_empty:
        raise ValueError(f"Empty {geom_type} geometry")
    if not np.isfinite(shapely.get_coordinates(geom)).all():
        raise ValueError(f"Non-finite coordinate in {geom_type} geometry")

    properties = dict(payload.get("properties") or {})
    feature_id = payload.get("id") or properties.get("@id") or f"{source_floor}-{index}"

    return Feature(
        id=str(feature_id),
        geometry=geom,
        coordinates=_lat_lon_sequence(geom),
        properties=MappingProxyType(properties),
        source_floor=str(source_floor),
    )


def features_from_collection(payload: Mapping[str, Any], source_floor: str) -> list[Feature]:
    """Parse a GeoJSON FeatureCollection, skipping malformed features."""
    if payload.get("type") != "FeatureCollection":
        raise ValueError("Floor data must be a GeoJSON FeatureCollection")

    raw_features = payload.get("features")
    if not isinstance(raw_features, list):
        raise ValueError("FeatureCollection.features must be a list")

    features: list[Feature] = []
    for idx, raw in enumerate(raw_features):
        if not isinstance(raw, Mapping):
            LOGGER.warning("Skipping non-object feature %d on floor %s", idx, source_floor)
            continue
        try:
            features.append(feature_from_geojson(raw, source_floor=source_floor, index=idx))
        except ValueError as exc:
            LOGGER.warning("Skipping feature %d on floor %s: %s", idx, source_floor, exc)
    return features


def iter_features(features_by_floor: Mapping[str, Iterable[Feature]]) -> Iterable[Feature]:
    """Yield every feature, floor by floor in mapping order."""
    for floor_features in features_by_floor.values():
        yield from floor_features
