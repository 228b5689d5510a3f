"""Utility helpers shared across wayfinder modules.

Purpose:
- Quantize geographic coordinates to fixed-point integers.
- Compute great-circle distances in meters.
- Convert waypoints and floor ids to JSON-friendly / human-readable values.
"""

from __future__ import annotations

from typing import Iterable, Mapping

import numpy as np

LatLon = tuple[float, float]

EARTH_RADIUS_M = 6_371_000.0
DEFAULT_COORD_PRECISION = 7

DEFAULT_FLOOR_NAMES: dict[str, str] = {
    "0": "Ground Floor",
    "1": "Second Floor",
    "2": "Third Floor",
}


def quantize(value: float, precision: int = DEFAULT_COORD_PRECISION) -> int:
    """Map a degree value to its fixed-point integer representation."""
    if precision < 0:
        raise ValueError("precision must be >= 0")
    return int(round(float(value) * 10**precision))


def dequantize(value: int, precision: int = DEFAULT_COORD_PRECISION) -> float:
    """Inverse of :func:`quantize`."""
    return value / 10**precision


def haversine_m(lat1, lon1, lat2, lon2):
    """Great-circle distance in meters; accepts scalars or numpy arrays (degrees)."""
    phi1 = np.radians(lat1)
    phi2 = np.radians(lat2)
    dphi = phi2 - phi1
    dlmb = np.radians(lon2) - np.radians(lon1)
    a = np.sin(dphi / 2.0) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(dlmb / 2.0) ** 2
    return 2.0 * EARTH_RADIUS_M * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


def floor_display_name(floor: str, floor_names: Mapping[str, str] | None = None) -> str:
    """Human-readable floor label, falling back to `Level {floor}`."""
    names = DEFAULT_FLOOR_NAMES if floor_names is None else floor_names
    return names.get(floor, f"Level {floor}")


def to_serializable_coords(coords: Iterable[LatLon]) -> list[dict[str, float]]:
    """Convert `(lat, lon)` tuples to JSON-friendly dictionary objects."""
    return [{"lat": float(lat), "lon": float(lon)} for lat, lon in coords]
