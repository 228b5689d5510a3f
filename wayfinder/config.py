"""Runtime settings read from environment variables."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from wayfinder.features import DEFAULT_FLOOR
from wayfinder.graph import DEFAULT_STAIR_PENALTY, DEFAULT_WALKWAY_COST, RoutingWeights
from wayfinder.utils import DEFAULT_COORD_PRECISION, DEFAULT_FLOOR_NAMES


@dataclass(slots=True)
class Settings:
    """Service configuration; see `load_settings` for the variable names."""

    data_dir: Path = Path("floor_levels")
    floors: list[str] = field(default_factory=lambda: ["0", "1", "2"])
    default_floor: str = DEFAULT_FLOOR
    weights: RoutingWeights = field(default_factory=RoutingWeights)
    coord_precision: int = DEFAULT_COORD_PRECISION
    floor_names: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_FLOOR_NAMES))
    cors_origins: str = "*"
    log_level: str = "INFO"


def _parse_floors(raw: str) -> list[str]:
    floors = [part.strip() for part in raw.split(",") if part.strip()]
    if not floors:
        raise ValueError("WAYFINDER_FLOORS must list at least one floor id")
    return floors


def _parse_floor_names(raw: str) -> dict[str, str]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError('WAYFINDER_FLOOR_NAMES must be a JSON object, e.g. {"0": "Lobby"}') from exc
    if not isinstance(parsed, dict):
        raise ValueError("WAYFINDER_FLOOR_NAMES must be a JSON object")
    return {str(k): str(v) for k, v in parsed.items()}


def _parse_float(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from `WAYFINDER_*` environment variables.

    Raises:
        ValueError: If a variable is present but malformed.
    """
    env = os.environ if environ is None else environ

    walkway_cost = _parse_float("WAYFINDER_WALKWAY_COST", env.get("WAYFINDER_WALKWAY_COST", str(DEFAULT_WALKWAY_COST)))
    stair_penalty = _parse_float("WAYFINDER_STAIR_PENALTY", env.get("WAYFINDER_STAIR_PENALTY", str(DEFAULT_STAIR_PENALTY)))

    raw_precision = env.get("WAYFINDER_COORD_PRECISION", str(DEFAULT_COORD_PRECISION))
    try:
        precision = int(raw_precision)
    except ValueError as exc:
        raise ValueError("WAYFINDER_COORD_PRECISION must be an integer") from exc
    if not 0 <= precision <= 12:
        raise ValueError("WAYFINDER_COORD_PRECISION must be between 0 and 12")

    floor_names = dict(DEFAULT_FLOOR_NAMES)
    raw_names = env.get("WAYFINDER_FLOOR_NAMES", "").strip()
    if raw_names:
        floor_names.update(_parse_floor_names(raw_names))

    return Settings(
        data_dir=Path(env.get("WAYFINDER_DATA_DIR", "floor_levels")),
        floors=_parse_floors(env.get("WAYFINDER_FLOORS", "0,1,2")),
        default_floor=env.get("WAYFINDER_DEFAULT_FLOOR", DEFAULT_FLOOR).strip() or DEFAULT_FLOOR,
        weights=RoutingWeights(walkway_cost=walkway_cost, stair_penalty=stair_penalty),
        coord_precision=precision,
        floor_names=floor_names,
        cors_origins=env.get("WAYFINDER_CORS_ORIGINS", "*").strip(),
        log_level=env.get("WAYFINDER_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
