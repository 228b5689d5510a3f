"""Floor geometry loading.

The routing core only needs `load_floor(floor_id) -> list[Feature]`. The
directory loader reads one GeoJSON FeatureCollection per floor, by default
`<data_dir>/Level<floor>.json`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol

from wayfinder.features import Feature, features_from_collection

LOGGER = logging.getLogger(__name__)

DEFAULT_FILENAME_PATTERN = "Level{floor}.json"


class GeometryLoadError(Exception):
    """Raised when one floor's geometry cannot be loaded."""

    def __init__(self, floor: str, message: str) -> None:
        super().__init__(f"Floor {floor}: {message}")
        self.floor = floor
        self.message = message


@dataclass(frozen=True, slots=True)
class FloorLoadFailure:
    """Per-floor load failure kept alongside the floors that did load."""

    floor: str
    message: str

    def to_json_dict(self) -> dict[str, str]:
        return {"floor": self.floor, "message": self.message}


class FloorLoader(Protocol):
    """Protocol for geometry sources."""

    def load_floor(self, floor_id: str) -> list[Feature]:
        """Return the features of `floor_id` or raise GeometryLoadError."""


class GeoJSONDirectoryLoader:
    """Load floors from GeoJSON files in a directory."""

    def __init__(self, data_dir: str | Path, pattern: str = DEFAULT_FILENAME_PATTERN) -> None:
        self.data_dir = Path(data_dir)
        self.pattern = pattern

    def path_for(self, floor_id: str) -> Path:
        return self.data_dir / self.pattern.format(floor=floor_id)

    def load_floor(self, floor_id: str) -> list[Feature]:
        path = self.path_for(floor_id)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise GeometryLoadError(floor_id, f"{path} does not exist") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise GeometryLoadError(floor_id, f"cannot read {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise GeometryLoadError(floor_id, f"{path} is not valid JSON: {exc}") from exc

        return parse_floor_payload(floor_id, payload)


class InMemoryLoader:
    """Serve already-decoded FeatureCollections, e.g. from an upload."""

    def __init__(self, payloads: Mapping[str, Any]) -> None:
        self._payloads = dict(payloads)

    def load_floor(self, floor_id: str) -> list[Feature]:
        if floor_id not in self._payloads:
            raise GeometryLoadError(floor_id, "no data supplied")
        return parse_floor_payload(floor_id, self._payloads[floor_id])


def parse_floor_payload(floor_id: str, payload: Any) -> list[Feature]:
    """Parse a decoded FeatureCollection, converting format errors to GeometryLoadError."""
    if not isinstance(payload, Mapping):
        raise GeometryLoadError(floor_id, "floor data must be a JSON object")
    try:
        return features_from_collection(payload, source_floor=floor_id)
    except ValueError as exc:
        raise GeometryLoadError(floor_id, str(exc)) from exc


def load_floors(
    loader: FloorLoader,
    floor_ids: Iterable[str],
) -> tuple[dict[str, list[Feature]], list[FloorLoadFailure]]:
    """Load each floor independently.

    A failing floor is recorded and skipped; the remaining floors still load.

    Returns:
        Tuple of (features by floor in request order, failures).
    """
    features_by_floor: dict[str, list[Feature]] = {}
    failures: list[FloorLoadFailure] = []

    for floor_id in floor_ids:
        floor = str(floor_id)
        try:
            features_by_floor[floor] = loader.load_floor(floor)
        except GeometryLoadError as exc:
            LOGGER.warning("Failed to load floor %s: %s", floor, exc.message)
            failures.append(FloorLoadFailure(floor=floor, message=exc.message))
            continue
        LOGGER.info("Loaded floor %s: %d features", floor, len(features_by_floor[floor]))

    return features_by_floor, failures
