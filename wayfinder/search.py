"""Text search over rooms, named ways, buildings and stairs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from wayfinder.features import Feature, feature_anchor
from wayfinder.routing import RoutingSnapshot
from wayfinder.utils import LatLon

MIN_QUERY_LENGTH = 2


@dataclass(slots=True)
class SearchHit:
    """Search result with the point a route to it would target."""

    feature: Feature
    display_name: str
    anchor: LatLon
    floor: str

    def to_json_dict(self) -> dict[str, Any]:
        lat, lon = self.anchor
        return {
            "id": self.feature.id,
            "display_name": self.display_name,
            "geometry_type": self.feature.geom_type,
            "floor": self.floor,
            "anchor": {"lat": lat, "lon": lon},
            "properties": dict(self.feature.properties),
        }


def _matches(feature: Feature, needle: str) -> bool:
    props = feature.properties
    haystacks = [
        str(props.get("room") or ""),
        str(props.get("pathway") or ""),
        str(props.get("name") or ""),
        "building" if props.get("building") == "yes" else "",
    ]
    return any(needle in value.lower() for value in haystacks)


def search_features(
    snapshot: RoutingSnapshot,
    query: str,
    floor: str | None = None,
    limit: int | None = None,
) -> list[SearchHit]:
    """Case-insensitive substring search.

    Args:
        snapshot: Snapshot to search.
        query: Search text; fewer than two characters returns no hits.
        floor: Restrict to features on this floor when given.
        limit: Maximum number of hits.

    Returns:
        Hits in snapshot order, one per feature id.
    """
    needle = query.strip().lower()
    if len(needle) < MIN_QUERY_LENGTH:
        return []

    hits: list[SearchHit] = []
    seen: set[str] = set()
    for feature in snapshot.all_features():
        if feature.id in seen or not feature.is_searchable:
            continue
        if floor is not None and not feature.on_floor(str(floor), snapshot.default_floor):
            continue
        if not _matches(feature, needle):
            continue

        seen.add(feature.id)
        anchor, anchor_floor = feature_anchor(feature, snapshot.default_floor)
        if floor is not None:
            anchor_floor = str(floor)
        hits.append(SearchHit(feature=feature, display_name=feature.display_name, anchor=anchor, floor=anchor_floor))
        if limit is not None and len(hits) >= limit:
            break
    return hits
