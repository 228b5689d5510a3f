"""Split a solved route into per-floor polylines and stair transitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import groupby
from typing import Any, Mapping, Sequence

from wayfinder.features import GENERIC_STAIR_NAME
from wayfinder.graph import NodeKey, RoutingGraph, StairRecord
from wayfinder.utils import LatLon, floor_display_name, to_serializable_coords

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class FloorSegment:
    """Contiguous run of route coordinates on one floor."""

    floor: str
    coordinates: list[LatLon]

    def to_json_dict(self) -> dict[str, Any]:
        return {"floor": self.floor, "coordinates": to_serializable_coords(self.coordinates)}


@dataclass(slots=True)
class StairTransition:
    """One floor change along the route."""

    from_floor: str
    to_floor: str
    coordinate: LatLon
    stair_name: str

    def to_json_dict(self) -> dict[str, Any]:
        lat, lon = self.coordinate
        return {
            "from_floor": self.from_floor,
            "to_floor": self.to_floor,
            "coordinate": {"lat": lat, "lon": lon},
            "stair_name": self.stair_name,
        }


@dataclass(slots=True)
class StairMatch:
    """Stair name lookup outcome; `ambiguous` is set for zero or conflicting matches."""

    name: str
    ambiguous: bool
    candidates: list[str] = field(default_factory=list)


@dataclass(slots=True)
class RouteSegments:
    """Segmenter output: floor segments in visiting order plus transitions."""

    segments: list[FloorSegment]
    transitions: list[StairTransition]
    stair_matches: list[StairMatch] = field(default_factory=list)


def match_stair(node: NodeKey, stairs: Sequence[StairRecord], precision: int) -> StairMatch:
    """Find the stair whose geometry touches `node`'s coordinate.

    First match wins. No match yields the generic label; several matches with
    different names keep the first one. Both cases are flagged ambiguous.
    """
    names = [stair.name for stair in stairs if stair.touches(node.lat_q, node.lon_q, precision)]
    if not names:
        return StairMatch(name=GENERIC_STAIR_NAME, ambiguous=True)
    distinct = list(dict.fromkeys(names))
    return StairMatch(name=names[0], ambiguous=len(distinct) > 1, candidates=distinct)


def segment_path(path: Sequence[NodeKey], graph: RoutingGraph) -> RouteSegments:
    """Group the route by floor and record a transition at each floor change.

    Args:
        path: Ordered route nodes, start to end inclusive.
        graph: Graph the route was solved on (coordinates, stairs, precision).

    Returns:
        RouteSegments; both lists are ordered start to end.
    """
    segments: list[FloorSegment] = []
    transitions: list[StairTransition] = []
    matches: list[StairMatch] = []

    for floor, group in groupby(path, key=lambda node: node.floor):
        nodes = list(group)
        if segments:
            entry = nodes[0]
            match = match_stair(entry, graph.stairs, graph.precision)
            if match.ambiguous:
                LOGGER.warning(
                    "Ambiguous stair match at %s (floor %s -> %s): %s",
                    graph.coordinate(entry),
                    segments[-1].floor,
                    floor,
                    match.candidates or "no stair found",
                )
            matches.append(match)
            transitions.append(
                StairTransition(
                    from_floor=segments[-1].floor,
                    to_floor=floor,
                    coordinate=graph.coordinate(entry),
                    stair_name=match.name,
                )
            )
        segments.append(FloorSegment(floor=floor, coordinates=[graph.coordinate(n) for n in nodes]))

    return RouteSegments(segments=segments, transitions=transitions, stair_matches=matches)


def describe_transition(transition: StairTransition, floor_names: Mapping[str, str] | None = None) -> str:
    """Instruction text such as `Take Main Stairs to Second Floor`."""
    return f"Take {transition.stair_name} to {floor_display_name(transition.to_floor, floor_names)}"


def route_summary(
    start_floor: str,
    end_floor: str,
    transitions: Sequence[StairTransition],
    floor_names: Mapping[str, str] | None = None,
) -> str:
    """One-line route description for the directions panel."""
    origin = floor_display_name(start_floor, floor_names)
    destination = floor_display_name(end_floor, floor_names)
    if transitions:
        via = " and ".join(t.stair_name for t in transitions)
        return f"Route from {origin} to {destination} via {via}."
    return f"Route from {origin} to {destination} (no stairs needed)."
