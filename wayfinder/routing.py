"""End-to-end route requests over an immutable routing snapshot.

A `RoutingSnapshot` bundles the features, the graph built from them and the
nearest-node index. Reloading geometry builds a new snapshot and swaps it into
the `SnapshotHolder`; requests already holding the old snapshot finish on it.

Routing failures are returned as `RouteResult` values with a typed
`RouteErrorKind`, never raised.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Protocol, Sequence

from wayfinder.features import DEFAULT_FLOOR, Feature, feature_anchor, iter_features
from wayfinder.graph import NodeKey, RoutingGraph, RoutingWeights, build_routing_graph
from wayfinder.loader import FloorLoader, FloorLoadFailure, GeometryLoadError, load_floors
from wayfinder.nearest import NearestNodeResolver
from wayfinder.pathfinding import shortest_path
from wayfinder.segments import (
    FloorSegment,
    StairTransition,
    describe_transition,
    route_summary,
    segment_path,
)
from wayfinder.utils import DEFAULT_COORD_PRECISION, LatLon

LOGGER = logging.getLogger(__name__)


class RouteErrorKind(str, Enum):
    """Failure categories reported to route consumers."""

    GEOMETRY_LOAD_FAILURE = "GeometryLoadFailure"
    NO_WALKABLE_GEOMETRY_ON_FLOOR = "NoWalkableGeometryOnFloor"
    DISCONNECTED = "Disconnected"
    AMBIGUOUS_STAIR_MATCH = "AmbiguousStairMatch"


@dataclass(slots=True)
class RouteIssue:
    """Typed error or warning attached to a route result."""

    kind: RouteErrorKind
    message: str
    floor: str | None = None

    def to_json_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "floor": self.floor}


@dataclass(frozen=True, slots=True)
class RoutingSnapshot:
    """One consistent version of floor geometry and its routing graph."""

    version: int
    features_by_floor: Mapping[str, tuple[Feature, ...]]
    graph: RoutingGraph
    resolver: NearestNodeResolver
    load_failures: tuple[FloorLoadFailure, ...] = ()
    default_floor: str = DEFAULT_FLOOR
    floor_names: Mapping[str, str] | None = None
    built_at: float = field(default_factory=time.time)

    @property
    def floors(self) -> tuple[str, ...]:
        return tuple(self.features_by_floor)

    def all_features(self) -> Iterable[Feature]:
        return iter_features(self.features_by_floor)

    def find_feature(self, feature_id: str) -> Feature | None:
        for feature in self.all_features():
            if feature.id == feature_id:
                return feature
        return None

    def summary(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "floors": [
                {"floor": floor, "feature_count": len(features)}
                for floor, features in self.features_by_floor.items()
            ],
            "failures": [failure.to_json_dict() for failure in self.load_failures],
            "node_count": self.graph.node_count,
            "edge_count": self.graph.edge_count,
            "stair_count": len(self.graph.stairs),
            "weights": {
                "walkway_cost": self.graph.weights.walkway_cost,
                "stair_penalty": self.graph.weights.stair_penalty,
            },
        }


def build_snapshot(
    features_by_floor: Mapping[str, Iterable[Feature]],
    *,
    version: int = 1,
    load_failures: Sequence[FloorLoadFailure] = (),
    weights: RoutingWeights | None = None,
    precision: int = DEFAULT_COORD_PRECISION,
    default_floor: str = DEFAULT_FLOOR,
    floor_names: Mapping[str, str] | None = None,
) -> RoutingSnapshot:
    """Freeze features and build the graph and nearest-node index for them."""
    frozen = {str(floor): tuple(features) for floor, features in features_by_floor.items()}
    graph = build_routing_graph(frozen, weights=weights, precision=precision, default_floor=default_floor)
    return RoutingSnapshot(
        version=version,
        features_by_floor=frozen,
        graph=graph,
        resolver=NearestNodeResolver(graph),
        load_failures=tuple(load_failures),
        default_floor=default_floor,
        floor_names=dict(floor_names) if floor_names is not None else None,
    )


class SnapshotHolder:
    """Owns the current snapshot and swaps it atomically on reload.

    Versions are reserved under the lock before a build starts. A reload only
    installs its snapshot if no newer version was installed while it was
    building, so concurrent reloads never roll the holder back.
    """

    def __init__(self, snapshot: RoutingSnapshot | None = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = snapshot
        self._issued = snapshot.version if snapshot is not None else 0

    def current(self) -> RoutingSnapshot | None:
        with self._lock:
            return self._snapshot

    def swap(self, snapshot: RoutingSnapshot | None) -> RoutingSnapshot | None:
        """Install `snapshot` unconditionally and return the previous one."""
        with self._lock:
            previous, self._snapshot = self._snapshot, snapshot
            if snapshot is not None:
                self._issued = max(self._issued, snapshot.version)
        return previous

    def reserve_version(self) -> int:
        """Hand out the next snapshot version; each call gets a distinct value."""
        with self._lock:
            self._issued += 1
            return self._issued

    def install_if_newer(self, snapshot: RoutingSnapshot) -> bool:
        """Install `snapshot` unless the holder already has a newer version."""
        with self._lock:
            if self._snapshot is not None and self._snapshot.version >= snapshot.version:
                return False
            self._snapshot = snapshot
            return True

    def reload(
        self,
        loader: FloorLoader,
        floor_ids: Iterable[str],
        *,
        weights: RoutingWeights | None = None,
        precision: int = DEFAULT_COORD_PRECISION,
        default_floor: str = DEFAULT_FLOOR,
        floor_names: Mapping[str, str] | None = None,
    ) -> RoutingSnapshot:
        """Load floors, build a fresh snapshot off to the side, then swap it in.

        Floors that fail to load are left out of the new snapshot.

        Returns:
            The installed snapshot. When a reload that started later finished
            first, that newer snapshot is returned and this build is dropped.

        Raises:
            GeometryLoadError: If no floor loaded; the current snapshot is kept.
        """
        features_by_floor, failures = load_floors(loader, floor_ids)
        if not features_by_floor:
            detail = "; ".join(f"{failure.floor}: {failure.message}" for failure in failures)
            raise GeometryLoadError("*", detail or "no floors requested")
        snapshot = build_snapshot(
            features_by_floor,
            version=self.reserve_version(),
            load_failures=failures,
            weights=weights,
            precision=precision,
            default_floor=default_floor,
            floor_names=floor_names,
        )
        if not self.install_if_newer(snapshot):
            newer = self.current()
            LOGGER.info(
                "Routing snapshot v%d superseded by v%d before install", snapshot.version, newer.version
            )
            return newer
        LOGGER.info(
            "Routing snapshot v%d installed: floors=%s failed=%s",
            snapshot.version,
            list(snapshot.floors),
            [failure.floor for failure in failures],
        )
        return snapshot


@dataclass(slots=True)
class RouteResult:
    """Outcome of a route request, successful or not."""

    start_floor: str
    goal_floor: str
    path: list[tuple[LatLon, str]] = field(default_factory=list)
    segments: list[FloorSegment] = field(default_factory=list)
    transitions: list[StairTransition] = field(default_factory=list)
    instructions: list[str] = field(default_factory=list)
    summary: str | None = None
    cost: float | None = None
    snap_distances_m: tuple[float, float] | None = None
    error: RouteIssue | None = None
    warnings: list[RouteIssue] = field(default_factory=list)
    snapshot_version: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "start_floor": self.start_floor,
            "goal_floor": self.goal_floor,
            "path": [{"lat": lat, "lon": lon, "floor": floor} for (lat, lon), floor in self.path],
            "segments": [segment.to_json_dict() for segment in self.segments],
            "transitions": [transition.to_json_dict() for transition in self.transitions],
            "instructions": list(self.instructions),
            "summary": self.summary,
            "cost": self.cost,
            "snap_distances_m": list(self.snap_distances_m) if self.snap_distances_m else None,
            "error": self.error.to_json_dict() if self.error else None,
            "warnings": [warning.to_json_dict() for warning in self.warnings],
            "snapshot_version": self.snapshot_version,
        }


def _load_failure_warnings(snapshot: RoutingSnapshot) -> list[RouteIssue]:
    return [
        RouteIssue(RouteErrorKind.GEOMETRY_LOAD_FAILURE, failure.message, floor=failure.floor)
        for failure in snapshot.load_failures
    ]


def route_between_points(
    snapshot: RoutingSnapshot,
    start: LatLon,
    start_floor: str,
    goal: LatLon,
    goal_floor: str,
) -> RouteResult:
    """Snap both endpoints onto the graph and compute the floor-aware route.

    Args:
        snapshot: Routing snapshot used for the whole request.
        start: Start `(lat, lon)`.
        start_floor: Floor of the start point.
        goal: Goal `(lat, lon)`.
        goal_floor: Floor of the goal point.

    Returns:
        RouteResult. `error` is set to NoWalkableGeometryOnFloor when an
        endpoint floor has nothing to snap to, and Disconnected when no path
        joins the snapped nodes.
    """
    start_floor, goal_floor = str(start_floor), str(goal_floor)
    result = RouteResult(
        start_floor=start_floor,
        goal_floor=goal_floor,
        warnings=_load_failure_warnings(snapshot),
        snapshot_version=snapshot.version,
    )

    resolver = snapshot.resolver
    graph = snapshot.graph

    start_node = resolver.nearest(start, start_floor)
    goal_node = resolver.nearest(goal, goal_floor)
    for node, floor, label in ((start_node, start_floor, "start"), (goal_node, goal_floor, "goal")):
        if node is None:
            result.error = RouteIssue(
                RouteErrorKind.NO_WALKABLE_GEOMETRY_ON_FLOOR,
                f"No pathway or stairs on floor {floor} to snap the {label} point to",
                floor=floor,
            )
            LOGGER.info("Route %s -> %s rejected: %s", start_floor, goal_floor, result.error.message)
            return result

    result.snap_distances_m = (resolver.distance_m(start, start_node), resolver.distance_m(goal, goal_node))

    solved = shortest_path(graph, start_node, goal_node)
    if not solved.found:
        result.error = RouteIssue(
            RouteErrorKind.DISCONNECTED,
            f"No route between floor {start_floor} and floor {goal_floor}; check stair and pathway connections",
        )
        LOGGER.info(
            "Route %s -> %s disconnected after %d expansions", start_floor, goal_floor, solved.expanded
        )
        return result

    _fill_route(result, snapshot, solved.path, solved.cost)
    LOGGER.info(
        "Route %s -> %s: waypoints=%d transitions=%d cost=%.1f expanded=%d",
        start_floor,
        goal_floor,
        len(result.path),
        len(result.transitions),
        solved.cost,
        solved.expanded,
    )
    return result


def _fill_route(result: RouteResult, snapshot: RoutingSnapshot, path: Sequence[NodeKey], cost: float) -> None:
    graph = snapshot.graph
    segmented = segment_path(path, graph)

    result.path = [(graph.coordinate(node), node.floor) for node in path]
    result.segments = segmented.segments
    result.transitions = segmented.transitions
    result.cost = cost
    result.instructions = [describe_transition(t, snapshot.floor_names) for t in segmented.transitions]
    result.summary = route_summary(
        result.start_floor, result.goal_floor, segmented.transitions, snapshot.floor_names
    )

    for transition, match in zip(segmented.transitions, segmented.stair_matches):
        if not match.ambiguous:
            continue
        detail = ", ".join(match.candidates) if match.candidates else "no stair at this point"
        result.warnings.append(
            RouteIssue(
                RouteErrorKind.AMBIGUOUS_STAIR_MATCH,
                f"Transition {transition.from_floor} -> {transition.to_floor} labelled "
                f"'{transition.stair_name}' ({detail})",
                floor=transition.from_floor,
            )
        )


def route_between_features(
    snapshot: RoutingSnapshot,
    start_feature: Feature,
    goal_feature: Feature,
    current_floor: str | None = None,
) -> RouteResult:
    """Route between two features (rooms, stairs, ways) using their anchors.

    Features without a level tag are placed on `current_floor`, or on the
    snapshot default floor when no current floor is given.
    """
    fallback = str(current_floor) if current_floor is not None else snapshot.default_floor
    start, start_floor = feature_anchor(start_feature, fallback)
    goal, goal_floor = feature_anchor(goal_feature, fallback)
    return route_between_points(snapshot, start, start_floor, goal, goal_floor)


class RouteListener(Protocol):
    """Consumer callbacks, e.g. a rendering layer."""

    def on_route_computed(self, segments: list[FloorSegment], transitions: list[StairTransition]) -> None:
        ...

    def on_no_route(self, reason: RouteIssue) -> None:
        ...


def dispatch_route(result: RouteResult, listener: RouteListener) -> None:
    """Forward a route result to the matching listener callback."""
    if result.error is None:
        listener.on_route_computed(result.segments, result.transitions)
    else:
        listener.on_no_route(result.error)
