"""Routing graph construction from per-floor floor-plan features.

Graph convention:
- node == NodeKey(lat_q, lon_q, floor), coordinates quantized to fixed point
- walkway edge: consecutive vertices of a walkable LineString, same floor
- stair edge: one stair anchor on two different floors

The graph is undirected and read-only once built. Rebuild it from a fresh
feature snapshot instead of mutating it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import combinations
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, NamedTuple

from wayfinder.features import DEFAULT_FLOOR, Feature
from wayfinder.utils import DEFAULT_COORD_PRECISION, LatLon, dequantize, quantize

LOGGER = logging.getLogger(__name__)

DEFAULT_WALKWAY_COST = 1.0
DEFAULT_STAIR_PENALTY = 10.0


class NodeKey(NamedTuple):
    """Canonical node identity: fixed-point latitude/longitude plus floor id."""

    lat_q: int
    lon_q: int
    floor: str


@dataclass(frozen=True, slots=True)
class RoutingWeights:
    """Edge weights used by the solver.

    Both values are hand-tuned heuristics, not physical distances. The stair
    penalty biases routes toward fewer floor changes over fewer hops.
    """

    walkway_cost: float = DEFAULT_WALKWAY_COST
    stair_penalty: float = DEFAULT_STAIR_PENALTY

    def __post_init__(self) -> None:
        if self.walkway_cost <= 0:
            raise ValueError("walkway_cost must be > 0")
        if self.stair_penalty < 0:
            raise ValueError("stair_penalty must be >= 0")


@dataclass(frozen=True, slots=True)
class StairRecord:
    """Stair feature anchored at its index midpoint on each listed floor."""

    feature: Feature
    floors: tuple[str, ...]
    anchor: LatLon

    @property
    def name(self) -> str:
        return self.feature.stair_name

    def touches(self, lat_q: int, lon_q: int, precision: int = DEFAULT_COORD_PRECISION) -> bool:
        """True if the anchor or any vertex of the stair geometry quantizes to the point."""
        candidates = (self.anchor, *self.feature.coordinates)
        return any(
            quantize(lat, precision) == lat_q and quantize(lon, precision) == lon_q
            for lat, lon in candidates
        )


class RoutingGraph:
    """Immutable weighted undirected graph over `NodeKey`s."""

    __slots__ = ("_adjacency", "_order", "_by_floor", "_stairs", "_weights", "_precision", "_edge_count")

    def __init__(
        self,
        adjacency: Mapping[NodeKey, Mapping[NodeKey, float]],
        stairs: Iterable[StairRecord],
        weights: RoutingWeights,
        precision: int,
    ) -> None:
        self._adjacency = MappingProxyType(
            {node: MappingProxyType(dict(nbrs)) for node, nbrs in adjacency.items()}
        )
        self._order = {node: idx for idx, node in enumerate(self._adjacency)}

        by_floor: dict[str, list[NodeKey]] = {}
        for node in self._adjacency:
            by_floor.setdefault(node.floor, []).append(node)
        self._by_floor = {floor: tuple(nodes) for floor, nodes in by_floor.items()}

        self._stairs = tuple(stairs)
        self._weights = weights
        self._precision = precision
        self._edge_count = sum(len(nbrs) for nbrs in self._adjacency.values()) // 2

    def __contains__(self, node: object) -> bool:
        return node in self._adjacency

    def __len__(self) -> int:
        return len(self._adjacency)

    @property
    def nodes(self) -> tuple[NodeKey, ...]:
        return tuple(self._adjacency)

    @property
    def node_count(self) -> int:
        return len(self._adjacency)

    @property
    def edge_count(self) -> int:
        return self._edge_count

    @property
    def floors(self) -> tuple[str, ...]:
        return tuple(self._by_floor)

    @property
    def stairs(self) -> tuple[StairRecord, ...]:
        return self._stairs

    @property
    def weights(self) -> RoutingWeights:
        return self._weights

    @property
    def precision(self) -> int:
        return self._precision

    def node_index(self, node: NodeKey) -> int:
        """Insertion position of `node`; used as the deterministic tie-break."""
        return self._order[node]

    def neighbors(self, node: NodeKey) -> Mapping[NodeKey, float]:
        return self._adjacency[node]

    def weight(self, a: NodeKey, b: NodeKey) -> float:
        return self._adjacency[a][b]

    def nodes_on_floor(self, floor: str) -> tuple[NodeKey, ...]:
        return self._by_floor.get(floor, ())

    def edges(self) -> Iterator[tuple[NodeKey, NodeKey, float]]:
        """Yield each undirected edge once, lower insertion index first."""
        for node, nbrs in self._adjacency.items():
            idx = self._order[node]
            for nbr, weight in nbrs.items():
                if idx < self._order[nbr]:
                    yield node, nbr, weight

    def edge_set(self) -> frozenset[tuple[frozenset[NodeKey], float]]:
        """Order-independent view of the edges, for comparing graph versions."""
        return frozenset((frozenset((a, b)), w) for a, b, w in self.edges())

    def key_for(self, lat: float, lon: float, floor: str) -> NodeKey:
        return NodeKey(quantize(lat, self._precision), quantize(lon, self._precision), str(floor))

    def coordinate(self, node: NodeKey) -> LatLon:
        return dequantize(node.lat_q, self._precision), dequantize(node.lon_q, self._precision)


def build_routing_graph(
    features_by_floor: Mapping[str, Iterable[Feature]],
    weights: RoutingWeights | None = None,
    precision: int = DEFAULT_COORD_PRECISION,
    default_floor: str = DEFAULT_FLOOR,
) -> RoutingGraph:
    """Build the multi-floor routing graph.

    Args:
        features_by_floor: Mapping floor id -> features loaded for that floor.
        weights: Walkway hop cost and stair penalty.
        precision: Decimal places kept when quantizing coordinates.
        default_floor: Floor assigned to features without a `level` tag.

    Returns:
        RoutingGraph with walkway and stair edges.
    """
    weights = weights or RoutingWeights()
    floor_features = {str(floor): list(features) for floor, features in features_by_floor.items()}
    adjacency: dict[NodeKey, dict[NodeKey, float]] = {}

    def key(point: LatLon, floor: str) -> NodeKey:
        return NodeKey(quantize(point[0], precision), quantize(point[1], precision), floor)

    def add_node(node: NodeKey) -> None:
        adjacency.setdefault(node, {})

    def add_edge(a: NodeKey, b: NodeKey, weight: float) -> None:
        if a == b:
            return
        add_node(a)
        add_node(b)
        adjacency[a][b] = weight
        adjacency[b][a] = weight

    walkway_count = 0
    for features in floor_features.values():
        for feature in features:
            if not feature.is_walkway:
                continue
            walkway_count += 1
            coords = feature.coordinates
            for floor in feature.floors(default_floor):
                for i in range(len(coords) - 1):
                    add_edge(key(coords[i], floor), key(coords[i + 1], floor), weights.walkway_cost)

    stairs: list[StairRecord] = []
    seen_stairs: set[tuple[bytes, tuple[str, ...], str]] = set()
    for features in floor_features.values():
        for feature in features:
            if not feature.is_stairs:
                continue
            floors = feature.levels
            if not floors:
                LOGGER.debug("Ignoring stairs %s without a level tag", feature.id)
                continue

            identity = (feature.geometry.wkb, floors, feature.stair_name)
            if identity in seen_stairs:
                continue
            seen_stairs.add(identity)

            stair = StairRecord(feature=feature, floors=floors, anchor=feature.anchor)
            stairs.append(stair)

            for floor in floors:
                add_node(key(stair.anchor, floor))
            for floor_a, floor_b in combinations(floors, 2):
                add_edge(key(stair.anchor, floor_a), key(stair.anchor, floor_b), weights.stair_penalty)

    graph = RoutingGraph(adjacency, stairs, weights=weights, precision=precision)
    LOGGER.info(
        "Built routing graph: floors=%d walkways=%d stairs=%d nodes=%d edges=%d",
        len(floor_features),
        walkway_count,
        len(stairs),
        graph.node_count,
        graph.edge_count,
    )
    return graph
