"""Snap arbitrary query locations onto the routing graph.

Candidates on a floor are exactly the graph nodes on that floor: walkway
vertices plus stair anchors listing the floor. Distances are great-circle
meters, evaluated in one vectorized pass per query.
"""

from __future__ import annotations

import logging

import numpy as np

from wayfinder.graph import NodeKey, RoutingGraph
from wayfinder.utils import LatLon, haversine_m

LOGGER = logging.getLogger(__name__)


class NearestNodeResolver:
    """Per-floor candidate arrays for nearest-node lookups.

    Build once per graph; the arrays are never mutated afterwards.
    """

    def __init__(self, graph: RoutingGraph) -> None:
        self._graph = graph
        self._candidates: dict[str, tuple[tuple[NodeKey, ...], np.ndarray, np.ndarray]] = {}
        for floor in graph.floors:
            nodes = graph.nodes_on_floor(floor)
            coords = np.array([graph.coordinate(node) for node in nodes], dtype=np.float64)
            self._candidates[floor] = (nodes, coords[:, 0], coords[:, 1])

    @property
    def graph(self) -> RoutingGraph:
        return self._graph

    def has_floor(self, floor: str) -> bool:
        return floor in self._candidates

    def nearest(self, point: LatLon, floor: str) -> NodeKey | None:
        """Return the closest node on `floor`, or None when the floor has no walkable geometry.

        Ties resolve to the first candidate in graph insertion order.
        """
        entry = self._candidates.get(str(floor))
        if entry is None:
            LOGGER.debug("No routable nodes on floor %s", floor)
            return None

        nodes, lats, lons = entry
        distances = haversine_m(float(point[0]), float(point[1]), lats, lons)
        best = int(np.argmin(distances))
        return nodes[best]

    def distance_m(self, point: LatLon, node: NodeKey) -> float:
        """Great-circle distance from a query point to a node."""
        lat, lon = self._graph.coordinate(node)
        return float(haversine_m(float(point[0]), float(point[1]), lat, lon))
