"""Dijkstra shortest-path search over the multi-floor routing graph.

Purpose:
- Compute minimum-cost routes where same-floor hops and stair hops carry
  fixed weights (see `RoutingWeights`).
- Produce reproducible results: equal distances are settled in graph
  insertion order.

Usage example:
    >>> from wayfinder.pathfinding import shortest_path
    >>> result = shortest_path(graph, start_node, goal_node)
    >>> result.path
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from math import inf

from wayfinder.graph import NodeKey, RoutingGraph

UNREACHABLE = "unreachable"


@dataclass(slots=True)
class PathResult:
    """Outcome of a shortest-path search."""

    path: list[NodeKey] | None
    cost: float
    expanded: int
    reason: str | None = None
    costs: list[float] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.path is not None


def shortest_path(graph: RoutingGraph, start: NodeKey, goal: NodeKey) -> PathResult:
    """Run Dijkstra from `start` to `goal`.

    Args:
        graph: Routing graph snapshot.
        start: Start node, must exist in the graph.
        goal: Goal node, must exist in the graph.

    Returns:
        PathResult with the node sequence start -> goal inclusive, or
        `path=None` and `reason="unreachable"` when the goal cannot be reached.

    Raises:
        ValueError: If start or goal is not a node of the graph.
    """
    if start not in graph:
        raise ValueError(f"Start node is not in the routing graph: {start}")
    if goal not in graph:
        raise ValueError(f"Goal node is not in the routing graph: {goal}")

    if start == goal:
        return PathResult(path=[start], cost=0.0, expanded=0, costs=[0.0])

    # Heap entries: (distance, insertion index, node).
    open_heap: list[tuple[float, int, NodeKey]] = [(0.0, graph.node_index(start), start)]
    came_from: dict[NodeKey, NodeKey] = {}
    g_score: dict[NodeKey, float] = {start: 0.0}
    closed: set[NodeKey] = set()

    while open_heap:
        dist, _, current = heapq.heappop(open_heap)

        if current in closed:
            continue

        if current == goal:
            path = [current]
            while current in came_from:
                current = came_from[current]
                path.append(current)
            path.reverse()
            return PathResult(
                path=path,
                cost=dist,
                expanded=len(closed),
                costs=[g_score[node] for node in path],
            )

        closed.add(current)

        for neighbor, step_cost in graph.neighbors(current).items():
            if neighbor in closed:
                continue

            tentative = dist + step_cost
            if tentative < g_score.get(neighbor, inf):
                came_from[neighbor] = current
                g_score[neighbor] = tentative
                heapq.heappush(open_heap, (tentative, graph.node_index(neighbor), neighbor))

    return PathResult(path=None, cost=inf, expanded=len(closed), reason=UNREACHABLE)
