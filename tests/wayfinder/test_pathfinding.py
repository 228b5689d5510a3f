"""Unit tests for wayfinder.pathfinding."""

from __future__ import annotations

import pytest

from wayfinder.graph import RoutingWeights, build_routing_graph
from wayfinder.pathfinding import shortest_path


@pytest.fixture()
def abc_graph(line, parse):
    """Floor 0 line A - B - C."""
    corridor = parse(line([(0.0, 0.0), (0.0, 1.0), (0.0, 2.0)], indoor="corridor", level="0"))
    return build_routing_graph({"0": [corridor]})


def test_trivial_path_returns_single_node(abc_graph) -> None:
    """start == goal is a valid zero-cost route."""
    node = abc_graph.key_for(1.0, 0.0, "0")
    result = shortest_path(abc_graph, node, node)

    assert result.path == [node]
    assert result.cost == 0.0
    assert result.reason is None


def test_line_path_a_b_c(abc_graph) -> None:
    a, b, c = (abc_graph.key_for(lat, 0.0, "0") for lat in (0.0, 1.0, 2.0))
    result = shortest_path(abc_graph, a, c)

    assert result.path == [a, b, c]
    assert result.cost == 2.0
    assert result.costs == [0.0, 1.0, 2.0]


def test_prefers_two_hops_over_one_stair(line, point, parse) -> None:
    """A 2-hop same-floor detour (cost 2) beats a stair shortcut (one stair hop costs 10)."""
    detour = parse(line([(0.0, 0.0), (1.0, 0.0), (0.0, 2.0)], highway="footway", level="0"))
    upstairs = parse(line([(0.0, 0.0), (0.0, 2.0)], indoor="corridor", level="1"))
    stairs_a = parse(point((0.0, 0.0), highway="steps", level="0;1", name="West"))
    stairs_b = parse(point((0.0, 2.0), highway="steps", level="0;1", name="East"))
    graph = build_routing_graph({"0": [detour, upstairs, stairs_a, stairs_b]})

    start = graph.key_for(0.0, 0.0, "0")
    goal = graph.key_for(2.0, 0.0, "0")
    result = shortest_path(graph, start, goal)

    assert result.path == [start, graph.key_for(0.0, 1.0, "0"), goal]
    assert result.cost == 2.0


def test_crossing_floors_adds_stair_penalty(campus_snapshot) -> None:
    graph = campus_snapshot.graph
    start = graph.key_for(8.0650, 123.7560, "0")
    goal = graph.key_for(8.0652, 123.7562, "1")

    result = shortest_path(graph, start, goal)

    assert result.cost == 14.0
    assert [node.floor for node in result.path] == ["0", "0", "0", "1", "1", "1"]


def test_stair_penalty_is_configurable(campus_features) -> None:
    graph = build_routing_graph(campus_features, weights=RoutingWeights(stair_penalty=3.0))
    start = graph.key_for(8.0650, 123.7560, "0")
    goal = graph.key_for(8.0652, 123.7562, "1")

    assert shortest_path(graph, start, goal).cost == 7.0


def test_disconnected_returns_no_path(line, parse) -> None:
    left = parse(line([(0.0, 0.0), (0.0, 1.0)], indoor="corridor"))
    right = parse(line([(5.0, 5.0), (5.0, 6.0)], indoor="corridor"))
    graph = build_routing_graph({"0": [left, right]})

    result = shortest_path(graph, graph.key_for(0.0, 0.0, "0"), graph.key_for(6.0, 5.0, "0"))

    assert result.path is None
    assert not result.found
    assert result.reason == "unreachable"


def test_unknown_node_raises(abc_graph) -> None:
    missing = abc_graph.key_for(50.0, 50.0, "0")
    with pytest.raises(ValueError, match="Start node"):
        shortest_path(abc_graph, missing, abc_graph.key_for(0.0, 0.0, "0"))


def test_equal_cost_ties_are_deterministic(line, parse) -> None:
    """Two equal-cost branches resolve the same way on every build."""
    north = parse(line([(0.0, 0.0), (0.0, 1.0), (1.0, 1.0)], indoor="corridor"))
    south = parse(line([(0.0, 0.0), (1.0, 0.0), (1.0, 1.0)], indoor="corridor"))

    paths = []
    for _ in range(3):
        graph = build_routing_graph({"0": [north, south]})
        paths.append(shortest_path(graph, graph.key_for(0.0, 0.0, "0"), graph.key_for(1.0, 1.0, "0")).path)

    assert paths[0] == paths[1] == paths[2]
    assert len(paths[0]) == 3
