"""
Unit tests for the layered layout
"""

import pytest

from mesh_editor.core import (
    DEFAULT_LAYOUT,
    GraphEdge,
    GraphNode,
    LayoutDirection,
    compute_ranks,
    fallback_position,
    layered_layout,
    parse_direction,
    seed_edges,
    seed_nodes,
)
from mesh_editor.core.layout import find_back_edges


def _nodes(*ids):
    return [GraphNode(id=i) for i in ids]


def _edges(*pairs):
    return [GraphEdge(source=s, target=t) for s, t in pairs]


def _positions(nodes):
    return {n.id: (n.position.x, n.position.y) for n in nodes}


def _boxes_overlap(a, b, config=DEFAULT_LAYOUT):
    return (
        abs(a[0] - b[0]) < config.node_width
        and abs(a[1] - b[1]) < config.node_height
    )


class TestParseDirection:

    @pytest.mark.parametrize("value,expected", [
        ("horizontal", LayoutDirection.HORIZONTAL),
        ("LR", LayoutDirection.HORIZONTAL),
        ("vertical", LayoutDirection.VERTICAL),
        ("tb", LayoutDirection.VERTICAL),
        (LayoutDirection.VERTICAL, LayoutDirection.VERTICAL),
    ])
    def test_accepted(self, value, expected):
        assert parse_direction(value) == expected

    def test_unknown(self):
        with pytest.raises(ValueError):
            parse_direction("diagonal")


class TestRanks:

    def test_seed_ranks(self):
        ranks = compute_ranks(seed_nodes(), seed_edges())
        assert ranks == {
            "mqtt-source": 0,
            "filter-node": 1,
            "transform-node": 2,
            "postgres-sink": 3,
            "http-api": 3,
        }

    def test_longest_path_wins(self):
        ranks = compute_ranks(_nodes("a", "b", "c"), _edges(("a", "b"), ("b", "c"), ("a", "c")))
        assert ranks["c"] == 2

    def test_cycle_is_broken(self):
        nodes = _nodes("a", "b", "c")
        edges = _edges(("a", "b"), ("b", "c"), ("c", "a"))
        order = [n.id for n in nodes]
        successors = {"a": ["b"], "b": ["c"], "c": ["a"]}
        assert find_back_edges(order, successors) == {("c", "a")}
        assert compute_ranks(nodes, edges) == {"a": 0, "b": 1, "c": 2}

    def test_source_nodes_start_the_search(self):
        # "x" feeds the cycle, so the search enters it at "b" and "a"->"b" is the back-edge
        nodes = _nodes("a", "b", "x")
        edges = _edges(("a", "b"), ("b", "a"), ("x", "b"))
        ranks = compute_ranks(nodes, edges)
        assert ranks["x"] == 0
        assert ranks["b"] == 1
        assert ranks["a"] == 2


class TestLayeredLayout:

    def test_seed_horizontal_coordinates(self):
        positions = _positions(layered_layout(seed_nodes(), seed_edges(), "horizontal"))
        assert positions["mqtt-source"] == (50, 135)
        assert positions["filter-node"] == (430, 135)
        assert positions["transform-node"] == (810, 135)
        assert positions["postgres-sink"] == (1190, 50)
        assert positions["http-api"] == (1190, 220)

    def test_seed_vertical_coordinates(self):
        positions = _positions(layered_layout(seed_nodes(), seed_edges(), "vertical"))
        assert positions["mqtt-source"] == (240, 50)
        assert positions["filter-node"] == (240, 220)
        assert positions["transform-node"] == (240, 390)
        assert positions["postgres-sink"] == (50, 560)
        assert positions["http-api"] == (430, 560)

    def test_downstream_never_left_of_upstream(self):
        nodes = layered_layout(seed_nodes(), seed_edges())
        x = {n.id: n.position.x for n in nodes}
        for edge in seed_edges():
            assert x[edge.target] >= x[edge.source]

    def test_no_overlaps(self):
        nodes = _nodes("a", "b", "c", "d", "e", "f")
        edges = _edges(("a", "b"), ("a", "c"), ("a", "d"), ("b", "e"), ("c", "e"), ("d", "f"))
        for direction in ("horizontal", "vertical"):
            positions = list(_positions(layered_layout(nodes, edges, direction)).values())
            for i, first in enumerate(positions):
                for second in positions[i + 1:]:
                    assert not _boxes_overlap(first, second)

    def test_terminates_on_cycles(self):
        nodes = _nodes("a", "b", "c")
        edges = _edges(("a", "b"), ("b", "c"), ("c", "a"))
        assert len(layered_layout(nodes, edges)) == 3

    def test_idempotent(self):
        once = layered_layout(seed_nodes(), seed_edges())
        twice = layered_layout(once, seed_edges())
        assert _positions(once) == _positions(twice)

    def test_does_not_mutate_input(self):
        nodes = seed_nodes()
        before = _positions(nodes)
        layered_layout(nodes, seed_edges())
        assert _positions(nodes) == before

    def test_ignores_dangling_edges_and_self_loops(self):
        nodes = _nodes("a", "b")
        edges = _edges(("a", "a"), ("a", "ghost"), ("a", "b"))
        positions = _positions(layered_layout(nodes, edges))
        assert positions["b"][0] > positions["a"][0]

    def test_empty_graph(self):
        assert layered_layout([], []) == []

    def test_barycenter_untangles_crossing(self):
        # a->d and b->c would cross if c stayed above d
        nodes = _nodes("a", "b", "c", "d")
        edges = _edges(("a", "d"), ("b", "c"))
        positions = _positions(layered_layout(nodes, edges))
        assert positions["a"][1] < positions["b"][1]
        assert positions["d"][1] < positions["c"][1]


class TestFallbackPosition:

    def test_horizontal_stagger(self):
        assert (fallback_position(0).x, fallback_position(0).y) == (0, 100)
        assert (fallback_position(1).x, fallback_position(1).y) == (300, 200)
        assert (fallback_position(2).x, fallback_position(2).y) == (600, 100)

    def test_vertical_swaps_axes(self):
        position = fallback_position(1, "vertical")
        assert (position.x, position.y) == (200, 300)
