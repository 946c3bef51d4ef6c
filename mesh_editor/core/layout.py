"""
Layered layout for mesh graphs.

Arranges services into ranks that follow the direction of data flow:
- Cycles are broken by ignoring DFS back-edges for ranking purposes
- Ranks come from longest-path layering (sources sit in rank 0)
- Nodes inside a rank are reordered with barycenter sweeps to reduce crossings
- Every node gets a fixed footprint; positions are slot centers shifted by
  half the footprint, so the node box is centered on its slot

All functions here are pure: they return new nodes and never touch their input.
"""

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterable

from .models import Position

if TYPE_CHECKING:
    from .models import GraphNode, GraphEdge


class LayoutDirection(str, Enum):
    """Primary axis of the data flow."""
    HORIZONTAL = "horizontal"  # left-to-right
    VERTICAL = "vertical"      # top-to-bottom


_DIRECTION_ALIASES = {
    "horizontal": LayoutDirection.HORIZONTAL,
    "lr": LayoutDirection.HORIZONTAL,
    "vertical": LayoutDirection.VERTICAL,
    "tb": LayoutDirection.VERTICAL,
}


@dataclass(frozen=True)
class LayoutConfig:
    """Footprint and spacing constants (pixels)."""
    node_width: float = 280
    node_height: float = 120
    horizontal_spacing: float = 100
    vertical_spacing: float = 50
    margin_x: float = 50
    margin_y: float = 50
    ordering_sweeps: int = 4


DEFAULT_LAYOUT = LayoutConfig()

# Pre-layout placement used for freshly synthesized nodes
FALLBACK_STEP = 300
FALLBACK_OFFSET = 100


def parse_direction(direction: "str | LayoutDirection") -> LayoutDirection:
    """Accept 'horizontal'/'LR' or 'vertical'/'TB' (any case)."""
    if isinstance(direction, LayoutDirection):
        return direction
    try:
        return _DIRECTION_ALIASES[str(direction).strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown layout direction: {direction}") from None


def _adjacency(
    nodes: Iterable["GraphNode"],
    edges: Iterable["GraphEdge"],
) -> tuple[list[str], dict[str, list[str]]]:
    """Node order and successor lists, skipping self-loops and dangling edges."""
    order = [n.id for n in nodes]
    successors: dict[str, list[str]] = {nid: [] for nid in order}
    for edge in edges:
        if edge.source == edge.target:
            continue
        if edge.source not in successors or edge.target not in successors:
            continue
        if edge.target not in successors[edge.source]:
            successors[edge.source].append(edge.target)
    return order, successors


def find_back_edges(order: list[str], successors: dict[str, list[str]]) -> set[tuple[str, str]]:
    """
    Find the edges that close a cycle.

    Runs an iterative DFS, visiting source nodes (no incoming edges) first and
    then any node left unvisited, in node order. An edge pointing at a node
    still on the DFS stack is a back-edge. Removing all back-edges leaves a DAG.
    """
    has_incoming = {t for targets in successors.values() for t in targets}
    roots = [n for n in order if n not in has_incoming] + order

    # 0 = unvisited, 1 = on stack, 2 = done
    state = {nid: 0 for nid in order}
    back_edges: set[tuple[str, str]] = set()

    for root in roots:
        if state[root] != 0:
            continue
        state[root] = 1
        stack = [(root, iter(successors[root]))]
        while stack:
            node, children = stack[-1]
            for child in children:
                if state[child] == 1:
                    back_edges.add((node, child))
                elif state[child] == 0:
                    state[child] = 1
                    stack.append((child, iter(successors[child])))
                    break
            else:
                state[node] = 2
                stack.pop()

    return back_edges


def _ranked_dag(
    nodes: Iterable["GraphNode"],
    edges: Iterable["GraphEdge"],
) -> tuple[list[str], dict[str, list[str]], dict[str, int]]:
    order, successors = _adjacency(nodes, edges)
    back_edges = find_back_edges(order, successors)
    dag = {
        nid: [t for t in targets if (nid, t) not in back_edges]
        for nid, targets in successors.items()
    }

    # Longest-path layering over the DAG (Kahn's algorithm)
    indegree = {nid: 0 for nid in order}
    for targets in dag.values():
        for t in targets:
            indegree[t] += 1

    ranks = {nid: 0 for nid in order}
    queue = deque(nid for nid in order if indegree[nid] == 0)
    while queue:
        nid = queue.popleft()
        for t in dag[nid]:
            ranks[t] = max(ranks[t], ranks[nid] + 1)
            indegree[t] -= 1
            if indegree[t] == 0:
                queue.append(t)

    return order, dag, ranks


def compute_ranks(nodes: list["GraphNode"], edges: list["GraphEdge"]) -> dict[str, int]:
    """
    Assign each node a rank along the flow direction.

    Nodes with no incoming dependencies get rank 0; every other node sits
    one rank after its furthest upstream neighbour. Back-edges found by
    find_back_edges are ignored, so cyclic graphs still get a finite ranking.
    """
    _, _, ranks = _ranked_dag(nodes, edges)
    return ranks


def _order_layers(
    order: list[str],
    dag: dict[str, list[str]],
    ranks: dict[str, int],
    sweeps: int,
) -> list[list[str]]:
    """Group nodes by rank and reduce crossings with barycenter sweeps."""
    depth = max(ranks.values()) + 1
    layers: list[list[str]] = [[] for _ in range(depth)]
    for nid in order:
        layers[ranks[nid]].append(nid)

    predecessors: dict[str, list[str]] = {nid: [] for nid in order}
    for source, targets in dag.items():
        for t in targets:
            predecessors[t].append(source)

    def slot(layer: list[str]) -> dict[str, float]:
        # Centered index, matching the final coordinate assignment
        mid = (len(layer) - 1) / 2
        return {nid: i - mid for i, nid in enumerate(layer)}

    def reorder(layer: list[str], neighbours: dict[str, list[str]], placed: dict[str, float]) -> list[str]:
        current = slot(layer)

        def key(nid: str) -> tuple[float, float]:
            linked = [placed[n] for n in neighbours[nid] if n in placed]
            center = sum(linked) / len(linked) if linked else current[nid]
            return (center, current[nid])

        return sorted(layer, key=key)

    for _ in range(sweeps):
        placed: dict[str, float] = {}
        for i, layer in enumerate(layers):
            if i > 0:
                layers[i] = reorder(layer, predecessors, placed)
            placed.update(slot(layers[i]))

        placed = {}
        for i in range(depth - 1, -1, -1):
            if i < depth - 1:
                layers[i] = reorder(layers[i], dag, placed)
            placed.update(slot(layers[i]))

    return layers


def layered_layout(
    nodes: list["GraphNode"],
    edges: list["GraphEdge"],
    direction: "str | LayoutDirection" = LayoutDirection.HORIZONTAL,
    config: LayoutConfig = DEFAULT_LAYOUT,
) -> list["GraphNode"]:
    """
    Compute a layered layout for the graph.

    Args:
        nodes: All nodes of the graph
        edges: All edges of the graph (edges to unknown nodes are ignored)
        direction: "horizontal" (left-to-right) or "vertical" (top-to-bottom)
        config: Footprint and spacing constants

    Returns:
        Copies of the nodes, in input order, with updated positions
    """
    direction = parse_direction(direction)
    if not nodes:
        return []

    order, dag, ranks = _ranked_dag(nodes, edges)
    layers = _order_layers(order, dag, ranks, config.ordering_sweeps)

    horizontal = direction == LayoutDirection.HORIZONTAL
    if horizontal:
        primary_size, secondary_size = config.node_width, config.node_height
        rank_sep, node_sep = config.horizontal_spacing, config.vertical_spacing
        primary_margin, secondary_margin = config.margin_x, config.margin_y
    else:
        primary_size, secondary_size = config.node_height, config.node_width
        rank_sep, node_sep = config.vertical_spacing, config.horizontal_spacing
        primary_margin, secondary_margin = config.margin_y, config.margin_x

    rank_step = primary_size + rank_sep
    slot_step = secondary_size + node_sep
    widest = max(len(layer) for layer in layers)
    secondary_center = secondary_margin + (widest * secondary_size + (widest - 1) * node_sep) / 2

    positions: dict[str, Position] = {}
    for rank, layer in enumerate(layers):
        primary = primary_margin + rank * rank_step + primary_size / 2
        mid = (len(layer) - 1) / 2
        for i, nid in enumerate(layer):
            secondary = secondary_center + (i - mid) * slot_step
            cx, cy = (primary, secondary) if horizontal else (secondary, primary)
            positions[nid] = Position(
                x=cx - config.node_width / 2,
                y=cy - config.node_height / 2,
            )

    return [
        node.model_copy(update={"position": positions[node.id]}, deep=True)
        for node in nodes
    ]


def fallback_position(
    index: int,
    direction: "str | LayoutDirection" = LayoutDirection.HORIZONTAL,
) -> Position:
    """
    Staggered placement along the primary axis for a node's index.

    Used before layout runs so freshly added nodes don't stack on one spot.
    """
    along = index * FALLBACK_STEP
    across = FALLBACK_OFFSET + (index % 2) * FALLBACK_OFFSET
    if parse_direction(direction) == LayoutDirection.HORIZONTAL:
        return Position(x=along, y=across)
    return Position(x=across, y=along)
