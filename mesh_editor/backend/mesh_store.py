"""
Mesh Store - the single writer of graph state.

This module implements:
- The node/edge collections and the current selection
- O(1) node/edge lookups via index dictionaries
- The mutation API used by the canvas, the REST API and synthesis
- Atomic batches (transactions) with rollback on failure
- Immutable snapshots for readers
- Layout delegated to core.layout
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator, Optional

from ..core.layout import DEFAULT_LAYOUT, LayoutConfig, LayoutDirection, layered_layout, parse_direction
from ..core.models import (
    GraphEdge,
    GraphNode,
    GraphSnapshot,
    PositionChange,
    RemoveChange,
    SelectChange,
    ServiceStatus,
    edge_changes_adapter,
    normalize_key,
    node_changes_adapter,
)
from ..core.seed import seed_edges, seed_nodes
from ..core.service_types import resolve_service_type
from ..core.validation import (
    ConnectResult,
    IssueSeverity,
    check_connection,
    validate_graph,
)

logger = logging.getLogger(__name__)

# Keys update_node never touches
_PROTECTED_KEYS = ("id", "position")


class MeshStore:
    """
    Owns the mesh graph and is the only component allowed to change it.

    Features:
    - O(1) node/edge lookups via index dictionaries
    - Deterministic edge ids ("<source>-><target>") and connection validation
    - Transactions: a batch of mutations commits once or not at all
    - Change callbacks fired once per committed mutation
    - Snapshots hold deep copies; nothing returned here aliases store state

    All public methods take the same re-entrant lock, so the store can be
    shared between an event loop and worker threads without two writers
    ever interleaving.
    """

    def __init__(self, seed: bool = True, layout_config: LayoutConfig = DEFAULT_LAYOUT):
        self._lock = threading.RLock()
        self._layout_config = layout_config
        self._on_change_callbacks: list[Callable] = []
        self._version = 0

        self._selected_node_id: Optional[str] = None
        self._batch_depth = 0
        self._batch_dirty = False

        # O(1) lookup indexes
        self._nodes: dict[str, GraphNode] = {}          # node_id -> GraphNode (insertion ordered)
        self._edges: dict[str, GraphEdge] = {}          # edge_id -> GraphEdge
        self._pairs: set[tuple[str, str]] = set()       # (source, target) of every edge
        self._edges_by_node: dict[str, set[str]] = {}   # node_id -> set of edge_ids

        if seed:
            self._load(seed_nodes(), seed_edges())

    # --- Index Management ---

    def _load(self, nodes: Iterable[GraphNode], edges: Iterable[GraphEdge], selected: Optional[str] = None):
        """Replace all state and rebuild indexes."""
        self._nodes.clear()
        self._edges.clear()
        self._pairs.clear()
        self._edges_by_node.clear()

        for node in nodes:
            self._nodes[node.id] = node
        for edge in edges:
            self._index_edge(edge)
        self._selected_node_id = selected

    def _index_edge(self, edge: GraphEdge):
        """Add an edge to the indexes."""
        self._edges[edge.id] = edge
        self._pairs.add(edge.pair)
        self._edges_by_node.setdefault(edge.source, set()).add(edge.id)
        self._edges_by_node.setdefault(edge.target, set()).add(edge.id)

    def _unindex_edge(self, edge: GraphEdge):
        """Remove an edge from the indexes."""
        self._edges.pop(edge.id, None)
        self._pairs.discard(edge.pair)
        if edge.source in self._edges_by_node:
            self._edges_by_node[edge.source].discard(edge.id)
        if edge.target in self._edges_by_node:
            self._edges_by_node[edge.target].discard(edge.id)

    # --- Properties ---

    @property
    def version(self) -> int:
        """Number of committed mutations so far."""
        return self._version

    @property
    def selected_node_id(self) -> Optional[str]:
        return self._selected_node_id

    @property
    def layout_config(self) -> LayoutConfig:
        return self._layout_config

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    # --- Change Callbacks ---

    def on_change(self, callback: Callable):
        """Register a callback for committed changes."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        """Notify all registered callbacks of a change."""
        for callback in self._on_change_callbacks:
            callback()

    # --- Transactions ---

    def _capture(self) -> tuple[list[GraphNode], list[GraphEdge], Optional[str]]:
        """Deep copy of the current state, used for rollback."""
        return (
            [n.model_copy(deep=True) for n in self._nodes.values()],
            [e.model_copy(deep=True) for e in self._edges.values()],
            self._selected_node_id,
        )

    def _view(self) -> GraphSnapshot:
        """Snapshot that shares store objects; internal use only."""
        return GraphSnapshot(
            nodes=tuple(self._nodes.values()),
            edges=tuple(self._edges.values()),
            selected_node_id=self._selected_node_id,
            version=self._version,
        )

    def _assert_invariants(self):
        errors = [i for i in validate_graph(self._view()) if i.severity == IssueSeverity.ERROR]
        if errors:
            raise AssertionError(
                "Mesh invariants violated: " + "; ".join(i.message for i in errors)
            )

    def _changed(self):
        """Mark the current transaction as having modified state."""
        self._batch_dirty = True

    @contextmanager
    def transaction(self) -> Iterator["MeshStore"]:
        """
        Group mutations into one atomic commit.

        The lock is held for the whole block, so readers see the state from
        before or after it, never in between. If the block raises, state is
        rolled back and no change callback fires. Nested transactions join
        the outermost one.
        """
        with self._lock:
            outer = self._batch_depth == 0
            captured = self._capture() if outer else None
            self._batch_depth += 1
            try:
                yield self
                if outer and self._batch_dirty:
                    self._assert_invariants()
            except BaseException:
                if outer:
                    self._load(*captured)
                    self._batch_dirty = False
                raise
            finally:
                self._batch_depth -= 1

            if outer and self._batch_dirty:
                self._batch_dirty = False
                self._version += 1
                self._notify_change()

    # --- Read Access ---

    def snapshot(self) -> GraphSnapshot:
        """Immutable copy of the current graph."""
        with self._lock:
            return GraphSnapshot(
                nodes=tuple(n.model_copy(deep=True) for n in self._nodes.values()),
                edges=tuple(e.model_copy(deep=True) for e in self._edges.values()),
                selected_node_id=self._selected_node_id,
                version=self._version,
            )

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        """Get a copy of a node by ID (O(1) lookup)."""
        with self._lock:
            node = self._nodes.get(node_id)
            return node.model_copy(deep=True) if node else None

    def get_edge(self, edge_id: str) -> Optional[GraphEdge]:
        """Get a copy of an edge by ID (O(1) lookup)."""
        with self._lock:
            edge = self._edges.get(edge_id)
            return edge.model_copy(deep=True) if edge else None

    def get_edges_for_node(self, node_id: str) -> list[GraphEdge]:
        """Get all edges touching a node (O(1) index lookup)."""
        with self._lock:
            edge_ids = self._edges_by_node.get(node_id, set())
            return [
                self._edges[eid].model_copy(deep=True)
                for eid in sorted(edge_ids)
                if eid in self._edges
            ]

    # --- Node Operations ---

    def add_node(self, node: GraphNode) -> bool:
        """
        Insert a node.

        A node whose id is already taken is rejected: nothing changes and
        False is returned.
        """
        with self.transaction():
            if node.id in self._nodes:
                logger.warning("Rejected node %s: id already exists", node.id)
                return False
            self._nodes[node.id] = node.model_copy(deep=True)
            self._changed()
            return True

    def remove_node(self, node_id: str) -> bool:
        """Delete a node, every edge touching it, and its selection."""
        with self.transaction():
            if node_id not in self._nodes:
                logger.debug("remove_node: %s not found", node_id)
                return False

            del self._nodes[node_id]

            # Remove all edges connected to this node
            for edge_id in list(self._edges_by_node.pop(node_id, set())):
                edge = self._edges.get(edge_id)
                if edge:
                    self._unindex_edge(edge)

            if self._selected_node_id == node_id:
                self._selected_node_id = None

            self._changed()
            return True

    def update_node(self, node_id: str, changes: dict[str, Any]) -> Optional[GraphNode]:
        """
        Shallow-merge changes into a node.

        `label`, `status` and `service_type` (or `serviceType`) update the
        node's own fields; a nested `attributes` dict and every other key are
        merged into the attribute bag. `id` and `position` are ignored.

        Returns:
            A copy of the updated node, or None if the node doesn't exist

        Raises:
            ValueError: if `status` is not a known ServiceStatus, `label` or
                `service_type` is not a string, or `attributes` is not a dict
        """
        with self.transaction():
            node = self._nodes.get(node_id)
            if node is None:
                logger.debug("update_node: %s not found", node_id)
                return None

            updates = {normalize_key(k): v for k, v in changes.items()}
            for key in _PROTECTED_KEYS:
                if key in updates:
                    updates.pop(key)
                    logger.debug("update_node: ignoring '%s' for %s", key, node_id)

            # Validate everything before touching the node
            for key in ("label", "service_type"):
                if key in updates and not isinstance(updates[key], str):
                    raise ValueError(f"'{key}' must be a string")
            if not isinstance(updates.get("attributes", {}), dict):
                raise ValueError("'attributes' must be an object")

            status = ServiceStatus(updates.pop("status")).value if "status" in updates else None
            service_type = (
                resolve_service_type(updates.pop("service_type"))
                if "service_type" in updates else None
            )
            label = updates.pop("label", None)
            nested = updates.pop("attributes", {})

            if status is not None:
                node.status = status
            if service_type is not None:
                node.service_type = service_type
            if label is not None:
                node.label = label
            node.attributes = {**node.attributes, **nested, **updates}

            self._changed()
            return node.model_copy(deep=True)

    def apply_node_changes(self, batch: Iterable[Any]) -> GraphSnapshot:
        """
        Apply a batch of canvas change descriptors in one commit.

        The whole batch is parsed first; a malformed descriptor raises
        pydantic.ValidationError before anything is applied. Descriptors for
        nodes that no longer exist are skipped.
        """
        changes = node_changes_adapter.validate_python(list(batch))

        with self.transaction():
            for change in changes:
                if isinstance(change, PositionChange):
                    node = self._nodes.get(change.id)
                    if node is not None:
                        node.position = change.position.model_copy()
                        self._changed()
                elif isinstance(change, SelectChange):
                    if change.id not in self._nodes:
                        continue
                    if change.selected:
                        self._selected_node_id = change.id
                        self._changed()
                    elif self._selected_node_id == change.id:
                        self._selected_node_id = None
                        self._changed()
                elif isinstance(change, RemoveChange):
                    self.remove_node(change.id)

        return self.snapshot()

    # Drag interactions arrive as position/selection batches
    apply_position_changes = apply_node_changes

    def set_selected_node(self, node_id: Optional[str]) -> Optional[str]:
        """
        Select a node, or clear the selection with None.

        A stale id is clamped to None. Returns the resulting selection.
        """
        with self.transaction():
            if node_id is not None and node_id not in self._nodes:
                logger.debug("set_selected_node: %s not found, clearing selection", node_id)
                node_id = None
            if node_id != self._selected_node_id:
                self._selected_node_id = node_id
                self._changed()
            return self._selected_node_id

    # --- Edge Operations ---

    def connect(self, source: str, target: str, label: str = "") -> ConnectResult:
        """
        Connect two nodes with an animated edge.

        Refused connections (self-loop, missing endpoint, duplicate) leave
        state unchanged and are reported in the result, never raised.
        """
        return self.add_edge(GraphEdge(source=source, target=target, label=label))

    def add_edge(self, edge: GraphEdge) -> ConnectResult:
        """Insert a fully specified edge through the connection validator."""
        with self.transaction():
            rejected = check_connection(edge.source, edge.target, self._nodes, self._pairs)
            if rejected is not None:
                logger.debug("Rejected edge %s: %s", edge.id, rejected.value)
                return ConnectResult(rejected=rejected)

            edge = edge.model_copy(deep=True)
            self._index_edge(edge)
            self._changed()
            return ConnectResult(edge=edge.model_copy(deep=True))

    def remove_edge(self, edge_id: str) -> bool:
        """Delete an edge."""
        with self.transaction():
            edge = self._edges.get(edge_id)
            if edge is None:
                logger.debug("remove_edge: %s not found", edge_id)
                return False
            self._unindex_edge(edge)
            self._changed()
            return True

    def apply_edge_changes(self, batch: Iterable[Any]) -> GraphSnapshot:
        """
        Apply a batch of edge change descriptors in one commit.

        Only removals change state; edge selection is a canvas concern and
        is accepted but not stored.
        """
        changes = edge_changes_adapter.validate_python(list(batch))

        with self.transaction():
            for change in changes:
                if isinstance(change, RemoveChange):
                    self.remove_edge(change.id)

        return self.snapshot()

    # --- Whole-graph Operations ---

    def reset(self) -> GraphSnapshot:
        """Replace everything with the seed graph."""
        with self.transaction():
            self._load(seed_nodes(), seed_edges())
            self._changed()
        return self.snapshot()

    def clear(self) -> GraphSnapshot:
        """Remove every node, edge and the selection."""
        with self.transaction():
            if self._nodes or self._selected_node_id is not None:
                self._load([], [])
                self._changed()
        return self.snapshot()

    def layout(self, direction: "str | LayoutDirection" = LayoutDirection.HORIZONTAL) -> GraphSnapshot:
        """Rearrange all nodes with the layered layout engine."""
        direction = parse_direction(direction)

        with self.transaction():
            if self._nodes:
                laid_out = layered_layout(
                    list(self._nodes.values()),
                    list(self._edges.values()),
                    direction,
                    self._layout_config,
                )
                for node in laid_out:
                    self._nodes[node.id].position = node.position
                self._changed()

        return self.snapshot()

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        return self.snapshot().to_json_dict()
