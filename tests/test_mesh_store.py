"""
Unit tests for the MeshStore
"""

import pytest
from pydantic import ValidationError

from mesh_editor.backend.mesh_store import MeshStore
from mesh_editor.core import ConnectionRejected, GraphNode, Position

SEED_NODE_IDS = ["mqtt-source", "filter-node", "transform-node", "postgres-sink", "http-api"]
SEED_EDGE_PAIRS = [
    ("mqtt-source", "filter-node"),
    ("filter-node", "transform-node"),
    ("transform-node", "postgres-sink"),
    ("transform-node", "http-api"),
]


def _ids(store):
    return [n.id for n in store.snapshot().nodes]


def _pairs(store):
    return [(e.source, e.target) for e in store.snapshot().edges]


def _counter(store):
    calls = []
    store.on_change(lambda: calls.append(store.version))
    return calls


class TestSeedAndReset:

    def test_starts_with_seed_graph(self, store):
        assert _ids(store) == SEED_NODE_IDS
        assert _pairs(store) == SEED_EDGE_PAIRS
        assert store.selected_node_id is None
        assert store.version == 0

    def test_empty_store(self, empty_store):
        assert len(empty_store) == 0
        assert empty_store.snapshot().edges == ()

    def test_reset_restores_seed(self, store):
        store.remove_node("filter-node")
        store.connect("postgres-sink", "mqtt-source")
        store.set_selected_node("http-api")

        snapshot = store.reset()
        assert [n.id for n in snapshot.nodes] == SEED_NODE_IDS
        assert [(e.source, e.target) for e in snapshot.edges] == SEED_EDGE_PAIRS
        assert snapshot.selected_node_id is None

    def test_reset_is_deterministic(self, store, empty_store):
        assert store.reset().nodes == empty_store.reset().nodes
        assert store.snapshot().edges == empty_store.snapshot().edges

    def test_clear(self, store):
        store.set_selected_node("http-api")
        calls = _counter(store)

        snapshot = store.clear()
        assert snapshot.nodes == ()
        assert snapshot.edges == ()
        assert snapshot.selected_node_id is None
        assert calls == [2]

        store.clear()
        assert calls == [2]


class TestNodes:

    def test_add_node(self, empty_store, sample_node):
        assert empty_store.add_node(sample_node) is True
        assert "gateway-1" in empty_store
        assert empty_store.get_node("gateway-1").label == "Edge Gateway"

    def test_duplicate_id_rejected(self, empty_store, sample_node):
        empty_store.add_node(sample_node)
        version = empty_store.version
        duplicate = sample_node.model_copy(update={"label": "Imposter"})

        assert empty_store.add_node(duplicate) is False
        assert len(empty_store) == 1
        assert empty_store.get_node("gateway-1").label == "Edge Gateway"
        assert empty_store.version == version

    def test_ids_stay_unique(self, empty_store):
        for label in ("a", "b", "c"):
            empty_store.add_node(GraphNode(id="same", label=label))
        ids = _ids(empty_store)
        assert ids == ["same"]

    def test_store_holds_its_own_copy(self, empty_store, sample_node):
        empty_store.add_node(sample_node)
        sample_node.label = "Changed outside"
        assert empty_store.get_node("gateway-1").label == "Edge Gateway"

        fetched = empty_store.get_node("gateway-1")
        fetched.attributes["address"] = "tampered"
        assert empty_store.get_node("gateway-1").attributes["address"] == "https://gw.example.com"

    def test_remove_node_cascades(self, store):
        assert store.remove_node("transform-node") is True
        assert "transform-node" not in _ids(store)
        assert _pairs(store) == [("mqtt-source", "filter-node")]
        assert store.get_edges_for_node("postgres-sink") == []

    def test_remove_selected_node_clears_selection(self, store):
        store.set_selected_node("filter-node")
        store.remove_node("filter-node")
        assert store.selected_node_id is None

    def test_remove_missing_node(self, store):
        version = store.version
        assert store.remove_node("ghost") is False
        assert store.version == version

    def test_update_node(self, store):
        node = store.update_node("http-api", {
            "label": "Public API",
            "status": "error",
            "serviceType": "gateway",
            "requestsPerSec": 300,
            "attributes": {"timeout": 5},
        })
        assert node.label == "Public API"
        assert node.status == "error"
        assert node.service_type == "gateway"
        assert node.attributes["requests_per_sec"] == 300
        assert node.attributes["timeout"] == 5
        assert node.attributes["address"] == "https://api.naseej.io/v1"

    def test_update_node_resolves_aliases(self, store):
        assert store.update_node("http-api", {"service_type": "mqtt"}).service_type == "message-broker"

    def test_update_node_ignores_id_and_position(self, store):
        before = store.get_node("http-api")
        node = store.update_node("http-api", {"id": "renamed", "position": {"x": 1, "y": 1}})
        assert node.id == "http-api"
        assert node.position == before.position

    def test_update_node_invalid_status(self, store):
        before = store.snapshot()
        with pytest.raises(ValueError):
            store.update_node("http-api", {"status": "on-fire", "label": "Broken"})
        assert store.snapshot() == before

    @pytest.mark.parametrize("changes", [
        {"label": None},
        {"label": 42},
        {"service_type": None},
        {"serviceType": ["http"]},
        {"attributes": "oops"},
        {"attributes": None},
    ])
    def test_update_node_wrong_value_types(self, store, changes):
        before = store.snapshot()
        with pytest.raises(ValueError):
            store.update_node("http-api", changes)
        assert store.snapshot() == before

    def test_update_missing_node(self, store):
        assert store.update_node("ghost", {"label": "x"}) is None


class TestEdges:

    def test_connect(self, store):
        result = store.connect("http-api", "mqtt-source")
        assert result.ok
        assert result.edge.id == "http-api->mqtt-source"
        assert result.edge.animated is True
        assert store.get_edge("http-api->mqtt-source") is not None

    def test_connect_is_idempotent(self, store):
        first = store.connect("postgres-sink", "http-api")
        version = store.version
        second = store.connect("postgres-sink", "http-api")

        assert first.ok
        assert second.rejected == ConnectionRejected.DUPLICATE
        assert _pairs(store).count(("postgres-sink", "http-api")) == 1
        assert store.version == version

    def test_self_loop_rejected(self, store):
        result = store.connect("filter-node", "filter-node")
        assert result.rejected == ConnectionRejected.SELF_LOOP
        assert _pairs(store) == SEED_EDGE_PAIRS

    def test_missing_endpoint_rejected(self, store):
        result = store.connect("mqtt-source", "ghost")
        assert not result.ok
        assert result.rejected == ConnectionRejected.MISSING_ENDPOINT
        assert result.to_dict() == {"success": False, "reason": "missing-endpoint"}
        assert _pairs(store) == SEED_EDGE_PAIRS

    def test_remove_edge(self, store):
        assert store.remove_edge("transform-node->http-api") is True
        assert store.remove_edge("transform-node->http-api") is False
        assert ("transform-node", "http-api") not in _pairs(store)
        assert store.connect("transform-node", "http-api").ok

    def test_edges_for_node(self, store):
        ids = [e.id for e in store.get_edges_for_node("transform-node")]
        assert ids == sorted([
            "filter-node->transform-node",
            "transform-node->postgres-sink",
            "transform-node->http-api",
        ])


class TestSelection:

    def test_select_and_clear(self, store):
        assert store.set_selected_node("http-api") == "http-api"
        assert store.set_selected_node(None) is None

    def test_stale_id_is_clamped(self, store):
        store.set_selected_node("http-api")
        assert store.set_selected_node("ghost") is None
        assert store.selected_node_id is None


class TestChangeBatches:

    def test_position_changes(self, store):
        snapshot = store.apply_node_changes([
            {"type": "position", "id": "mqtt-source", "position": {"x": 11, "y": 22}, "dragging": True},
            {"type": "position", "id": "filter-node", "position": {"x": 33, "y": 44}},
        ])
        assert snapshot.get_node("mqtt-source").position == Position(x=11, y=22)
        assert snapshot.get_node("filter-node").position == Position(x=33, y=44)

    def test_batch_notifies_once(self, store):
        calls = _counter(store)
        store.apply_position_changes([
            {"type": "position", "id": "mqtt-source", "position": {"x": 1, "y": 1}},
            {"type": "position", "id": "filter-node", "position": {"x": 2, "y": 2}},
            {"type": "select", "id": "filter-node"},
        ])
        assert calls == [1]
        assert store.selected_node_id == "filter-node"

    def test_changes_for_missing_nodes_are_skipped(self, store):
        calls = _counter(store)
        store.apply_node_changes([{"type": "position", "id": "ghost", "position": {"x": 1, "y": 1}}])
        assert calls == []

    def test_deselect(self, store):
        store.set_selected_node("http-api")
        store.apply_node_changes([{"type": "select", "id": "http-api", "selected": False}])
        assert store.selected_node_id is None

    def test_remove_change_cascades(self, store):
        store.apply_node_changes([{"type": "remove", "id": "filter-node"}])
        assert "filter-node" not in store
        assert ("mqtt-source", "filter-node") not in _pairs(store)

    def test_malformed_batch_changes_nothing(self, store):
        before = store.snapshot()
        with pytest.raises(ValidationError):
            store.apply_node_changes([
                {"type": "position", "id": "mqtt-source", "position": {"x": 1, "y": 1}},
                {"type": "teleport", "id": "mqtt-source"},
            ])
        assert store.snapshot() == before

    def test_edge_changes(self, store):
        snapshot = store.apply_edge_changes([
            {"type": "select", "id": "mqtt-source->filter-node"},
            {"type": "remove", "id": "transform-node->http-api"},
        ])
        assert [e.id for e in snapshot.edges] == [
            "mqtt-source->filter-node",
            "filter-node->transform-node",
            "transform-node->postgres-sink",
        ]


class TestTransactions:

    def test_one_version_per_transaction(self, empty_store):
        calls = _counter(empty_store)
        with empty_store.transaction():
            empty_store.add_node(GraphNode(id="a"))
            empty_store.add_node(GraphNode(id="b"))
            empty_store.connect("a", "b")
        assert empty_store.version == 1
        assert calls == [1]

    def test_rollback_on_error(self, store):
        before = store.snapshot()
        calls = _counter(store)
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.remove_node("mqtt-source")
                store.set_selected_node("http-api")
                raise RuntimeError("boom")
        assert store.snapshot() == before
        assert calls == []

    def test_no_op_does_not_bump_version(self, store):
        with store.transaction():
            store.connect("ghost", "mqtt-source")
        assert store.version == 0


class TestSnapshots:

    def test_snapshot_is_isolated(self, store):
        snapshot = store.snapshot()
        snapshot.nodes[0].label = "Mutated"
        snapshot.nodes[0].attributes["topic"] = "other"
        node = store.get_node("mqtt-source")
        assert node.label == "MQTT Broker"
        assert node.attributes["topic"] == "sensors/#"

    def test_snapshot_version_tracks_commits(self, store):
        store.set_selected_node("http-api")
        store.connect("http-api", "mqtt-source")
        assert store.snapshot().version == 2

    def test_get_state(self, store):
        state = store.get_state()
        assert set(state) == {"nodes", "edges", "selected_node_id", "version"}


class TestLayout:

    def test_layout_orders_seed_left_to_right(self, store):
        snapshot = store.layout()
        x = {n.id: n.position.x for n in snapshot.nodes}
        for source, target in SEED_EDGE_PAIRS:
            assert x[target] >= x[source]

    def test_layout_keeps_structure(self, store):
        before = store.snapshot()
        after = store.layout("vertical")
        assert [n.id for n in after.nodes] == [n.id for n in before.nodes]
        assert after.edges == before.edges
        assert after.version == before.version + 1

    def test_layout_on_empty_store(self, empty_store):
        assert empty_store.layout().nodes == ()
        assert empty_store.version == 0

    def test_layout_with_cycle(self, store):
        store.connect("postgres-sink", "mqtt-source")
        snapshot = store.layout()
        assert len(snapshot.nodes) == 5

    def test_unknown_direction(self, store):
        with pytest.raises(ValueError):
            store.layout("diagonal")
