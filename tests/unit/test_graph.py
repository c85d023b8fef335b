"""
Tests for the graph and asset models.
"""

import pytest

from synnia.core.assets import Asset, AssetStore, FieldDefinition, schema_from_config
from synnia.core.graph import (
    EDGE_OUTPUT,
    Edge,
    GraphStore,
    Node,
    NodePatch,
    Point2D,
    apply_patch,
)


class TestPoint2D:
    """Tests for Point2D dataclass."""

    def test_default_values(self):
        p = Point2D()
        assert p.x == 0.0
        assert p.y == 0.0

    def test_addition(self):
        result = Point2D(10, 20) + Point2D(5, 10)
        assert result == Point2D(15, 30)

    def test_subtraction(self):
        result = Point2D(10, 20) - Point2D(5, 10)
        assert result == Point2D(5, 10)

    def test_coerce_accepts_dicts_and_pairs(self):
        assert Point2D.coerce({"x": 1, "y": 2}) == Point2D(1.0, 2.0)
        assert Point2D.coerce((3, 4)) == Point2D(3.0, 4.0)

    def test_coerce_rejects_garbage(self):
        with pytest.raises(TypeError):
            Point2D.coerce("nowhere")


class TestNode:
    """Tests for Node dataclass."""

    def test_create_node(self):
        node = Node.create("text", data={"title": "Draft"})
        assert node.type == "text"
        assert node.id.startswith("node-")
        assert node.title == "Draft"
        assert node.collapsed is False

    def test_round_trip(self):
        node = Node.create("form", Point2D(5, 6), data={"asset_id": "a1"}, style={"width": 250})
        restored = Node.from_dict(node.to_dict())
        assert restored == node

    def test_size_fallbacks(self):
        node = Node.create("text")
        assert node.width == 250.0
        assert node.height == 200.0


class TestEdge:
    """Tests for Edge dataclass."""

    def test_from_dict_accepts_camel_case_handles(self):
        edge = Edge.from_dict({
            "id": "e1",
            "source": "a",
            "sourceHandle": "origin",
            "target": "b",
            "targetHandle": "prompt",
        })
        assert edge.source_handle == "origin"
        assert edge.target_handle == "prompt"
        assert edge.kind == "default"

    def test_output_kind(self):
        edge = Edge.create("r", "product", "p", "origin", kind=EDGE_OUTPUT)
        assert edge.is_output_edge


class TestNodePatch:
    """Tests for patch merging and application."""

    def test_merge_combines_data_dicts(self):
        first = NodePatch("n1", {"data": {"state": "running"}, "position": Point2D(1, 1)})
        second = NodePatch("n1", {"data": {"error_message": None}})
        merged = first.merged_with(second)
        assert merged.patch["data"] == {"state": "running", "error_message": None}
        assert merged.patch["position"] == Point2D(1, 1)

    def test_id_and_type_are_immutable(self):
        node = Node.create("text")
        original_id = node.id
        apply_patch(node, {"id": "other", "type": "image", "data": {"title": "X"}})
        assert node.id == original_id
        assert node.type == "text"
        assert node.title == "X"


class TestGraphStore:
    """Tests for the node/edge container."""

    def test_remove_node_drops_its_edges(self):
        graph = GraphStore()
        a, b, c = Node.create("text"), Node.create("text"), Node.create("text")
        for n in (a, b, c):
            graph.add_node(n)
        graph.add_edge(Edge.create(a.id, "origin", b.id, None))
        graph.add_edge(Edge.create(b.id, "origin", c.id, None))

        graph.remove_node(b.id)

        assert b.id not in graph
        assert graph.edges == []

    def test_followers_and_handles(self):
        graph = GraphStore()
        master = Node.create("form")
        follower = Node.create("form", data={"docked_to": master.id})
        graph.add_node(master)
        graph.add_node(follower)
        graph.add_edge(Edge.create(master.id, "field:title", follower.id, "title"))

        assert graph.followers_of(master.id) == [follower]
        assert len(graph.outgoing_edges(master.id, "field:title")) == 1
        assert graph.incoming_edges(follower.id, "other") == []


class TestAssets:
    """Tests for assets, schemas and the asset store."""

    def test_field_connection_shorthand(self):
        f = FieldDefinition.from_dict({
            "key": "hero",
            "type": "object",
            "connection": {"input": True, "output": True},
            "requiredKeys": ["name"],
        })
        assert f.connection == "both"
        assert f.accepts_input and f.exposes_output
        assert f.required_keys == ["name"]

    def test_schema_from_config_skips_invalid_entries(self):
        fields = schema_from_config({"schema": [{"key": "a"}, {"label": "no key"}, FieldDefinition("b")]})
        assert [f.key for f in fields] == ["a", "b"]

    def test_clone_is_deep(self):
        asset = Asset.create("record", {"tags": ["x"]}, name="Hero")
        clone = asset.clone()
        clone.value["tags"].append("y")
        assert clone.id != asset.id
        assert asset.value == {"tags": ["x"]}

    def test_store_update_unknown_is_ignored(self):
        store = AssetStore()
        assert store.update("asset-missing", 1) is None

    def test_store_update_config_merges(self):
        store = AssetStore()
        asset = store.add(Asset.create("record", {}, config={"a": 1}))
        store.update_config(asset.id, {"b": 2})
        assert store.get(asset.id).config == {"a": 1, "b": 2}

    def test_asset_round_trip_serializes_schema(self):
        asset = Asset.create("record", {"k": 1}, config={"schema": [FieldDefinition("k", "number")]})
        data = asset.to_dict()
        assert data["config"]["schema"] == [{"key": "k", "type": "number"}]
        restored = Asset.from_dict(data)
        assert restored.schema[0].type == "number"
