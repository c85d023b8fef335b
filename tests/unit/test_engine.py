"""
Tests for GraphEngine mutations, docking and layout.
"""

import pytest

from synnia.core.assets import FieldDefinition
from synnia.core.engine import GraphEngine
from synnia.core.errors import DockingRejected, NodeNotFoundError
from synnia.core.graph import NodePatch, Point2D
from synnia.core.layout import COLLAPSED_STACK_HEIGHT, fix_docking_layout


FORM_SCHEMA = [FieldDefinition(key="title"), FieldDefinition(key="summary")]


class TestNodeLifecycle:
    """Adding, duplicating and removing nodes."""

    def test_add_node_creates_asset(self, engine):
        node = engine.add_node("text", Point2D(10, 20), content="hello", title="Greeting")

        asset = engine.get_asset_for(node)
        assert asset.value_type == "text"
        assert asset.value == "hello"
        assert asset.sys.name == "Greeting"
        assert node.position == Point2D(10, 20)
        assert node.style["width"] == 250

    def test_add_by_alias_and_virtual_type(self, engine):
        node = engine.add_node("recipe:storyteller", content={"premise": "x"})
        assert node.type == "recipe:storyteller"
        assert engine.get_asset_for(node).value == {"premise": "x"}
        assert node.data["state"] == "idle"

    def test_add_with_unknown_asset_fails(self, engine):
        with pytest.raises(KeyError):
            engine.add_node("text", asset_id="asset-missing")

    def test_duplicate_copies_asset(self, engine):
        node = engine.add_node("form", content={"title": "A"}, schema=FORM_SCHEMA)
        engine.update_node(node.id, {"data": {"state": "error"}})

        copy = engine.duplicate_node(node.id)
        engine.update_asset_values(copy.asset_id, {"title": "B"})

        assert copy.asset_id != node.asset_id
        assert engine.get_asset_for(node).value == {"title": "A"}
        assert "state" not in copy.data
        assert copy.position == Point2D(40, 40)

    def test_shortcut_shares_asset(self, engine):
        node = engine.add_node("text", content="shared")
        shortcut = engine.create_shortcut(node.id)

        engine.update_asset(node.asset_id, "edited")

        assert shortcut.asset_id == node.asset_id
        assert shortcut.data["is_reference"] is True
        assert engine.resolve_output(shortcut.id, "origin").value == "edited"

    def test_remove_keeps_shared_asset_until_last_reference(self, engine):
        node = engine.add_node("text", content="shared")
        shortcut = engine.create_shortcut(node.id)

        engine.remove_node(node.id)
        assert engine.get_asset(shortcut.asset_id) is not None

        engine.remove_node(shortcut.id)
        assert engine.get_asset(shortcut.asset_id) is None

    def test_remove_node_releases_followers(self, engine):
        master = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        follower = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        engine.dock(follower.id, master.id)

        engine.remove_node(master.id)

        assert engine.get_node(follower.id).docked_to is None

    def test_require_node_raises(self, engine):
        with pytest.raises(NodeNotFoundError):
            engine.require_node("node-missing")

    def test_create_node_from_schema_applies_defaults(self, engine):
        schema = [FieldDefinition("tone", default="dark"), FieldDefinition("title")]
        node = engine.create_node_from_schema("form", schema, values={"title": "T"})
        assert engine.get_asset_for(node).value == {"tone": "dark", "title": "T"}


class TestRegistries:
    """An engine keeps the registries it was given, even when they start empty."""

    def test_private_registries_are_used(self, node_types, behaviors):
        engine = GraphEngine(node_types=node_types, behaviors=behaviors)

        assert engine.node_types is node_types
        assert engine.behaviors is behaviors

    def test_register_all_nodes_fills_given_registries(self, engine, node_types, behaviors):
        assert engine.node_types is node_types
        assert len(node_types) == 8
        assert len(behaviors) > 0


class TestCollapse:
    """Collapse keeps the expanded height for later."""

    def test_collapse_and_expand(self, engine):
        node = engine.add_node("text", content="x", style={"height": 300})

        assert engine.toggle_collapse(node.id) is True
        assert node.style["height"] == 50
        assert node.data["expanded_height"] == 300

        assert engine.toggle_collapse(node.id) is False
        assert node.style["height"] == 300


class TestDocking:
    """Docking rules and layout fix-up."""

    def test_dock_snaps_follower_under_master(self, engine):
        master = engine.add_node("form", Point2D(100, 50), content={}, schema=FORM_SCHEMA)
        follower = engine.add_node("form", Point2D(500, 500), content={}, schema=FORM_SCHEMA)

        engine.dock(follower.id, master.id)

        assert follower.position == Point2D(100, 50 + master.style["height"])
        assert master.data["has_docked_follower"] is True

    def test_collapsed_master_uses_collapsed_height(self, engine):
        master = engine.add_node("form", Point2D(0, 0), content={}, schema=FORM_SCHEMA, collapsed=True)
        follower = engine.add_node("form", content={}, schema=FORM_SCHEMA)

        engine.dock(follower.id, master.id)

        assert follower.position == Point2D(0, COLLAPSED_STACK_HEIGHT)

    def test_moving_master_moves_chain(self, engine):
        a = engine.add_node("form", Point2D(0, 0), content={}, schema=FORM_SCHEMA)
        b = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        c = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        engine.dock(b.id, a.id)
        engine.dock(c.id, b.id)

        engine.move_node(a.id, Point2D(300, 0))

        assert b.position.x == 300
        assert c.position == Point2D(300, 2 * a.style["height"])
        assert [n.id for n in engine.dock_chain(c.id)] == [a.id, b.id, c.id]

    def test_follower_takes_master_width(self, engine):
        a = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        b = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        engine.dock(b.id, a.id)

        engine.resize_node(a.id, width=400)

        assert b.style["width"] == 400

    def test_mismatched_schemas_refuse_to_dock(self, engine):
        a = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        b = engine.add_node("form", content={}, schema=[FieldDefinition("other")])
        with pytest.raises(DockingRejected):
            engine.dock(b.id, a.id)

    def test_non_dockable_type(self, engine):
        a = engine.add_node("text", content="a")
        b = engine.add_node("text", content="b")
        with pytest.raises(DockingRejected, match="cannot be docked"):
            engine.dock(b.id, a.id)

    def test_single_follower_per_master(self, engine):
        a = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        b = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        c = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        engine.dock(b.id, a.id)
        with pytest.raises(DockingRejected, match="already has a docked follower"):
            engine.dock(c.id, a.id)

    def test_docking_loop_is_rejected(self, engine):
        a = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        b = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        engine.dock(b.id, a.id)
        with pytest.raises(DockingRejected, match="loop"):
            engine.dock(a.id, b.id)

    def test_undock_clears_follower_flag(self, engine):
        a = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        b = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        engine.dock(b.id, a.id)

        engine.undock(b.id)

        assert a.data["has_docked_follower"] is False

    def test_layout_is_stable(self, engine):
        a = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        b = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        engine.dock(b.id, a.id)
        assert fix_docking_layout(engine.graph) == []


class TestBatchOperations:
    """Batch patches, deletes and output edge lookup."""

    def test_update_nodes_merges_patches_per_node(self, engine):
        node = engine.add_node("text", content="x")
        engine.update_nodes([
            NodePatch(node.id, {"data": {"state": "running"}}),
            NodePatch(node.id, {"data": {"error_message": "late"}}),
        ])
        assert node.data["state"] == "running"
        assert node.data["error_message"] == "late"

    def test_delete_nodes_skips_unknown_ids(self, engine):
        a = engine.add_node("text", content="a")
        b = engine.add_node("text", content="b")

        removed = engine.delete_nodes([a.id, "node-missing", b.id])

        assert [n.id for n in removed] == [a.id, b.id]
        assert len(engine.graph) == 0
        assert len(engine.assets) == 0

    def test_update_asset_config_merges(self, engine):
        node = engine.add_node("form", content={}, schema=FORM_SCHEMA)
        engine.update_asset_config(node.asset_id, {"model_config": {"model_id": "small"}})
        config = engine.get_asset_for(node).config
        assert config["model_config"] == {"model_id": "small"}
        assert len(config["schema"]) == 2

    def test_output_edge_is_replaced(self, engine):
        recipe = engine.add_node("recipe:test", content={})
        first = engine.add_node("text", content="1")
        second = engine.add_node("text", content="2")

        engine.connect_output_edge(recipe.id, first.id)
        engine.connect_output_edge(recipe.id, second.id)

        assert engine.find_output_edge(recipe.id).target == second.id
        assert engine.product_nodes(recipe.id) == [second]
