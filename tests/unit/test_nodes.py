"""
Tests for the built-in node types.
"""

import asyncio

from PIL import Image

from synnia.core.assets import FieldDefinition
from synnia.core.node_types import NodeCategory
from synnia.nodes.asset.image import import_image
from synnia.nodes.collection.gallery import merge_gallery_items
from synnia.nodes.collection.selector import merge_selector_items


class TestRegistration:
    """register_all_nodes fills both registries."""

    def test_types_and_categories(self, engine):
        types = {d.type for d in engine.node_types.get_all()}
        assert types == {"text", "image", "form", "selector", "table", "gallery", "queue", "recipe"}
        collections = {d.type for d in engine.node_types.list_by_category(NodeCategory.COLLECTION)}
        assert collections == {"selector", "table", "gallery", "queue"}
        assert engine.node_types.is_collection("gallery")
        assert "recipe:anything" in engine.node_types


class TestCollections:
    """Collection values, outputs and merging."""

    def test_table_columns_from_schema(self, engine):
        schema = [FieldDefinition("name"), FieldDefinition("score", "number", label="Score")]
        node = engine.add_node("table", content=[{"name": "a", "score": 1}], schema=schema)

        asset = engine.get_asset_for(node)

        assert asset.config["columns"][1] == {"key": "score", "label": "Score", "type": "number"}
        assert engine.resolve_output(node.id, "field:score").value == 1

    def test_queue_output_is_successful_results(self, engine):
        tasks = [
            {"id": "t1", "status": "success", "result": "done"},
            {"id": "t2", "status": "pending"},
        ]
        node = engine.add_node("queue", content=tasks)

        assert engine.resolve_output(node.id, "output").value == ["done"]
        assert len(engine.resolve_output(node.id, "origin").value) == 2

    def test_gallery_merge_prepends_new_images(self):
        existing = [{"id": "img-0", "src": "old.png", "starred": True, "caption": ""}]
        merged = merge_gallery_items(existing, ["new.png"])
        assert [i["src"] for i in merged] == ["new.png", "old.png"]
        assert merged[0]["id"] == "img-1"

    def test_selector_merge_keeps_existing_ids(self):
        existing = [{"id": "opt-0", "label": "A"}]
        merged = merge_selector_items(existing, [{"label": "B"}, {"id": "custom", "label": "C"}])
        assert [o["id"] for o in merged] == ["opt-0", "opt-1", "custom"]


class TestImageImport:
    """Importing an image decodes its size with Pillow."""

    def test_import_image(self, engine, tmp_path):
        path = tmp_path / "cover.png"
        Image.new("RGB", (16, 9)).save(path)

        node = asyncio.run(import_image(engine, path))

        value = engine.get_asset_for(node).value
        assert node.title == "cover"
        assert (value["width"], value["height"]) == (16, 9)
        assert value["mime_type"] == "image/png"
        assert engine.get_asset_for(node).sys.source == "import"
