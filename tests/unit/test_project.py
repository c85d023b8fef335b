"""
Tests for project persistence and the command-line entry point.
"""

import json

import pytest

from synnia.core.assets import FieldDefinition
from synnia.core.errors import ProjectFormatError
from synnia.core.graph import Point2D
from synnia.core.project import Project, load_project, save_project
from synnia.main import main
from synnia.nodes import add_recipe_node
from synnia.recipes.builtin import DIVIDE_RECIPE


class TestProjectPersistence:
    """Save/load keeps graph, assets and metadata."""

    def test_round_trip(self, engine, node_types, behaviors, tmp_path):
        source = engine.add_node("text", Point2D(0, 0), content="draft")
        target = engine.add_node("form", Point2D(300, 0), content={}, schema=[FieldDefinition("body")])
        engine.connect(source.id, "origin", target.id, "body")
        project = Project.from_engine(engine, Project.create("Story"))

        path = save_project(project, tmp_path / "story.json")
        loaded = load_project(path)
        restored = loaded.into_engine(node_types, behaviors)

        assert loaded.meta.name == "Story"
        assert set(restored.graph.nodes) == {source.id, target.id}
        assert [e.to_dict() for e in restored.graph.edges] == [e.to_dict() for e in engine.graph.edges]
        assert restored.get_asset_for(restored.get_node(target.id)).value == {"body": "draft"}
        assert restored.resolve_output(target.id, "field:body").value == "draft"
        assert restored.get_asset_for(restored.get_node(target.id)).schema[0].key == "body"

    def test_missing_version(self):
        with pytest.raises(ProjectFormatError, match="no version"):
            Project.from_dict({"graph": {}})

    def test_future_version(self):
        with pytest.raises(ProjectFormatError, match="Unsupported project version 9"):
            Project.from_dict({"version": 9, "graph": {}})

    def test_malformed_node(self):
        with pytest.raises(ProjectFormatError, match="Malformed"):
            Project.from_dict({"version": 1, "graph": {"nodes": [{"type": "text"}]}})

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{")
        with pytest.raises(ProjectFormatError):
            load_project(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_project(tmp_path / "absent.json")


class TestCommandLine:
    """The `synnia` CLI runs a recipe node and saves the result."""

    def _divide_project(self, engine, tmp_path, a, b):
        node = add_recipe_node(engine, DIVIDE_RECIPE, values={"a": a, "b": b})
        path = save_project(Project.from_engine(engine), tmp_path / "math.json")
        return node, path

    def test_run_saves_result(self, engine, tmp_path):
        node, path = self._divide_project(engine, tmp_path, 9, 3)
        output = tmp_path / "out.json"

        code = main([
            "run", str(path),
            "--node", node.id,
            "--settings", str(tmp_path / "providers.json"),
            "--output", str(output),
        ])

        assert code == 0
        saved = json.loads(output.read_text())
        data = next(n["data"] for n in saved["graph"]["nodes"] if n["id"] == node.id)
        assert data["state"] == "success"
        assert data["execution_result"]["result"] == 3

    def test_failed_run_exits_nonzero(self, engine, tmp_path):
        node, path = self._divide_project(engine, tmp_path, 1, 0)

        code = main(["run", str(path), "--node", node.id, "--settings", str(tmp_path / "providers.json")])

        assert code == 1
        saved = json.loads(path.read_text())
        data = next(n["data"] for n in saved["graph"]["nodes"] if n["id"] == node.id)
        assert data["error_message"] == "Division by zero is not allowed"

    def test_missing_project(self, tmp_path):
        assert main(["run", str(tmp_path / "nope.json"), "--node", "x"]) == 1

    def test_list_recipes(self, capsys):
        assert main(["recipes"]) == 0
        out = capsys.readouterr().out
        assert "math.divide" in out
        assert "storyteller" in out
