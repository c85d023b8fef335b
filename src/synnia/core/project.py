"""
Project Model - Save and load a graph with its assets.

Document layout:
    {
      "version": 1,
      "meta": {id, name, created_at, updated_at, description, author},
      "viewport": {x, y, zoom},
      "graph": {"nodes": [...], "edges": [...]},
      "assets": {asset_id: asset},
      "settings": {...}
    }
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TYPE_CHECKING
from uuid import uuid4

from synnia.core.assets import Asset, AssetStore
from synnia.core.engine import GraphEngine
from synnia.core.errors import ProjectFormatError
from synnia.core.graph import Edge, GraphStore, Node

if TYPE_CHECKING:
    from synnia.core.behavior import BehaviorRegistry
    from synnia.core.node_types import NodeTypeRegistry


logger = logging.getLogger(__name__)

PROJECT_VERSION = 1


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class ProjectMeta:
    """Descriptive project metadata."""
    id: str = field(default_factory=lambda: str(uuid4()))
    name: str = "Untitled"
    created_at: int = field(default_factory=_now_ms)
    updated_at: int = field(default_factory=_now_ms)
    description: str = ""
    author: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "description": self.description,
            "author": self.author,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectMeta:
        meta = cls()
        meta.id = data.get("id") or meta.id
        meta.name = data.get("name", meta.name)
        meta.created_at = data.get("created_at", meta.created_at)
        meta.updated_at = data.get("updated_at", meta.updated_at)
        meta.description = data.get("description", "")
        meta.author = data.get("author", "")
        return meta


@dataclass
class Project:
    """
    A complete project: nodes, edges, assets and view state.

    Projects are plain data; `into_engine()` seeds a GraphEngine for
    editing and `from_engine()` captures one for saving.
    """
    meta: ProjectMeta = field(default_factory=ProjectMeta)
    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    assets: dict[str, Asset] = field(default_factory=dict)
    viewport: dict[str, float] = field(default_factory=lambda: {"x": 0.0, "y": 0.0, "zoom": 1.0})
    settings: dict[str, Any] = field(default_factory=dict)
    version: int = PROJECT_VERSION

    @classmethod
    def create(cls, name: str = "Untitled") -> Project:
        """Create a new empty project."""
        return cls(meta=ProjectMeta(name=name))

    def into_engine(
        self,
        node_types: NodeTypeRegistry | None = None,
        behaviors: BehaviorRegistry | None = None,
    ) -> GraphEngine:
        engine = GraphEngine(GraphStore(), AssetStore(), node_types, behaviors)
        engine.load(self.nodes, self.edges, self.assets.values())
        return engine

    @classmethod
    def from_engine(cls, engine: GraphEngine, base: Project | None = None) -> Project:
        """Snapshot an engine, keeping metadata and view state of `base`."""
        project = cls(
            meta=base.meta if base else ProjectMeta(),
            nodes=list(engine.graph.nodes.values()),
            edges=engine.graph.edges,
            assets=dict(engine.assets.assets),
            viewport=dict(base.viewport) if base else {"x": 0.0, "y": 0.0, "zoom": 1.0},
            settings=dict(base.settings) if base else {},
        )
        project.meta.updated_at = _now_ms()
        return project

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "meta": self.meta.to_dict(),
            "viewport": dict(self.viewport),
            "graph": {
                "nodes": [n.to_dict() for n in self.nodes],
                "edges": [e.to_dict() for e in self.edges],
            },
            "assets": {asset_id: a.to_dict() for asset_id, a in self.assets.items()},
            "settings": dict(self.settings),
        }

    @classmethod
    def from_dict(cls, data: Any) -> Project:
        """
        Build a project from a parsed document.

        Raises:
            ProjectFormatError: Missing version or graph, or malformed
                node, edge or asset entries
        """
        if not isinstance(data, dict):
            raise ProjectFormatError("Project document must be an object")
        if "version" not in data:
            raise ProjectFormatError("Project document has no version")
        if not isinstance(data["version"], int) or data["version"] > PROJECT_VERSION:
            raise ProjectFormatError(f"Unsupported project version {data['version']}")
        graph = data.get("graph")
        if not isinstance(graph, dict):
            raise ProjectFormatError("Project document has no graph")

        try:
            nodes = [Node.from_dict(n) for n in graph.get("nodes") or []]
            edges = [Edge.from_dict(e) for e in graph.get("edges") or []]
            assets = {
                asset_id: Asset.from_dict({"id": asset_id, **a})
                for asset_id, a in (data.get("assets") or {}).items()
            }
        except (KeyError, TypeError, ValueError) as e:
            raise ProjectFormatError(f"Malformed project entry: {e}") from e

        return cls(
            meta=ProjectMeta.from_dict(data.get("meta") or {}),
            nodes=nodes,
            edges=edges,
            assets=assets,
            viewport=dict(data.get("viewport") or {"x": 0.0, "y": 0.0, "zoom": 1.0}),
            settings=dict(data.get("settings") or {}),
            version=data["version"],
        )


def load_project(path: Path) -> Project:
    """
    Load a project from disk.

    Raises:
        FileNotFoundError: If the project file doesn't exist
        ProjectFormatError: If the document is not a valid project
    """
    if not path.exists():
        raise FileNotFoundError(f"Project not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ProjectFormatError(f"Invalid project JSON in {path}: {e}") from e

    project = Project.from_dict(data)
    logger.debug("Loaded project %s (%d nodes)", path, len(project.nodes))
    return project


def save_project(project: Project, path: Path) -> Path:
    """Write a project to disk as JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(project.to_dict(), f, indent=2, ensure_ascii=False)
    return path
