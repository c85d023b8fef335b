from __future__ import annotations

import sys
from pathlib import Path

import pytest


def pytest_configure() -> None:
    """
    Ensure `src/` is on sys.path so tests can import `synnia`
    without requiring an editable install.
    """
    repo_root = Path(__file__).resolve().parents[1]
    src_root = repo_root / "src"
    sys.path.insert(0, str(src_root))


@pytest.fixture
def node_types():
    from synnia.core.node_types import NodeTypeRegistry

    return NodeTypeRegistry()


@pytest.fixture
def behaviors():
    from synnia.core.behavior import BehaviorRegistry

    return BehaviorRegistry()


@pytest.fixture
def engine(node_types, behaviors):
    """A GraphEngine over private registries holding every built-in node type."""
    from synnia.core.engine import GraphEngine
    from synnia.nodes import register_all_nodes

    register_all_nodes(node_types, behaviors)
    return GraphEngine(node_types=node_types, behaviors=behaviors)
