"""
Nodes package - All built-in node types.

Node types are organized by kind:
- asset: Text, Image, Form
- collection: Selector, Table, Gallery, Queue
- recipe: Recipe (and every `recipe:<id>` virtual type)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from synnia.core.node_types import register_node_type
from synnia.nodes.asset import register_asset_nodes
from synnia.nodes.collection import register_collection_nodes
from synnia.nodes.recipe import RECIPE_NODE, add_recipe_node, recipe_id_of, recipe_node_type

if TYPE_CHECKING:
    from synnia.core.behavior import BehaviorRegistry
    from synnia.core.node_types import NodeTypeRegistry


def register_all_nodes(
    node_types: NodeTypeRegistry | None = None,
    behaviors: BehaviorRegistry | None = None,
) -> None:
    """Register all built-in nodes, into the shared registries by default."""
    register_asset_nodes(node_types, behaviors)
    register_collection_nodes(node_types, behaviors)
    register_node_type(RECIPE_NODE, node_types, behaviors)


__all__ = [
    "RECIPE_NODE",
    "add_recipe_node",
    "recipe_id_of",
    "recipe_node_type",
    "register_all_nodes",
]
