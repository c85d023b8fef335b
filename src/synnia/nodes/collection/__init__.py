"""
Collection Nodes - List-valued node types that merge re-run results.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from synnia.core.node_types import register_node_type
from synnia.nodes.collection.gallery import GALLERY_NODE
from synnia.nodes.collection.queue import QUEUE_NODE
from synnia.nodes.collection.selector import SELECTOR_NODE
from synnia.nodes.collection.table import TABLE_NODE

if TYPE_CHECKING:
    from synnia.core.behavior import BehaviorRegistry
    from synnia.core.node_types import NodeTypeRegistry


def register_collection_nodes(
    node_types: NodeTypeRegistry | None = None,
    behaviors: BehaviorRegistry | None = None,
) -> None:
    """Register all collection node types."""
    for definition in (SELECTOR_NODE, TABLE_NODE, GALLERY_NODE, QUEUE_NODE):
        register_node_type(definition, node_types, behaviors)


__all__ = [
    "GALLERY_NODE",
    "QUEUE_NODE",
    "SELECTOR_NODE",
    "TABLE_NODE",
    "register_collection_nodes",
]
