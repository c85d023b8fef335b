"""
Asset Nodes - Single-value node types: text, image and form.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from synnia.core.node_types import register_node_type
from synnia.nodes.asset.form import FORM_NODE
from synnia.nodes.asset.image import IMAGE_NODE
from synnia.nodes.asset.text import TEXT_NODE

if TYPE_CHECKING:
    from synnia.core.behavior import BehaviorRegistry
    from synnia.core.node_types import NodeTypeRegistry


def register_asset_nodes(
    node_types: NodeTypeRegistry | None = None,
    behaviors: BehaviorRegistry | None = None,
) -> None:
    """Register all asset node types."""
    for definition in (TEXT_NODE, IMAGE_NODE, FORM_NODE):
        register_node_type(definition, node_types, behaviors)


__all__ = [
    "FORM_NODE",
    "IMAGE_NODE",
    "TEXT_NODE",
    "register_asset_nodes",
]
