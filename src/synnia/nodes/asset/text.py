"""
Text Node - Plain text asset.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from synnia.core.node_types import NodeCategory, NodeDefinition, NodeTemplate
from synnia.core.ports import PortType, PortValue
from synnia.nodes.standard import STANDARD_BEHAVIOR, is_semantic_output

if TYPE_CHECKING:
    from synnia.core.assets import Asset, FieldDefinition
    from synnia.core.behavior import EngineContext
    from synnia.core.graph import Node


def resolve_text_output(
    node: Node,
    asset: Asset | None,
    port_id: str,
    engine: EngineContext,
) -> PortValue | None:
    """origin/output always yield text, empty when nothing is stored."""
    if asset is None or not is_semantic_output(port_id):
        return None
    value = asset.value if asset.value is not None else ""
    return PortValue.of(PortType.TEXT, value if isinstance(value, str) else str(value), node.id, port_id)


def create_text(content: Any, schema: list[FieldDefinition] | None) -> NodeTemplate:
    return NodeTemplate(value_type="text", value=content if content is not None else "")


TEXT_BEHAVIOR = STANDARD_BEHAVIOR.extend(resolve_output=resolve_text_output)

TEXT_NODE = NodeDefinition(
    type="text",
    name="Text",
    category=NodeCategory.ASSET,
    description="Plain or markdown text",
    alias="text",
    behavior=TEXT_BEHAVIOR,
    create=create_text,
    style={"width": 250, "height": 200},
)
