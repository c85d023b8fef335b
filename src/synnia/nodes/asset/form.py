"""
Form Node - Schema-backed record that can be docked into chains.

Ports:
- origin/output: the form values as json
- array: values of the whole dock chain, root first
- field:<key>: a single value
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from synnia.core.assets import schema_from_config
from synnia.core.connection import schema_can_connect, schema_on_connect, schema_on_disconnect
from synnia.core.node_types import NodeCategory, NodeDefinition, NodeTemplate
from synnia.core.ports import PORT_ARRAY, PortType, PortValue, has_value
from synnia.nodes.standard import STANDARD_BEHAVIOR, field_of, is_semantic_output

if TYPE_CHECKING:
    from synnia.core.assets import Asset, FieldDefinition
    from synnia.core.behavior import EngineContext
    from synnia.core.graph import Node


def collect_chain_values(node: Node, engine: EngineContext) -> list[Any]:
    """
    Walk docked_to from node outward, inserting each value at the head.

    For A <- B <- C, calling this on C yields [A, B, C].
    """
    chain: list[Any] = []
    seen: set[str] = set()
    current: Node | None = node
    while current is not None and current.id not in seen:
        seen.add(current.id)
        asset = engine.get_asset_for(current)
        if asset is not None and has_value(asset.value):
            chain.insert(0, asset.value)
        current = engine.get_node(current.docked_to)
    return chain


def resolve_form_output(
    node: Node,
    asset: Asset | None,
    port_id: str,
    engine: EngineContext,
) -> PortValue | None:
    if asset is None:
        return None

    if is_semantic_output(port_id):
        return PortValue.of(PortType.JSON, asset.value or {}, node.id, port_id)

    if port_id == PORT_ARRAY:
        return PortValue.of(PortType.ARRAY, collect_chain_values(node, engine), node.id, port_id)

    return field_of(node, asset.value, port_id)


def create_form(content: Any, schema: list[FieldDefinition] | None) -> NodeTemplate:
    return NodeTemplate(
        value_type="record",
        value=dict(content) if isinstance(content, dict) else {},
        config={"schema": [f.to_dict() for f in (schema or [])]},
    )


def form_can_dock_with(node: Node, asset: Asset | None, target: Node, target_asset: Asset | None) -> bool:
    """Forms stack only onto forms with the same set of field keys."""
    keys = sorted(f.key for f in schema_from_config(asset.config if asset else None))
    target_keys = sorted(f.key for f in schema_from_config(target_asset.config if target_asset else None))
    return keys == target_keys


FORM_BEHAVIOR = STANDARD_BEHAVIOR.extend(
    resolve_output=resolve_form_output,
    can_connect=schema_can_connect,
    on_connect=schema_on_connect,
    on_disconnect=schema_on_disconnect,
)

FORM_NODE = NodeDefinition(
    type="form",
    name="Form",
    category=NodeCategory.ASSET,
    description="Structured record editable through its schema",
    alias="form",
    behavior=FORM_BEHAVIOR,
    create=create_form,
    dockable=True,
    can_dock_with=form_can_dock_with,
    style={"width": 250, "height": 200},
)
