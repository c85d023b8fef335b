"""
Selector Node - A list of options with a selection.

Items live in the asset value (a list); selected ids are view state in
`node.data["selected"]`. The legacy `{options, selected}` record is
still read.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from synnia.core.node_types import NodeCategory, NodeDefinition, NodeTemplate
from synnia.core.ports import PORT_ORIGIN, PORT_OUTPUT, PortType, PortValue, has_value
from synnia.nodes.standard import STANDARD_BEHAVIOR, field_of

if TYPE_CHECKING:
    from synnia.core.assets import Asset, FieldDefinition
    from synnia.core.behavior import EngineContext
    from synnia.core.graph import Node


DEFAULT_OPTION_SCHEMA = [
    {"key": "id", "type": "string", "label": "ID", "hidden": True},
    {"key": "label", "type": "string", "label": "Label"},
]


def selector_items(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return list(value.get("options") or [])
    return []


def selected_items(node: Node, value: Any) -> list[Any]:
    if isinstance(value, list):
        selected_ids = node.data.get("selected") or []
    elif isinstance(value, dict):
        selected_ids = value.get("selected") or []
    else:
        return []
    return [
        item for item in selector_items(value)
        if isinstance(item, dict) and item.get("id") in selected_ids
    ]


def resolve_selector_output(
    node: Node,
    asset: Asset | None,
    port_id: str,
    engine: EngineContext,
) -> PortValue | None:
    if asset is None or not has_value(asset.value):
        return None

    if port_id == PORT_OUTPUT:
        return PortValue.of(PortType.ARRAY, selected_items(node, asset.value), node.id, port_id)
    if port_id == PORT_ORIGIN:
        return PortValue.of(PortType.ARRAY, selector_items(asset.value), node.id, port_id)

    selected = selected_items(node, asset.value)
    return field_of(node, selected[0], port_id) if selected else None


def to_option(item: Any, index: int) -> dict[str, Any]:
    if isinstance(item, dict):
        return {**item, "id": item.get("id") or f"opt-{index}"}
    return {"id": f"opt-{index}", "label": str(item)}


def create_selector(content: Any, schema: list[FieldDefinition] | None) -> NodeTemplate:
    items = content if isinstance(content, list) else []
    options = [to_option(item, i) for i, item in enumerate(items)]
    return NodeTemplate(
        value_type="array",
        value=options,
        config={
            "mode": "multi",
            "option_schema": [f.to_dict() for f in schema] if schema else DEFAULT_OPTION_SCHEMA,
        },
        data={"selected": []},
    )


def get_selector_items(asset: Asset) -> list[Any]:
    return selector_items(asset.value)


def merge_selector_items(existing: list[Any], incoming: list[Any]) -> list[Any]:
    offset = len(existing)
    return [*existing, *(to_option(item, offset + i) for i, item in enumerate(incoming))]


SELECTOR_BEHAVIOR = STANDARD_BEHAVIOR.extend(resolve_output=resolve_selector_output)

SELECTOR_NODE = NodeDefinition(
    type="selector",
    name="Selector",
    category=NodeCategory.COLLECTION,
    description="Select items from a list",
    alias="selector",
    behavior=SELECTOR_BEHAVIOR,
    create=create_selector,
    is_collection=True,
    get_items=get_selector_items,
    merge_items=merge_selector_items,
    style={"width": 280, "height": 300},
)
