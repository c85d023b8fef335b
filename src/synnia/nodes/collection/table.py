"""
Table Node - Rows with column definitions.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from synnia.core.node_types import NodeCategory, NodeDefinition, NodeTemplate
from synnia.core.ports import PortType, PortValue, has_value
from synnia.nodes.standard import STANDARD_BEHAVIOR, field_of, is_semantic_output

if TYPE_CHECKING:
    from synnia.core.assets import Asset, FieldDefinition
    from synnia.core.behavior import EngineContext
    from synnia.core.graph import Node


def table_rows(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return list(value.get("rows") or [])
    return []


def resolve_table_output(
    node: Node,
    asset: Asset | None,
    port_id: str,
    engine: EngineContext,
) -> PortValue | None:
    if asset is None or not has_value(asset.value):
        return None
    rows = table_rows(asset.value)
    if is_semantic_output(port_id):
        return PortValue.of(PortType.ARRAY, rows, node.id, port_id)
    return field_of(node, rows[0], port_id) if rows else None


def create_table(content: Any, schema: list[FieldDefinition] | None) -> NodeTemplate:
    rows = content if isinstance(content, list) else []
    columns = [
        {
            "key": f.key,
            "label": f.label or f.key,
            "type": "number" if f.type == "number" else "string",
        }
        for f in (schema or [])
    ]
    return NodeTemplate(
        value_type="array",
        value=rows,
        config={"columns": columns},
        data={"show_row_numbers": True},
    )


def get_table_items(asset: Asset) -> list[Any]:
    return table_rows(asset.value)


def merge_table_items(existing: list[Any], incoming: list[Any]) -> list[Any]:
    return [*existing, *incoming]


TABLE_BEHAVIOR = STANDARD_BEHAVIOR.extend(resolve_output=resolve_table_output)

TABLE_NODE = NodeDefinition(
    type="table",
    name="Table",
    category=NodeCategory.COLLECTION,
    description="Tabular rows with typed columns",
    alias="table",
    behavior=TABLE_BEHAVIOR,
    create=create_table,
    is_collection=True,
    get_items=get_table_items,
    merge_items=merge_table_items,
    style={"width": 360, "height": 250},
)
