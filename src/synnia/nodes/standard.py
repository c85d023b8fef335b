"""
Standard behavior shared by asset-backed node types.

Node types build their behavior by extending STANDARD_BEHAVIOR with the
hooks they override.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from synnia.core.behavior import NodeBehavior
from synnia.core.graph import COLLAPSED_HEIGHT, NodePatch
from synnia.core.ports import (
    PORT_ORIGIN,
    PORT_OUTPUT,
    PortValue,
    default_resolve_output,
    parse_field_port,
    scalar_port_type,
)

if TYPE_CHECKING:
    from synnia.core.assets import Asset
    from synnia.core.behavior import EngineContext
    from synnia.core.graph import Node

# Heights at or below this are treated as already collapsed
_MIN_EXPANDED_HEIGHT = 60


def resolve_standard_output(
    node: Node,
    asset: Asset | None,
    port_id: str,
    engine: EngineContext,
) -> PortValue | None:
    return default_resolve_output(node, asset, port_id)


def collapse_with_height_backup(node: Node, collapsed: bool, engine: EngineContext) -> list[NodePatch]:
    """Remember the expanded height on collapse and restore it on expand."""
    data: dict[str, Any] = {"collapsed": collapsed}
    style: dict[str, Any] = {}

    if collapsed:
        height = node.style.get("height")
        if isinstance(height, (int, float)) and height > _MIN_EXPANDED_HEIGHT:
            data["expanded_height"] = height
        style["height"] = COLLAPSED_HEIGHT
    else:
        expanded = node.data.get("expanded_height")
        if expanded:
            style["height"] = expanded

    patch: dict[str, Any] = {"data": data}
    if style:
        patch["style"] = style
    return [NodePatch(node.id, patch)]


def field_of(node: Node, record: Any, port_id: str) -> PortValue | None:
    """Resolve a `field:<key>` port against a single record."""
    key = parse_field_port(port_id)
    if key is None or not isinstance(record, dict):
        return None
    value = record.get(key)
    if value is None:
        return None
    return PortValue.of(scalar_port_type(value), value, node.id, port_id)


def is_semantic_output(port_id: str) -> bool:
    return port_id in (PORT_ORIGIN, PORT_OUTPUT)


STANDARD_BEHAVIOR = NodeBehavior(
    resolve_output=resolve_standard_output,
    on_collapse=collapse_with_height_backup,
)
