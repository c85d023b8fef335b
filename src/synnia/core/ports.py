"""
Ports - Resolution of values exposed by nodes.

This module provides:
- PortType / PortValue: The standardized data packet exchanged between nodes
- Reserved port ids and field-scoped port helpers
- default_resolve_output: Whole-value / field extraction fallback
- resolve_input_value: Legacy extraction of a target field from a PortValue
- PortResolver: Behavior-aware resolution over a graph and its assets
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from synnia.core.assets import Asset, FieldDefinition
    from synnia.core.behavior import BehaviorRegistry, EngineContext
    from synnia.core.graph import Edge, Node


logger = logging.getLogger(__name__)


# Structural ports, never data-typed
PORT_ORIGIN = "origin"
PORT_OUTPUT = "output"
PORT_PRODUCT = "product"
PORT_TRIGGER = "trigger"
PORT_REFERENCE = "reference"
# Chain port exposed by dockable form nodes
PORT_ARRAY = "array"

RESERVED_PORTS = frozenset({PORT_ORIGIN, PORT_OUTPUT, PORT_PRODUCT, PORT_TRIGGER, PORT_REFERENCE})
SEMANTIC_HANDLES = RESERVED_PORTS | {PORT_ARRAY}

FIELD_PREFIX = "field:"


class PortType(str, Enum):
    """Coarse tag telling consumers how to read a PortValue."""
    TEXT = "text"
    JSON = "json"
    ARRAY = "array"
    IMAGE = "image"
    VIDEO = "video"
    ANY = "any"


@dataclass
class PortValue:
    """
    Value exposed on a port.

    Attributes:
        type: Coarse interpretation hint
        value: The payload
        meta: Source description, {"node_id": ..., "port_id": ...}
        schema: Optional field schema for structured payloads
    """
    type: PortType
    value: Any
    meta: dict[str, Any] = field(default_factory=dict)
    schema: list[FieldDefinition] | None = None

    @classmethod
    def of(cls, type: PortType, value: Any, node_id: str, port_id: str) -> PortValue:
        return cls(type=type, value=value, meta={"node_id": node_id, "port_id": port_id})


def field_port(key: str) -> str:
    """Port id for a field-scoped output."""
    return f"{FIELD_PREFIX}{key}"


def parse_field_port(port_id: str | None) -> str | None:
    """Return the field key of a `field:<key>` port, else None."""
    if port_id and port_id.startswith(FIELD_PREFIX):
        return port_id[len(FIELD_PREFIX):]
    return None


def is_reserved_port(port_id: str | None) -> bool:
    return port_id in RESERVED_PORTS


def is_field_level_input(handle: str | None) -> bool:
    """
    True when a target handle addresses a single data field.

    Semantic handles and `field:` output ports are not field-level inputs.
    """
    if not handle:
        return False
    if handle in SEMANTIC_HANDLES:
        return False
    if handle.startswith(FIELD_PREFIX):
        return False
    return True


def has_value(value: Any) -> bool:
    """None and the empty string count as "no value"."""
    return value is not None and value != ""


def infer_port_type(value: Any) -> PortType:
    if isinstance(value, list):
        return PortType.ARRAY
    if isinstance(value, dict):
        return PortType.JSON
    return PortType.TEXT


def scalar_port_type(value: Any) -> PortType:
    """Type tag for a single extracted field."""
    return PortType.JSON if isinstance(value, (dict, list)) else PortType.TEXT


def default_resolve_output(node: Node, asset: Asset | None, port_id: str) -> PortValue | None:
    """
    Generic resolution used when a node type has no override.

    - origin/output: the whole value
    - field:<key>: value[key] when the value is a record
    - anything else: None
    """
    if asset is None or not has_value(asset.value):
        return None

    if port_id in (PORT_ORIGIN, PORT_OUTPUT):
        return PortValue.of(infer_port_type(asset.value), asset.value, node.id, port_id)

    key = parse_field_port(port_id)
    if key is not None and isinstance(asset.value, dict):
        if key in asset.value and asset.value[key] is not None:
            value = asset.value[key]
            return PortValue.of(scalar_port_type(value), value, node.id, port_id)

    return None


def _match_field(item: dict[str, Any], target_key: str) -> Any:
    if target_key in item:
        return item[target_key]

    # selectedName <- name, productType <- type
    target_lower = target_key.lower()
    for source_key in item:
        source_lower = source_key.lower()
        if target_lower.endswith(source_lower) and len(source_lower) >= 3:
            return item[source_key]
        if source_lower in target_lower and len(source_lower) >= 4:
            return item[source_key]

    for source_key, value in item.items():
        if isinstance(value, str) and source_key != "id":
            return value

    return item


def resolve_input_value(port_value: PortValue | None, target_key: str) -> Any:
    """
    Extract the value for `target_key` from an incoming PortValue.

    Used when the target field declares no schema: take the named field
    from the first array element, or from the record, or pass the
    primitive through. Returns None for a resolution miss.
    """
    if port_value is None:
        return None

    value = port_value.value

    if port_value.type == PortType.ARRAY and isinstance(value, list):
        if not value:
            return None
        first = value[0]
        if isinstance(first, dict):
            return _match_field(first, target_key)
        return first

    if port_value.type == PortType.JSON and isinstance(value, dict):
        if target_key in value:
            return value[target_key]
        return value

    return value


class PortResolver:
    """
    Resolves port values through the behavior registry.

    A behavior's `resolve_output` is asked first; when it is missing or
    yields None, the generic default applies.
    """

    def __init__(self, behaviors: BehaviorRegistry, view: EngineContext):
        self._behaviors = behaviors
        self._view = view

    def resolve_output(self, node: Node, asset: Asset | None, port_id: str) -> PortValue | None:
        behavior = self._behaviors.get(node.type)
        if behavior.resolve_output is not None:
            result = behavior.resolve_output(node, asset, port_id, self._view)
            if result is not None:
                return result
        return default_resolve_output(node, asset, port_id)

    def resolve_node(self, node_id: str, port_id: str) -> PortValue | None:
        node = self._view.get_node(node_id)
        if node is None:
            return None
        return self.resolve_output(node, self._view.get_asset_for(node), port_id)

    def resolve_edge(self, edge: Edge) -> PortValue | None:
        """Resolve the data flowing through an existing edge."""
        return self.resolve_node(edge.source, edge.source_handle or PORT_ORIGIN)

    def collect_input_values(self, node_id: str) -> dict[str, Any]:
        """
        Map each connected field-level input of a node to its current value.

        This is the connected-field map read by inspector panels.
        """
        result: dict[str, Any] = {}
        for edge in self._view.incoming_edges(node_id):
            if not is_field_level_input(edge.target_handle):
                continue
            value = resolve_input_value(self.resolve_edge(edge), edge.target_handle)
            if value is not None:
                result[edge.target_handle] = value
        return result
