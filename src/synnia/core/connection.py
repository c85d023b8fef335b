"""
Connection Validation - Structural checks and schema-based coercion.

This module provides:
- Coercion / coerce_to_field: Implicit conversion of an incoming value
  into the type a target field declares
- would_create_cycle: Cycle detection over edges and docking links
- check_structure: Engine-level checks run before any behavior hook
- schema_can_connect / schema_on_connect / schema_on_disconnect: Hooks
  shared by record-like node types whose asset carries a field schema
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

from synnia.core.assets import FieldDefinition, schema_from_config
from synnia.core.ports import (
    PortType,
    PortValue,
    is_field_level_input,
    is_reserved_port,
    resolve_input_value,
    scalar_port_type,
)

if TYPE_CHECKING:
    from synnia.core.behavior import ConnectionContext
    from synnia.core.graph import GraphStore


logger = logging.getLogger(__name__)


@dataclass
class Coercion:
    """Outcome of coercing one value into a target field."""
    ok: bool
    value: Any = None
    reason: str | None = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def accept(cls, value: Any, warnings: list[str] | None = None) -> Coercion:
        return cls(ok=True, value=value, warnings=list(warnings or []))

    @classmethod
    def reject(cls, reason: str) -> Coercion:
        return cls(ok=False, reason=reason)


def _required_keys(target: FieldDefinition) -> list[str]:
    if target.required_keys:
        return list(target.required_keys)
    if target.schema:
        return [f.key for f in target.schema if f.required]
    return []


def to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_number(value: Any) -> int | float | None:
    """Numeric coercion; None marks not-a-number."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return None if math.isnan(number) else number
    return None


def coerce_to_field(port_value: PortValue | None, target: FieldDefinition) -> Coercion:
    """
    Coerce an incoming port value into the type of `target`.

    | target        | source  | outcome                                  |
    |---------------|---------|------------------------------------------|
    | object        | list    | first element if it is a record          |
    | object        | record  | accepted; missing required keys warn     |
    | array         | list    | accepted                                 |
    | array         | record  | wrapped in a one-element list            |
    | string/number/boolean | any | primitive conversion, NaN fails      |
    """
    if port_value is None:
        return Coercion.accept(None)

    value = port_value.value
    field_type = target.type

    if field_type == "object":
        if isinstance(value, list):
            if value and isinstance(value[0], dict):
                value = value[0]
            else:
                return Coercion.reject(
                    f"Field '{target.key}' expects an object, got a list without objects"
                )
        if not isinstance(value, dict):
            return Coercion.reject(f"Field '{target.key}' expects an object")
        missing = [k for k in _required_keys(target) if k not in value]
        warnings = []
        if missing:
            message = f"Field '{target.key}' is missing keys: {', '.join(missing)}"
            logger.warning(message)
            warnings.append(message)
        return Coercion.accept(value, warnings)

    if field_type == "array":
        if isinstance(value, list):
            return Coercion.accept(value)
        if isinstance(value, dict):
            return Coercion.accept([value])
        return Coercion.reject(f"Field '{target.key}' expects a list")

    if field_type == "string":
        return Coercion.accept(to_string(value))

    if field_type == "number":
        number = to_number(value)
        if number is None:
            return Coercion.reject(f"Field '{target.key}' expects a number, got {value!r}")
        return Coercion.accept(number)

    if field_type == "boolean":
        return Coercion.accept(bool(value))

    return Coercion.accept(value)


# ============================================================================
# Structural checks
# ============================================================================

def _downstream_links(graph: GraphStore, node_id: str) -> list[str]:
    """Nodes fed by node_id, via edges or via docking (master -> follower)."""
    linked = [e.target for e in graph.outgoing_edges(node_id)]
    linked.extend(n.id for n in graph.followers_of(node_id))
    return linked


def would_create_cycle(graph: GraphStore, source_id: str, target_id: str) -> bool:
    """
    Check whether linking source -> target closes a loop.

    Walks downstream from target over edges and dock chains; reaching
    source means target is already an ancestor of source.
    """
    if source_id == target_id:
        return True

    visited: set[str] = set()
    stack = [target_id]
    while stack:
        current = stack.pop()
        if current == source_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        stack.extend(_downstream_links(graph, current))
    return False


def check_structure(
    graph: GraphStore,
    source_id: str,
    target_id: str,
    target_handle: str | None,
) -> str | None:
    """
    Engine-level validation of a prospective edge.

    Returns a rejection reason, or None if the edge is structurally sound.
    """
    if source_id not in graph or target_id not in graph:
        return "Node not found"
    if source_id == target_id:
        return "Cannot connect a node to itself"
    if would_create_cycle(graph, source_id, target_id):
        return "Connection would create a cycle"
    if is_field_level_input(target_handle) and graph.incoming_edges(target_id, target_handle):
        return f"Field '{target_handle}' already has a connection"
    return None


# ============================================================================
# Schema-aware hooks
# ============================================================================

def find_field(ctx: ConnectionContext, key: str) -> FieldDefinition | None:
    if ctx.target_asset is None:
        return None
    for f in schema_from_config(ctx.target_asset.config):
        if f.key == key:
            return f
    return None


_PRIMITIVE_TYPES = ("string", "number", "boolean")


def _incoming_for(ctx: ConnectionContext, target: FieldDefinition) -> PortValue | None:
    """
    The value a schema-typed field sees.

    Primitive fields read the matching key out of structured sources
    before primitive conversion.
    """
    port_value = ctx.source_port_value
    if port_value is None or target.type not in _PRIMITIVE_TYPES:
        return port_value
    if isinstance(port_value.value, (dict, list)):
        extracted = resolve_input_value(port_value, target.key)
        return PortValue(scalar_port_type(extracted), extracted, port_value.meta)
    return port_value


def schema_can_connect(ctx: ConnectionContext) -> str | None:
    """Reject incoming values the target field cannot be coerced from."""
    handle = ctx.edge.target_handle
    if not handle or is_reserved_port(handle):
        return None
    target = find_field(ctx, handle)
    if target is None:
        return None
    coercion = coerce_to_field(_incoming_for(ctx, target), target)
    return None if coercion.ok else coercion.reason


def schema_on_connect(ctx: ConnectionContext) -> dict[str, Any] | None:
    """
    Fill the target field from the pre-resolved source value.

    Schema-typed fields go through coerce_to_field; untyped fields use
    the legacy extraction.
    """
    handle = ctx.edge.target_handle
    if not is_field_level_input(handle):
        return None

    target = find_field(ctx, handle)
    if target is not None:
        coercion = coerce_to_field(_incoming_for(ctx, target), target)
        if not coercion.ok or coercion.value is None:
            return None
        return {handle: coercion.value}

    value = resolve_input_value(ctx.source_port_value, handle)
    return None if value is None else {handle: value}


def schema_on_disconnect(ctx: ConnectionContext) -> dict[str, Any] | None:
    """Reset a field to its schema default once its edge is removed."""
    handle = ctx.edge.target_handle
    if not is_field_level_input(handle):
        return None
    if ctx.engine.incoming_edges(ctx.target_node.id, handle):
        return None
    target = find_field(ctx, handle)
    return {handle: target.default if target is not None else None}


def describe(port_value: PortValue | None) -> str:
    if port_value is None:
        return "nothing"
    if port_value.type == PortType.ARRAY and isinstance(port_value.value, list):
        return f"array[{len(port_value.value)}]"
    return port_value.type.value
