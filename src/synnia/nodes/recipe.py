"""
Recipe Node - Parameter record bound to a recipe.

Node types are virtual: `recipe:<recipe id>` falls back to the `recipe`
definition and behavior. The asset holds the form values; its config
carries the recipe's input schema and id.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from synnia.core.behavior import TYPE_SEPARATOR
from synnia.core.connection import schema_can_connect, schema_on_connect, schema_on_disconnect
from synnia.core.node_types import NodeCategory, NodeDefinition, NodeTemplate
from synnia.core.ports import (
    PORT_ORIGIN,
    PORT_REFERENCE,
    PortType,
    PortValue,
    parse_field_port,
    scalar_port_type,
)
from synnia.nodes.standard import STANDARD_BEHAVIOR

if TYPE_CHECKING:
    from synnia.core.assets import Asset, FieldDefinition
    from synnia.core.behavior import EngineContext
    from synnia.core.engine import GraphEngine
    from synnia.core.graph import Node, Point2D
    from synnia.recipes.types import RecipeDefinition

RECIPE_TYPE = "recipe"


def recipe_node_type(recipe_id: str) -> str:
    return f"{RECIPE_TYPE}{TYPE_SEPARATOR}{recipe_id}"


def recipe_id_of(node: Node) -> str | None:
    """Recipe bound to a node, from its data or its virtual type."""
    recipe_id = node.data.get("recipe_id")
    if recipe_id:
        return recipe_id
    category, sep, instance = node.type.partition(TYPE_SEPARATOR)
    if category == RECIPE_TYPE and sep:
        return instance
    return None


def resolve_recipe_output(
    node: Node,
    asset: Asset | None,
    port_id: str,
    engine: EngineContext,
) -> PortValue | None:
    if asset is None or not isinstance(asset.value, dict) or not asset.value:
        return None
    values = asset.value

    if port_id in (PORT_REFERENCE, PORT_ORIGIN):
        return PortValue.of(PortType.JSON, values, node.id, port_id)

    key = parse_field_port(port_id)
    if key is None:
        key = port_id
    value = values.get(key)
    if value is None:
        return None
    return PortValue.of(scalar_port_type(value), value, node.id, port_id)


def create_recipe(content: Any, schema: list[FieldDefinition] | None) -> NodeTemplate:
    return NodeTemplate(
        value_type="record",
        value=dict(content) if isinstance(content, dict) else {},
        config={"schema": [f.to_dict() for f in (schema or [])]},
        data={"state": "idle"},
    )


def add_recipe_node(
    engine: GraphEngine,
    recipe: RecipeDefinition,
    position: Point2D | None = None,
    values: dict[str, Any] | None = None,
) -> Node:
    """Create a node bound to `recipe`, pre-filled with schema defaults."""
    defaults = {f.key: f.default for f in recipe.input_schema if f.default is not None}
    return engine.add_node(
        recipe_node_type(recipe.id),
        position,
        content={**defaults, **(values or {})},
        schema=recipe.input_schema,
        asset_config={"recipe_id": recipe.id},
        title=recipe.name,
        data={"recipe_id": recipe.id},
    )


RECIPE_BEHAVIOR = STANDARD_BEHAVIOR.extend(
    resolve_output=resolve_recipe_output,
    can_connect=schema_can_connect,
    on_connect=schema_on_connect,
    on_disconnect=schema_on_disconnect,
)

RECIPE_NODE = NodeDefinition(
    type=RECIPE_TYPE,
    name="Recipe",
    category=NodeCategory.RECIPE,
    description="Runs a recipe over its connected inputs",
    behavior=RECIPE_BEHAVIOR,
    create=create_recipe,
    style={"width": 300, "height": 240},
)
