"""
Node Type System - Definitions and registry for node types.

This module defines how node types are specified:
- NodeCategory: Grouping used by pickers and by output synthesis
- NodeTemplate: What a definition's `create` factory returns
- NodeDefinition: Complete definition of a node type
- NodeTypeRegistry: Registry of available node types
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, TYPE_CHECKING

from synnia.core.behavior import (
    EMPTY_BEHAVIOR,
    TYPE_SEPARATOR,
    BehaviorRegistry,
    NodeBehavior,
)

if TYPE_CHECKING:
    from synnia.core.assets import Asset, FieldDefinition
    from synnia.core.graph import Node


logger = logging.getLogger(__name__)


class NodeCategory(Enum):
    """Categories for organizing nodes in the library."""
    ASSET = "asset"
    COLLECTION = "collection"
    RECIPE = "recipe"
    UTILITY = "utility"


@dataclass
class NodeTemplate:
    """
    Initial state for a freshly created node.

    Attributes:
        value_type: Asset value type, None for nodes without an asset
        value: Initial asset value
        config: Initial asset config
        value_meta: Initial asset value metadata
        data: Extra node view state merged into node.data
    """
    value_type: str | None
    value: Any = None
    config: dict[str, Any] = field(default_factory=dict)
    value_meta: dict[str, Any] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)


# create(content, schema) -> NodeTemplate
CreateFactory = Callable[[Any, "list[FieldDefinition] | None"], NodeTemplate]
GetItems = Callable[["Asset"], list[Any]]
MergeItems = Callable[[list[Any], list[Any]], list[Any]]
CanDockWith = Callable[["Node", "Asset | None", "Node", "Asset | None"], bool]


@dataclass
class NodeDefinition:
    """
    Complete definition of a node type.

    Definitions are templates: nodes in a graph reference one by
    their `type` string.
    """
    type: str
    name: str
    category: NodeCategory = NodeCategory.ASSET
    description: str = ""
    alias: str | None = None

    behavior: NodeBehavior = EMPTY_BEHAVIOR
    create: CreateFactory | None = None

    # Collection hooks, used when a recipe re-runs into an existing product
    is_collection: bool = False
    get_items: GetItems | None = None
    merge_items: MergeItems | None = None

    # Docking
    dockable: bool = False
    can_dock_with: CanDockWith | None = None

    style: dict[str, Any] = field(default_factory=dict)

    def build(self, content: Any = None, schema: list[FieldDefinition] | None = None) -> NodeTemplate:
        """Run the create factory, or produce an empty template."""
        if self.create is None:
            return NodeTemplate(value_type=None)
        return self.create(content, schema)

    def items_of(self, asset: Asset) -> list[Any]:
        if self.get_items is not None:
            return self.get_items(asset)
        return asset.value if isinstance(asset.value, list) else []


class NodeTypeRegistry:
    """
    Registry of available node types.

    Virtual ids such as `recipe:storyteller` fall back to their
    category definition, the same way behavior lookup does.
    """

    _instance: NodeTypeRegistry | None = None

    @classmethod
    def instance(cls) -> NodeTypeRegistry:
        """Get the shared registry."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __init__(self):
        self._types: dict[str, NodeDefinition] = {}
        self._aliases: dict[str, str] = {}

    def register(self, definition: NodeDefinition) -> None:
        """Register a node type."""
        if self._types.get(definition.type, definition) is not definition:
            logger.warning("Node type '%s' is being overwritten", definition.type)
        self._types[definition.type] = definition
        if definition.alias:
            self._aliases[definition.alias] = definition.type

    def get(self, type_id: str) -> NodeDefinition | None:
        """Get a definition by type id, alias, or category of a virtual id."""
        type_id = self._aliases.get(type_id, type_id)
        definition = self._types.get(type_id)
        if definition is not None:
            return definition
        category, sep, _ = type_id.partition(TYPE_SEPARATOR)
        if sep:
            return self._types.get(self._aliases.get(category, category))
        return None

    def resolve_type(self, type_or_alias: str) -> str:
        """Map an alias to its canonical type id."""
        return self._aliases.get(type_or_alias, type_or_alias)

    def is_collection(self, type_id: str) -> bool:
        definition = self.get(type_id)
        return bool(definition and definition.is_collection)

    def get_all(self) -> list[NodeDefinition]:
        return list(self._types.values())

    def list_by_category(self, category: NodeCategory) -> list[NodeDefinition]:
        return [t for t in self._types.values() if t.category == category]

    def clear(self) -> None:
        """Remove all registered types (for testing)."""
        self._types.clear()
        self._aliases.clear()

    def __len__(self) -> int:
        return len(self._types)

    def __contains__(self, type_id: str) -> bool:
        return self.get(type_id) is not None


def register_node_type(
    definition: NodeDefinition,
    node_types: NodeTypeRegistry | None = None,
    behaviors: BehaviorRegistry | None = None,
) -> NodeDefinition:
    """
    Register a definition and its behavior.

    Falls back to the shared registries when none are given.
    """
    (node_types if node_types is not None else NodeTypeRegistry.instance()).register(definition)
    if not definition.behavior.is_empty:
        (behaviors if behaviors is not None else BehaviorRegistry.instance()).register(definition.type, definition.behavior)
    return definition
