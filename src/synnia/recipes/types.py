"""
Recipe Types - Definitions, manifests and execution records.

This module defines:
- OutputConfig: How a recipe's result becomes product nodes
- RecipeManifest: Declarative description of a recipe
- RecipeDefinition: A runnable recipe
- ExecutionContext: Everything an executor may read
- ExecutionResult / NodeSpec: What an executor returns
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, TYPE_CHECKING

from synnia.core.assets import FieldDefinition
from synnia.core.graph import Point2D

if TYPE_CHECKING:
    from synnia.core.engine import GraphEngine
    from synnia.core.graph import Node
    from synnia.providers.registry import ProviderRegistry
    from synnia.recipes.registry import RecipeRegistry


# Positions understood by the reconciliation step
POSITION_BELOW = "below"
POSITION_RIGHT = "right"
# docked_to placeholder meaning "the node created just before this one"
DOCK_PREVIOUS = "$prev"


@dataclass
class OutputConfig:
    """
    Product node settings of a manifest.

    Attributes:
        node: Node type to create for the result
        title: Title template; `{{count}}`, `{{index}}` and item fields
        collapsed: Whether created nodes start collapsed
        config: Type specific options (e.g. a schema for form items)
        format: Expected result format: json, text or markdown
    """
    node: str | None = None
    title: str | None = None
    collapsed: bool | None = None
    config: dict[str, Any] = field(default_factory=dict)
    format: str = "text"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> OutputConfig | None:
        if not data:
            return None
        return cls(
            node=data.get("node"),
            title=data.get("title"),
            collapsed=data.get("collapsed"),
            config=dict(data.get("config") or {}),
            format=data.get("format", "text"),
        )


@dataclass
class RecipeManifest:
    """
    Declarative description of a recipe.

    Attributes:
        executor: Executor configuration; `type` selects the factory
        model: Model requirements (`category`, `capabilities`, `defaultParams`)
        output: Product node settings, if the recipe creates nodes
    """
    id: str
    name: str
    version: int = 2
    executor: dict[str, Any] = field(default_factory=dict)
    model: dict[str, Any] = field(default_factory=dict)
    output: OutputConfig | None = None

    @property
    def executor_type(self) -> str | None:
        return self.executor.get("type")


# Executor signature
Executor = Callable[["ExecutionContext"], Awaitable["ExecutionResult"]]


@dataclass
class RecipeDefinition:
    """A runnable recipe."""
    id: str
    name: str
    execute: Executor
    description: str = ""
    category: str = "Other"
    input_schema: list[FieldDefinition] = field(default_factory=list)
    output_schema: dict[str, Any] = field(default_factory=dict)
    manifest: RecipeManifest | None = None

    def defaults(self) -> dict[str, Any]:
        return {f.key: f.default for f in self.input_schema if f.default is not None}


@dataclass
class ExecutionContext:
    """
    Context passed to recipe executors.

    Executors read from here and return an ExecutionResult; they never
    mutate the graph themselves.
    """
    inputs: dict[str, Any]
    node_id: str | None = None
    node: Node | None = None
    engine: GraphEngine | None = None
    manifest: RecipeManifest | None = None
    chat_context: list[dict[str, Any]] = field(default_factory=list)
    model_config: dict[str, Any] = field(default_factory=dict)
    providers: ProviderRegistry | None = None
    recipes: RecipeRegistry | None = None

    @property
    def model_id(self) -> str | None:
        return self.model_config.get("model_id")


Position = Literal["below", "right"] | Point2D | None


@dataclass
class NodeSpec:
    """
    A node the pipeline should create from a result.

    Attributes:
        type: Node type id
        data: `content` (asset value) plus optional `title`, `collapsed`,
            `asset_type`, `asset_name`, `schema`
        position: below, right, an explicit point, or None
        docked_to: Existing node id or `$prev`
        connect_to: Extra edge from the recipe node,
            `{source_handle, target_handle}`
        asset_config: Merged into the new asset's config
    """
    type: str
    data: dict[str, Any] = field(default_factory=dict)
    position: Position = None
    docked_to: str | None = None
    connect_to: dict[str, str] | None = None
    asset_config: dict[str, Any] | None = None


@dataclass
class ExecutionResult:
    """Result of one recipe execution."""
    success: bool
    data: Any = None
    error: str | None = None
    create_nodes: list[NodeSpec] | None = None

    @classmethod
    def ok(cls, data: Any = None, create_nodes: list[NodeSpec] | None = None) -> ExecutionResult:
        return cls(success=True, data=data, create_nodes=create_nodes)

    @classmethod
    def fail(cls, error: str) -> ExecutionResult:
        return cls(success=False, error=error)
