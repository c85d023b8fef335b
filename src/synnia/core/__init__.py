"""
Core module - Graph state, data flow and the engine that mutates it.

This module provides the fundamental building blocks for Synnia:
- Assets: Typed values referenced by nodes
- Graph: Nodes, edges and patches
- Ports: Output resolution and input extraction
- Behavior: Per-type hooks and their registry
- Engine: The single writer of graph and asset state
- Project: JSON persistence

The recipe execution pipeline lives in `synnia.core.execution`.
"""

from synnia.core.assets import (
    Asset,
    AssetId,
    AssetStore,
    FieldDefinition,
    new_asset_id,
)

from synnia.core.graph import (
    EDGE_DEFAULT,
    EDGE_OUTPUT,
    Edge,
    EdgeId,
    GraphStore,
    Node,
    NodeId,
    NodePatch,
    Point2D,
    new_edge_id,
    new_node_id,
)

from synnia.core.ports import (
    PORT_ARRAY,
    PORT_ORIGIN,
    PORT_OUTPUT,
    PORT_PRODUCT,
    PORT_REFERENCE,
    PORT_TRIGGER,
    PortResolver,
    PortType,
    PortValue,
    field_port,
    resolve_input_value,
)

from synnia.core.behavior import (
    EMPTY_BEHAVIOR,
    BehaviorRegistry,
    ConnectionContext,
    EngineContext,
    NodeBehavior,
    get_behavior_registry,
)

from synnia.core.connection import (
    Coercion,
    coerce_to_field,
    would_create_cycle,
)

from synnia.core.node_types import (
    NodeCategory,
    NodeDefinition,
    NodeTemplate,
    NodeTypeRegistry,
    register_node_type,
)

from synnia.core.engine import GraphEngine

from synnia.core.errors import (
    ConnectionRejected,
    DockingRejected,
    ManifestError,
    NodeNotFoundError,
    ProjectFormatError,
    RecipeExecutionError,
    RecipeNotFoundError,
    RecipeValidationError,
    SynniaError,
)

from synnia.core.project import (
    Project,
    ProjectMeta,
    load_project,
    save_project,
)


__all__ = [
    # assets.py
    "Asset",
    "AssetId",
    "AssetStore",
    "FieldDefinition",
    "new_asset_id",
    # graph.py
    "EDGE_DEFAULT",
    "EDGE_OUTPUT",
    "Edge",
    "EdgeId",
    "GraphStore",
    "Node",
    "NodeId",
    "NodePatch",
    "Point2D",
    "new_edge_id",
    "new_node_id",
    # ports.py
    "PORT_ARRAY",
    "PORT_ORIGIN",
    "PORT_OUTPUT",
    "PORT_PRODUCT",
    "PORT_REFERENCE",
    "PORT_TRIGGER",
    "PortResolver",
    "PortType",
    "PortValue",
    "field_port",
    "resolve_input_value",
    # behavior.py
    "EMPTY_BEHAVIOR",
    "BehaviorRegistry",
    "ConnectionContext",
    "EngineContext",
    "NodeBehavior",
    "get_behavior_registry",
    # connection.py
    "Coercion",
    "coerce_to_field",
    "would_create_cycle",
    # node_types.py
    "NodeCategory",
    "NodeDefinition",
    "NodeTemplate",
    "NodeTypeRegistry",
    "register_node_type",
    # engine.py
    "GraphEngine",
    # errors.py
    "ConnectionRejected",
    "DockingRejected",
    "ManifestError",
    "NodeNotFoundError",
    "ProjectFormatError",
    "RecipeExecutionError",
    "RecipeNotFoundError",
    "RecipeValidationError",
    "SynniaError",
    # project.py
    "Project",
    "ProjectMeta",
    "load_project",
    "save_project",
]
