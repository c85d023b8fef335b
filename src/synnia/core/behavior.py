"""
Node Behaviors - Per-type data-flow and lifecycle hooks.

This module defines:
- EngineContext: Read-only view of the graph handed to hooks
- StoreView: EngineContext over a GraphStore and an AssetStore
- ConnectionContext: Everything a connection hook may look at
- NodeBehavior: Bundle of optional hooks
- BehaviorRegistry: Type id -> behavior lookup with category fallback

Hooks are pure: they read through the context and return values or
NodePatches. Only the GraphEngine writes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from synnia.core.assets import Asset, AssetStore
    from synnia.core.graph import Edge, GraphStore, Node, NodePatch
    from synnia.core.ports import PortValue


logger = logging.getLogger(__name__)

# Separator between category and instance in virtual type ids ("recipe:storyteller")
TYPE_SEPARATOR = ":"


class EngineContext(Protocol):
    """Read access to graph state, as seen by behavior hooks."""

    def get_nodes(self) -> list[Node]: ...

    def get_node(self, node_id: str | None) -> Node | None: ...

    def get_asset(self, asset_id: str | None) -> Asset | None: ...

    def get_asset_for(self, node: Node) -> Asset | None: ...

    def incoming_edges(self, node_id: str, handle: str | None = None) -> list[Edge]: ...

    def outgoing_edges(self, node_id: str, handle: str | None = None) -> list[Edge]: ...


class StoreView:
    """EngineContext backed directly by the two stores."""

    def __init__(self, graph: GraphStore, assets: AssetStore):
        self._graph = graph
        self._assets = assets

    def get_nodes(self) -> list[Node]:
        return list(self._graph.nodes.values())

    def get_node(self, node_id: str | None) -> Node | None:
        return self._graph.get_node(node_id)

    def get_asset(self, asset_id: str | None) -> Asset | None:
        return self._assets.get(asset_id)

    def get_asset_for(self, node: Node) -> Asset | None:
        return self._assets.get(node.asset_id)

    def incoming_edges(self, node_id: str, handle: str | None = None) -> list[Edge]:
        return self._graph.incoming_edges(node_id, handle)

    def outgoing_edges(self, node_id: str, handle: str | None = None) -> list[Edge]:
        return self._graph.outgoing_edges(node_id, handle)


@dataclass
class ConnectionContext:
    """
    Context for connection hooks.

    `source_port_value` is resolved once by the engine before any hook
    runs. Hooks must use it instead of resolving the source again.
    """
    source_node: Node
    target_node: Node
    edge: Edge
    source_asset: Asset | None
    target_asset: Asset | None
    source_port_value: PortValue | None
    engine: EngineContext

    def get_node(self, node_id: str) -> Node | None:
        return self.engine.get_node(node_id)

    def get_nodes(self) -> list[Node]:
        return self.engine.get_nodes()


# Hook signatures
ResolveOutputHook = Callable[["Node", "Asset | None", str, EngineContext], "PortValue | None"]
CanConnectHook = Callable[[ConnectionContext], "str | None"]
ConnectHook = Callable[[ConnectionContext], "dict[str, Any] | None"]
CollapseHook = Callable[["Node", bool, EngineContext], "list[NodePatch]"]
CreateHook = Callable[["Node", EngineContext], "list[NodePatch]"]
DeleteHook = Callable[["Node", EngineContext], None]


@dataclass(frozen=True)
class NodeBehavior:
    """
    Capability bundle for a node type.

    Every hook is optional; callers must tolerate None. Behaviors are
    composed by extending a base bundle with replaced hooks:

        TEXT_BEHAVIOR = STANDARD_BEHAVIOR.extend(resolve_output=resolve_text)
    """
    resolve_output: ResolveOutputHook | None = None
    can_connect: CanConnectHook | None = None
    on_connect: ConnectHook | None = None
    on_disconnect: ConnectHook | None = None
    on_collapse: CollapseHook | None = None
    on_create: CreateHook | None = None
    on_delete: DeleteHook | None = None

    def extend(self, **hooks: Any) -> NodeBehavior:
        """Return a copy of this behavior with the given hooks replaced."""
        return replace(self, **hooks)

    @property
    def is_empty(self) -> bool:
        return all(
            getattr(self, name) is None
            for name in self.__dataclass_fields__
        )


EMPTY_BEHAVIOR = NodeBehavior()


class BehaviorRegistry:
    """
    Maps node type ids to behaviors.

    Lookup is exact first, then the category part of a
    `category:instance` id, then the empty behavior.
    """

    _instance: BehaviorRegistry | None = None

    @classmethod
    def instance(cls) -> BehaviorRegistry:
        """Get the shared registry used when none is passed explicitly."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __init__(self):
        self._behaviors: dict[str, NodeBehavior] = {}

    def register(self, type_id: str, behavior: NodeBehavior) -> None:
        """Register a behavior. A later registration for the same id wins."""
        if type_id in self._behaviors and self._behaviors[type_id] is not behavior:
            logger.warning("Behavior for node type '%s' is being overwritten", type_id)
        self._behaviors[type_id] = behavior

    def get(self, type_id: str) -> NodeBehavior:
        behavior = self._behaviors.get(type_id)
        if behavior is not None:
            return behavior

        category, sep, _ = type_id.partition(TYPE_SEPARATOR)
        if sep:
            behavior = self._behaviors.get(category)
            if behavior is not None:
                return behavior

        return EMPTY_BEHAVIOR

    def clear(self) -> None:
        """Remove all registered behaviors (for testing)."""
        self._behaviors.clear()

    def __len__(self) -> int:
        return len(self._behaviors)

    def __contains__(self, type_id: str) -> bool:
        return type_id in self._behaviors


def get_behavior_registry() -> BehaviorRegistry:
    """Get the shared behavior registry."""
    return BehaviorRegistry.instance()
