"""
Graph Engine - The single writer of graph and asset state.

Every mutation goes through a GraphEngine method. Behavior hooks are
consulted along the way but only ever return values or NodePatches;
the engine applies them.

Connect sequence:
1. Structural checks (existence, self-loop, cycles, multi-source)
2. Resolve the source port once
3. Ask the target behavior's can_connect
4. Create the edge
5. Apply the target behavior's on_connect updates in one merged write
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Iterable

from synnia.core.assets import Asset, AssetId, AssetStore, FieldDefinition
from synnia.core.behavior import BehaviorRegistry, ConnectionContext, StoreView
from synnia.core.connection import check_structure, describe, would_create_cycle
from synnia.core.errors import ConnectionRejected, DockingRejected, NodeNotFoundError
from synnia.core.graph import (
    EDGE_DEFAULT,
    EDGE_OUTPUT,
    Edge,
    GraphStore,
    Node,
    NodePatch,
    Point2D,
    apply_patch,
)
from synnia.core.layout import fix_docking_layout
from synnia.core.node_types import NodeTemplate, NodeTypeRegistry
from synnia.core.ports import (
    PORT_ORIGIN,
    PORT_PRODUCT,
    PortResolver,
    PortValue,
    is_field_level_input,
    is_reserved_port,
)


logger = logging.getLogger(__name__)

# Patch keys that may move a docked stack
_LAYOUT_KEYS = {"position", "style"}
_LAYOUT_DATA_KEYS = {"docked_to", "collapsed"}

# View state that belongs to one node and is not copied on duplicate
_NODE_LOCAL_DATA = (
    "docked_to",
    "has_docked_follower",
    "has_product_handle",
    "state",
    "error_message",
    "execution_result",
)


def _infer_value_type(content: Any) -> str:
    if isinstance(content, list):
        return "array"
    if isinstance(content, dict):
        return "record"
    return "text"


def _touches_layout(patch: dict[str, Any]) -> bool:
    if _LAYOUT_KEYS & patch.keys():
        return True
    data = patch.get("data") or {}
    return bool(_LAYOUT_DATA_KEYS & data.keys()) or bool(_LAYOUT_DATA_KEYS & patch.keys())


class GraphEngine(StoreView):
    """
    Owns one GraphStore and one AssetStore and mutates them atomically.

    The engine is also the EngineContext handed to behavior hooks.
    """

    def __init__(
        self,
        graph: GraphStore | None = None,
        assets: AssetStore | None = None,
        node_types: NodeTypeRegistry | None = None,
        behaviors: BehaviorRegistry | None = None,
    ):
        self.graph = graph if graph is not None else GraphStore()
        self.assets = assets if assets is not None else AssetStore()
        super().__init__(self.graph, self.assets)
        self.node_types = node_types if node_types is not None else NodeTypeRegistry.instance()
        self.behaviors = behaviors if behaviors is not None else BehaviorRegistry.instance()
        self.resolver = PortResolver(self.behaviors, self)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def require_node(self, node_id: str) -> Node:
        node = self.graph.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def resolve_output(self, node_id: str, port_id: str) -> PortValue | None:
        return self.resolver.resolve_node(node_id, port_id)

    def collect_input_values(self, node_id: str) -> dict[str, Any]:
        return self.resolver.collect_input_values(node_id)

    def find_output_edges(self, node_id: str) -> list[Edge]:
        """Output edges leaving a recipe node's product port."""
        return [
            e for e in self.graph.outgoing_edges(node_id, PORT_PRODUCT)
            if e.kind == EDGE_OUTPUT
        ]

    def find_output_edge(self, node_id: str) -> Edge | None:
        edges = self.find_output_edges(node_id)
        return edges[0] if edges else None

    def product_nodes(self, node_id: str) -> list[Node]:
        return [
            n for n in (self.graph.get_node(e.target) for e in self.find_output_edges(node_id))
            if n is not None
        ]

    # -------------------------------------------------------------------------
    # Node lifecycle
    # -------------------------------------------------------------------------

    def add_node(
        self,
        type: str,
        position: Point2D | None = None,
        *,
        content: Any = None,
        schema: list[FieldDefinition] | None = None,
        asset_id: str | None = None,
        asset_type: str | None = None,
        asset_name: str | None = None,
        asset_config: dict[str, Any] | None = None,
        value_meta: dict[str, Any] | None = None,
        title: str | None = None,
        docked_to: str | None = None,
        collapsed: bool | None = None,
        data: dict[str, Any] | None = None,
        style: dict[str, Any] | None = None,
        source: str = "user",
    ) -> Node:
        """
        Create a node, and its backing asset unless `asset_id` is given.

        The asset comes from the type's `create` factory. Types without a
        definition still get an asset when content is supplied.
        """
        type = self.node_types.resolve_type(type)
        definition = self.node_types.get(type)
        if definition is None:
            logger.warning("Adding node of unregistered type '%s'", type)

        node_data: dict[str, Any] = {}
        if asset_id is not None:
            if self.assets.get(asset_id) is None:
                raise KeyError(f"Asset not found: {asset_id}")
        else:
            if definition is not None:
                template = definition.build(content, schema)
            elif content is not None or asset_type:
                template = NodeTemplate(value_type=asset_type or _infer_value_type(content), value=content)
            else:
                template = NodeTemplate(value_type=None)

            if template.value_type is not None:
                asset = Asset.create(
                    template.value_type,
                    template.value,
                    name=asset_name or title or (definition.name if definition else type),
                    config={**template.config, **(asset_config or {})},
                    value_meta={**template.value_meta, **(value_meta or {})},
                    source=source,
                )
                self.assets.add(asset)
                asset_id = asset.id
            node_data.update(template.data)

        node_data["title"] = title or (definition.name if definition else type)
        if collapsed is not None:
            node_data["collapsed"] = collapsed
        if docked_to:
            node_data["docked_to"] = docked_to
        node_data.update(data or {})
        if asset_id is not None:
            node_data["asset_id"] = asset_id

        node = Node.create(
            type,
            position=Point2D.coerce(position) if position is not None else None,
            data=node_data,
            style={**(definition.style if definition else {}), **(style or {})},
        )
        self.graph.add_node(node)
        logger.debug("Added %s node %s", type, node.id)

        behavior = self.behaviors.get(node.type)
        if behavior.on_create is not None:
            self.apply_patches(behavior.on_create(node, self))
        if docked_to:
            self.fix_layout()
        return node

    def create_node_from_schema(
        self,
        type: str,
        schema: list[FieldDefinition],
        position: Point2D | None = None,
        *,
        title: str | None = None,
        values: dict[str, Any] | None = None,
    ) -> Node:
        """Create a record-like node whose asset carries `schema`."""
        defaults = {f.key: f.default for f in schema if f.default is not None}
        return self.add_node(
            type,
            position,
            content={**defaults, **(values or {})},
            schema=schema,
            title=title,
        )

    def remove_node(self, node_id: str) -> Node | None:
        """
        Remove a node, its edges, and its asset once nothing references it.

        Followers docked to the node are released.
        """
        node = self.graph.get_node(node_id)
        if node is None:
            return None

        behavior = self.behaviors.get(node.type)
        if behavior.on_delete is not None:
            behavior.on_delete(node, self)

        releases = [
            NodePatch(f.id, {"data": {"docked_to": None}})
            for f in self.graph.followers_of(node_id)
        ]
        self.graph.remove_node(node_id)
        if releases:
            self.apply_patches(releases)

        asset_id = node.asset_id
        if asset_id and not self.graph.nodes_for_asset(asset_id):
            self.assets.remove(asset_id)

        self.fix_layout()
        logger.debug("Removed node %s", node_id)
        return node

    def delete_nodes(self, node_ids: Iterable[str]) -> list[Node]:
        removed = []
        for node_id in list(node_ids):
            node = self.remove_node(node_id)
            if node is not None:
                removed.append(node)
        return removed

    def duplicate_node(self, node_id: str, offset: Point2D | None = None) -> Node:
        """Copy a node together with a deep copy of its asset."""
        original = self.require_node(node_id)
        data = {k: v for k, v in copy.deepcopy(original.data).items() if k not in _NODE_LOCAL_DATA}

        asset = self.get_asset_for(original)
        if asset is not None:
            clone = asset.clone()
            self.assets.add(clone)
            data["asset_id"] = clone.id

        node = Node.create(
            original.type,
            position=original.position + (offset or Point2D(40.0, 40.0)),
            data=data,
            style=dict(original.style),
        )
        self.graph.add_node(node)
        return node

    def create_shortcut(self, node_id: str, offset: Point2D | None = None) -> Node:
        """Add a node that shares the original's asset."""
        original = self.require_node(node_id)
        if original.asset_id is None:
            raise ValueError(f"Node {node_id} has no asset to reference")

        node = Node.create(
            original.type,
            position=original.position + (offset or Point2D(40.0, 40.0)),
            data={
                "title": original.title,
                "asset_id": original.asset_id,
                "is_reference": True,
                "original_node_id": original.id,
            },
            style=dict(original.style),
        )
        self.graph.add_node(node)
        return node

    # -------------------------------------------------------------------------
    # Patches
    # -------------------------------------------------------------------------

    def update_node(self, node_id: str, patch: dict[str, Any]) -> None:
        self.apply_patches([NodePatch(node_id, patch)])

    def update_nodes(self, patches: Iterable[NodePatch]) -> None:
        self.apply_patches(patches)

    def apply_patches(self, patches: Iterable[NodePatch], *, fix_layout: bool = True) -> None:
        """
        Apply a batch of patches.

        Patches for the same node are merged in order before being
        applied, so a batch lands as one change per node.
        """
        merged: dict[str, NodePatch] = {}
        for patch in patches:
            if patch.id in merged:
                merged[patch.id] = merged[patch.id].merged_with(patch)
            else:
                merged[patch.id] = patch

        layout_dirty = False
        for node_id, patch in merged.items():
            node = self.graph.get_node(node_id)
            if node is None:
                logger.warning("Dropping patch for unknown node %s", node_id)
                continue
            apply_patch(node, patch.patch)
            layout_dirty = layout_dirty or _touches_layout(patch.patch)

        if layout_dirty and fix_layout:
            self.fix_layout()

    def fix_layout(self) -> None:
        """Run the docking layout fix-up and apply its patches."""
        patches = fix_docking_layout(self.graph)
        if patches:
            self.apply_patches(patches, fix_layout=False)

    def move_node(self, node_id: str, position: Point2D) -> None:
        self.update_node(node_id, {"position": Point2D.coerce(position)})

    def resize_node(self, node_id: str, width: float | None = None, height: float | None = None) -> None:
        style: dict[str, Any] = {}
        if width is not None:
            style["width"] = width
        if height is not None:
            style["height"] = height
        self.update_node(node_id, {"style": style})

    def toggle_collapse(self, node_id: str, collapsed: bool | None = None) -> bool:
        """Collapse or expand a node. Returns the new collapsed state."""
        node = self.require_node(node_id)
        collapsed = (not node.collapsed) if collapsed is None else collapsed

        behavior = self.behaviors.get(node.type)
        if behavior.on_collapse is not None:
            self.apply_patches(behavior.on_collapse(node, collapsed, self))
        else:
            self.update_node(node_id, {"data": {"collapsed": collapsed}})
        return collapsed

    # -------------------------------------------------------------------------
    # Assets
    # -------------------------------------------------------------------------

    def update_asset(self, asset_id: str, value: Any) -> Asset | None:
        return self.assets.update(asset_id, value)

    def update_asset_values(self, asset_id: str, updates: dict[str, Any]) -> Asset | None:
        """Merge field updates into a record asset in one write."""
        asset = self.assets.get(asset_id)
        if asset is None:
            logger.warning("Field updates for unknown asset %s", asset_id)
            return None
        if asset.value is not None and not isinstance(asset.value, dict):
            logger.warning("Asset %s holds %s, cannot merge fields", asset_id, type(asset.value).__name__)
            return None
        return self.assets.update(asset_id, {**(asset.value or {}), **updates})

    def update_asset_config(self, asset_id: str, config: dict[str, Any]) -> Asset | None:
        return self.assets.update_config(asset_id, config)

    # -------------------------------------------------------------------------
    # Edges
    # -------------------------------------------------------------------------

    def _context(self, edge: Edge, port_value: PortValue | None) -> ConnectionContext:
        source = self.require_node(edge.source)
        target = self.require_node(edge.target)
        return ConnectionContext(
            source_node=source,
            target_node=target,
            edge=edge,
            source_asset=self.get_asset_for(source),
            target_asset=self.get_asset_for(target),
            source_port_value=port_value,
            engine=self,
        )

    def validate_connection(
        self,
        source: str,
        source_handle: str | None,
        target: str,
        target_handle: str | None,
    ) -> str | None:
        """Dry-run a connection. Returns the rejection reason, if any."""
        reason = check_structure(self.graph, source, target, target_handle)
        if reason:
            return reason
        edge = Edge.create(source, source_handle, target, target_handle)
        port_value = self.resolver.resolve_node(source, source_handle or PORT_ORIGIN)
        return self._ask_target(self._context(edge, port_value))

    def _ask_target(self, ctx: ConnectionContext) -> str | None:
        handle = ctx.edge.target_handle
        if is_reserved_port(handle):
            return None
        behavior = self.behaviors.get(ctx.target_node.type)
        if behavior.can_connect is None:
            if is_field_level_input(handle):
                return f"{ctx.target_node.type} does not accept field connections"
            return None
        return behavior.can_connect(ctx)

    def connect(
        self,
        source: str,
        source_handle: str | None,
        target: str,
        target_handle: str | None,
        kind: str = EDGE_DEFAULT,
    ) -> Edge:
        """
        Create an edge.

        Raises:
            ConnectionRejected: Structural problem or target refusal. The
                graph is left untouched.
        """
        reason = check_structure(self.graph, source, target, target_handle)
        if reason:
            raise ConnectionRejected(reason)

        port_value = self.resolver.resolve_node(source, source_handle or PORT_ORIGIN)
        edge = Edge.create(source, source_handle, target, target_handle, kind=kind)
        ctx = self._context(edge, port_value)

        reason = self._ask_target(ctx)
        if reason:
            raise ConnectionRejected(reason)

        self.graph.add_edge(edge)
        logger.debug(
            "Connected %s.%s -> %s.%s (%s)",
            source, source_handle, target, target_handle, describe(port_value),
        )

        behavior = self.behaviors.get(ctx.target_node.type)
        if behavior.on_connect is not None and ctx.target_asset is not None:
            updates = behavior.on_connect(ctx)
            if updates:
                self.update_asset_values(ctx.target_asset.id, updates)
        return edge

    def connect_output_edge(
        self,
        source: str,
        target: str,
        source_handle: str = PORT_PRODUCT,
        target_handle: str = PORT_ORIGIN,
    ) -> Edge:
        """
        Link a recipe node to its newest product.

        Any previous output edge from the same recipe is replaced.
        """
        if source not in self.graph or target not in self.graph:
            raise ConnectionRejected("Node not found")
        if would_create_cycle(self.graph, source, target):
            raise ConnectionRejected("Connection would create a cycle")

        for old in self.find_output_edges(source):
            self.graph.remove_edge(old.id)

        edge = Edge.create(source, source_handle, target, target_handle, kind=EDGE_OUTPUT)
        self.graph.add_edge(edge)
        return edge

    def disconnect(self, edge_id: str) -> Edge | None:
        """Remove an edge and apply the target's on_disconnect updates."""
        edge = self.graph.get_edge(edge_id)
        if edge is None:
            return None

        port_value = self.resolver.resolve_edge(edge)
        ctx = self._context(edge, port_value)
        self.graph.remove_edge(edge_id)

        behavior = self.behaviors.get(ctx.target_node.type)
        if behavior.on_disconnect is not None and ctx.target_asset is not None:
            updates = behavior.on_disconnect(ctx)
            if updates:
                self.update_asset_values(ctx.target_asset.id, updates)
        return edge

    def refresh_connected_inputs(self, node_id: str) -> dict[str, Any]:
        """
        Re-resolve every incoming edge and re-run on_connect.

        All updates land in the node's asset as a single write. Returns
        the merged updates.
        """
        node = self.require_node(node_id)
        asset = self.get_asset_for(node)
        behavior = self.behaviors.get(node.type)
        if asset is None or behavior.on_connect is None:
            return {}

        updates: dict[str, Any] = {}
        for edge in self.graph.incoming_edges(node_id):
            if edge.kind == EDGE_OUTPUT:
                continue
            port_value = self.resolver.resolve_edge(edge)
            result = behavior.on_connect(self._context(edge, port_value))
            if result:
                updates.update(result)

        if updates:
            self.update_asset_values(asset.id, updates)
        return updates

    # -------------------------------------------------------------------------
    # Docking
    # -------------------------------------------------------------------------

    def dock(self, node_id: str, target_id: str) -> None:
        """
        Dock node_id beneath target_id.

        Raises:
            DockingRejected: The types refuse, the target already has a
                follower, or the link would close a loop.
        """
        node = self.require_node(node_id)
        target = self.require_node(target_id)

        definition = self.node_types.get(node.type)
        if definition is None or not definition.dockable:
            raise DockingRejected(f"{node.type} nodes cannot be docked")
        if definition.can_dock_with is not None and not definition.can_dock_with(
            node, self.get_asset_for(node), target, self.get_asset_for(target)
        ):
            raise DockingRejected(f"{node.type} node cannot dock onto {target.type} node")
        if any(f.id != node_id for f in self.graph.followers_of(target_id)):
            raise DockingRejected("Target already has a docked follower")
        if would_create_cycle(self.graph, target_id, node_id):
            raise DockingRejected("Docking would create a loop")

        self.update_node(node_id, {"data": {"docked_to": target_id}})

    def undock(self, node_id: str) -> None:
        self.require_node(node_id)
        self.update_node(node_id, {"data": {"docked_to": None}})

    def dock_chain(self, node_id: str) -> list[Node]:
        """The chain from the root master down to node_id."""
        chain: list[Node] = []
        seen: set[str] = set()
        current = self.graph.get_node(node_id)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            chain.insert(0, current)
            current = self.graph.get_node(current.docked_to)
        return chain

    # -------------------------------------------------------------------------
    # Bulk loading
    # -------------------------------------------------------------------------

    def load(self, nodes: Iterable[Node], edges: Iterable[Edge], assets: Iterable[Asset]) -> None:
        """Seed the stores with previously persisted state."""
        for asset in assets:
            self.assets.add(asset)
        for node in nodes:
            if node.asset_id and AssetId(node.asset_id) not in self.assets:
                logger.warning("Node %s references missing asset %s", node.id, node.asset_id)
            self.graph.add_node(node)
        for edge in edges:
            self.graph.add_edge(edge)
