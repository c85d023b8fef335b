"""
Graph Model - Topology of the authoring canvas.

This module defines the fundamental building blocks:
- Node: A positioned vertex, optionally backed by an asset
- Edge: A link between a source port and a target port
- NodePatch: A declarative change to one node
- GraphStore: The container holding nodes and edges

Nodes and edges are plain data. Only the GraphEngine mutates a GraphStore.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, NewType
from uuid import uuid4


NodeId = NewType("NodeId", str)
EdgeId = NewType("EdgeId", str)

# Edge kinds
EDGE_DEFAULT = "default"
EDGE_OUTPUT = "output"

# Layout fallbacks used when a node has no measured size
DEFAULT_NODE_WIDTH = 250.0
DEFAULT_NODE_HEIGHT = 200.0
COLLAPSED_HEIGHT = 50.0


def new_node_id() -> NodeId:
    """Generate a new unique node ID."""
    return NodeId(f"node-{uuid4()}")


def new_edge_id() -> EdgeId:
    """Generate a new unique edge ID."""
    return EdgeId(f"edge-{uuid4()}")


@dataclass
class Point2D:
    """2D point for node positioning on the canvas."""
    x: float = 0.0
    y: float = 0.0

    def __add__(self, other: Point2D) -> Point2D:
        return Point2D(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Point2D) -> Point2D:
        return Point2D(self.x - other.x, self.y - other.y)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def coerce(cls, value: Any) -> Point2D:
        """Accept a Point2D, an {x, y} dict or an (x, y) pair."""
        if isinstance(value, Point2D):
            return Point2D(value.x, value.y)
        if isinstance(value, dict):
            return cls(float(value.get("x", 0.0)), float(value.get("y", 0.0)))
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return cls(float(value[0]), float(value[1]))
        raise TypeError(f"Cannot interpret {value!r} as a position")


@dataclass
class Node:
    """
    A single vertex in the graph.

    `data` is intentionally a free-form dict: it holds view state
    (title, collapsed, docked_to, state, error_message, ...) plus the
    `asset_id` pointer for asset-backed types. `type` never changes.
    """
    id: NodeId
    type: str
    position: Point2D = field(default_factory=Point2D)
    data: dict[str, Any] = field(default_factory=dict)
    style: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        type: str,
        position: Point2D | None = None,
        data: dict[str, Any] | None = None,
        style: dict[str, Any] | None = None,
    ) -> Node:
        """Factory method to create a new node."""
        return cls(
            id=new_node_id(),
            type=type,
            position=position or Point2D(),
            data=dict(data or {}),
            style=dict(style or {}),
        )

    @property
    def asset_id(self) -> str | None:
        return self.data.get("asset_id")

    @property
    def title(self) -> str:
        return self.data.get("title", "")

    @property
    def collapsed(self) -> bool:
        return bool(self.data.get("collapsed", False))

    @property
    def docked_to(self) -> NodeId | None:
        return self.data.get("docked_to")

    @property
    def width(self) -> float:
        return float(self.style.get("width") or DEFAULT_NODE_WIDTH)

    @property
    def height(self) -> float:
        return float(self.style.get("height") or DEFAULT_NODE_HEIGHT)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "position": self.position.to_dict(),
            "data": copy.deepcopy(self.data),
        }
        if self.style:
            data["style"] = dict(self.style)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Node:
        return cls(
            id=NodeId(data["id"]),
            type=data["type"],
            position=Point2D.coerce(data.get("position") or {}),
            data=dict(data.get("data") or {}),
            style=dict(data.get("style") or {}),
        )


@dataclass
class Edge:
    """
    A connection between two ports.

    `kind` is EDGE_OUTPUT for the distinguished recipe -> product link,
    EDGE_DEFAULT otherwise.
    """
    id: EdgeId
    source: NodeId
    source_handle: str | None
    target: NodeId
    target_handle: str | None
    kind: str = EDGE_DEFAULT

    @classmethod
    def create(
        cls,
        source: str,
        source_handle: str | None,
        target: str,
        target_handle: str | None,
        kind: str = EDGE_DEFAULT,
    ) -> Edge:
        """Factory method to create a new edge."""
        return cls(
            id=new_edge_id(),
            source=NodeId(source),
            source_handle=source_handle,
            target=NodeId(target),
            target_handle=target_handle,
            kind=kind,
        )

    @property
    def is_output_edge(self) -> bool:
        return self.kind == EDGE_OUTPUT

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "source_handle": self.source_handle,
            "target": self.target,
            "target_handle": self.target_handle,
            "kind": self.kind,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Edge:
        return cls(
            id=EdgeId(data["id"]),
            source=NodeId(data["source"]),
            source_handle=data.get("source_handle", data.get("sourceHandle")),
            target=NodeId(data["target"]),
            target_handle=data.get("target_handle", data.get("targetHandle")),
            kind=data.get("kind", data.get("type", EDGE_DEFAULT)) or EDGE_DEFAULT,
        )


@dataclass
class NodePatch:
    """
    A declarative change to one node.

    `patch` may contain `position`, `style` and `data` (each merged
    shallowly) and any other top-level node attribute.
    """
    id: NodeId
    patch: dict[str, Any]

    def merged_with(self, other: NodePatch) -> NodePatch:
        """Combine two patches for the same node, later values win."""
        merged = dict(self.patch)
        for key, value in other.patch.items():
            if key in ("data", "style") and isinstance(merged.get(key), dict):
                merged[key] = {**merged[key], **value}
            else:
                merged[key] = value
        return NodePatch(self.id, merged)


def apply_patch(node: Node, patch: dict[str, Any]) -> None:
    """Apply a patch dict to a node in place."""
    for key, value in patch.items():
        if key == "data":
            node.data.update(value)
        elif key == "style":
            node.style.update(value)
        elif key == "position":
            node.position = Point2D.coerce(value)
        elif key in ("id", "type"):
            # identity and type are immutable
            continue
        else:
            node.data[key] = value


class GraphStore:
    """
    Holds nodes and edges.

    Node insertion order is preserved so that lookups like "first
    follower" are deterministic.
    """

    def __init__(self):
        self._nodes: dict[NodeId, Node] = {}
        self._edges: list[Edge] = []

    # --- Node operations ---

    @property
    def nodes(self) -> dict[NodeId, Node]:
        """Get all nodes (read-only view)."""
        return self._nodes.copy()

    def add_node(self, node: Node) -> None:
        self._nodes[node.id] = node

    def get_node(self, node_id: str | None) -> Node | None:
        if not node_id:
            return None
        return self._nodes.get(NodeId(node_id))

    def remove_node(self, node_id: str) -> Node | None:
        """
        Remove a node and all its edges.

        Returns the removed node, or None if not found.
        """
        node = self._nodes.pop(NodeId(node_id), None)
        if node:
            self._edges = [
                e for e in self._edges
                if e.source != node_id and e.target != node_id
            ]
        return node

    def followers_of(self, node_id: str) -> list[Node]:
        """Nodes whose `docked_to` points at node_id."""
        return [n for n in self._nodes.values() if n.docked_to == node_id]

    def nodes_for_asset(self, asset_id: str) -> list[Node]:
        return [n for n in self._nodes.values() if n.asset_id == asset_id]

    # --- Edge operations ---

    @property
    def edges(self) -> list[Edge]:
        """Get all edges (read-only copy)."""
        return self._edges.copy()

    def add_edge(self, edge: Edge) -> None:
        self._edges.append(edge)

    def get_edge(self, edge_id: str) -> Edge | None:
        for edge in self._edges:
            if edge.id == edge_id:
                return edge
        return None

    def remove_edge(self, edge_id: str) -> Edge | None:
        for i, edge in enumerate(self._edges):
            if edge.id == edge_id:
                return self._edges.pop(i)
        return None

    def incoming_edges(self, node_id: str, handle: str | None = None) -> list[Edge]:
        return [
            e for e in self._edges
            if e.target == node_id and (handle is None or e.target_handle == handle)
        ]

    def outgoing_edges(self, node_id: str, handle: str | None = None) -> list[Edge]:
        return [
            e for e in self._edges
            if e.source == node_id and (handle is None or e.source_handle == handle)
        ]

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes
