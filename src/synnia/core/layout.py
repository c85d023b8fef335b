"""
Docking layout fix-up.

Docked nodes form singly linked chains through `data.docked_to`. After
any geometry or docking change, followers are snapped directly beneath
their master and take the master's width.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from synnia.core.graph import NodePatch, Point2D

if TYPE_CHECKING:
    from synnia.core.graph import GraphStore, Node


logger = logging.getLogger(__name__)

# Height a collapsed master occupies in a stack
COLLAPSED_STACK_HEIGHT = 40.0
# Height used for masters without an explicit style height
DEFAULT_STACK_HEIGHT = 100.0


def stack_height(node: Node) -> float:
    if node.collapsed:
        return COLLAPSED_STACK_HEIGHT
    height = node.style.get("height")
    return float(height) if height else DEFAULT_STACK_HEIGHT


def _chain_order(graph: GraphStore) -> list[Node]:
    """Nodes ordered so that every master precedes its followers."""
    nodes = graph.nodes
    ordered: list[Node] = []
    placed: set[str] = set()

    def visit(node: Node, trail: set[str]) -> None:
        if node.id in placed:
            return
        master = nodes.get(node.docked_to) if node.docked_to else None
        if master is not None and master.id not in trail:
            visit(master, trail | {node.id})
        placed.add(node.id)
        ordered.append(node)

    for node in nodes.values():
        visit(node, set())
    return ordered


def fix_docking_layout(graph: GraphStore) -> list[NodePatch]:
    """
    Compute patches that keep docked stacks contiguous.

    Positions are computed master-first so a whole chain settles in one
    pass. Returns only patches that change something.
    """
    nodes = graph.nodes
    positions: dict[str, Point2D] = {nid: n.position for nid, n in nodes.items()}
    widths: dict[str, float | None] = {nid: n.style.get("width") for nid, n in nodes.items()}
    patches: list[NodePatch] = []
    masters: set[str] = set()

    for node in _chain_order(graph):
        master = nodes.get(node.docked_to) if node.docked_to else None
        if master is None:
            continue
        masters.add(master.id)

        master_pos = positions[master.id]
        target = Point2D(master_pos.x, master_pos.y + stack_height(master))
        positions[node.id] = target

        patch: dict = {}
        if target != node.position:
            patch["position"] = target
        master_width = widths.get(master.id)
        if master_width is not None and node.style.get("width") != master_width:
            patch["style"] = {"width": master_width}
            widths[node.id] = master_width
        if patch:
            patches.append(NodePatch(node.id, patch))

    for node in nodes.values():
        flag = node.id in masters
        if bool(node.data.get("has_docked_follower")) != flag:
            patches.append(NodePatch(node.id, {"data": {"has_docked_follower": flag}}))

    if patches:
        logger.debug("Docking layout produced %d patches", len(patches))
    return patches
