"""
Queue Node - Batch of tasks with per-task status and result.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from synnia.core.node_types import NodeCategory, NodeDefinition, NodeTemplate
from synnia.core.ports import PORT_ORIGIN, PORT_OUTPUT, PortType, PortValue, has_value
from synnia.nodes.standard import STANDARD_BEHAVIOR

if TYPE_CHECKING:
    from synnia.core.assets import Asset, FieldDefinition
    from synnia.core.behavior import EngineContext
    from synnia.core.graph import Node

TASK_SUCCESS = "success"


def queue_tasks(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return list(value.get("tasks") or [])
    return []


def resolve_queue_output(
    node: Node,
    asset: Asset | None,
    port_id: str,
    engine: EngineContext,
) -> PortValue | None:
    if asset is None or not has_value(asset.value):
        return None
    tasks = queue_tasks(asset.value)
    if port_id == PORT_OUTPUT:
        results = [
            t.get("result") for t in tasks
            if isinstance(t, dict) and t.get("status") == TASK_SUCCESS
        ]
        return PortValue.of(PortType.ARRAY, results, node.id, port_id)
    if port_id == PORT_ORIGIN:
        return PortValue.of(PortType.ARRAY, tasks, node.id, port_id)
    return None


def create_queue(content: Any, schema: list[FieldDefinition] | None) -> NodeTemplate:
    return NodeTemplate(
        value_type="array",
        value=content if isinstance(content, list) else [],
        data={"concurrency": 1, "auto_start": False, "retry_on_error": True, "retry_count": 3},
    )


def get_queue_items(asset: Asset) -> list[Any]:
    return queue_tasks(asset.value)


QUEUE_BEHAVIOR = STANDARD_BEHAVIOR.extend(resolve_output=resolve_queue_output)

QUEUE_NODE = NodeDefinition(
    type="queue",
    name="Queue",
    category=NodeCategory.COLLECTION,
    description="Batch task queue",
    alias="queue",
    behavior=QUEUE_BEHAVIOR,
    create=create_queue,
    is_collection=True,
    get_items=get_queue_items,
    style={"width": 300, "height": 280},
)
