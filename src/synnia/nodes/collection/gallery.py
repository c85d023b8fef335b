"""
Gallery Node - Generated or imported images.

New results are merged in front of existing images.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from synnia.core.node_types import NodeCategory, NodeDefinition, NodeTemplate
from synnia.core.ports import PortType, PortValue, has_value
from synnia.nodes.standard import STANDARD_BEHAVIOR, is_semantic_output

if TYPE_CHECKING:
    from synnia.core.assets import Asset, FieldDefinition
    from synnia.core.behavior import EngineContext
    from synnia.core.graph import Node


def gallery_images(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return list(value.get("images") or [])
    return []


def resolve_gallery_output(
    node: Node,
    asset: Asset | None,
    port_id: str,
    engine: EngineContext,
) -> PortValue | None:
    if asset is None or not has_value(asset.value) or not is_semantic_output(port_id):
        return None
    return PortValue.of(PortType.ARRAY, gallery_images(asset.value), node.id, port_id)


def to_gallery_item(item: Any, index: int) -> dict[str, Any]:
    if isinstance(item, str):
        return {"id": f"img-{index}", "src": item, "starred": False, "caption": ""}
    item = item if isinstance(item, dict) else {}
    return {
        "id": item.get("id") or f"img-{index}",
        "src": item.get("src") or item.get("url") or "",
        "starred": bool(item.get("starred", False)),
        "caption": item.get("caption") or "",
    }


def create_gallery(content: Any, schema: list[FieldDefinition] | None) -> NodeTemplate:
    items = content if isinstance(content, list) else []
    return NodeTemplate(
        value_type="array",
        value=[to_gallery_item(item, i) for i, item in enumerate(items)],
        data={"view_mode": "grid", "columns_per_row": min(4, len(items) or 4)},
    )


def get_gallery_items(asset: Asset) -> list[Any]:
    return gallery_images(asset.value)


def merge_gallery_items(existing: list[Any], incoming: list[Any]) -> list[Any]:
    offset = len(existing)
    return [*(to_gallery_item(item, offset + i) for i, item in enumerate(incoming)), *existing]


GALLERY_BEHAVIOR = STANDARD_BEHAVIOR.extend(resolve_output=resolve_gallery_output)

GALLERY_NODE = NodeDefinition(
    type="gallery",
    name="Gallery",
    category=NodeCategory.COLLECTION,
    description="Image gallery with preview",
    alias="gallery",
    behavior=GALLERY_BEHAVIOR,
    create=create_gallery,
    is_collection=True,
    get_items=get_gallery_items,
    merge_items=merge_gallery_items,
    style={"width": 320, "height": 280},
)
