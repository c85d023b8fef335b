"""
Image Node - Image reference with decoded dimensions.

The asset is a record `{src, width, height, mime_type}`. Importing a
file decodes it with Pillow off the event loop to read its size.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, TYPE_CHECKING

from PIL import Image

from synnia.core.assets import FieldDefinition
from synnia.core.node_types import NodeCategory, NodeDefinition, NodeTemplate
from synnia.core.ports import PortType, PortValue
from synnia.nodes.standard import STANDARD_BEHAVIOR, is_semantic_output

if TYPE_CHECKING:
    from synnia.core.assets import Asset
    from synnia.core.behavior import EngineContext
    from synnia.core.engine import GraphEngine
    from synnia.core.graph import Node, Point2D


logger = logging.getLogger(__name__)

IMAGE_SCHEMA = [
    FieldDefinition(key="src", type="string", label="Source", widget="image-picker"),
    FieldDefinition(key="width", type="number", label="Width", hidden=True),
    FieldDefinition(key="height", type="number", label="Height", hidden=True),
    FieldDefinition(key="mime_type", type="string", label="MIME Type", hidden=True),
]


def resolve_image_output(
    node: Node,
    asset: Asset | None,
    port_id: str,
    engine: EngineContext,
) -> PortValue | None:
    if not is_semantic_output(port_id):
        return None
    if asset is None or asset.value_type != "record":
        return None
    value = asset.value if isinstance(asset.value, dict) else {}
    meta = asset.config.get("meta") or {}
    return PortValue.of(
        PortType.JSON,
        {
            "url": value.get("src") or "",
            "width": value.get("width", meta.get("width")),
            "height": value.get("height", meta.get("height")),
            "mime_type": value.get("mime_type"),
        },
        node.id,
        port_id,
    )


def create_image(content: Any, schema: list[FieldDefinition] | None) -> NodeTemplate:
    if isinstance(content, dict):
        value = {
            "src": content.get("src") or content.get("url") or "",
            "width": content.get("width"),
            "height": content.get("height"),
            "mime_type": content.get("mime_type"),
        }
    else:
        value = {"src": content or "", "width": None, "height": None, "mime_type": None}
    return NodeTemplate(
        value_type="record",
        value=value,
        config={"schema": [f.to_dict() for f in IMAGE_SCHEMA]},
    )


def read_image_info(path: Path) -> dict[str, Any]:
    """Decode an image file and return its record value."""
    with Image.open(path) as img:
        width, height = img.size
        mime_type = Image.MIME.get(img.format or "", "application/octet-stream")
    return {"src": str(path), "width": width, "height": height, "mime_type": mime_type}


async def import_image(
    engine: GraphEngine,
    path: str | Path,
    position: Point2D | None = None,
) -> Node:
    """Create an image node from a file on disk."""
    path = Path(path)
    info = await asyncio.to_thread(read_image_info, path)
    logger.info("Imported image %s (%sx%s)", path.name, info["width"], info["height"])
    return engine.add_node(
        "image",
        position,
        content=info,
        title=path.stem,
        source="import",
    )


IMAGE_BEHAVIOR = STANDARD_BEHAVIOR.extend(resolve_output=resolve_image_output)

IMAGE_NODE = NodeDefinition(
    type="image",
    name="Image",
    category=NodeCategory.ASSET,
    description="Image asset with preview",
    alias="image",
    behavior=IMAGE_BEHAVIOR,
    create=create_image,
    style={"width": 300, "height": 300},
)
