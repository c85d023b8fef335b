"""
Output synthesis - Node specs built from a manifest's output config.

Collection types receive the whole result as one node; every other
type gets one node per result item, chained by docking.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from synnia.core.node_types import NodeTypeRegistry
from synnia.recipes.types import DOCK_PREVIOUS, POSITION_BELOW, NodeSpec, OutputConfig


logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_NODE = "form"

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


def _item_title(template: str | None, item: Any, index: int) -> str:
    if not template:
        return f"#{index + 1}"
    title = template.replace("{{index}}", str(index + 1))

    def replace(match: re.Match) -> str:
        value = item.get(match.group(1)) if isinstance(item, dict) else None
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(replace, title)


def build_nodes_from_config(
    data: Any,
    config: OutputConfig,
    node_types: NodeTypeRegistry | None = None,
) -> list[NodeSpec]:
    """
    Turn a result into node specs.

    A non-list result is treated as a single item. Unknown node types
    produce no specs.
    """
    items = data if isinstance(data, list) else [data]
    if not items:
        return []

    node_types = node_types if node_types is not None else NodeTypeRegistry.instance()
    type_id = config.node or DEFAULT_OUTPUT_NODE
    definition = node_types.get(type_id)
    if definition is None:
        logger.warning("Unknown output node type: %s", type_id)
        return []

    node_config = dict(config.config)
    schema = node_config.get("schema")

    if definition.is_collection:
        if config.title:
            title = config.title.replace("{{count}}", str(len(items)))
        else:
            title = f"{definition.name} ({len(items)})"
        return [NodeSpec(
            type=definition.type,
            data={
                "title": title,
                "collapsed": bool(config.collapsed) if config.collapsed is not None else False,
                "content": items,
                "schema": schema,
            },
            position=POSITION_BELOW,
            asset_config=node_config,
        )]

    collapsed = config.collapsed if config.collapsed is not None else True
    return [
        NodeSpec(
            type=definition.type,
            data={
                "title": _item_title(config.title, item, index),
                "collapsed": collapsed,
                "content": item,
                "schema": schema,
            },
            position=POSITION_BELOW if index == 0 else None,
            docked_to=DOCK_PREVIOUS if index > 0 else None,
            asset_config=node_config,
        )
        for index, item in enumerate(items)
    ]
