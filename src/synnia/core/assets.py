"""
Asset Model - Content-bearing records referenced by nodes.

This module defines:
- FieldDefinition: One entry of a record/recipe schema
- Asset: A typed value plus side configuration
- AssetStore: Id-keyed container of assets

Assets are pure data. The store is only written to by the GraphEngine.
"""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass, field
from typing import Any, NewType
from uuid import uuid4


logger = logging.getLogger(__name__)

AssetId = NewType("AssetId", str)


def new_asset_id() -> AssetId:
    """Generate a new unique asset ID."""
    return AssetId(f"asset-{uuid4()}")


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class FieldDefinition:
    """
    Definition of a single field in a record or recipe schema.

    Attributes:
        key: Field identifier, also used as the field-scoped port name
        type: One of string, number, boolean, object, array
        label: Display label
        widget: Preferred editor widget hint
        required: If True, recipe execution fails when the value is empty
        default: Value used when nothing is stored
        hidden: Hidden from editors, still resolvable
        config: Widget specific options (e.g. select options)
        connection: Which ports the field exposes: input, output or both
        schema: Nested schema for object/array fields
        required_keys: Keys an object value is expected to carry
    """
    key: str
    type: str = "string"
    label: str = ""
    widget: str | None = None
    required: bool = False
    default: Any = None
    hidden: bool = False
    config: dict[str, Any] = field(default_factory=dict)
    connection: str | None = None
    schema: list[FieldDefinition] | None = None
    required_keys: list[str] = field(default_factory=list)

    @property
    def accepts_input(self) -> bool:
        return self.connection in ("input", "both")

    @property
    def exposes_output(self) -> bool:
        return self.connection in ("output", "both")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"key": self.key, "type": self.type}
        if self.label:
            data["label"] = self.label
        if self.widget:
            data["widget"] = self.widget
        if self.required:
            data["required"] = True
        if self.default is not None:
            data["default"] = self.default
        if self.hidden:
            data["hidden"] = True
        if self.config:
            data["config"] = self.config
        if self.connection:
            data["connection"] = self.connection
        if self.schema is not None:
            data["schema"] = [f.to_dict() for f in self.schema]
        if self.required_keys:
            data["required_keys"] = list(self.required_keys)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldDefinition:
        """
        Create a field from a dictionary.

        Accepts both the persisted form and the manifest shorthand where
        `connection` may be given as `{input: true, output: true}` and
        `requiredKeys` is camel cased.
        """
        connection = data.get("connection")
        if isinstance(connection, dict):
            has_in = bool(connection.get("input"))
            has_out = bool(connection.get("output"))
            connection = "both" if has_in and has_out else "input" if has_in else "output" if has_out else None

        schema = data.get("schema")
        return cls(
            key=data["key"],
            type=data.get("type", "string"),
            label=data.get("label", ""),
            widget=data.get("widget"),
            required=bool(data.get("required", False)),
            default=data.get("default"),
            hidden=bool(data.get("hidden", False)),
            config=dict(data.get("config") or {}),
            connection=connection,
            schema=[cls.from_dict(f) for f in schema] if isinstance(schema, list) else None,
            required_keys=list(data.get("required_keys") or data.get("requiredKeys") or []),
        )


def schema_from_config(config: dict[str, Any] | None) -> list[FieldDefinition]:
    """Read the field schema stored in an asset's config, if any."""
    if not config:
        return []
    raw = config.get("schema") or []
    fields: list[FieldDefinition] = []
    for item in raw:
        if isinstance(item, FieldDefinition):
            fields.append(item)
        elif isinstance(item, dict) and "key" in item:
            fields.append(FieldDefinition.from_dict(item))
    return fields


@dataclass
class AssetSysMetadata:
    """Bookkeeping attached to every asset."""
    name: str = "Untitled"
    created_at: int = field(default_factory=_now_ms)
    updated_at: int = field(default_factory=_now_ms)
    source: str = "user"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AssetSysMetadata:
        return cls(
            name=data.get("name", "Untitled"),
            created_at=data.get("created_at", data.get("createdAt", _now_ms())),
            updated_at=data.get("updated_at", data.get("updatedAt", _now_ms())),
            source=data.get("source", "user"),
        )


@dataclass
class Asset:
    """
    A content-bearing record.

    `value_type` is fixed at creation time. Only `value`, `value_meta`
    and `config` change afterwards, and only through the engine.
    """
    id: AssetId
    value_type: str
    value: Any = None
    value_meta: dict[str, Any] = field(default_factory=dict)
    config: dict[str, Any] = field(default_factory=dict)
    sys: AssetSysMetadata = field(default_factory=AssetSysMetadata)

    @classmethod
    def create(
        cls,
        value_type: str,
        value: Any = None,
        *,
        name: str = "Untitled",
        config: dict[str, Any] | None = None,
        value_meta: dict[str, Any] | None = None,
        source: str = "user",
    ) -> Asset:
        """Factory method to create a new asset."""
        return cls(
            id=new_asset_id(),
            value_type=value_type,
            value=value,
            value_meta=dict(value_meta or {}),
            config=dict(config or {}),
            sys=AssetSysMetadata(name=name, source=source),
        )

    @property
    def schema(self) -> list[FieldDefinition]:
        return schema_from_config(self.config)

    def clone(self) -> Asset:
        """Deep copy with a fresh id."""
        return Asset(
            id=new_asset_id(),
            value_type=self.value_type,
            value=copy.deepcopy(self.value),
            value_meta=copy.deepcopy(self.value_meta),
            config=copy.deepcopy(self.config),
            sys=AssetSysMetadata(name=self.sys.name, source=self.sys.source),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "value_type": self.value_type,
            "value": self.value,
            "sys": self.sys.to_dict(),
        }
        if self.value_meta:
            data["value_meta"] = self.value_meta
        if self.config:
            config = dict(self.config)
            if "schema" in config:
                config["schema"] = [
                    f.to_dict() if isinstance(f, FieldDefinition) else f
                    for f in config["schema"]
                ]
            data["config"] = config
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Asset:
        return cls(
            id=AssetId(data["id"]),
            value_type=data.get("value_type", data.get("valueType", "record")),
            value=data.get("value"),
            value_meta=dict(data.get("value_meta", data.get("valueMeta")) or {}),
            config=dict(data.get("config") or {}),
            sys=AssetSysMetadata.from_dict(data.get("sys") or {}),
        )


class AssetStore:
    """
    Container of assets keyed by id.

    Many nodes may reference the same asset, so the store knows nothing
    about ownership.
    """

    def __init__(self, assets: dict[AssetId, Asset] | None = None):
        self._assets: dict[AssetId, Asset] = dict(assets or {})

    @property
    def assets(self) -> dict[AssetId, Asset]:
        """Get all assets (read-only view)."""
        return self._assets.copy()

    def add(self, asset: Asset) -> Asset:
        self._assets[asset.id] = asset
        return asset

    def get(self, asset_id: str | None) -> Asset | None:
        if not asset_id:
            return None
        return self._assets.get(AssetId(asset_id))

    def update(self, asset_id: str, value: Any) -> Asset | None:
        """
        Replace an asset's value.

        Unknown ids are logged and ignored.
        """
        asset = self._assets.get(AssetId(asset_id))
        if asset is None:
            logger.warning("update() on unknown asset %s", asset_id)
            return None
        asset.value = value
        asset.sys.updated_at = _now_ms()
        return asset

    def update_config(self, asset_id: str, config: dict[str, Any]) -> Asset | None:
        asset = self._assets.get(AssetId(asset_id))
        if asset is None:
            logger.warning("update_config() on unknown asset %s", asset_id)
            return None
        asset.config = {**asset.config, **config}
        asset.sys.updated_at = _now_ms()
        return asset

    def remove(self, asset_id: str) -> Asset | None:
        return self._assets.pop(AssetId(asset_id), None)

    def __len__(self) -> int:
        return len(self._assets)

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._assets
