"""
Recipe Loader - Builds recipes from version 2 YAML manifests.

A manifest is self-contained: input fields, model requirements, prompt
templates and output settings. Language-model manifests run through
the `llm-agent` executor; image and video manifests through `media`.
A manifest may also name its own `executor` block instead.
"""

from __future__ import annotations

import logging
from importlib import resources
from pathlib import Path
from typing import Any

import yaml

from synnia.core.assets import FieldDefinition
from synnia.core.errors import ManifestError
from synnia.recipes.builtin import BUILTIN_RECIPES
from synnia.recipes.executors import create_executor
from synnia.recipes.registry import RecipeRegistry, get_recipe_registry
from synnia.recipes.types import OutputConfig, RecipeDefinition, RecipeManifest


logger = logging.getLogger(__name__)

MANIFEST_VERSION = 2
REQUIRED_KEYS = ("id", "name", "input", "model", "prompt", "output")
FIELD_TYPES = ("string", "number", "boolean", "select", "object", "array")
MEDIA_CATEGORIES = ("image-generation", "video-generation")


def parse_manifest(text: str) -> dict[str, Any]:
    """
    Parse and validate manifest YAML.

    Raises:
        ManifestError: Invalid YAML, wrong version, or a missing section
    """
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid manifest YAML: {e}") from e

    if not isinstance(raw, dict):
        raise ManifestError("Recipe manifest must be a mapping")
    if raw.get("version") != MANIFEST_VERSION:
        raise ManifestError(f"Expected version {MANIFEST_VERSION}, got {raw.get('version')}")
    for key in REQUIRED_KEYS:
        if not raw.get(key):
            raise ManifestError(f'Recipe V2 manifest missing "{key}"')
    if not isinstance(raw["input"], list):
        raise ManifestError('"input" must be a list of fields')
    return raw


def field_from_manifest(data: dict[str, Any]) -> FieldDefinition:
    """Manifest input entry to a FieldDefinition; `select` becomes a string with options."""
    if "key" not in data:
        raise ManifestError(f"Input field without key: {data!r}")
    field_type = data.get("type", "string")
    if field_type not in FIELD_TYPES:
        raise ManifestError(f"Field '{data['key']}' has unknown type '{field_type}'")

    definition = FieldDefinition.from_dict(data)
    config = dict(definition.config)
    if field_type == "select":
        definition.type = "string"
        definition.widget = definition.widget or "select"
    if data.get("options") is not None:
        config["options"] = list(data["options"])
    if data.get("placeholder"):
        config["placeholder"] = data["placeholder"]
    definition.config = config
    return definition


def _executor_config(raw: dict[str, Any]) -> dict[str, Any]:
    if raw.get("executor"):
        return dict(raw["executor"])

    model = raw["model"]
    output = raw["output"]
    category = model.get("category", "llm")
    capabilities = model.get("capabilities") or []
    capability = capabilities[0] if capabilities else None

    if category in MEDIA_CATEGORIES:
        return {"type": "media", "mode": category, "capability": capability}

    params = model.get("defaultParams") or {}
    return {
        "type": "llm-agent",
        "system_prompt": raw["prompt"].get("system") or "",
        "user_prompt_template": raw["prompt"].get("user") or "",
        "parse_as": "json" if output.get("format") == "json" else "text",
        "capability": capability,
        "default_params": {
            "temperature": params.get("temperature"),
            "max_tokens": params.get("maxTokens"),
        },
    }


def create_recipe_from_manifest(raw: dict[str, Any]) -> RecipeDefinition:
    """Build a runnable recipe from a validated manifest."""
    executor_config = _executor_config(raw)
    try:
        execute = create_executor(executor_config)
    except ValueError as e:
        raise ManifestError(f"Recipe '{raw['id']}': {e}") from e

    output = OutputConfig.from_dict(raw["output"])
    manifest = RecipeManifest(
        id=raw["id"],
        name=raw["name"],
        version=raw["version"],
        executor=executor_config,
        model=dict(raw["model"]),
        output=output if output and output.node else None,
    )
    return RecipeDefinition(
        id=raw["id"],
        name=raw["name"],
        description=raw.get("description", ""),
        category=raw.get("category") or "Other",
        input_schema=[field_from_manifest(f) for f in raw["input"]],
        output_schema={"type": raw["output"].get("format", "text")},
        manifest=manifest,
        execute=execute,
    )


def load_manifest(path: Path) -> RecipeDefinition:
    return create_recipe_from_manifest(parse_manifest(path.read_text(encoding="utf-8")))


def load_manifest_dir(directory: Path, registry: RecipeRegistry | None = None) -> list[RecipeDefinition]:
    """
    Register every `*.yaml` manifest in a directory.

    A broken manifest is logged and skipped; the others still load.
    """
    registry = registry if registry is not None else get_recipe_registry()
    loaded = []
    for path in sorted(Path(directory).glob("*.yaml")):
        try:
            recipe = load_manifest(path)
        except (ManifestError, OSError) as e:
            logger.warning("Skipping recipe manifest %s: %s", path.name, e)
            continue
        registry.register(recipe)
        loaded.append(recipe)
    logger.debug("Loaded %d recipe manifests from %s", len(loaded), directory)
    return loaded


def register_builtin_recipes(registry: RecipeRegistry | None = None) -> None:
    """Register the Python recipes and the bundled manifests."""
    registry = registry if registry is not None else get_recipe_registry()
    for recipe in BUILTIN_RECIPES:
        registry.register(recipe)

    manifests = resources.files("synnia.recipes") / "manifests"
    with resources.as_file(manifests) as directory:
        load_manifest_dir(directory, registry)
