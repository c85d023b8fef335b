"""
Recipes - Runnable transformations over node inputs.

Usage:
    from synnia.recipes import get_recipe_registry, register_builtin_recipes

    register_builtin_recipes()
    recipe = get_recipe_registry().get("storyteller")
"""

from synnia.recipes.types import (
    DOCK_PREVIOUS,
    POSITION_BELOW,
    POSITION_RIGHT,
    ExecutionContext,
    ExecutionResult,
    NodeSpec,
    OutputConfig,
    RecipeDefinition,
    RecipeManifest,
)

from synnia.recipes.registry import (
    RecipeRegistry,
    get_recipe_registry,
)

from synnia.recipes.executors import (
    create_executor,
    has_executor_type,
    register_executor_factory,
)

from synnia.recipes.loader import (
    create_recipe_from_manifest,
    load_manifest_dir,
    parse_manifest,
    register_builtin_recipes,
)

from synnia.recipes.output import build_nodes_from_config


__all__ = [
    # Types
    "DOCK_PREVIOUS",
    "POSITION_BELOW",
    "POSITION_RIGHT",
    "ExecutionContext",
    "ExecutionResult",
    "NodeSpec",
    "OutputConfig",
    "RecipeDefinition",
    "RecipeManifest",
    # Registry
    "RecipeRegistry",
    "get_recipe_registry",
    # Executors
    "create_executor",
    "has_executor_type",
    "register_executor_factory",
    # Manifests
    "create_recipe_from_manifest",
    "load_manifest_dir",
    "parse_manifest",
    "register_builtin_recipes",
    "build_nodes_from_config",
]
