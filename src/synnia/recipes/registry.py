"""
Recipe Registry - Lookup of runnable recipes by id.
"""

from __future__ import annotations

import logging

from synnia.recipes.types import RecipeDefinition


logger = logging.getLogger(__name__)


class RecipeRegistry:
    """
    Registry of recipe definitions.

    Usage:
        registry = RecipeRegistry.instance()
        registry.register(definition)
        recipe = registry.get("math.divide")
    """

    _instance: RecipeRegistry | None = None

    @classmethod
    def instance(cls) -> RecipeRegistry:
        """Get the shared registry."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __init__(self):
        self._recipes: dict[str, RecipeDefinition] = {}

    def register(self, recipe: RecipeDefinition) -> None:
        if self._recipes.get(recipe.id, recipe) is not recipe:
            logger.warning("Recipe '%s' is being overwritten", recipe.id)
        self._recipes[recipe.id] = recipe

    def get(self, recipe_id: str) -> RecipeDefinition | None:
        return self._recipes.get(recipe_id)

    def all(self) -> list[RecipeDefinition]:
        return list(self._recipes.values())

    def by_category(self) -> dict[str, list[RecipeDefinition]]:
        """Recipes grouped by category, in registration order."""
        grouped: dict[str, list[RecipeDefinition]] = {}
        for recipe in self._recipes.values():
            grouped.setdefault(recipe.category or "Other", []).append(recipe)
        return grouped

    def has(self, recipe_id: str) -> bool:
        return recipe_id in self._recipes

    def clear(self) -> None:
        """Remove all recipes (for testing)."""
        self._recipes.clear()

    def __len__(self) -> int:
        return len(self._recipes)

    def __contains__(self, recipe_id: str) -> bool:
        return recipe_id in self._recipes


def get_recipe_registry() -> RecipeRegistry:
    """Get the global recipe registry."""
    return RecipeRegistry.instance()
