"""
Recipe storage.

Stores recipes as given. Whether their knowledge points are usable is the
repository's concern; the store only checks the record is well formed.
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol

from .levels import Level
from .models import Recipe


logger = logging.getLogger(__name__)


class RecipeStoreError(Exception):
    """Base exception for recipe store operations."""
    pass


class RecipeNotFoundError(RecipeStoreError):
    """Raised when a recipe is not found."""

    def __init__(self, message: str, recipe_id: int | None = None):
        super().__init__(message)
        self.recipe_id = recipe_id


class RecipeValidationError(RecipeStoreError):
    """Raised when recipe validation fails."""
    pass


class RecipeStore(Protocol):
    """Protocol for recipe storage backends."""

    def next_id(self) -> int: ...
    def create(self, recipe: Recipe) -> Recipe: ...
    def get(self, recipe_id: int) -> Recipe | None: ...
    def update(self, recipe: Recipe) -> Recipe: ...
    def delete(self, recipe_id: int) -> bool: ...
    def list_recipes(self, level: Level | None = None, keyword: str | None = None) -> list[Recipe]: ...
    def list_referencing(self, unit_id: int) -> list[Recipe]: ...
    def count(self) -> int: ...


def validate_recipe(recipe: Recipe) -> None:
    """Validate a recipe before storage."""
    if not isinstance(recipe.id, int) or isinstance(recipe.id, bool) or recipe.id < 1:
        raise RecipeValidationError(f"Recipe id must be a positive integer: {recipe.id!r}")
    if not recipe.knowledge_point_ids:
        raise RecipeValidationError("Recipe must reference at least one knowledge point")
    if not isinstance(recipe.level, Level):
        raise RecipeValidationError("Recipe level must be a Level enum")
    if not recipe.procedure or not recipe.procedure.strip():
        raise RecipeValidationError("Recipe procedure is required")
    if not recipe.description or not recipe.description.strip():
        raise RecipeValidationError("Recipe description is required")


def recipe_matches(recipe: Recipe, level: Level | None, keyword: str | None) -> bool:
    if level is not None and recipe.level != level:
        return False
    if keyword:
        ids = " ".join(str(i) for i in recipe.knowledge_point_ids)
        haystack = f"{recipe.description} {recipe.procedure} {ids}".lower()
        if keyword.lower() not in haystack:
            return False
    return True


class InMemoryRecipeStore:
    """In-memory recipe store for testing and development."""

    def __init__(self) -> None:
        self._recipes: dict[int, Recipe] = {}

    def next_id(self) -> int:
        return max(self._recipes, default=0) + 1

    def create(self, recipe: Recipe) -> Recipe:
        """Create a new recipe."""
        validate_recipe(recipe)
        if recipe.id in self._recipes:
            raise RecipeValidationError(f"Recipe already exists: {recipe.id}")
        self._recipes[recipe.id] = recipe
        logger.info(f"Created recipe: {recipe.id} ({recipe.level.value})")
        return recipe

    def get(self, recipe_id: int) -> Recipe | None:
        """Get a recipe by ID."""
        return self._recipes.get(recipe_id)

    def update(self, recipe: Recipe) -> Recipe:
        """Replace an existing recipe."""
        validate_recipe(recipe)
        existing = self._recipes.get(recipe.id)
        if existing is None:
            raise RecipeNotFoundError(f"Recipe not found: {recipe.id}", recipe_id=recipe.id)
        updated = replace(recipe, created_at=existing.created_at, updated_at=datetime.now(timezone.utc))
        self._recipes[recipe.id] = updated
        logger.info(f"Updated recipe: {recipe.id}")
        return updated

    def delete(self, recipe_id: int) -> bool:
        """Delete a recipe by ID."""
        if recipe_id not in self._recipes:
            return False
        del self._recipes[recipe_id]
        logger.info(f"Deleted recipe: {recipe_id}")
        return True

    def list_recipes(self, level: Level | None = None, keyword: str | None = None) -> list[Recipe]:
        """List recipes, newest first."""
        return [
            recipe for recipe_id, recipe in sorted(self._recipes.items(), reverse=True)
            if recipe_matches(recipe, level, keyword)
        ]

    def list_referencing(self, unit_id: int) -> list[Recipe]:
        """Recipes citing the given knowledge unit, oldest first."""
        return [
            recipe for recipe_id, recipe in sorted(self._recipes.items())
            if recipe.references(unit_id)
        ]

    def count(self) -> int:
        return len(self._recipes)

    def __len__(self) -> int:
        return len(self._recipes)
