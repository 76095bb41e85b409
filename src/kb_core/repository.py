"""
Unified repository interface for the music knowledge base.

Provides a single facade for:
- Knowledge unit CRUD
- Recipe CRUD, validated on every write
- Usability previews and composition checks
- Reference integrity between recipes and the units they cite

This is the main entry point for knowledge base operations.
"""

import logging
import os
from dataclasses import replace
from typing import Any

from .levels import Category, Level, LevelScale, DEFAULT_SCALE
from .models import KnowledgeUnit, Recipe
from .recipe_store import InMemoryRecipeStore, RecipeNotFoundError, RecipeStore
from .sqlite_store import SQLiteDatabase, SQLiteKnowledgeUnitStore, SQLiteRecipeStore
from .unit_store import (
    DeletionBlockedError,
    InMemoryKnowledgeUnitStore,
    KnowledgeUnitNotFoundError,
    KnowledgeUnitStore,
    UnitUpdateBlockedError,
)
from .usability import Usability, UsabilityResolver
from .validation import CompositionCheck, CompositionValidator


logger = logging.getLogger(__name__)


MODES = ("memory", "sqlite")
DEFAULT_DB_PATH = "music_kb.db"


class KnowledgeBaseRepository:
    """
    Unified music knowledge base repository.

    Configuration via environment variables:
    - MUSIC_KB_MODE: 'memory' (default) or 'sqlite'
    - MUSIC_KB_DB_PATH: SQLite database file for 'sqlite' mode

    Stores passed explicitly take precedence over the mode.
    """

    def __init__(
        self,
        unit_store: KnowledgeUnitStore | None = None,
        recipe_store: RecipeStore | None = None,
        scale: LevelScale | None = None,
        mode: str | None = None,
        db_path: str | None = None,
    ) -> None:
        """
        Initialize the repository.

        Args:
            unit_store: Override knowledge unit storage backend
            recipe_store: Override recipe storage backend
            scale: Level scale for the usability rule (default five levels)
            mode: 'memory' for testing, 'sqlite' for a database file
            db_path: SQLite path, overrides MUSIC_KB_DB_PATH
        """
        self._mode = mode or os.getenv("MUSIC_KB_MODE", "memory")
        if self._mode not in MODES:
            raise ValueError(f"Unknown knowledge base mode {self._mode!r}; expected one of {MODES}")

        if self._mode == "sqlite" and (unit_store is None or recipe_store is None):
            db = SQLiteDatabase(db_path or os.getenv("MUSIC_KB_DB_PATH", DEFAULT_DB_PATH))
            self._unit_store = unit_store if unit_store is not None else SQLiteKnowledgeUnitStore(db)
            self._recipe_store = recipe_store if recipe_store is not None else SQLiteRecipeStore(db)
        else:
            self._unit_store = unit_store if unit_store is not None else InMemoryKnowledgeUnitStore()
            self._recipe_store = recipe_store if recipe_store is not None else InMemoryRecipeStore()

        self._resolver = UsabilityResolver(scale or DEFAULT_SCALE)
        self._validator = CompositionValidator(self._unit_store.get, self._resolver)

        logger.info(f"KnowledgeBaseRepository initialized in '{self._mode}' mode")

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def resolver(self) -> UsabilityResolver:
        return self._resolver

    @property
    def validator(self) -> CompositionValidator:
        return self._validator

    # ─────────────────────────────────────────────────────────────────────────
    # Knowledge Units
    # ─────────────────────────────────────────────────────────────────────────

    def create_unit(self, content: str, level: Level, category: Category) -> KnowledgeUnit:
        """Create a knowledge unit with the next free id."""
        unit = KnowledgeUnit(
            id=self._unit_store.next_id(),
            content=content.strip() if isinstance(content, str) else content,
            level=level,
            category=category,
        )
        return self._unit_store.create(unit)

    def get_unit(self, unit_id: int) -> KnowledgeUnit | None:
        """Get a knowledge unit by ID."""
        return self._unit_store.get(unit_id)

    def require_unit(self, unit_id: int) -> KnowledgeUnit:
        """Get a knowledge unit or raise KnowledgeUnitNotFoundError."""
        unit = self._unit_store.get(unit_id)
        if unit is None:
            raise KnowledgeUnitNotFoundError(f"Knowledge unit not found: {unit_id}", unit_id=unit_id)
        return unit

    def list_units(self, level: Level | None = None, keyword: str | None = None) -> list[KnowledgeUnit]:
        """List knowledge units, newest first."""
        return self._unit_store.list_units(level=level, keyword=keyword)

    def update_unit(
        self,
        unit_id: int,
        content: str | None = None,
        level: Level | None = None,
        category: Category | None = None,
    ) -> KnowledgeUnit:
        """
        Edit a knowledge unit; fields left as None keep their value.

        Changing level or category is refused while a recipe citing the unit
        could no longer use it at the recipe's level.
        """
        existing = self.require_unit(unit_id)
        changes: dict[str, Any] = {}
        if content is not None:
            changes["content"] = content.strip() if isinstance(content, str) else content
        if level is not None:
            changes["level"] = level
        if category is not None:
            changes["category"] = category
        candidate = replace(existing, **changes)

        if (candidate.level, candidate.category) != (existing.level, existing.category):
            blocking = [
                recipe.id for recipe in self._recipe_store.list_referencing(unit_id)
                if not self._resolver.is_usable(candidate, recipe.level)
            ]
            if blocking:
                logger.warning(f"Update of knowledge unit {unit_id} blocked by recipes {blocking}")
                raise UnitUpdateBlockedError(
                    f"Knowledge unit {unit_id} would become unusable in recipes: "
                    f"{','.join(str(i) for i in blocking)}",
                    unit_id=unit_id,
                    blocking_recipes=blocking,
                )

        return self._unit_store.update(candidate)

    def delete_unit(self, unit_id: int) -> bool:
        """
        Delete a knowledge unit.

        Returns False if the unit does not exist. Raises DeletionBlockedError
        while any recipe still cites it.
        """
        if self._unit_store.get(unit_id) is None:
            return False

        blocking = [recipe.id for recipe in self._recipe_store.list_referencing(unit_id)]
        if blocking:
            logger.warning(f"Deletion of knowledge unit {unit_id} blocked by recipes {blocking}")
            raise DeletionBlockedError(
                f"Knowledge unit {unit_id} is referenced by recipes: {','.join(str(i) for i in blocking)}",
                unit_id=unit_id,
                blocking_recipes=blocking,
            )

        return self._unit_store.delete(unit_id)

    # ─────────────────────────────────────────────────────────────────────────
    # Usability
    # ─────────────────────────────────────────────────────────────────────────

    def resolve_usability(self, unit_id: int, target_level: Level) -> Usability:
        """Preview the role a stored unit would play at ``target_level``."""
        return self._resolver.resolve(self.require_unit(unit_id), target_level)

    def usable_levels(self, unit_id: int) -> list[Level]:
        """Levels at which a stored unit may be cited, coarsest first."""
        return self._resolver.usable_levels(self.require_unit(unit_id))

    def validate_composition(self, target_level: Level, knowledge_point_ids: list[int]) -> CompositionCheck:
        """Check a reference set without storing anything."""
        return self._validator.validate(target_level, knowledge_point_ids)

    # ─────────────────────────────────────────────────────────────────────────
    # Recipes
    # ─────────────────────────────────────────────────────────────────────────

    def create_recipe(
        self,
        knowledge_point_ids: list[int],
        level: Level,
        procedure: str,
        description: str,
    ) -> Recipe:
        """
        Create a recipe.

        The reference set is validated first; a rejected set raises the
        matching CompositionError and nothing is stored.
        """
        check = self._validator.validate(level, knowledge_point_ids)
        check.raise_for_rejection()

        recipe = Recipe(
            id=self._recipe_store.next_id(),
            knowledge_point_ids=check.knowledge_point_ids,
            level=level,
            procedure=procedure.strip() if isinstance(procedure, str) else procedure,
            description=description.strip() if isinstance(description, str) else description,
        )
        return self._recipe_store.create(recipe)

    def get_recipe(self, recipe_id: int) -> Recipe | None:
        """Get a recipe by ID."""
        return self._recipe_store.get(recipe_id)

    def list_recipes(self, level: Level | None = None, keyword: str | None = None) -> list[Recipe]:
        """List recipes, newest first."""
        return self._recipe_store.list_recipes(level=level, keyword=keyword)

    def update_recipe(
        self,
        recipe_id: int,
        knowledge_point_ids: list[int] | None = None,
        level: Level | None = None,
        procedure: str | None = None,
        description: str | None = None,
    ) -> Recipe:
        """
        Edit a recipe; fields left as None keep their value.

        The merged reference set is re-validated on every update, since a
        new level alone can invalidate ids that were fine before.
        """
        existing = self._recipe_store.get(recipe_id)
        if existing is None:
            raise RecipeNotFoundError(f"Recipe not found: {recipe_id}", recipe_id=recipe_id)

        changes: dict[str, Any] = {}
        if knowledge_point_ids is not None:
            changes["knowledge_point_ids"] = tuple(knowledge_point_ids)
        if level is not None:
            changes["level"] = level
        if procedure is not None:
            changes["procedure"] = procedure.strip() if isinstance(procedure, str) else procedure
        if description is not None:
            changes["description"] = description.strip() if isinstance(description, str) else description
        candidate = replace(existing, **changes)

        check = self._validator.validate(candidate.level, candidate.knowledge_point_ids)
        check.raise_for_rejection()

        return self._recipe_store.update(candidate)

    def delete_recipe(self, recipe_id: int) -> bool:
        """Delete a recipe."""
        return self._recipe_store.delete(recipe_id)

    # ─────────────────────────────────────────────────────────────────────────
    # Maintenance
    # ─────────────────────────────────────────────────────────────────────────

    def audit_recipes(self) -> list[tuple[Recipe, CompositionCheck]]:
        """
        Re-validate every stored recipe.

        Returns the recipes that would be rejected today, oldest first.
        Writes through this repository keep this empty; it exists for
        stores filled by other means (imports, older tooling).
        """
        failures = []
        for recipe in reversed(self._recipe_store.list_recipes()):
            check = self._validator.validate(recipe.level, recipe.knowledge_point_ids)
            if not check.accepted:
                failures.append((recipe, check))
        if failures:
            logger.warning(f"Recipe audit found {len(failures)} invalid recipe(s)")
        return failures

    def health_check(self) -> dict[str, Any]:
        """Report mode and record counts."""
        return {
            "ok": True,
            "mode": self._mode,
            "units": self._unit_store.count(),
            "recipes": self._recipe_store.count(),
        }
