"""
Recipe Service - recipe operations for the request layer.

Every create and update goes through composition validation; a rejected
reference set raises a CompositionError subclass carrying the offending
ids, and nothing is stored.
"""

from typing import Any, Dict, List, Optional, Union

from kb_core import KnowledgeBaseRepository, RecipeNotFoundError

from ..models import (
    CompositionQuery,
    CompositionReport,
    RecipeCreate,
    RecipeOut,
    RecipeUpdate,
)
from ..models.base import level_adapter, record_id_adapter


class RecipeService:
    """Facade for recipe CRUD and composition checks."""

    def __init__(self, repository: Optional[KnowledgeBaseRepository] = None):
        self._repo = repository or KnowledgeBaseRepository()

    # =========================================================
    # COMPOSITION CHECKS
    # =========================================================

    def validate_composition(
        self,
        target_level: Any,
        knowledge_point_ids: List[Any],
    ) -> CompositionReport:
        """
        Check a reference set without storing anything.

        Missing and unusable ids are reported in the result rather than
        raised; only malformed input raises (pydantic.ValidationError).
        """
        query = CompositionQuery(target_level=target_level, knowledge_point_ids=knowledge_point_ids)
        check = self._repo.validate_composition(query.target_level, query.knowledge_point_ids)
        return CompositionReport.from_check(check)

    # =========================================================
    # RECIPES
    # =========================================================

    def create_recipe(
        self,
        payload: Union[RecipeCreate, Dict[str, Any]],
    ) -> RecipeOut:
        """Create a recipe after validating its knowledge points."""
        data = RecipeCreate.model_validate(payload)
        recipe = self._repo.create_recipe(
            knowledge_point_ids=data.knowledge_point_ids,
            level=data.level,
            procedure=data.procedure,
            description=data.description,
        )
        return RecipeOut.model_validate(recipe)

    def get_recipe(self, recipe_id: Any) -> RecipeOut:
        """Get a recipe by ID."""
        parsed = record_id_adapter.validate_python(recipe_id)
        recipe = self._repo.get_recipe(parsed)
        if recipe is None:
            raise RecipeNotFoundError(f"Recipe not found: {parsed}", recipe_id=parsed)
        return RecipeOut.model_validate(recipe)

    def list_recipes(
        self,
        level: Optional[str] = None,
        q: Optional[str] = None,
    ) -> List[RecipeOut]:
        """List recipes, optionally filtered by level and a keyword."""
        level_filter = None
        if level is not None and str(level).strip():
            level_filter = level_adapter.validate_python(level)
        recipes = self._repo.list_recipes(
            level=level_filter,
            keyword=q.strip() if q and q.strip() else None,
        )
        return [RecipeOut.model_validate(recipe) for recipe in recipes]

    def update_recipe(
        self,
        recipe_id: Any,
        payload: Union[RecipeUpdate, Dict[str, Any]],
    ) -> RecipeOut:
        """Apply a partial edit to a recipe; the result is re-validated."""
        data = RecipeUpdate.model_validate(payload)
        recipe = self._repo.update_recipe(
            record_id_adapter.validate_python(recipe_id),
            knowledge_point_ids=data.knowledge_point_ids,
            level=data.level,
            procedure=data.procedure,
            description=data.description,
        )
        return RecipeOut.model_validate(recipe)

    def delete_recipe(self, recipe_id: Any) -> None:
        """Delete a recipe."""
        parsed = record_id_adapter.validate_python(recipe_id)
        if not self._repo.delete_recipe(parsed):
            raise RecipeNotFoundError(f"Recipe not found: {parsed}", recipe_id=parsed)
