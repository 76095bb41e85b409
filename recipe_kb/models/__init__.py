"""
Music Knowledge Base request and response models.

Pydantic models for the transport-agnostic request layer. The domain
types themselves (levels, units, recipes) live in ``kb_core``.
"""

from .base import (
    Payload,
    KnowledgeUnitCreate,
    KnowledgeUnitUpdate,
    RecipeCreate,
    RecipeUpdate,
    UsabilityQuery,
    CompositionQuery,
    RecordId,
    LevelName,
    CategoryName,
    parse_record_id,
)

from .responses import (
    KnowledgeUnitOut,
    RecipeOut,
    UsabilityPreview,
    CompositionReport,
)

__all__ = [
    # Payloads
    "Payload",
    "KnowledgeUnitCreate",
    "KnowledgeUnitUpdate",
    "RecipeCreate",
    "RecipeUpdate",
    "UsabilityQuery",
    "CompositionQuery",
    # Field types
    "RecordId",
    "LevelName",
    "CategoryName",
    "parse_record_id",
    # Responses
    "KnowledgeUnitOut",
    "RecipeOut",
    "UsabilityPreview",
    "CompositionReport",
]
