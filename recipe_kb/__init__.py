"""
Music Knowledge Base request layer.

Transport-agnostic request handling for the music knowledge base:
payload parsing, usability previews, composition checks and recipe CRUD.

The rule engine and storage live in ``kb_core``; this package adapts raw
input to it and shapes its results for whatever transport sits on top.

    from recipe_kb import KnowledgeService, RecipeService

    units = KnowledgeService(repo)
    units.resolve_usability("3", "album")
"""

from .models import (
    KnowledgeUnitCreate,
    KnowledgeUnitUpdate,
    RecipeCreate,
    RecipeUpdate,
    UsabilityQuery,
    CompositionQuery,
    KnowledgeUnitOut,
    RecipeOut,
    UsabilityPreview,
    CompositionReport,
)

from .services import (
    KnowledgeService,
    RecipeService,
)

__all__ = [
    # Payloads
    "KnowledgeUnitCreate",
    "KnowledgeUnitUpdate",
    "RecipeCreate",
    "RecipeUpdate",
    "UsabilityQuery",
    "CompositionQuery",
    # Responses
    "KnowledgeUnitOut",
    "RecipeOut",
    "UsabilityPreview",
    "CompositionReport",
    # Services
    "KnowledgeService",
    "RecipeService",
]
