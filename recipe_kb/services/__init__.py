"""
Services layer for the Music Knowledge Base.

Provides request-level operations on top of the core repository.
"""

from .knowledge_service import KnowledgeService
from .recipe_service import RecipeService

__all__ = [
    "KnowledgeService",
    "RecipeService",
]
