"""
Music Knowledge Base Core Module.

This module provides the core of the music knowledge base:
- Level scale and categories (form / material)
- The single-hop usability rule
- Composition (recipe) validation
- Knowledge unit and recipe storage (in-memory, SQLite)

Quick Start:
    from kb_core import KnowledgeBaseRepository, Level, Category

    # Initialize (uses in-memory stores by default)
    kb = KnowledgeBaseRepository()

    # Record a rule about a single piece
    unit = kb.create_unit(
        "Verse and chorus alternate, the chorus returns three times",
        level=Level.WORK,
        category=Category.FORM,
    )

    # Seen from the collection level the rule is material
    kb.resolve_usability(unit.id, Level.COLLECTION).effective_category
    # -> Category.MATERIAL

    # Compose
    kb.create_recipe([unit.id], Level.COLLECTION, "Sequence the album...", "Album pacing")

For a database file, set environment variables:
    MUSIC_KB_MODE=sqlite
    MUSIC_KB_DB_PATH=/path/to/music_kb.db
"""

# Levels
from .levels import (
    Level,
    Category,
    LevelScale,
    LevelError,
    DEFAULT_SCALE,
    LEVEL_ALIASES,
    parse_level,
    parse_category,
)

# Models
from .models import (
    KnowledgeUnit,
    Recipe,
)

# Usability rule
from .usability import (
    Usability,
    UsabilityResolver,
    UnusableReason,
    KnowledgeUnitNotUsableError,
)

# Composition validation
from .validation import (
    CompositionValidator,
    CompositionCheck,
    CheckStatus,
    CompositionError,
    EmptyCompositionError,
    MissingKnowledgePointsError,
    UnusableKnowledgePointsError,
    KnowledgeUnitLookup,
)

# Knowledge unit store
from .unit_store import (
    KnowledgeUnitStore,
    KnowledgeStoreError,
    KnowledgeUnitNotFoundError,
    KnowledgeUnitValidationError,
    ReferenceIntegrityError,
    DeletionBlockedError,
    UnitUpdateBlockedError,
    InMemoryKnowledgeUnitStore,
)

# Recipe store
from .recipe_store import (
    RecipeStore,
    RecipeStoreError,
    RecipeNotFoundError,
    RecipeValidationError,
    InMemoryRecipeStore,
)

# SQLite persistence
from .sqlite_store import (
    SQLiteDatabase,
    SQLiteKnowledgeUnitStore,
    SQLiteRecipeStore,
)

# Repository (main entry point)
from .repository import KnowledgeBaseRepository


__all__ = [
    # Levels
    "Level",
    "Category",
    "LevelScale",
    "LevelError",
    "DEFAULT_SCALE",
    "LEVEL_ALIASES",
    "parse_level",
    "parse_category",
    # Models
    "KnowledgeUnit",
    "Recipe",
    # Usability rule
    "Usability",
    "UsabilityResolver",
    "UnusableReason",
    "KnowledgeUnitNotUsableError",
    # Composition validation
    "CompositionValidator",
    "CompositionCheck",
    "CheckStatus",
    "CompositionError",
    "EmptyCompositionError",
    "MissingKnowledgePointsError",
    "UnusableKnowledgePointsError",
    "KnowledgeUnitLookup",
    # Knowledge unit store
    "KnowledgeUnitStore",
    "KnowledgeStoreError",
    "KnowledgeUnitNotFoundError",
    "KnowledgeUnitValidationError",
    "ReferenceIntegrityError",
    "DeletionBlockedError",
    "UnitUpdateBlockedError",
    "InMemoryKnowledgeUnitStore",
    # Recipe store
    "RecipeStore",
    "RecipeStoreError",
    "RecipeNotFoundError",
    "RecipeValidationError",
    "InMemoryRecipeStore",
    # SQLite persistence
    "SQLiteDatabase",
    "SQLiteKnowledgeUnitStore",
    "SQLiteRecipeStore",
    # Repository
    "KnowledgeBaseRepository",
]
