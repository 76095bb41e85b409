"""
Pytest configuration for Music Knowledge Base tests.

Provides shared fixtures for unit tests and BDD step definitions.
"""

import pytest
import sys
from pathlib import Path

# Add src and the repo root to path for imports
root_path = Path(__file__).parent.parent
sys.path.insert(0, str(root_path / "src"))
sys.path.insert(0, str(root_path))

from kb_core import (
    InMemoryKnowledgeUnitStore,
    InMemoryRecipeStore,
    KnowledgeBaseRepository,
    UsabilityResolver,
    Level,
    Category,
)


@pytest.fixture
def unit_store():
    """Fresh in-memory knowledge unit store for each test."""
    return InMemoryKnowledgeUnitStore()


@pytest.fixture
def recipe_store():
    """Fresh in-memory recipe store for each test."""
    return InMemoryRecipeStore()


@pytest.fixture
def kb_repository(unit_store, recipe_store):
    """Knowledge base repository with in-memory backends."""
    return KnowledgeBaseRepository(
        unit_store=unit_store,
        recipe_store=recipe_store,
        mode="memory",
    )


@pytest.fixture
def resolver():
    """Usability resolver over the default five-level scale."""
    return UsabilityResolver()


@pytest.fixture
def sample_units(kb_repository):
    """
    A small library of units, one per interesting (level, category) pair.

    Ids are assigned in creation order: 1..6.
    """
    units = {}

    units["album_arc"] = kb_repository.create_unit(
        "Open and close the album in the same key",
        level=Level.COLLECTION,
        category=Category.FORM,
    )
    units["verse_chorus"] = kb_repository.create_unit(
        "Verse and chorus alternate, the chorus returns three times",
        level=Level.WORK,
        category=Category.FORM,
    )
    units["ballad"] = kb_repository.create_unit(
        "A slow ballad in 6/8",
        level=Level.WORK,
        category=Category.MATERIAL,
    )
    units["pre_chorus_lift"] = kb_repository.create_unit(
        "The pre-chorus climbs by step into the chorus",
        level=Level.SECTION,
        category=Category.MATERIAL,
    )
    units["hook_repeat"] = kb_repository.create_unit(
        "A hook is stated twice, the second time an octave up",
        level=Level.MOTIF,
        category=Category.FORM,
    )
    units["breathy_vocal"] = kb_repository.create_unit(
        "Breathy close-miked vocal",
        level=Level.TIMBRE,
        category=Category.MATERIAL,
    )

    return units
