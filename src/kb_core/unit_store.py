"""
Knowledge unit storage.

Implements CRUD and filtered listing for knowledge units with:
- Sequential integer ids (starting at 1)
- Input validation
- Audit logging
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol

from .levels import Category, Level
from .models import KnowledgeUnit


logger = logging.getLogger(__name__)


class KnowledgeStoreError(Exception):
    """Base exception for knowledge unit store operations."""
    pass


class KnowledgeUnitNotFoundError(KnowledgeStoreError):
    """Raised when a knowledge unit is not found."""

    def __init__(self, message: str, unit_id: int | None = None):
        super().__init__(message)
        self.unit_id = unit_id


class KnowledgeUnitValidationError(KnowledgeStoreError):
    """Raised when knowledge unit validation fails."""
    pass


class ReferenceIntegrityError(KnowledgeStoreError):
    """Raised when a write would leave recipes citing a unit they can no longer use."""

    def __init__(self, message: str, unit_id: int | None = None, blocking_recipes: list[int] | None = None):
        super().__init__(message)
        self.unit_id = unit_id
        self.blocking_recipes = blocking_recipes or []


class DeletionBlockedError(ReferenceIntegrityError):
    """Raised when deleting a knowledge unit that recipes still reference."""
    pass


class UnitUpdateBlockedError(ReferenceIntegrityError):
    """Raised when an edit would make a referencing recipe invalid."""
    pass


class KnowledgeUnitStore(Protocol):
    """Protocol for knowledge unit storage backends."""

    def next_id(self) -> int: ...
    def create(self, unit: KnowledgeUnit) -> KnowledgeUnit: ...
    def get(self, unit_id: int) -> KnowledgeUnit | None: ...
    def update(self, unit: KnowledgeUnit) -> KnowledgeUnit: ...
    def delete(self, unit_id: int) -> bool: ...
    def list_units(self, level: Level | None = None, keyword: str | None = None) -> list[KnowledgeUnit]: ...
    def count(self) -> int: ...


def validate_unit(unit: KnowledgeUnit) -> None:
    """Validate a knowledge unit before storage."""
    if not isinstance(unit.id, int) or isinstance(unit.id, bool) or unit.id < 1:
        raise KnowledgeUnitValidationError(f"Knowledge unit id must be a positive integer: {unit.id!r}")
    if not isinstance(unit.content, str) or not unit.content.strip():
        raise KnowledgeUnitValidationError("Knowledge unit content is required")
    if not isinstance(unit.level, Level):
        raise KnowledgeUnitValidationError("Knowledge unit level must be a Level enum")
    if not isinstance(unit.category, Category):
        raise KnowledgeUnitValidationError("Knowledge unit category must be a Category enum")


def unit_matches(unit: KnowledgeUnit, level: Level | None, keyword: str | None) -> bool:
    if level is not None and unit.level != level:
        return False
    if keyword and keyword.lower() not in unit.content.lower():
        return False
    return True


class InMemoryKnowledgeUnitStore:
    """
    In-memory knowledge unit store for testing and development.

    Listing returns the newest units first.
    """

    def __init__(self) -> None:
        self._units: dict[int, KnowledgeUnit] = {}

    def next_id(self) -> int:
        return max(self._units, default=0) + 1

    def create(self, unit: KnowledgeUnit) -> KnowledgeUnit:
        """Create a new knowledge unit."""
        validate_unit(unit)
        if unit.id in self._units:
            raise KnowledgeUnitValidationError(f"Knowledge unit already exists: {unit.id}")
        self._units[unit.id] = unit
        logger.info(f"Created knowledge unit: {unit.id} ({unit.level.value}/{unit.category.value})")
        return unit

    def get(self, unit_id: int) -> KnowledgeUnit | None:
        """Get a knowledge unit by ID."""
        return self._units.get(unit_id)

    def update(self, unit: KnowledgeUnit) -> KnowledgeUnit:
        """Replace an existing knowledge unit."""
        validate_unit(unit)
        existing = self._units.get(unit.id)
        if existing is None:
            raise KnowledgeUnitNotFoundError(f"Knowledge unit not found: {unit.id}", unit_id=unit.id)
        updated = replace(unit, created_at=existing.created_at, updated_at=datetime.now(timezone.utc))
        self._units[unit.id] = updated
        logger.info(f"Updated knowledge unit: {unit.id}")
        return updated

    def delete(self, unit_id: int) -> bool:
        """Delete a knowledge unit by ID."""
        if unit_id not in self._units:
            return False
        del self._units[unit_id]
        logger.info(f"Deleted knowledge unit: {unit_id}")
        return True

    def list_units(self, level: Level | None = None, keyword: str | None = None) -> list[KnowledgeUnit]:
        """List knowledge units, optionally filtered by level and content keyword."""
        return [
            unit for unit_id, unit in sorted(self._units.items(), reverse=True)
            if unit_matches(unit, level, keyword)
        ]

    def count(self) -> int:
        return len(self._units)

    def __len__(self) -> int:
        return len(self._units)
