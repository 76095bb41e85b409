"""
Knowledge Service - knowledge unit operations for the request layer.

Accepts raw payloads (dicts, digit-string ids, level names) or parsed
payload models, and returns response models.
"""

from typing import Any, Dict, List, Optional, Union

from kb_core import (
    KnowledgeBaseRepository,
    KnowledgeUnitNotFoundError,
    KnowledgeUnitNotUsableError,
    Level,
)

from ..models import (
    KnowledgeUnitCreate,
    KnowledgeUnitOut,
    KnowledgeUnitUpdate,
    UsabilityPreview,
    UsabilityQuery,
)
from ..models.base import level_adapter, record_id_adapter


class KnowledgeService:
    """
    Facade for knowledge unit CRUD and usability previews.

    Reference errors surface as KnowledgeUnitNotFoundError, malformed input
    as pydantic.ValidationError.
    """

    def __init__(self, repository: Optional[KnowledgeBaseRepository] = None):
        self._repo = repository or KnowledgeBaseRepository()

    # =========================================================
    # KNOWLEDGE UNITS
    # =========================================================

    def create_unit(
        self,
        payload: Union[KnowledgeUnitCreate, Dict[str, Any]],
    ) -> KnowledgeUnitOut:
        """Create a knowledge unit."""
        data = KnowledgeUnitCreate.model_validate(payload)
        unit = self._repo.create_unit(data.content, data.level, data.category)
        return KnowledgeUnitOut.model_validate(unit)

    def get_unit(self, unit_id: Any) -> KnowledgeUnitOut:
        """Get a knowledge unit by ID."""
        unit = self._repo.require_unit(record_id_adapter.validate_python(unit_id))
        return KnowledgeUnitOut.model_validate(unit)

    def list_units(
        self,
        level: Optional[str] = None,
        q: Optional[str] = None,
    ) -> List[KnowledgeUnitOut]:
        """List units, optionally filtered by level and a content keyword."""
        units = self._repo.list_units(
            level=self._level_filter(level),
            keyword=q.strip() if q and q.strip() else None,
        )
        return [KnowledgeUnitOut.model_validate(unit) for unit in units]

    def update_unit(
        self,
        unit_id: Any,
        payload: Union[KnowledgeUnitUpdate, Dict[str, Any]],
    ) -> KnowledgeUnitOut:
        """Apply a partial edit to a knowledge unit."""
        data = KnowledgeUnitUpdate.model_validate(payload)
        unit = self._repo.update_unit(
            record_id_adapter.validate_python(unit_id),
            content=data.content,
            level=data.level,
            category=data.category,
        )
        return KnowledgeUnitOut.model_validate(unit)

    def delete_unit(self, unit_id: Any) -> None:
        """Delete a knowledge unit; DeletionBlockedError while recipes cite it."""
        parsed = record_id_adapter.validate_python(unit_id)
        if not self._repo.delete_unit(parsed):
            raise KnowledgeUnitNotFoundError(f"Knowledge unit not found: {parsed}", unit_id=parsed)

    # =========================================================
    # USABILITY
    # =========================================================

    def resolve_usability(self, unit_id: Any, target_level: Any) -> UsabilityPreview:
        """
        Preview the role a unit plays when cited at ``target_level``.

        Raises KnowledgeUnitNotFoundError for an unknown id and
        KnowledgeUnitNotUsableError when the single-hop rule forbids it.
        """
        query = UsabilityQuery(unit_id=unit_id, target_level=target_level)
        unit = self._repo.require_unit(query.unit_id)
        usability = self._repo.resolver.resolve(unit, query.target_level)
        if not usability.usable:
            raise KnowledgeUnitNotUsableError(
                f"Knowledge unit {unit.id} is not usable at level {query.target_level.value} "
                f"({usability.reason.value})",
                unit_id=unit.id,
                usability=usability,
            )
        return UsabilityPreview.build(unit, usability)

    def usable_levels(self, unit_id: Any) -> List[Level]:
        """Levels at which a unit may be cited, coarsest first."""
        return self._repo.usable_levels(record_id_adapter.validate_python(unit_id))

    @staticmethod
    def _level_filter(level: Optional[str]) -> Optional[Level]:
        if level is None or (isinstance(level, str) and not level.strip()):
            return None
        return level_adapter.validate_python(level)
