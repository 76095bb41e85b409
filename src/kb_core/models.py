"""
Music knowledge base domain models.

A knowledge unit is one reusable statement about music, tagged with the
level it talks about and the role it plays there. A recipe combines units
into a procedure at a declared level.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from .levels import Category, Level


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class KnowledgeUnit:
    """
    An atomic, reusable statement.

    Units are values: an edit produces a new record with the same id
    (see ``dataclasses.replace``), the stored one is never mutated.
    """
    id: int
    content: str
    level: Level
    category: Category

    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Recipe:
    """
    A composition of knowledge units at a target level.

    ``knowledge_point_ids`` keeps the order given by the author and may
    repeat an id. Every id must exist and be usable at ``level``.
    """
    id: int
    knowledge_point_ids: tuple[int, ...]
    level: Level
    procedure: str
    description: str

    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "knowledge_point_ids", tuple(self.knowledge_point_ids))

    def references(self, unit_id: int) -> bool:
        """Whether this recipe cites the given unit."""
        return unit_id in self.knowledge_point_ids
