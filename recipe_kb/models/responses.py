"""
Response models for the music knowledge base.

Serialise with ``model_dump(by_alias=True)`` for camelCase keys
(``sourceLevel``, ``knowledgePointIds``...).
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from kb_core import (
    Category,
    CheckStatus,
    CompositionCheck,
    KnowledgeUnit,
    Level,
    UnusableReason,
    Usability,
)


class Response(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class KnowledgeUnitOut(Response):
    id: int
    content: str
    level: Level
    category: Category
    created_at: datetime
    updated_at: Optional[datetime] = None


class RecipeOut(Response):
    id: int
    knowledge_point_ids: List[int]
    level: Level
    procedure: str
    description: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class UsabilityPreview(Response):
    """How a stored unit reads when cited at another level."""

    id: int
    content: str
    source_level: Level
    source_category: Category
    target_level: Level
    effective_category: Category

    @classmethod
    def build(cls, unit: KnowledgeUnit, usability: Usability) -> "UsabilityPreview":
        return cls(
            id=unit.id,
            content=unit.content,
            source_level=usability.source_level,
            source_category=usability.source_category,
            target_level=usability.target_level,
            effective_category=usability.effective_category,
        )


class CompositionReport(Response):
    """
    Outcome of a composition check.

    ``effective_categories`` and ``reasons`` explain the verdict and are
    not stored with the recipe.
    """

    target_level: Level
    status: CheckStatus
    accepted: bool
    knowledge_point_ids: List[int]
    missing_ids: List[int] = Field(default_factory=list)
    unusable_ids: List[int] = Field(default_factory=list)
    effective_categories: Dict[int, Category] = Field(default_factory=dict)
    reasons: Dict[int, UnusableReason] = Field(default_factory=dict)

    @classmethod
    def from_check(cls, check: CompositionCheck) -> "CompositionReport":
        return cls(
            target_level=check.target_level,
            status=check.status,
            accepted=check.accepted,
            knowledge_point_ids=list(check.knowledge_point_ids),
            missing_ids=list(check.missing_ids),
            unusable_ids=list(check.unusable_ids),
            effective_categories=dict(check.effective_categories),
            reasons=dict(check.reasons),
        )
