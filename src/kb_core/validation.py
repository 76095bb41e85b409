"""
Composition validation.

Checks the knowledge point ids of a recipe against a knowledge unit lookup
and the usability rule. Runs on every recipe create and update; a recipe
that does not pass is never stored.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable

from .levels import Category, Level
from .models import KnowledgeUnit
from .usability import UnusableReason, UsabilityResolver


logger = logging.getLogger(__name__)


KnowledgeUnitLookup = Callable[[int], KnowledgeUnit | None]


class CompositionError(Exception):
    """Base exception for rejected compositions."""
    pass


class EmptyCompositionError(CompositionError):
    """Raised when a composition references no knowledge units."""
    pass


class MissingKnowledgePointsError(CompositionError):
    """Raised when referenced knowledge units do not exist."""

    def __init__(self, message: str, missing_ids: list[int] | None = None):
        super().__init__(message)
        self.missing_ids = missing_ids or []


class UnusableKnowledgePointsError(CompositionError):
    """Raised when referenced knowledge units are not usable at the target level."""

    def __init__(
        self,
        message: str,
        unusable_ids: list[int] | None = None,
        target_level: Level | None = None,
        reasons: dict[int, UnusableReason] | None = None,
    ):
        super().__init__(message)
        self.unusable_ids = unusable_ids or []
        self.target_level = target_level
        self.reasons = reasons or {}


class CheckStatus(str, Enum):
    ACCEPTED = "accepted"
    EMPTY = "empty"
    MISSING_KNOWLEDGE_POINTS = "missing_knowledge_points"
    UNUSABLE_AT_LEVEL = "unusable_at_level"


@dataclass(frozen=True)
class CompositionCheck:
    """
    Result of validating one reference set at one target level.

    ``effective_categories`` and ``reasons`` explain the outcome; they are
    never persisted with the recipe.
    """
    target_level: Level
    knowledge_point_ids: tuple[int, ...]
    status: CheckStatus
    missing_ids: tuple[int, ...] = ()
    unusable_ids: tuple[int, ...] = ()
    effective_categories: dict[int, Category] = field(default_factory=dict)
    reasons: dict[int, UnusableReason] = field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return self.status == CheckStatus.ACCEPTED

    def raise_for_rejection(self) -> None:
        """Raise the matching CompositionError unless the check passed."""
        if self.status == CheckStatus.EMPTY:
            raise EmptyCompositionError("A recipe must reference at least one knowledge point")
        if self.status == CheckStatus.MISSING_KNOWLEDGE_POINTS:
            raise MissingKnowledgePointsError(
                f"Knowledge points not found: {_join(self.missing_ids)}",
                missing_ids=list(self.missing_ids),
            )
        if self.status == CheckStatus.UNUSABLE_AT_LEVEL:
            raise UnusableKnowledgePointsError(
                f"Knowledge points not usable at level {self.target_level.value}: "
                f"{_join(self.unusable_ids)}",
                unusable_ids=list(self.unusable_ids),
                target_level=self.target_level,
                reasons=dict(self.reasons),
            )


def _join(ids: Iterable[int]) -> str:
    return ",".join(str(i) for i in ids)


class CompositionValidator:
    """
    Validates recipe reference sets.

    The lookup is the only collaborator; it is called once per distinct id,
    so every id in one check is judged against the same snapshot.
    """

    def __init__(
        self,
        lookup: KnowledgeUnitLookup,
        resolver: UsabilityResolver | None = None,
    ) -> None:
        self._lookup = lookup
        self._resolver = resolver or UsabilityResolver()

    def validate(
        self,
        target_level: Level,
        knowledge_point_ids: Iterable[int],
    ) -> CompositionCheck:
        """
        Check every id against the lookup and the usability rule.

        Missing ids take precedence over unusable ones: usability means
        nothing for a unit that does not exist. Offending ids are reported
        once each, in order of first appearance. Accepted ids come back
        verbatim.
        """
        ids = tuple(knowledge_point_ids)
        if not ids:
            return CompositionCheck(target_level, ids, CheckStatus.EMPTY)

        missing: list[int] = []
        unusable: list[int] = []
        effective: dict[int, Category] = {}
        reasons: dict[int, UnusableReason] = {}
        snapshot: dict[int, KnowledgeUnit | None] = {}

        for unit_id in ids:
            if unit_id not in snapshot:
                snapshot[unit_id] = self._lookup(unit_id)
            unit = snapshot[unit_id]

            if unit is None:
                if unit_id not in missing:
                    missing.append(unit_id)
                continue

            usability = self._resolver.resolve(unit, target_level)
            logger.debug(
                f"Knowledge point {unit_id} ({unit.level.value}/{unit.category.value}) "
                f"at {target_level.value}: {usability.effective_category or usability.reason}"
            )
            if usability.usable:
                effective[unit_id] = usability.effective_category
            elif unit_id not in unusable:
                unusable.append(unit_id)
                reasons[unit_id] = usability.reason

        if missing:
            status = CheckStatus.MISSING_KNOWLEDGE_POINTS
        elif unusable:
            status = CheckStatus.UNUSABLE_AT_LEVEL
        else:
            status = CheckStatus.ACCEPTED

        if status != CheckStatus.ACCEPTED:
            logger.warning(
                f"Composition at {target_level.value} rejected ({status.value}): "
                f"missing={missing} unusable={unusable}"
            )

        return CompositionCheck(
            target_level=target_level,
            knowledge_point_ids=ids,
            status=status,
            missing_ids=tuple(missing),
            unusable_ids=tuple(unusable),
            effective_categories=effective,
            reasons=reasons,
        )
