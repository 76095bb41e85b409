"""
Hierarchical usability rule.

Decides whether a knowledge unit authored at one level may be cited by a
recipe at another level, and which role it plays there.

The rule is a single-hop duality:

    same level      -> usable, category unchanged
    one level up    -> only a ``form`` unit; it becomes ``material``
    one level down  -> only a ``material`` unit; it becomes ``form``
    anything else   -> not usable

A form seen from one level up is just a fact (material) of that coarser
scope. A concrete fact seen from one level down is the governing form of
everything inside it. Flips never chain across two hops.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .levels import Category, Level, LevelScale, DEFAULT_SCALE


class UnusableReason(str, Enum):
    """Why a unit cannot be cited at a target level."""
    MATERIAL_CANNOT_RISE = "material_cannot_rise"  # material one level coarser
    FORM_CANNOT_DESCEND = "form_cannot_descend"    # form one level finer
    TOO_FAR = "too_far"                            # two or more hops
    OFF_SCALE = "off_scale"                        # level not on the scale


class KnowledgeUnitNotUsableError(Exception):
    """Raised when a knowledge unit cannot be cited at the requested level."""

    def __init__(self, message: str, unit_id: int | None = None, usability: "Usability | None" = None):
        super().__init__(message)
        self.unit_id = unit_id
        self.usability = usability


class Classified(Protocol):
    """Anything carrying a level and a category."""
    level: Level
    category: Category


@dataclass(frozen=True)
class Usability:
    """Outcome of resolving one unit against one target level."""
    source_level: Level
    source_category: Category
    target_level: Level
    effective_category: Category | None = None
    reason: UnusableReason | None = None

    @property
    def usable(self) -> bool:
        return self.effective_category is not None

    @property
    def flipped(self) -> bool:
        """True when the unit changes role at the target level."""
        return self.usable and self.effective_category != self.source_category


class UsabilityResolver:
    """
    Applies the single-hop rule over a given level scale.

    Stateless apart from the scale; safe to share.
    """

    def __init__(self, scale: LevelScale = DEFAULT_SCALE) -> None:
        self._scale = scale

    @property
    def scale(self) -> LevelScale:
        return self._scale

    def resolve(self, unit: Classified, target_level: Level) -> Usability:
        """Compute the effective category of ``unit`` at ``target_level``."""
        source_level = unit.level
        category = unit.category

        def unusable(reason: UnusableReason) -> Usability:
            return Usability(source_level, category, target_level, reason=reason)

        if source_level not in self._scale or target_level not in self._scale:
            return unusable(UnusableReason.OFF_SCALE)

        if target_level == source_level:
            return Usability(source_level, category, target_level, category)

        if target_level == self._scale.parent(source_level):
            if category == Category.FORM:
                return Usability(source_level, category, target_level, Category.MATERIAL)
            return unusable(UnusableReason.MATERIAL_CANNOT_RISE)

        if target_level == self._scale.child(source_level):
            if category == Category.MATERIAL:
                return Usability(source_level, category, target_level, Category.FORM)
            return unusable(UnusableReason.FORM_CANNOT_DESCEND)

        return unusable(UnusableReason.TOO_FAR)

    def is_usable(self, unit: Classified, target_level: Level) -> bool:
        return self.resolve(unit, target_level).usable

    def usable_levels(self, unit: Classified) -> list[Level]:
        """Levels at which the unit may be cited, coarsest first."""
        return [level for level in self._scale if self.is_usable(unit, level)]
