"""
Levels, categories and the level scale.

A knowledge unit is authored at one of five discrete scopes of discussion,
ordered coarsest to finest:

    collection > work > section > motif > timbre

and plays one of two roles at that scope:

    form      - an organizing rule
    material  - an organized instance

The scale is an immutable value. Components that need it take it as a
constructor argument; ``DEFAULT_SCALE`` is only the default.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator


class LevelError(ValueError):
    """Raised when a level or category value is not recognised."""
    pass


class Level(str, Enum):
    """Scope of discussion, coarsest first."""
    COLLECTION = "collection"  # an album / set of works
    WORK = "work"              # a single piece
    SECTION = "section"        # verse, chorus, bridge...
    MOTIF = "motif"            # phrase-level idea
    TIMBRE = "timbre"          # sound colour of a single voice


class Category(str, Enum):
    """Role of a knowledge unit at its own level."""
    FORM = "form"          # organizing principle
    MATERIAL = "material"  # organized object


# Older records use the album/single/segment/phrase vocabulary.
LEVEL_ALIASES: dict[str, Level] = {
    "album": Level.COLLECTION,
    "single": Level.WORK,
    "segment": Level.SECTION,
    "phrase": Level.MOTIF,
}


def parse_level(value: "str | Level") -> Level:
    """Parse a level name (case-insensitive, legacy aliases accepted)."""
    if isinstance(value, Level):
        return value
    if not isinstance(value, str):
        raise LevelError(f"Level must be a string, got {type(value).__name__}")
    text = value.strip().lower()
    if text in LEVEL_ALIASES:
        return LEVEL_ALIASES[text]
    try:
        return Level(text)
    except ValueError:
        allowed = "/".join(level.value for level in Level)
        raise LevelError(f"Unknown level {value!r}; expected one of {allowed}") from None


def parse_category(value: "str | Category") -> Category:
    """Parse a category name (case-insensitive)."""
    if isinstance(value, Category):
        return value
    if not isinstance(value, str):
        raise LevelError(f"Category must be a string, got {type(value).__name__}")
    try:
        return Category(value.strip().lower())
    except ValueError:
        raise LevelError(f"Unknown category {value!r}; expected form or material") from None


@dataclass(frozen=True)
class LevelScale:
    """
    A totally ordered sequence of levels, coarsest first.

    ``parent`` moves one rank coarser, ``child`` one rank finer.
    Both return None past the ends of the scale.
    """
    levels: tuple[Level, ...]

    def __post_init__(self) -> None:
        levels = tuple(self.levels)
        if not levels:
            raise LevelError("A level scale needs at least one level")
        if len(set(levels)) != len(levels):
            raise LevelError(f"Duplicate levels in scale: {list(levels)}")
        object.__setattr__(self, "levels", levels)
        object.__setattr__(self, "_ranks", {level: i for i, level in enumerate(levels)})

    def __contains__(self, level: object) -> bool:
        return level in self._ranks

    def __iter__(self) -> Iterator[Level]:
        return iter(self.levels)

    def __len__(self) -> int:
        return len(self.levels)

    def index(self, level: Level) -> int:
        """Rank of a level, 0 = coarsest."""
        try:
            return self._ranks[level]
        except KeyError:
            raise LevelError(f"Level not on scale: {level!r}") from None

    def parent(self, level: Level) -> Level | None:
        """Next coarser level, or None at the top."""
        rank = self.index(level)
        return self.levels[rank - 1] if rank > 0 else None

    def child(self, level: Level) -> Level | None:
        """Next finer level, or None at the bottom."""
        rank = self.index(level)
        return self.levels[rank + 1] if rank + 1 < len(self.levels) else None

    def distance(self, source: Level, target: Level) -> int:
        """Signed hops from source to target (positive when target is finer)."""
        return self.index(target) - self.index(source)


DEFAULT_SCALE = LevelScale(
    (Level.COLLECTION, Level.WORK, Level.SECTION, Level.MOTIF, Level.TIMBRE)
)
