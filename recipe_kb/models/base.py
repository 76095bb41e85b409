"""
Request payloads for the music knowledge base.

These pydantic models sit at the input boundary: they trim text, parse
level and category names (legacy aliases included) and accept ids as
positive integers or digit strings. Anything else fails with a
``pydantic.ValidationError`` before it reaches the core.
"""

import re
from typing import Annotated, Any, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StringConstraints,
    TypeAdapter,
)
from pydantic.alias_generators import to_camel

from kb_core import Category, Level, parse_category, parse_level


_DIGITS = re.compile(r"[0-9]+")


def parse_record_id(value: Any) -> int:
    """Accept a positive integer or a string of ASCII digits."""
    if isinstance(value, bool):
        raise ValueError("id must be a positive integer")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and _DIGITS.fullmatch(value.strip()):
        number = int(value.strip())
    else:
        raise ValueError(f"id must be a positive integer, got {value!r}")
    if number < 1:
        raise ValueError(f"id must be a positive integer, got {value!r}")
    return number


RecordId = Annotated[int, BeforeValidator(parse_record_id)]
LevelName = Annotated[Level, BeforeValidator(parse_level)]
CategoryName = Annotated[Category, BeforeValidator(parse_category)]
Text = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

record_id_adapter = TypeAdapter(RecordId)
level_adapter = TypeAdapter(LevelName)


class Payload(BaseModel):
    """Base for request payloads: camelCase or snake_case keys, no extras."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class KnowledgeUnitCreate(Payload):
    """A new knowledge unit."""

    content: Text = Field(..., description="The statement itself")
    level: LevelName = Field(..., description="Level the statement talks about")
    category: CategoryName = Field(..., description="form (rule) or material (instance)")


class KnowledgeUnitUpdate(Payload):
    """Partial edit of a knowledge unit; omitted fields keep their value."""

    content: Optional[Text] = None
    level: Optional[LevelName] = None
    category: Optional[CategoryName] = None


# Older clients send ``knowledgePoints``
_POINTS_ALIASES = AliasChoices("knowledgePointIds", "knowledgePoints", "knowledge_point_ids")


class RecipeCreate(Payload):
    """
    A new recipe.

    An empty ``knowledge_point_ids`` list is accepted here and rejected by
    composition validation, which owns that rule.
    """

    knowledge_point_ids: List[RecordId] = Field(..., validation_alias=_POINTS_ALIASES)
    level: LevelName
    procedure: Text
    description: Text


class RecipeUpdate(Payload):
    """Partial edit of a recipe; omitted fields keep their value."""

    knowledge_point_ids: Optional[List[RecordId]] = Field(None, validation_alias=_POINTS_ALIASES)
    level: Optional[LevelName] = None
    procedure: Optional[Text] = None
    description: Optional[Text] = None


class UsabilityQuery(Payload):
    """May this unit be cited at this level?"""

    unit_id: RecordId
    target_level: LevelName


class CompositionQuery(Payload):
    """Would this reference set be accepted at this level?"""

    target_level: LevelName
    knowledge_point_ids: List[RecordId] = Field(..., validation_alias=_POINTS_ALIASES)
