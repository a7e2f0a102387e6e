"""
Shared pydantic base for narrative models.

Authored content and persisted saves use camelCase keys (``trustChange``,
``knowledgeFlags``); Python code uses snake_case attribute names. Both are
accepted on input.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class NarrativeModel(BaseModel):
    """Base model with camelCase aliases"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",  # Reject unknown keys (additionalProperties: false)
    )


class FrozenNarrativeModel(NarrativeModel):
    """Immutable snapshot model; changes are made by building a new instance"""

    model_config = ConfigDict(frozen=True)
