"""
Player state and condition/change schema definitions
"""

from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Literal, Optional, Tuple

from pydantic import Field

from .base import FrozenNarrativeModel, NarrativeModel

RelationshipStatus = Literal["stranger", "acquaintance", "confidant"]

# Ordered relationship stages, earliest first
RELATIONSHIP_STAGES: Tuple[str, ...] = ("stranger", "acquaintance", "confidant")

COMBO_FLAG_PREFIX = "combo_"


def combo_flag(combo_id: str) -> str:
    """Global flag name that marks a materialized combo"""
    return f"{COMBO_FLAG_PREFIX}{combo_id}_achieved"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CharacterState(FrozenNarrativeModel):
    """Relationship state between the player and one character"""

    character_id: str = Field(..., description="Character identifier")
    trust: int = Field(default=0, description="Accumulated trust score")
    relationship_status: RelationshipStatus = Field(
        default="stranger", description="Explicitly assigned relationship stage"
    )
    knowledge_flags: FrozenSet[str] = Field(
        default_factory=frozenset, description="Character-scoped append-only flags"
    )
    conversation_history: Tuple[str, ...] = Field(
        default=(), description="Node ids visited with this character, in order"
    )


class GameState(FrozenNarrativeModel):
    """Root snapshot of one player's progress.

    Snapshots are never edited in place. The mutator builds a new GameState
    for every change and shares untouched nested values with the previous one.
    """

    user_id: str = Field(..., description="Owning player identifier")
    save_version: str = Field(default="1.0.0", description="Save format version")
    characters: Dict[str, CharacterState] = Field(default_factory=dict)
    global_flags: FrozenSet[str] = Field(default_factory=frozenset)
    patterns: Dict[str, int] = Field(
        default_factory=dict, description="Player-wide pattern affinity totals"
    )
    skill_levels: Dict[str, int] = Field(
        default_factory=dict, description="Demonstrated skill counts"
    )
    current_node_id: Optional[str] = Field(default=None)
    current_character_id: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    last_saved: datetime = Field(default_factory=utcnow)

    def get_character(self, character_id: Optional[str]) -> Optional[CharacterState]:
        if character_id is None:
            return None
        return self.characters.get(character_id)


class Range(NarrativeModel):
    """Inclusive integer range; an omitted side is unbounded"""

    min: Optional[int] = None
    max: Optional[int] = None

    def contains(self, value: int) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


class Condition(NarrativeModel):
    """Conjunction of state predicates. Absent predicates are skipped."""

    # Character-scoped predicates
    trust: Optional[Range] = None
    relationship: Optional[List[RelationshipStatus]] = None
    has_knowledge_flags: Optional[List[str]] = None
    lacks_knowledge_flags: Optional[List[str]] = None

    # Global predicates
    has_global_flags: Optional[List[str]] = None
    lacks_global_flags: Optional[List[str]] = None
    patterns: Optional[Dict[str, Range]] = None
    combos: Optional[List[str]] = Field(
        default=None, description="Combo ids whose flags must all be materialized"
    )

    def is_empty(self) -> bool:
        return all(value is None for value in self.__dict__.values())


class StateChange(NarrativeModel):
    """Explicitly authored change applied on choice selection or node entry"""

    # Character-specific changes (requires character_id)
    character_id: Optional[str] = None
    trust_change: Optional[int] = None
    set_relationship_status: Optional[RelationshipStatus] = None
    add_knowledge_flags: Optional[List[str]] = None

    # Global changes
    add_global_flags: Optional[List[str]] = None
    pattern_changes: Optional[Dict[str, int]] = None

    # Guard evaluated against the state at the point this change runs
    when: Optional[Condition] = None
