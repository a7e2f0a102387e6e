"""
Pydantic models and validation for the Terminus narrative engine
"""

from .dialogue import (
    Choice,
    ContentReflection,
    DialogueContent,
    DialogueGraph,
    DialogueNode,
    EvaluatedChoice,
    OrbFillRequirement,
    ResolvedContent,
)
from .learning import (
    ArcSummary,
    EngagementKind,
    EngagementRecord,
    LearningObjective,
    PatternCount,
)
from .state import (
    RELATIONSHIP_STAGES,
    CharacterState,
    Condition,
    GameState,
    Range,
    RelationshipStatus,
    StateChange,
    combo_flag,
)
from .validation import (
    deserialize_engagement_log,
    deserialize_game_state,
    serialize_engagement_log,
    serialize_game_state,
    validate_dialogue_graph,
    validate_learning_objectives,
)

__all__ = [
    # Player state
    "GameState",
    "CharacterState",
    "RelationshipStatus",
    "RELATIONSHIP_STAGES",
    "Condition",
    "Range",
    "StateChange",
    "combo_flag",
    # Dialogue content
    "DialogueGraph",
    "DialogueNode",
    "DialogueContent",
    "ContentReflection",
    "Choice",
    "OrbFillRequirement",
    "EvaluatedChoice",
    "ResolvedContent",
    # Learning objectives
    "LearningObjective",
    "EngagementRecord",
    "EngagementKind",
    "ArcSummary",
    "PatternCount",
    # Validation
    "serialize_game_state",
    "deserialize_game_state",
    "serialize_engagement_log",
    "deserialize_engagement_log",
    "validate_dialogue_graph",
    "validate_learning_objectives",
]
