"""
Schema validation utilities

Saves and engagement logs are checked against strict JSON schemas before any
model is built from them, so a foreign or partially written record never
produces a half-populated GameState.
"""

from typing import Any, Dict, List

from jsonschema import ValidationError as JSONSchemaValidationError
from jsonschema import validate
from pydantic import ValidationError

from ..config import settings
from ..errors import ContentIntegrityError, StateValidationError
from .dialogue import DialogueGraph
from .learning import EngagementRecord, LearningObjective
from .state import RELATIONSHIP_STAGES, GameState

_STRING_LIST = {"type": "array", "items": {"type": "string"}}
_COUNT_MAP = {"type": "object", "additionalProperties": {"type": "integer"}}

CHARACTER_STATE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "characterId": {"type": "string", "minLength": 1},
        "trust": {
            "type": "integer",
            "minimum": settings.min_trust,
            "maximum": settings.max_trust,
        },
        "relationshipStatus": {"enum": list(RELATIONSHIP_STAGES)},
        "knowledgeFlags": _STRING_LIST,
        "conversationHistory": _STRING_LIST,
    },
    "required": ["characterId", "trust", "relationshipStatus", "knowledgeFlags"],
    "additionalProperties": False,
}

SAVE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "userId": {"type": "string", "minLength": 1},
        "saveVersion": {"type": "string"},
        "characters": {
            "type": "object",
            "additionalProperties": CHARACTER_STATE_SCHEMA,
        },
        "globalFlags": _STRING_LIST,
        "patterns": _COUNT_MAP,
        "skillLevels": _COUNT_MAP,
        "currentNodeId": {"type": ["string", "null"]},
        "currentCharacterId": {"type": ["string", "null"]},
        "createdAt": {"type": "string"},
        "lastSaved": {"type": "string"},
    },
    "required": [
        "userId",
        "saveVersion",
        "characters",
        "globalFlags",
        "patterns",
        "createdAt",
        "lastSaved",
    ],
    "additionalProperties": False,
}

ENGAGEMENT_LOG_SCHEMA: Dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "objectiveId": {"type": "string", "minLength": 1},
            "nodeId": {"type": "string", "minLength": 1},
            "choiceId": {"type": ["string", "null"]},
            "timestamp": {"type": "string"},
            "kind": {"enum": ["viewed", "chosen", "completed"]},
            "skills": _STRING_LIST,
            "patterns": _STRING_LIST,
        },
        "required": ["objectiveId", "nodeId", "timestamp", "kind"],
        "additionalProperties": False,
    },
}


def validate_json_schema(data: Any, schema: Dict[str, Any]) -> bool:
    """Validate data against a JSON schema"""
    try:
        validate(instance=data, schema=schema)
        return True
    except JSONSchemaValidationError as e:
        raise StateValidationError(f"JSON schema validation failed: {e.message}")


def serialize_game_state(state: GameState) -> Dict[str, Any]:
    """Convert a snapshot into the plain save record layout.

    Flag sets become sorted arrays so identical states always produce
    identical records.
    """
    return {
        "userId": state.user_id,
        "saveVersion": state.save_version,
        "characters": {
            character_id: {
                "characterId": character.character_id,
                "trust": character.trust,
                "relationshipStatus": character.relationship_status,
                "knowledgeFlags": sorted(character.knowledge_flags),
                "conversationHistory": list(character.conversation_history),
            }
            for character_id, character in state.characters.items()
        },
        "globalFlags": sorted(state.global_flags),
        "patterns": dict(state.patterns),
        "skillLevels": dict(state.skill_levels),
        "currentNodeId": state.current_node_id,
        "currentCharacterId": state.current_character_id,
        "createdAt": state.created_at.isoformat(),
        "lastSaved": state.last_saved.isoformat(),
    }


def deserialize_game_state(data: Any) -> GameState:
    """Validate a save record and rebuild the snapshot.

    Raises:
        StateValidationError: If the record does not match the save schema
    """
    validate_json_schema(data, SAVE_SCHEMA)

    for key, character in data["characters"].items():
        if key != character["characterId"]:
            raise StateValidationError(
                f"Character key {key} does not match id {character['characterId']}"
            )

    try:
        return GameState.model_validate(data)
    except ValidationError as e:
        raise StateValidationError(f"Invalid game state: {e}")


def serialize_engagement_log(records: List[EngagementRecord]) -> List[Dict[str, Any]]:
    return [
        record.model_dump(mode="json", by_alias=True, exclude_none=True)
        for record in records
    ]


def deserialize_engagement_log(data: Any) -> List[EngagementRecord]:
    """Validate a persisted engagement log.

    Raises:
        StateValidationError: If any entry does not match the log schema
    """
    validate_json_schema(data, ENGAGEMENT_LOG_SCHEMA)
    try:
        return [EngagementRecord.model_validate(entry) for entry in data]
    except ValidationError as e:
        raise StateValidationError(f"Invalid engagement record: {e}")


def validate_dialogue_graph(graph_data: Dict[str, Any]) -> DialogueGraph:
    """Validate and parse an authored dialogue graph"""
    try:
        return DialogueGraph.model_validate(graph_data)
    except ValidationError as e:
        raise ContentIntegrityError(f"Invalid dialogue graph: {e}")


def validate_learning_objectives(
    objectives_data: List[Dict[str, Any]],
) -> List[LearningObjective]:
    """Validate and parse authored learning objectives"""
    try:
        objectives = [LearningObjective.model_validate(item) for item in objectives_data]
    except (ValidationError, TypeError) as e:
        raise ContentIntegrityError(f"Invalid learning objective: {e}")

    seen = set()
    for objective in objectives:
        if objective.id in seen:
            raise ContentIntegrityError(f"Duplicate learning objective id: {objective.id}")
        seen.add(objective.id)
    return objectives
