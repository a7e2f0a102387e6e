"""
State mutation for the narrative engine.

Every function returns a new GameState and leaves its input untouched. Only
the nested values a change touches are copied; everything else is shared
with the previous snapshot, which is safe because snapshots are never edited.
"""

from typing import Dict, Iterable, List, Optional

from terminus.config import settings
from terminus.engine.evaluator import evaluate
from terminus.schemas.dialogue import Choice, DialogueNode
from terminus.schemas.state import CharacterState, GameState, StateChange, utcnow
from terminus.utils.logger import get_logger

logger = get_logger(__name__)


def clamp_trust(trust: int) -> int:
    return max(settings.min_trust, min(settings.max_trust, trust))


def create_new_game_state(
    user_id: str, known_characters: Optional[List[str]] = None
) -> GameState:
    """
    Build the baseline snapshot for a new player.

    Every known character starts at the default trust as a stranger with no
    knowledge flags; global flags are empty and every tracked pattern is zero.
    """
    character_ids = known_characters if known_characters is not None else settings.known_characters
    now = utcnow()
    state = GameState(
        user_id=user_id,
        save_version=settings.save_version,
        characters={
            character_id: _baseline_character(character_id) for character_id in character_ids
        },
        global_flags=frozenset(),
        patterns={pattern: 0 for pattern in settings.tracked_patterns},
        skill_levels={},
        created_at=now,
        last_saved=now,
    )
    logger.info(f"Created new game state for {user_id} with {len(character_ids)} characters")
    return state


def _baseline_character(character_id: str) -> CharacterState:
    return CharacterState(
        character_id=character_id,
        trust=clamp_trust(settings.default_trust),
        relationship_status="stranger",
        knowledge_flags=frozenset(),
    )


def add_counts(counts: Dict[str, int], deltas: Dict[str, int]) -> Dict[str, int]:
    """Additive merge; keys absent from ``deltas`` keep their value"""
    merged = dict(counts)
    for key, delta in deltas.items():
        merged[key] = merged.get(key, 0) + delta
    return merged


def apply_state_change(
    state: GameState,
    change: StateChange,
    character_id: Optional[str] = None,
) -> GameState:
    """
    Apply one authored change and return the new snapshot.

    Character-scoped fields target ``change.character_id`` or, when the change
    does not name one, the ``character_id`` of the context it runs in. A
    change with a ``when`` guard is skipped unless the guard holds against
    ``state`` at this point of the sequence.

    Args:
        state: Snapshot to start from (not modified)
        change: Change to apply; absent fields are no-ops
        character_id: Fallback character for character-scoped fields

    Returns:
        New GameState (``state`` itself when nothing applies)
    """
    target_id = change.character_id or character_id

    if change.when is not None and not evaluate(change.when, state, target_id):
        logger.debug(f"Skipping guarded change for {target_id}: condition not met")
        return state

    update: Dict[str, object] = {}

    has_character_change = (
        change.trust_change is not None
        or change.set_relationship_status is not None
        or change.add_knowledge_flags
    )
    if has_character_change:
        if target_id is None:
            logger.warning("Character change without a character id, ignoring character fields")
        else:
            update["characters"] = {
                **state.characters,
                target_id: _apply_character_change(state, target_id, change),
            }

    if change.add_global_flags:
        new_flags = state.global_flags.union(change.add_global_flags)
        if new_flags != state.global_flags:
            update["global_flags"] = new_flags

    if change.pattern_changes:
        update["patterns"] = add_counts(state.patterns, change.pattern_changes)

    if not update:
        return state

    logger.debug(f"Applied state change: {sorted(update)}")
    return state.model_copy(update=update)


def _apply_character_change(
    state: GameState, character_id: str, change: StateChange
) -> CharacterState:
    character = state.get_character(character_id)
    if character is None:
        logger.warning(f"Character {character_id} not in state, seeding baseline")
        character = _baseline_character(character_id)

    update: Dict[str, object] = {}
    if change.trust_change is not None:
        update["trust"] = clamp_trust(character.trust + change.trust_change)
    if change.set_relationship_status is not None:
        # Plain overwrite, regression is allowed at this layer
        update["relationship_status"] = change.set_relationship_status
    if change.add_knowledge_flags:
        update["knowledge_flags"] = character.knowledge_flags.union(change.add_knowledge_flags)

    return character.model_copy(update=update)


def apply_state_changes(
    state: GameState,
    changes: Iterable[StateChange],
    character_id: Optional[str] = None,
) -> GameState:
    """Fold a list of changes over the state in order"""
    for change in changes:
        state = apply_state_change(state, change, character_id)
    return state


def record_visit(state: GameState, character_id: str, node_id: str) -> GameState:
    """Append a node to a character's conversation history and move the position"""
    character = state.get_character(character_id) or _baseline_character(character_id)
    visited = character.model_copy(
        update={"conversation_history": character.conversation_history + (node_id,)}
    )
    return state.model_copy(
        update={
            "characters": {**state.characters, character_id: visited},
            "current_node_id": node_id,
            "current_character_id": character_id,
        }
    )


def apply_choice(
    state: GameState,
    choice: Choice,
    destination: Optional[DialogueNode],
    character_id: Optional[str],
    destination_character_id: Optional[str] = None,
) -> GameState:
    """
    Apply everything a choice selection triggers, in a fixed order.

    1. The choice's ``consequence``
    2. The choice's pattern nudge
    3. One skill level per skill tag on the choice
    4. The destination node's ``on_enter`` changes, in authored order
    5. The destination is recorded in the conversation history

    ``on_enter`` runs after the consequence so guarded combo changes see any
    threshold the consequence just crossed.

    Args:
        state: Snapshot before the selection
        choice: Selected choice
        destination: Node the choice leads to (None if it cannot be resolved)
        character_id: Character the choice was made with
        destination_character_id: Owner of the destination node when the
            choice hands off to another character's graph

    Returns:
        Snapshot after the selection
    """
    next_character_id = destination_character_id or character_id

    if choice.consequence is not None:
        state = apply_state_change(state, choice.consequence, character_id)

    if choice.pattern is not None:
        state = state.model_copy(
            update={
                "patterns": add_counts(
                    state.patterns, {choice.pattern: settings.choice_pattern_increment}
                )
            }
        )

    if choice.skills:
        state = state.model_copy(
            update={"skill_levels": add_counts(state.skill_levels, {s: 1 for s in choice.skills})}
        )

    if destination is None:
        logger.warning(f"Choice {choice.choice_id} leads to unresolved node {choice.next_node_id}")
        return state

    state = apply_state_changes(state, destination.on_enter, next_character_id)

    if next_character_id is not None:
        state = record_visit(state, next_character_id, destination.node_id)

    logger.debug(f"Choice {choice.choice_id} applied, now at {destination.node_id}")
    return state
