"""
Condition evaluation for node reachability, choice visibility and content variants.

Every function here is a pure read of a GameState snapshot. Nothing is
mutated, and a condition that names data the state does not have is treated
as unmet (fail-closed) so incomplete content can only ever hide things.
"""

from typing import Dict, Iterable, List, Optional

from terminus.config import settings
from terminus.schemas.dialogue import (
    Choice,
    ContentReflection,
    DialogueContent,
    DialogueNode,
    EvaluatedChoice,
    OrbFillRequirement,
    ResolvedContent,
)
from terminus.schemas.state import CharacterState, Condition, GameState, combo_flag
from terminus.utils.logger import get_logger

logger = get_logger(__name__)


def evaluate(
    condition: Optional[Condition],
    state: GameState,
    character_id: Optional[str] = None,
) -> bool:
    """
    Evaluate a condition against a state snapshot.

    The condition is a conjunction: every predicate present must hold and
    absent predicates are skipped, so an empty or missing condition is true.
    Ranges are inclusive on both bounds.

    Args:
        condition: Condition to check (None means always true)
        state: Current game state, never modified
        character_id: Character whose trust, relationship and knowledge
            flags the character-scoped predicates read

    Returns:
        True if every predicate holds
    """
    if condition is None or condition.is_empty():
        return True

    # Character-scoped predicates
    if not _check_character(condition, state.get_character(character_id), character_id):
        return False

    # Global predicates
    if condition.has_global_flags is not None:
        if not all(flag in state.global_flags for flag in condition.has_global_flags):
            return False

    if condition.lacks_global_flags is not None:
        if any(flag in state.global_flags for flag in condition.lacks_global_flags):
            return False

    if condition.patterns is not None:
        for pattern, pattern_range in condition.patterns.items():
            if pattern not in state.patterns:
                logger.warning(f"Pattern condition references unknown pattern {pattern}")
                return False
            if not pattern_range.contains(state.patterns[pattern]):
                return False

    # Combos are materialized global flags, never recomputed from patterns
    if condition.combos is not None:
        if not all(combo_flag(combo_id) in state.global_flags for combo_id in condition.combos):
            return False

    return True


def _check_character(
    condition: Condition,
    character: Optional[CharacterState],
    character_id: Optional[str],
) -> bool:
    needs_character = any(
        predicate is not None
        for predicate in (
            condition.trust,
            condition.relationship,
            condition.has_knowledge_flags,
            condition.lacks_knowledge_flags,
        )
    )
    if not needs_character:
        return True

    if character is None:
        logger.warning(f"Character condition requires character {character_id} but not found")
        return False

    if condition.trust is not None and not condition.trust.contains(character.trust):
        return False

    if condition.relationship is not None:
        if character.relationship_status not in condition.relationship:
            return False

    if condition.has_knowledge_flags is not None:
        if not all(flag in character.knowledge_flags for flag in condition.has_knowledge_flags):
            return False

    if condition.lacks_knowledge_flags is not None:
        if any(flag in character.knowledge_flags for flag in condition.lacks_knowledge_flags):
            return False

    return True


# ==================== Orbs and dominant pattern ====================


def orb_fill_levels(
    patterns: Dict[str, int], orb_max_count: Optional[int] = None
) -> Dict[str, int]:
    """Fill percentage (0-100) of each pattern orb"""
    max_count = orb_max_count or settings.orb_max_count
    return {
        pattern: max(0, min(100, round(count * 100 / max_count)))
        for pattern, count in patterns.items()
    }


def is_orb_filled(
    requirement: Optional[OrbFillRequirement],
    state: GameState,
    orb_max_count: Optional[int] = None,
) -> bool:
    """Check a single-pattern orb threshold; a missing requirement always passes"""
    if requirement is None:
        return True
    levels = orb_fill_levels(state.patterns, orb_max_count)
    if requirement.pattern not in levels:
        logger.warning(f"Orb requirement references unknown pattern {requirement.pattern}")
        return False
    return levels[requirement.pattern] >= requirement.threshold


def dominant_pattern(
    patterns: Dict[str, int], threshold: Optional[int] = None
) -> Optional[str]:
    """Highest pattern total at or above the threshold, ties broken by name"""
    minimum = settings.dominant_pattern_threshold if threshold is None else threshold
    candidates = [(count, pattern) for pattern, count in patterns.items() if count >= minimum]
    if not candidates:
        return None
    best = max(count for count, _ in candidates)
    return min(pattern for count, pattern in candidates if count == best)


# ==================== Choices ====================


def resolve_choice_text(choice: Choice, state: GameState) -> str:
    """Display text for a choice, using the voice of the dominant pattern if authored"""
    if not choice.voice_variations:
        return choice.text
    voice = dominant_pattern(state.patterns)
    if voice is not None and voice in choice.voice_variations:
        return choice.voice_variations[voice]
    return choice.text


def evaluate_choices(
    node: DialogueNode,
    state: GameState,
    character_id: Optional[str] = None,
    orb_max_count: Optional[int] = None,
) -> List[EvaluatedChoice]:
    """
    Decide visibility and availability of every choice on a node.

    A choice is visible when the node itself is reachable and its
    ``visible_condition`` holds. A visible choice is enabled when its
    ``enabled_condition`` holds and its orb-fill requirement is met; a
    visible but disabled choice carries a human-readable reason.

    Returns:
        One EvaluatedChoice per authored choice, in authored order
    """
    node_reachable = evaluate(node.required_state, state, character_id)
    if not node_reachable:
        logger.debug(f"Node {node.node_id} unreachable, hiding all choices")

    evaluated: List[EvaluatedChoice] = []
    for choice in node.choices:
        visible = node_reachable and evaluate(choice.visible_condition, state, character_id)
        enabled = (
            visible
            and evaluate(choice.enabled_condition, state, character_id)
            and is_orb_filled(choice.required_orb_fill, state, orb_max_count)
        )

        reason = None
        if visible and not enabled:
            reason = _disabled_reason(choice, state, character_id, orb_max_count)

        evaluated.append(
            EvaluatedChoice(
                choice=choice,
                text=resolve_choice_text(choice, state),
                visible=visible,
                enabled=enabled,
                reason=reason,
            )
        )

    logger.debug(
        f"Node {node.node_id}: {sum(e.visible for e in evaluated)}/{len(evaluated)} visible, "
        f"{sum(e.enabled for e in evaluated)} enabled"
    )
    return evaluated


def _disabled_reason(
    choice: Choice,
    state: GameState,
    character_id: Optional[str],
    orb_max_count: Optional[int],
) -> str:
    reasons: List[str] = []
    character = state.get_character(character_id)
    condition = choice.enabled_condition

    if condition is not None:
        if condition.trust is not None and condition.trust.min is not None and character:
            if character.trust < condition.trust.min:
                reasons.append(f"Need {condition.trust.min} trust (have {character.trust})")

        if condition.relationship and character:
            if character.relationship_status not in condition.relationship:
                reasons.append(f"Need {' or '.join(condition.relationship)} relationship")

        for flag in condition.has_global_flags or []:
            if flag not in state.global_flags:
                reasons.append(f"Missing requirement: {flag}")

    requirement = choice.required_orb_fill
    if requirement is not None and not is_orb_filled(requirement, state, orb_max_count):
        have = orb_fill_levels(state.patterns, orb_max_count).get(requirement.pattern, 0)
        reasons.append(
            f"Need {requirement.pattern} orb at {requirement.threshold}% (have {have}%)"
        )

    return ", ".join(reasons) if reasons else "Requirements not met"


# ==================== Content variants ====================


def _reflection_matches(reflection: ContentReflection, state: GameState) -> bool:
    if reflection.pattern is not None:
        levels = state.patterns
        key = reflection.pattern
    else:
        levels = state.skill_levels
        key = reflection.skill  # type: ignore[assignment]
    # Missing data never satisfies a minimum level
    return key in levels and levels[key] >= reflection.min_level


def select_reflection(
    reflections: Iterable[ContentReflection], state: GameState
) -> Optional[ContentReflection]:
    """First reflection whose minimum level is met, in authored order"""
    for reflection in reflections:
        if _reflection_matches(reflection, state):
            return reflection
    return None


def select_variation(
    node: DialogueNode, previous_variations: Optional[List[str]] = None
) -> DialogueContent:
    """Pick a content variation, preferring the first one not shown recently"""
    if len(node.content) == 1 or not previous_variations:
        return node.content[0]
    for content in node.content:
        if content.variation_id not in previous_variations:
            return content
    return node.content[0]


def select_content(
    node: DialogueNode,
    state: GameState,
    previous_variations: Optional[List[str]] = None,
) -> ResolvedContent:
    """
    Resolve the text and emotion to display for a node.

    Node-level reflections are scanned before the variation's own list and
    the first satisfied entry wins, so authors list more specific alternates
    first. With no match the variation's base text is used.
    """
    content = select_variation(node, previous_variations)
    reflection = select_reflection(list(node.reflections) + list(content.reflections), state)

    if reflection is None:
        return ResolvedContent(
            text=content.text,
            emotion=content.emotion,
            variation_id=content.variation_id,
        )

    logger.debug(
        f"Node {node.node_id} using reflection for "
        f"{reflection.pattern or reflection.skill} >= {reflection.min_level}"
    )
    return ResolvedContent(
        text=reflection.alt_text,
        emotion=reflection.alt_emotion or content.emotion,
        variation_id=content.variation_id,
    )
