"""
Unit tests for condition evaluation, choice evaluation and content selection.
"""

import pytest

from terminus.engine.evaluator import (
    dominant_pattern,
    evaluate,
    evaluate_choices,
    orb_fill_levels,
    resolve_choice_text,
    select_content,
)
from terminus.engine.mutator import apply_state_change
from terminus.schemas.state import Condition, StateChange
from terminus.schemas.validation import serialize_game_state
from terminus.tests.conftest import make_node


def with_changes(state, *changes, character_id="samuel"):
    for change in changes:
        state = apply_state_change(state, StateChange.model_validate(change), character_id)
    return state


class TestEvaluate:
    """Test the condition evaluator"""

    def test_absent_condition_is_true(self, fresh_state):
        """Test that a missing or empty condition is vacuously true"""
        assert evaluate(None, fresh_state, "samuel") is True
        assert evaluate(Condition(), fresh_state, "samuel") is True
        assert evaluate(Condition(), fresh_state) is True

    def test_evaluation_is_pure(self, fresh_state):
        """Test that evaluation is deterministic and leaves the state unchanged"""
        state = with_changes(fresh_state, {"trustChange": 4, "addGlobalFlags": ["met_samuel"]})
        condition = Condition.model_validate(
            {"trust": {"min": 3}, "hasGlobalFlags": ["met_samuel"], "patterns": {"helping": {"max": 2}}}
        )
        before = serialize_game_state(state)

        first = evaluate(condition, state, "samuel")
        second = evaluate(condition, state, "samuel")

        assert first is second is True
        assert serialize_game_state(state) == before

    def test_trust_range_is_inclusive(self, fresh_state):
        """Test that trust equal to either bound satisfies the range"""
        state = with_changes(fresh_state, {"trustChange": 5})
        assert evaluate(Condition.model_validate({"trust": {"min": 5}}), state, "samuel")
        assert evaluate(Condition.model_validate({"trust": {"max": 5}}), state, "samuel")
        assert evaluate(Condition.model_validate({"trust": {"min": 5, "max": 5}}), state, "samuel")
        assert not evaluate(Condition.model_validate({"trust": {"min": 6}}), state, "samuel")
        assert not evaluate(Condition.model_validate({"trust": {"max": 4}}), state, "samuel")

    def test_pattern_ranges(self, fresh_state):
        """Test per-pattern ranges, unbounded on an omitted side"""
        state = with_changes(fresh_state, {"patternChanges": {"analytical": 3}})
        assert evaluate(Condition.model_validate({"patterns": {"analytical": {"min": 3}}}), state)
        assert not evaluate(Condition.model_validate({"patterns": {"analytical": {"min": 4}}}), state)
        assert evaluate(
            Condition.model_validate({"patterns": {"analytical": {"min": 1}, "helping": {"max": 0}}}),
            state,
        )

    def test_flag_scopes_are_not_conflated(self, fresh_state):
        """Test that knowledge flags and global flags are checked in their own sets"""
        state = with_changes(fresh_state, {"addKnowledgeFlags": ["knows_x"]})

        assert evaluate(Condition.model_validate({"hasKnowledgeFlags": ["knows_x"]}), state, "samuel")
        assert not evaluate(Condition.model_validate({"hasGlobalFlags": ["knows_x"]}), state, "samuel")
        assert evaluate(Condition.model_validate({"lacksGlobalFlags": ["knows_x"]}), state, "samuel")
        # Knowledge flags belong to one character
        assert not evaluate(Condition.model_validate({"hasKnowledgeFlags": ["knows_x"]}), state, "maya")

    def test_lacks_predicates(self, fresh_state):
        """Test has/lacks predicates for both scopes"""
        state = with_changes(
            fresh_state, {"addKnowledgeFlags": ["a"], "addGlobalFlags": ["g"]}
        )
        assert not evaluate(Condition.model_validate({"lacksKnowledgeFlags": ["a"]}), state, "samuel")
        assert evaluate(Condition.model_validate({"lacksKnowledgeFlags": ["b"]}), state, "samuel")
        assert not evaluate(Condition.model_validate({"lacksGlobalFlags": ["g"]}), state)

    def test_relationship_allowed_set(self, fresh_state):
        """Test relationship status membership"""
        condition = Condition.model_validate({"relationship": ["acquaintance", "confidant"]})
        assert not evaluate(condition, fresh_state, "samuel")

        state = with_changes(fresh_state, {"setRelationshipStatus": "acquaintance"})
        assert evaluate(condition, state, "samuel")

    def test_combos_read_materialized_flags(self, fresh_state):
        """Test that combo predicates check flags, not live pattern totals"""
        state = with_changes(fresh_state, {"patternChanges": {"analytical": 9, "helping": 9}})
        condition = Condition.model_validate({"combos": ["medical_detective"]})
        assert not evaluate(condition, state)

        state = with_changes(state, {"addGlobalFlags": ["combo_medical_detective_achieved"]})
        assert evaluate(condition, state)

    def test_unknown_character_fails_closed(self, fresh_state):
        """Test that character predicates without character data are unmet"""
        condition = Condition.model_validate({"trust": {"min": 0}})
        assert not evaluate(condition, fresh_state, "nobody")
        assert not evaluate(condition, fresh_state, None)

    def test_unknown_pattern_fails_closed(self, fresh_state):
        """Test that a pattern with no total is treated as unmet, even for max bounds"""
        assert not evaluate(Condition.model_validate({"patterns": {"juggling": {"max": 10}}}), fresh_state)

    def test_global_predicates_need_no_character(self, fresh_state):
        """Test that global-only conditions evaluate without a character id"""
        state = with_changes(fresh_state, {"addGlobalFlags": ["met_samuel"]})
        assert evaluate(Condition.model_validate({"hasGlobalFlags": ["met_samuel"]}), state)


class TestEvaluateChoices:
    """Test choice visibility and availability"""

    @pytest.fixture
    def node(self):
        return make_node(
            "hub",
            choices=[
                {"choiceId": "open", "text": "Open", "nextNodeId": "a"},
                {
                    "choiceId": "trusted",
                    "text": "Trusted",
                    "nextNodeId": "b",
                    "visibleCondition": {"trust": {"min": 8}},
                },
                {
                    "choiceId": "orb",
                    "text": "Orb",
                    "nextNodeId": "c",
                    "requiredOrbFill": {"pattern": "helping", "threshold": 5},
                },
                {
                    "choiceId": "flagged",
                    "text": "Flagged",
                    "nextNodeId": "d",
                    "enabledCondition": {"hasGlobalFlags": ["met_maya"]},
                },
            ],
        )

    def test_visible_subset_of_choices(self, node, fresh_state):
        """Test that visible choices are always a subset of the node's choices"""
        evaluated = evaluate_choices(node, fresh_state, "samuel")
        all_ids = [c.choice_id for c in node.choices]
        visible_ids = [e.choice.choice_id for e in evaluated if e.visible]

        assert [e.choice.choice_id for e in evaluated] == all_ids
        assert set(visible_ids) <= set(all_ids)
        assert visible_ids == ["open", "orb", "flagged"]

    def test_orb_fill_disables_but_keeps_visible(self, node, fresh_state):
        """Test that an unfilled orb locks a visible choice with a reason"""
        orb = next(e for e in evaluate_choices(node, fresh_state, "samuel") if e.choice.choice_id == "orb")
        assert orb.visible is True
        assert orb.enabled is False
        assert "helping orb at 5%" in orb.reason

        state = with_changes(fresh_state, {"patternChanges": {"helping": 5}})
        orb = next(e for e in evaluate_choices(node, state, "samuel") if e.choice.choice_id == "orb")
        assert orb.enabled is True
        assert orb.reason is None

    def test_enabled_condition_reason(self, node, fresh_state):
        """Test the disabled reason for a missing global flag"""
        flagged = evaluate_choices(node, fresh_state, "samuel")[3]
        assert flagged.visible and not flagged.enabled
        assert flagged.reason == "Missing requirement: met_maya"

    def test_unreachable_node_hides_all_choices(self, fresh_state):
        """Test that a node whose required state fails shows no choices"""
        node = make_node(
            "locked",
            requiredState={"trust": {"min": 5}},
            choices=[{"choiceId": "x", "text": "X", "nextNodeId": "y"}],
        )
        evaluated = evaluate_choices(node, fresh_state, "samuel")
        assert [e.visible for e in evaluated] == [False]
        assert [e.enabled for e in evaluated] == [False]

    def test_voice_variation_uses_dominant_pattern(self, fresh_state):
        """Test that choice text follows the dominant pattern voice"""
        node = make_node(
            "voiced",
            choices=[
                {
                    "choiceId": "ask",
                    "text": "Tell me more.",
                    "nextNodeId": "x",
                    "voiceVariations": {"analytical": "Walk me through it."},
                }
            ],
        )
        choice = node.choices[0]
        assert resolve_choice_text(choice, fresh_state) == "Tell me more."

        state = with_changes(fresh_state, {"patternChanges": {"analytical": 6}})
        assert resolve_choice_text(choice, state) == "Walk me through it."
        assert evaluate_choices(node, state, "samuel")[0].text == "Walk me through it."


class TestPatternHelpers:
    """Test dominant pattern and orb helpers"""

    def test_dominant_pattern_threshold(self):
        assert dominant_pattern({"analytical": 4, "helping": 2}, threshold=5) is None
        assert dominant_pattern({"analytical": 7, "helping": 6}, threshold=5) == "analytical"

    def test_dominant_pattern_tie_broken_by_name(self):
        assert dominant_pattern({"patience": 6, "building": 6}, threshold=5) == "building"

    def test_orb_fill_levels_are_capped(self):
        levels = orb_fill_levels({"analytical": 50, "helping": 250, "patience": -5}, orb_max_count=100)
        assert levels == {"analytical": 50, "helping": 100, "patience": 0}


class TestSelectContent:
    """Test first-match-wins content variant selection"""

    @pytest.fixture
    def node(self):
        return make_node(
            "variant",
            content=[
                {
                    "text": "Base text.",
                    "emotion": "neutral",
                    "variationId": "a",
                    "reflections": [
                        {"pattern": "helping", "minLevel": 1, "altText": "Content helping."},
                    ],
                },
                {"text": "Second variation.", "variationId": "b"},
            ],
            reflections=[
                {"pattern": "analytical", "minLevel": 5, "altText": "Specific analytical.", "altEmotion": "sharp"},
                {"pattern": "analytical", "minLevel": 2, "altText": "Generic analytical."},
                {"skill": "problem_solving", "minLevel": 1, "altText": "Skilled."},
            ],
        )

    def test_default_when_nothing_matches(self, node, fresh_state):
        content = select_content(node, fresh_state)
        assert content.text == "Base text."
        assert content.emotion == "neutral"
        assert content.variation_id == "a"

    def test_first_match_wins_not_best_match(self, node, fresh_state):
        """Test that list order decides, even when a later entry also matches"""
        state = with_changes(fresh_state, {"patternChanges": {"analytical": 6}})
        content = select_content(node, state)
        assert content.text == "Specific analytical."
        assert content.emotion == "sharp"

        state = with_changes(fresh_state, {"patternChanges": {"analytical": 3}})
        content = select_content(node, state)
        assert content.text == "Generic analytical."
        # Emotion falls back to the variation's own
        assert content.emotion == "neutral"

    def test_node_reflections_precede_content_reflections(self, node, fresh_state):
        state = with_changes(fresh_state, {"patternChanges": {"helping": 1, "analytical": 2}})
        assert select_content(node, state).text == "Generic analytical."

        state = with_changes(fresh_state, {"patternChanges": {"helping": 1}})
        assert select_content(node, state).text == "Content helping."

    def test_skill_reflection(self, node, fresh_state):
        state = fresh_state.model_copy(update={"skill_levels": {"problem_solving": 1}})
        assert select_content(node, state).text == "Skilled."

    def test_previous_variations_skipped(self, node, fresh_state):
        assert select_content(node, fresh_state, previous_variations=["a"]).variation_id == "b"
        assert select_content(node, fresh_state, previous_variations=["a", "b"]).variation_id == "a"
