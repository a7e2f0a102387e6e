"""
Integration tests for the play session driver using the bundled sample arcs.
"""

import pytest

from terminus.engine.navigator import GraphRegistry, get_available_nodes
from terminus.engine.persistence import GameStateManager
from terminus.engine.session import PlaySession
from terminus.errors import ChoiceUnavailableError, UnknownNodeError
from terminus.schemas.dialogue import DialogueGraph


@pytest.fixture
def session(sample_graphs, db, trackers):
    play = PlaySession("player-1", sample_graphs, db, trackers)
    play.start()
    return play


def visible_ids(view):
    return [e.choice.choice_id for e in view.choices if e.visible]


def listen_loop(session, times, exit_choice="return"):
    for _ in range(times):
        session.choose("listen")
        session.choose(exit_choice)


class TestStart:
    """Test starting and resuming sessions"""

    def test_new_game_enters_start_node(self, session):
        view = session.view()
        assert session.resumed is False
        assert view.node_id == "samuel_intro"
        assert view.character_id == "samuel"
        assert "met_samuel" in session.state.global_flags
        assert session.state.characters["samuel"].conversation_history == ("samuel_intro",)

    def test_start_saves_immediately(self, session, db):
        assert GameStateManager(db, "player-1").has_save()

    def test_resume_restores_position_and_state(self, session, sample_graphs, db, trackers):
        session.choose("listen")
        resumed = PlaySession("player-1", sample_graphs, db, trackers)
        resumed.start()

        assert resumed.resumed is True
        assert resumed.view().node_id == "samuel_listen"
        assert resumed.state.characters["samuel"].trust == 3

    def test_corrupted_save_starts_fresh(self, sample_graphs, db, trackers):
        db.put_slot("save:player-1", '{"userId": "player-1", "characters": 7}')
        play = PlaySession("player-1", sample_graphs, db, trackers)
        state = play.start()

        assert play.resumed is False
        assert state.current_node_id == "samuel_intro"
        assert state.characters["samuel"].trust == 0

    def test_unknown_start_character(self, sample_graphs, db):
        with pytest.raises(UnknownNodeError):
            PlaySession("player-1", sample_graphs, db, start_character_id="nobody").start()

    def test_reset(self, session):
        listen_loop(session, 2)
        state = session.reset()
        assert state.characters["samuel"].trust == 0
        assert state.current_node_id == "samuel_intro"


class TestChoose:
    """Test the evaluate -> mutate -> persist -> record pipeline"""

    def test_initial_choices(self, session):
        view = session.view()
        assert visible_ids(view) == ["listen", "take_puzzle", "help_traveler", "meet_maya"]
        helper = next(e for e in view.choices if e.choice.choice_id == "help_traveler")
        assert helper.enabled is False
        assert "helping orb" in helper.reason

    def test_trust_gate_opens_after_three_visits(self, session):
        listen_loop(session, 2)
        assert "share_secret" not in visible_ids(session.view())

        listen_loop(session, 1)
        assert session.state.characters["samuel"].trust == 9
        assert "share_secret" in visible_ids(session.view())

        view = session.choose("share_secret")
        assert view.node_id == "samuel_confidence"
        assert view.is_terminal is True
        samuel = session.state.characters["samuel"]
        assert samuel.relationship_status == "confidant"
        assert "heard_samuel_story" in samuel.knowledge_flags

    def test_pattern_reflection_on_revisit(self, session):
        assert session.choose("listen").content.text.startswith("Every traveler")
        session.choose("return")
        session.choose("listen")
        session.choose("return")
        view = session.choose("listen")
        assert session.state.patterns["patience"] == 3
        assert view.content.text.startswith("You keep coming back")
        assert view.content.emotion == "touched"

    def test_hidden_choice_rejected(self, session):
        with pytest.raises(ChoiceUnavailableError) as exc:
            session.choose("share_secret")
        assert exc.value.reason == "hidden"

    def test_locked_choice_rejected(self, session):
        with pytest.raises(ChoiceUnavailableError) as exc:
            session.choose("help_traveler")
        assert "helping orb" in exc.value.reason

    def test_missing_choice_rejected(self, session):
        with pytest.raises(ChoiceUnavailableError):
            session.choose("fly_away")

    def test_orb_unlocks_after_helping(self, session):
        listen_loop(session, 3, exit_choice="offer_help")
        assert session.state.patterns["helping"] == 3

        view = session.view()
        helper = next(e for e in view.choices if e.choice.choice_id == "help_traveler")
        assert helper.enabled is True

        view = session.choose("help_traveler")
        assert view.node_id == "samuel_reflection"
        # Analytical is still below the combo threshold
        assert "career_talk" not in visible_ids(view)

    def test_retry_loop(self, session):
        session.choose("take_puzzle")
        session.choose("guess")
        view = session.choose("retry")
        assert view.node_id == "samuel_puzzle"
        assert session.state.patterns["patience"] == 1

        view = session.choose("solve")
        assert view.node_id == "samuel_solved"
        assert "knows_platform_secret" in session.state.characters["samuel"].knowledge_flags
        assert "ask_secret" in visible_ids(view)
        assert session.choose("ask_secret").node_id == "samuel_secret"

    def test_handoff_to_other_character(self, session):
        view = session.choose("meet_maya")
        assert view.character_id == "maya"
        assert view.node_id == "maya_intro"
        assert session.state.characters["maya"].relationship_status == "acquaintance"
        assert session.state.characters["samuel"].relationship_status == "stranger"

        view = session.choose("back_to_samuel")
        assert view.character_id == "samuel"
        assert view.node_id == "samuel_intro"

    def test_each_choice_is_persisted(self, session, db):
        session.choose("listen")
        saved = GameStateManager(db, "player-1").load()
        assert saved.current_node_id == "samuel_listen"
        assert saved.characters["samuel"].trust == 3


class TestEngagement:
    """Test engagement recorded by the session"""

    def test_choice_anchored_objective(self, session):
        session.choose("listen")
        records = session.tracker.get_records_for_objective("samuel_active_listening")
        assert [r.kind for r in records] == ["chosen"]
        assert records[0].choice_id == "listen"
        assert records[0].skills == ["active_listening"]
        assert records[0].patterns == ["patience"]

    def test_completion_recorded_at_terminal_node(self, session):
        listen_loop(session, 3)
        session.choose("share_secret")
        kinds = [r.kind for r in session.tracker.get_records_for_objective("samuel_building_trust")]
        assert kinds == ["viewed", "completed"]

    def test_log_persisted(self, session, trackers, db):
        session.choose("meet_maya")
        assert "maya_curiosity" in session.tracker.get_engaged_objective_ids()

        from terminus.engine.tracker import TrackerRegistry

        fresh = TrackerRegistry(trackers.objectives, db).get_or_create("player-1")
        assert "maya_curiosity" in fresh.get_engaged_objective_ids()


class TestAvailableNodes:
    """Test graph navigation"""

    def test_start_when_no_position(self, sample_graphs, fresh_state):
        graph = sample_graphs.get("samuel")
        assert [n.node_id for n in get_available_nodes(graph, fresh_state)] == ["samuel_intro"]

    def test_gated_destinations_filtered(self, sample_graphs, session):
        graph = sample_graphs.get("samuel")
        ids = [n.node_id for n in get_available_nodes(graph, session.state, "samuel_intro")]
        # maya_intro is a hand-off and samuel_confidence needs trust
        assert ids == ["samuel_listen", "samuel_puzzle", "samuel_reflection"]

    def test_priority_sorts_first(self, sample_graphs, session):
        listen_loop(session, 3)
        graph = sample_graphs.get("samuel")
        ids = [n.node_id for n in get_available_nodes(graph, session.state, "samuel_intro")]
        assert ids[0] == "samuel_confidence"

    def test_unknown_position(self, sample_graphs, fresh_state):
        assert get_available_nodes(sample_graphs.get("samuel"), fresh_state, "nowhere") == []

    def test_find_node_across_graphs(self, sample_graphs):
        character_id, node = sample_graphs.find_node("maya_lab")
        assert character_id == "maya"
        assert node.speaker == "Maya Chen"
        assert sample_graphs.find_node("nowhere") is None


class TestDestinationGate:
    """Test that a destination's requirements see the choice's own effects"""

    @pytest.fixture
    def gated_session(self, db):
        graph = DialogueGraph.model_validate(
            {
                "characterId": "devon",
                "title": "Workshop",
                "startNodeId": "devon_door",
                "nodes": [
                    {
                        "nodeId": "devon_door",
                        "speaker": "Devon Kumar",
                        "content": [{"text": "The workshop is locked."}],
                        "choices": [
                            {
                                "choiceId": "learn",
                                "text": "Ask for the code.",
                                "nextNodeId": "devon_workshop",
                                "consequence": {"addKnowledgeFlags": ["knows_code"]},
                            },
                            {
                                "choiceId": "befriend",
                                "text": "Help with the wiring.",
                                "nextNodeId": "devon_bench",
                                "consequence": {"trustChange": 5},
                            },
                            {
                                "choiceId": "barge_in",
                                "text": "Try the handle.",
                                "nextNodeId": "devon_workshop",
                            },
                        ],
                    },
                    {
                        "nodeId": "devon_workshop",
                        "speaker": "Devon Kumar",
                        "content": [{"text": "Welcome inside."}],
                        "requiredState": {"hasKnowledgeFlags": ["knows_code"]},
                    },
                    {
                        "nodeId": "devon_bench",
                        "speaker": "Devon Kumar",
                        "content": [{"text": "Pull up a stool."}],
                        "requiredState": {"trust": {"min": 5}},
                    },
                ],
            }
        )
        play = PlaySession("player-1", GraphRegistry([graph]), db, start_character_id="devon")
        play.start()
        return play

    def test_flag_granted_by_choice_opens_destination(self, gated_session):
        view = gated_session.choose("learn")
        assert view.node_id == "devon_workshop"
        assert "knows_code" in gated_session.state.characters["devon"].knowledge_flags

    def test_trust_granted_by_choice_opens_destination(self, gated_session):
        view = gated_session.choose("befriend")
        assert view.node_id == "devon_bench"
        assert gated_session.state.characters["devon"].trust == 5

    def test_unmet_destination_leaves_state_untouched(self, gated_session, db):
        before = gated_session.state
        with pytest.raises(ChoiceUnavailableError) as exc:
            gated_session.choose("barge_in")
        assert "devon_workshop" in exc.value.reason
        assert gated_session.state is before
        assert GameStateManager(db, "player-1").load().current_node_id == "devon_door"


class TestContentVariations:
    """Test that revisiting a node rotates its authored variations"""

    def test_revisit_shows_other_variation(self, session):
        first = session.view().content
        assert first.variation_id == "intro_a"
        # Re-rendering the same visit keeps the same text
        assert session.view().content.text == first.text

        listen_loop(session, 1)
        second = session.view().content
        assert second.variation_id == "intro_b"
        assert second.text.startswith("Back again")

        listen_loop(session, 1)
        assert session.view().content.variation_id == "intro_a"

    def test_single_variation_node_repeats(self, session):
        texts = set()
        for _ in range(2):
            texts.add(session.choose("listen").content.text)
            session.choose("return")
        assert len(texts) == 1

    def test_reset_forgets_shown_variations(self, session):
        listen_loop(session, 1)
        assert session.view().content.variation_id == "intro_b"
        session.reset()
        assert session.view().content.variation_id == "intro_a"
