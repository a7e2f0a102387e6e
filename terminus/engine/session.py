"""
Play session driver.

Runs one player's pipeline for each selection: evaluate the node's choices,
apply the selection to the state, persist, then record engagement. The
session holds the only reference to the current snapshot and replaces it
on every change.
"""

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from terminus.config import settings
from terminus.db.manager import DatabaseManager
from terminus.engine.evaluator import (
    evaluate,
    evaluate_choices,
    orb_fill_levels,
    select_content,
)
from terminus.engine.mutator import (
    apply_choice,
    apply_state_changes,
    create_new_game_state,
    record_visit,
)
from terminus.engine.navigator import GraphRegistry
from terminus.engine.persistence import GameStateManager
from terminus.engine.tracker import LearningObjectiveTracker, TrackerRegistry
from terminus.errors import ChoiceUnavailableError, UnknownNodeError
from terminus.schemas.dialogue import DialogueNode, EvaluatedChoice, ResolvedContent
from terminus.schemas.state import GameState
from terminus.utils.logger import get_logger

logger = get_logger(__name__)


class SessionView(BaseModel):
    """What the presentation layer needs to render the current node"""

    user_id: str
    character_id: str
    node_id: str
    speaker: str
    content: ResolvedContent
    choices: List[EvaluatedChoice] = Field(default_factory=list)
    is_terminal: bool = False
    orbs: dict = Field(default_factory=dict, description="Pattern orb fill percentages")


class PlaySession:
    """
    One player's play session.

    Attributes:
        user_id: Player identifier
        graphs: Loaded character arcs
        state_manager: Save slot persistence for this player
        tracker: Engagement log for this player (None when not tracking)
        state: Current snapshot, replaced on every change
        resumed: Whether ``start`` loaded an existing save
    """

    def __init__(
        self,
        user_id: str,
        graphs: GraphRegistry,
        db: DatabaseManager,
        trackers: Optional[TrackerRegistry] = None,
        start_character_id: Optional[str] = None,
    ):
        self.user_id = user_id
        self.graphs = graphs
        self.state_manager = GameStateManager(db, user_id)
        self.tracker: Optional[LearningObjectiveTracker] = (
            trackers.get_or_create(user_id) if trackers is not None else None
        )
        self.start_character_id = start_character_id or settings.start_character_id
        self.state: Optional[GameState] = None
        self.resumed = False
        # Variation ids shown per node this session, oldest first
        self._shown_variations: Dict[str, List[str]] = {}
        self._content: Optional[Tuple[str, ResolvedContent]] = None

    def start(self) -> GameState:
        """
        Resume the saved game, or start a new one when no valid save exists.

        Returns:
            The current snapshot
        """
        loaded = self.state_manager.load()
        self.resumed = loaded is not None
        self.state = loaded if loaded is not None else create_new_game_state(self.user_id)

        if not self._position_is_valid():
            self._enter_start_node()
            self.state_manager.save(self.state)

        logger.info(
            f"Session {'resumed' if self.resumed else 'started'} for {self.user_id} "
            f"at {self.state.current_character_id}/{self.state.current_node_id}"
        )
        if self.tracker is not None and not self.resumed:
            self.tracker.record_for_node(self.state.current_node_id, "viewed")  # type: ignore[arg-type]
            self.tracker.save()
        return self.state

    def _require_state(self) -> GameState:
        if self.state is None:
            raise UnknownNodeError("<none>")
        return self.state

    def _position_is_valid(self) -> bool:
        state = self._require_state()
        if state.current_node_id is None:
            return False
        found = self.graphs.find_node(state.current_node_id, state.current_character_id)
        if found is None:
            logger.warning(
                f"Saved position {state.current_node_id} not in loaded content, restarting arc"
            )
            return False
        return True

    def _enter_start_node(self) -> None:
        graph = self.graphs.get(self.start_character_id)
        if graph is None:
            raise UnknownNodeError(f"{self.start_character_id}:<start>")
        start = graph.nodes[graph.start_node_id]
        state = apply_state_changes(self._require_state(), start.on_enter, graph.character_id)
        self.state = record_visit(state, graph.character_id, start.node_id)
        self._content = None

    def current_node(self) -> Tuple[str, DialogueNode]:
        """
        Resolve the node the player is at.

        Returns:
            (character id, node)

        Raises:
            UnknownNodeError: If the session has no valid position
        """
        if self.state is None or self.state.current_node_id is None:
            raise UnknownNodeError("<none>")
        found = self.graphs.find_node(self.state.current_node_id, self.state.current_character_id)
        if found is None:
            raise UnknownNodeError(self.state.current_node_id)
        return found

    def _resolve_content(self, node: DialogueNode, state: GameState) -> ResolvedContent:
        """
        Content for the node just entered.

        Resolved once per visit. Variations shown on the most recent visits
        are passed as previous so a revisit rotates to another one.
        """
        if self._content is not None and self._content[0] == node.node_id:
            return self._content[1]

        shown = self._shown_variations.setdefault(node.node_id, [])
        recent = shown[-(len(node.content) - 1) :] if len(node.content) > 1 else []
        content = select_content(node, state, recent)
        shown.append(content.variation_id)
        self._content = (node.node_id, content)
        return content

    def view(self) -> SessionView:
        """Resolved content and evaluated choices for the current node"""
        character_id, node = self.current_node()
        state = self._require_state()
        return SessionView(
            user_id=self.user_id,
            character_id=character_id,
            node_id=node.node_id,
            speaker=node.speaker,
            content=self._resolve_content(node, state),
            choices=evaluate_choices(node, state, character_id),
            is_terminal=node.is_terminal,
            orbs=orb_fill_levels(state.patterns),
        )

    def choose(self, choice_id: str) -> SessionView:
        """
        Select a choice on the current node.

        Raises:
            ChoiceUnavailableError: If the choice is missing, hidden or locked
            UnknownNodeError: If the destination cannot be resolved
        """
        character_id, node = self.current_node()
        state = self._require_state()

        evaluated = next(
            (e for e in evaluate_choices(node, state, character_id) if e.choice.choice_id == choice_id),
            None,
        )
        if evaluated is None:
            raise ChoiceUnavailableError(choice_id, f"not a choice on {node.node_id}")
        if not evaluated.visible:
            raise ChoiceUnavailableError(choice_id, "hidden")
        if not evaluated.enabled:
            raise ChoiceUnavailableError(choice_id, evaluated.reason or "locked")

        choice = evaluated.choice
        found = self.graphs.find_node(choice.next_node_id, character_id)
        if found is None:
            raise UnknownNodeError(choice.next_node_id)
        destination_character_id, destination = found

        # The destination gate sees the state after the choice's own effects
        new_state = apply_choice(
            state, choice, destination, character_id, destination_character_id
        )
        if not evaluate(destination.required_state, new_state, destination_character_id):
            raise ChoiceUnavailableError(choice_id, f"{destination.node_id} is not reachable yet")
        if destination_character_id != character_id:
            logger.info(f"Handing off from {character_id} to {destination_character_id}")

        self.state = new_state
        self._content = None
        logger.verbose(  # type: ignore[attr-defined]
            f"{self.user_id}: {node.node_id} --{choice_id}--> {destination.node_id}"
        )

        self.state_manager.save(self.state)
        self._record_engagement(node, choice_id, destination)
        return self.view()

    def _record_engagement(
        self, node: DialogueNode, choice_id: str, destination: DialogueNode
    ) -> None:
        if self.tracker is None:
            return
        choice = node.get_choice(choice_id)
        skills = list(choice.skills) if choice and choice.skills else None
        patterns = [choice.pattern] if choice and choice.pattern else None

        self.tracker.record_for_node(
            node.node_id, "chosen", choice_id=choice_id, skills=skills, patterns=patterns
        )
        self.tracker.record_for_node(destination.node_id, "viewed")
        if destination.is_terminal:
            self.tracker.record_for_node(destination.node_id, "completed")
        self.tracker.save()

    def reset(self) -> GameState:
        """Delete the save and start over; the engagement log is kept"""
        self.state_manager.reset()
        self.state = None
        self._shown_variations = {}
        self._content = None
        return self.start()
