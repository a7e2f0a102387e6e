"""
Core engine components for the Terminus narrative engine
"""

from .evaluator import evaluate, evaluate_choices, select_content
from .mutator import apply_choice, apply_state_change, apply_state_changes, create_new_game_state
from .navigator import GraphRegistry, get_available_nodes
from .persistence import GameStateManager
from .session import PlaySession, SessionView
from .tracker import LearningObjectiveRegistry, LearningObjectiveTracker, TrackerRegistry

__all__ = [
    "evaluate",
    "evaluate_choices",
    "select_content",
    "apply_state_change",
    "apply_state_changes",
    "apply_choice",
    "create_new_game_state",
    "GraphRegistry",
    "get_available_nodes",
    "GameStateManager",
    "PlaySession",
    "SessionView",
    "LearningObjectiveRegistry",
    "LearningObjectiveTracker",
    "TrackerRegistry",
]
