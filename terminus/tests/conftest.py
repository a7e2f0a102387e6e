"""
Shared fixtures for the Terminus test suite.
"""

import os
import tempfile

# Point the app-level database at a scratch file before terminus.config loads
os.environ.setdefault(
    "DATABASE_PATH", os.path.join(tempfile.mkdtemp(prefix="terminus-"), "test.db")
)

import pytest

from terminus.content import load_graphs, load_learning_objectives
from terminus.db.manager import DatabaseManager
from terminus.engine.mutator import create_new_game_state
from terminus.engine.tracker import TrackerRegistry
from terminus.schemas.dialogue import DialogueNode


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite database per test"""
    return DatabaseManager(str(tmp_path / "terminus.db"))


@pytest.fixture
def fresh_state():
    return create_new_game_state("player-1")


@pytest.fixture
def sample_graphs():
    return load_graphs()


@pytest.fixture
def objectives():
    return load_learning_objectives()


@pytest.fixture
def trackers(objectives, db):
    return TrackerRegistry(objectives, db)


def make_node(node_id: str, **fields) -> DialogueNode:
    """Build a node from camelCase authoring fields with a default text"""
    data = {
        "nodeId": node_id,
        "speaker": fields.pop("speaker", "Samuel Washington"),
        "content": fields.pop("content", [{"text": f"Text of {node_id}"}]),
    }
    data.update(fields)
    return DialogueNode.model_validate(data)
