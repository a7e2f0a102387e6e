"""
Load authored dialogue graphs and learning objectives from JSON files.

Graph files are named ``<character>_graph.json``; objectives live in
``learning_objectives.json`` in the same directory. Malformed content raises
ContentIntegrityError at load time, before any session starts.
"""

import json
from pathlib import Path
from typing import Any, Optional, Union

from terminus.engine.navigator import GraphRegistry
from terminus.engine.tracker import LearningObjectiveRegistry
from terminus.errors import ContentIntegrityError
from terminus.schemas.dialogue import DialogueGraph
from terminus.schemas.validation import validate_dialogue_graph, validate_learning_objectives
from terminus.utils.logger import get_logger

logger = get_logger(__name__)

DATA_DIR = Path(__file__).parent / "data"
GRAPH_GLOB = "*_graph.json"
OBJECTIVES_FILE = "learning_objectives.json"


def _read_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ContentIntegrityError(f"Cannot read {path}: {e}")


def load_graph_file(path: Union[str, Path]) -> DialogueGraph:
    """Load and validate one dialogue graph file"""
    graph = validate_dialogue_graph(_read_json(Path(path)))
    logger.debug(f"Loaded {graph.character_id} graph from {path}")
    return graph


def load_graphs(content_dir: Optional[Union[str, Path]] = None) -> GraphRegistry:
    """
    Load every graph file in a content directory.

    Args:
        content_dir: Directory to scan (bundled sample content if None)

    Returns:
        Registry of the loaded graphs

    Raises:
        ContentIntegrityError: If the directory has no graphs or a file is malformed
    """
    directory = Path(content_dir) if content_dir else DATA_DIR
    paths = sorted(directory.glob(GRAPH_GLOB))
    if not paths:
        raise ContentIntegrityError(f"No dialogue graphs found in {directory}")

    registry = GraphRegistry(load_graph_file(path) for path in paths)
    logger.info(f"Loaded {len(registry)} dialogue graphs from {directory}")
    return registry


def load_learning_objectives(
    content_dir: Optional[Union[str, Path]] = None,
) -> LearningObjectiveRegistry:
    """Load the learning objective catalogue; a missing file gives an empty catalogue"""
    directory = Path(content_dir) if content_dir else DATA_DIR
    path = directory / OBJECTIVES_FILE
    if not path.exists():
        logger.warning(f"No learning objectives at {path}")
        return LearningObjectiveRegistry()

    data = _read_json(path)
    if not isinstance(data, list):
        raise ContentIntegrityError(f"{path} must contain a list of objectives")

    registry = LearningObjectiveRegistry(validate_learning_objectives(data))
    logger.info(f"Loaded {len(registry)} learning objectives")
    return registry
