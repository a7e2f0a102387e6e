"""
Dialogue graph traversal.

Graphs are arenas of nodes joined by node ids. Cycles (retry loops) are
ordinary edges here; each pass is evaluated against the current state.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from terminus.engine.evaluator import evaluate
from terminus.schemas.dialogue import DialogueGraph, DialogueNode
from terminus.schemas.state import GameState
from terminus.utils.logger import get_logger

logger = get_logger(__name__)


def get_available_nodes(
    graph: DialogueGraph,
    state: GameState,
    from_node_id: Optional[str] = None,
) -> List[DialogueNode]:
    """
    Nodes reachable from the current position.

    With no position the start node is returned. Otherwise every choice
    destination whose ``required_state`` holds is returned, highest priority
    first. Destinations outside the graph are skipped.
    """
    if from_node_id is None:
        start = graph.get_node(graph.start_node_id)
        return [start] if start is not None else []

    current = graph.get_node(from_node_id)
    if current is None:
        logger.error(f"Node {from_node_id} not found in graph {graph.character_id}")
        return []

    available: List[DialogueNode] = []
    for choice in current.choices:
        next_node = graph.get_node(choice.next_node_id)
        if next_node is None:
            if choice.next_node_id not in graph.handoffs:
                logger.warning(f"Choice points to non-existent node: {choice.next_node_id}")
            continue
        if evaluate(next_node.required_state, state, graph.character_id):
            available.append(next_node)

    # Stable sort keeps authored order within equal priority
    available.sort(key=lambda node: node.priority, reverse=True)
    return available


class GraphRegistry:
    """
    Loaded character arcs, keyed by character id.

    Resolves node ids across graphs so a choice can hand off to another
    character's entry point.
    """

    def __init__(self, graphs: Iterable[DialogueGraph] = ()):
        self.graphs: Dict[str, DialogueGraph] = {}
        for graph in graphs:
            self.register(graph)

    def register(self, graph: DialogueGraph) -> None:
        if graph.character_id in self.graphs:
            logger.warning(f"Replacing graph for {graph.character_id}")
        self.graphs[graph.character_id] = graph
        logger.debug(
            f"Registered graph {graph.character_id}: "
            f"{graph.total_nodes} nodes, {graph.total_choices} choices"
        )

    def get(self, character_id: str) -> Optional[DialogueGraph]:
        return self.graphs.get(character_id)

    def __contains__(self, character_id: str) -> bool:
        return character_id in self.graphs

    def __len__(self) -> int:
        return len(self.graphs)

    def find_node(
        self, node_id: str, preferred_character_id: Optional[str] = None
    ) -> Optional[Tuple[str, DialogueNode]]:
        """Locate a node, checking the preferred graph first.

        Returns:
            (owning character id, node), or None if no graph has it
        """
        if preferred_character_id is not None:
            graph = self.graphs.get(preferred_character_id)
            if graph is not None and node_id in graph.nodes:
                return preferred_character_id, graph.nodes[node_id]

        for character_id, graph in self.graphs.items():
            if node_id in graph.nodes:
                return character_id, graph.nodes[node_id]
        return None
