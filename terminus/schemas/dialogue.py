"""
Dialogue graph schema definitions.

A graph is an arena of nodes keyed by node id; choices point at other nodes
by id, so revisit loops need no special representation.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from .base import NarrativeModel
from .state import Condition, StateChange


class ContentReflection(NarrativeModel):
    """Alternate text used when a pattern or skill reaches a minimum level"""

    pattern: Optional[str] = None
    skill: Optional[str] = None
    min_level: int = Field(..., description="Inclusive minimum level")
    alt_text: str
    alt_emotion: Optional[str] = None

    @model_validator(mode="after")
    def check_single_key(self):
        if (self.pattern is None) == (self.skill is None):
            raise ValueError("Reflection must name exactly one of pattern or skill")
        return self


class DialogueContent(NarrativeModel):
    """One pre-authored content variation of a node"""

    text: str
    emotion: Optional[str] = None
    variation_id: str = "default"
    reflections: List[ContentReflection] = Field(default_factory=list)


class OrbFillRequirement(NarrativeModel):
    """Pattern orb that must be filled to a percentage before a choice unlocks"""

    pattern: str
    threshold: int = Field(..., ge=0, le=100, description="Required fill percentage")


class Choice(NarrativeModel):
    """Outgoing edge of a node"""

    choice_id: str
    text: str
    next_node_id: str
    pattern: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    consequence: Optional[StateChange] = None
    visible_condition: Optional[Condition] = None
    enabled_condition: Optional[Condition] = None
    required_orb_fill: Optional[OrbFillRequirement] = None
    voice_variations: Dict[str, str] = Field(
        default_factory=dict, description="Alternate text keyed by dominant pattern"
    )
    preview: Optional[str] = None


class DialogueNode(NarrativeModel):
    """One unit of dialogue content with its outgoing choices"""

    node_id: str
    speaker: str
    content: List[DialogueContent] = Field(..., min_length=1)
    reflections: List[ContentReflection] = Field(
        default_factory=list,
        description="Node-level reflections, take precedence over content-level ones",
    )
    choices: List[Choice] = Field(default_factory=list)
    required_state: Optional[Condition] = None
    on_enter: List[StateChange] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    priority: int = 0

    @property
    def is_terminal(self) -> bool:
        return not self.choices

    def get_choice(self, choice_id: str) -> Optional[Choice]:
        for choice in self.choices:
            if choice.choice_id == choice_id:
                return choice
        return None


class DialogueGraph(NarrativeModel):
    """A character arc: node arena, entry point and metadata"""

    version: str = "1.0"
    character_id: str
    title: str
    author: str = "unknown"
    start_node_id: str
    nodes: Dict[str, DialogueNode]
    handoffs: List[str] = Field(
        default_factory=list,
        description="Node ids owned by other graphs that choices may hand off to",
    )

    @model_validator(mode="before")
    @classmethod
    def index_node_list(cls, data: Any) -> Any:
        # Authored files list nodes; the arena is keyed by node id
        if isinstance(data, dict):
            nodes = data.get("nodes")
            if isinstance(nodes, list):
                indexed: Dict[str, Any] = {}
                for node in nodes:
                    node_id = node.get("nodeId", node.get("node_id")) if isinstance(node, dict) else getattr(node, "node_id", None)
                    if node_id in indexed:
                        raise ValueError(f"Duplicate node id: {node_id}")
                    indexed[node_id] = node
                data = {**data, "nodes": indexed}
        return data

    @model_validator(mode="after")
    def check_arena(self):
        for key, node in self.nodes.items():
            if key != node.node_id:
                raise ValueError(f"Node key {key} does not match node id {node.node_id}")
        if self.start_node_id not in self.nodes:
            raise ValueError(f"Start node {self.start_node_id} not in graph")
        return self

    @property
    def total_nodes(self) -> int:
        return len(self.nodes)

    @property
    def total_choices(self) -> int:
        return sum(len(node.choices) for node in self.nodes.values())

    def get_node(self, node_id: str) -> Optional[DialogueNode]:
        return self.nodes.get(node_id)


class ResolvedContent(BaseModel):
    """Content variant selected for display"""

    text: str
    emotion: Optional[str] = None
    variation_id: str


class EvaluatedChoice(BaseModel):
    """Visibility and availability of one choice for the current state"""

    choice: Choice
    text: str = Field(..., description="Display text after voice variations")
    visible: bool
    enabled: bool
    reason: Optional[str] = Field(None, description="Why a visible choice is locked")
