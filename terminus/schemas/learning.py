"""
Learning objective and engagement log schema definitions
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .base import NarrativeModel

EngagementKind = Literal["viewed", "chosen", "completed"]


class LearningObjective(NarrativeModel):
    """Statically authored objective anchored to a node (and optionally a choice)"""

    id: str
    title: str
    description: str = ""
    category: str
    arc_id: str = Field(..., description="Character arc the objective belongs to")
    skills: List[str] = Field(default_factory=list)
    patterns: List[str] = Field(default_factory=list)
    node_id: str
    choice_id: Optional[str] = None


class EngagementRecord(NarrativeModel):
    """Append-only log entry"""

    objective_id: str
    node_id: str
    choice_id: Optional[str] = None
    timestamp: datetime
    kind: EngagementKind
    skills: List[str] = Field(default_factory=list)
    patterns: List[str] = Field(default_factory=list)


class PatternCount(BaseModel):
    pattern: str
    count: int


class ArcSummary(BaseModel):
    """Aggregated engagement for one character arc"""

    arc_id: str
    objectives_engaged: List[str] = Field(default_factory=list)
    skills_demonstrated: List[str] = Field(default_factory=list)
    top_patterns: List[PatternCount] = Field(default_factory=list)
    total_engagements: int = 0
