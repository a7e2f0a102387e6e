"""
Learning objective engagement tracking.

Each player has an append-only log of engagement records keyed by the same
node and choice ids the dialogue graphs use. Summaries are pure reductions
over the log. Trackers are handed out by a ``TrackerRegistry`` owned by
whatever runs the play sessions, never by a module-level cache.
"""

import json
from collections import Counter
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError

from terminus.db.manager import DatabaseManager
from terminus.errors import StateValidationError
from terminus.schemas.learning import (
    ArcSummary,
    EngagementKind,
    EngagementRecord,
    LearningObjective,
    PatternCount,
)
from terminus.schemas.state import utcnow
from terminus.schemas.validation import (
    deserialize_engagement_log,
    serialize_engagement_log,
)
from terminus.utils.logger import get_logger

logger = get_logger(__name__)

ENGAGEMENT_SLOT_PREFIX = "engagement:"


class LearningObjectiveRegistry:
    """Read-only catalogue of authored learning objectives"""

    def __init__(self, objectives: Iterable[LearningObjective] = ()):
        self._objectives: Dict[str, LearningObjective] = {}
        for objective in objectives:
            self._objectives[objective.id] = objective

    def get(self, objective_id: str) -> Optional[LearningObjective]:
        return self._objectives.get(objective_id)

    def for_node(self, node_id: str) -> List[LearningObjective]:
        return [o for o in self._objectives.values() if o.node_id == node_id]

    def for_arc(self, arc_id: str) -> List[LearningObjective]:
        return [o for o in self._objectives.values() if o.arc_id == arc_id]

    def arc_ids(self) -> List[str]:
        return sorted({o.arc_id for o in self._objectives.values()})

    def __len__(self) -> int:
        return len(self._objectives)


class LearningObjectiveTracker:
    """
    Append-only engagement log for one player.

    Attributes:
        user_id: Player the log belongs to
        registry: Objective catalogue used to fill in tags and group by arc
        db: Optional storage for save/load
    """

    def __init__(
        self,
        user_id: str,
        registry: Optional[LearningObjectiveRegistry] = None,
        db: Optional[DatabaseManager] = None,
    ):
        self.user_id = user_id
        self.registry = registry or LearningObjectiveRegistry()
        self.db = db
        self._records: List[EngagementRecord] = []

    @property
    def storage_key(self) -> str:
        return f"{ENGAGEMENT_SLOT_PREFIX}{self.user_id}"

    def record_engagement(
        self,
        objective_id: str,
        node_id: str,
        kind: EngagementKind,
        choice_id: Optional[str] = None,
        skills: Optional[List[str]] = None,
        patterns: Optional[List[str]] = None,
    ) -> EngagementRecord:
        """
        Append a timestamped engagement record.

        Skill and pattern tags default to the objective's own tags when the
        caller does not supply them.
        """
        objective = self.registry.get(objective_id)
        if objective is None:
            logger.warning(f"Engagement recorded for unknown objective {objective_id}")

        record = EngagementRecord(
            objective_id=objective_id,
            node_id=node_id,
            choice_id=choice_id,
            timestamp=utcnow(),
            kind=kind,
            skills=list(skills if skills is not None else (objective.skills if objective else [])),
            patterns=list(
                patterns if patterns is not None else (objective.patterns if objective else [])
            ),
        )
        self._records.append(record)
        logger.debug(f"Recorded {kind} engagement with {objective_id} at {node_id}")
        return record

    def record_for_node(
        self,
        node_id: str,
        kind: EngagementKind,
        choice_id: Optional[str] = None,
        skills: Optional[List[str]] = None,
        patterns: Optional[List[str]] = None,
    ) -> List[EngagementRecord]:
        """Record engagement with every objective anchored to a node.

        Objectives anchored to a specific choice only match when that choice
        was selected.
        """
        recorded = []
        for objective in self.registry.for_node(node_id):
            if objective.choice_id is not None and objective.choice_id != choice_id:
                continue
            recorded.append(
                self.record_engagement(
                    objective.id,
                    node_id,
                    kind,
                    choice_id=choice_id,
                    skills=skills,
                    patterns=patterns,
                )
            )
        return recorded

    # ==================== Read Operations ====================

    def get_records(self) -> Tuple[EngagementRecord, ...]:
        return tuple(self._records)

    def get_records_for_objective(self, objective_id: str) -> List[EngagementRecord]:
        return [r for r in self._records if r.objective_id == objective_id]

    def get_engaged_objective_ids(self) -> Set[str]:
        return {r.objective_id for r in self._records}

    def get_arc_summary(self, arc_id: str, top_n: int = 3) -> ArcSummary:
        """
        Aggregate engagement for one character arc.

        Pattern tags are counted across the arc's records and the most
        frequent are returned, highest count first, ties by name.
        """
        arc_objectives = {o.id for o in self.registry.for_arc(arc_id)}
        records = [r for r in self._records if r.objective_id in arc_objectives]

        objectives: List[str] = []
        skills: List[str] = []
        pattern_counts: Counter = Counter()
        for record in records:
            if record.objective_id not in objectives:
                objectives.append(record.objective_id)
            for skill in record.skills:
                if skill not in skills:
                    skills.append(skill)
            pattern_counts.update(record.patterns)

        ranked = sorted(pattern_counts.items(), key=lambda item: (-item[1], item[0]))
        return ArcSummary(
            arc_id=arc_id,
            objectives_engaged=objectives,
            skills_demonstrated=skills,
            top_patterns=[PatternCount(pattern=p, count=c) for p, c in ranked[:top_n]],
            total_engagements=len(records),
        )

    def get_all_arc_summaries(self) -> Dict[str, ArcSummary]:
        """Summaries for every arc with at least one engagement"""
        summaries = {}
        for arc_id in self.registry.arc_ids():
            summary = self.get_arc_summary(arc_id)
            if summary.total_engagements:
                summaries[arc_id] = summary
        return summaries

    # ==================== Persistence ====================

    def save(self) -> bool:
        """Persist the log. Returns False when there is no storage or the write fails."""
        if self.db is None:
            return False
        payload = json.dumps(serialize_engagement_log(self._records))
        try:
            self.db.put_slot(self.storage_key, payload)
        except SQLAlchemyError as e:
            logger.error(f"Failed to save engagement log for {self.user_id}: {e}")
            return False
        logger.debug(f"Saved {len(self._records)} engagement records for {self.user_id}")
        return True

    def load(self) -> bool:
        """
        Replace the in-memory log with the stored one.

        An invalid or unreadable log degrades to an empty log.

        Returns:
            True if a valid stored log was loaded
        """
        self._records = []
        if self.db is None:
            return False

        try:
            payload = self.db.get_slot(self.storage_key)
            if payload is None:
                return False
            try:
                data = json.loads(payload)
            except json.JSONDecodeError as e:
                raise StateValidationError(f"Engagement log is not valid JSON: {e}")
            self._records = deserialize_engagement_log(data)
        except (StateValidationError, SQLAlchemyError) as e:
            logger.warning(f"Engagement log for {self.user_id} unusable, starting empty: {e}")
            return False

        logger.info(f"Loaded {len(self._records)} engagement records for {self.user_id}")
        return True

    def __len__(self) -> int:
        return len(self._records)


class TrackerRegistry:
    """
    Session-scoped registry handing out one tracker per user id.

    Constructed once by whatever orchestrates play sessions and passed
    explicitly to the code that needs it.
    """

    def __init__(
        self,
        objectives: Optional[LearningObjectiveRegistry] = None,
        db: Optional[DatabaseManager] = None,
    ):
        self.objectives = objectives or LearningObjectiveRegistry()
        self.db = db
        self._trackers: Dict[str, LearningObjectiveTracker] = {}

    def get_or_create(self, user_id: str) -> LearningObjectiveTracker:
        """Return the user's tracker, loading its stored log the first time"""
        tracker = self._trackers.get(user_id)
        if tracker is None:
            tracker = LearningObjectiveTracker(user_id, self.objectives, self.db)
            tracker.load()
            self._trackers[user_id] = tracker
        return tracker

    def get(self, user_id: str) -> Optional[LearningObjectiveTracker]:
        return self._trackers.get(user_id)

    def discard(self, user_id: str) -> None:
        self._trackers.pop(user_id, None)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._trackers

    def __len__(self) -> int:
        return len(self._trackers)
