"""
Pattern combos: achievements reached when several pattern totals are met together.

A combo is never evaluated live when gating content. Authors attach the
guarded change from ``combo_state_change`` to a node's ``on_enter`` list;
once it fires, the combo flag stays set even if pattern totals move later.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from terminus.schemas.state import Condition, Range, StateChange, combo_flag


class PatternCombo(BaseModel):
    """Pattern combination that unlocks career-related dialogue"""

    id: str
    requirements: Dict[str, int] = Field(..., description="Minimum total per pattern")
    career_hint: str
    character_id: str
    career_description: str = ""


PATTERN_COMBOS: List[PatternCombo] = [
    PatternCombo(
        id="architect_vision",
        requirements={"analytical": 5, "building": 4},
        career_hint="systems architects",
        character_id="maya",
        career_description="People who design how complex systems work together.",
    ),
    PatternCombo(
        id="data_storyteller",
        requirements={"analytical": 5, "exploring": 4},
        career_hint="data scientists",
        character_id="maya",
        career_description="Explorers who find the stories hidden in numbers.",
    ),
    PatternCombo(
        id="medical_detective",
        requirements={"analytical": 5, "helping": 4},
        career_hint="medical researchers",
        character_id="maya",
        career_description="Scientists who solve the puzzles of disease.",
    ),
    PatternCombo(
        id="systems_thinker",
        requirements={"analytical": 5, "patience": 4},
        career_hint="process engineers",
        character_id="devon",
        career_description="Optimizers who see the whole picture.",
    ),
    PatternCombo(
        id="sustainable_builder",
        requirements={"building": 5, "patience": 4},
        career_hint="sustainability engineers",
        character_id="devon",
        career_description="Builders who design systems that last.",
    ),
    PatternCombo(
        id="path_finder",
        requirements={"helping": 4, "exploring": 5},
        career_hint="career counselors",
        character_id="jordan",
        career_description="Guides who help others find their way.",
    ),
    PatternCombo(
        id="patient_teacher",
        requirements={"helping": 5, "patience": 5},
        career_hint="education specialists",
        character_id="samuel",
        career_description="Those who understand that learning takes time.",
    ),
]


def get_combo(combo_id: str) -> Optional[PatternCombo]:
    for combo in PATTERN_COMBOS:
        if combo.id == combo_id:
            return combo
    return None


def meets_combo_requirements(patterns: Dict[str, int], combo: PatternCombo) -> bool:
    """True when every required pattern total is reached (missing totals count as unmet)"""
    return all(
        pattern in patterns and patterns[pattern] >= required
        for pattern, required in combo.requirements.items()
    )


def combo_progress(patterns: Dict[str, int], combo: PatternCombo) -> int:
    """Progress toward a combo as a 0-100 percentage, capped per pattern"""
    total_required = sum(combo.requirements.values())
    if total_required == 0:
        return 100
    achieved = sum(
        min(max(patterns.get(pattern, 0), 0), required)
        for pattern, required in combo.requirements.items()
    )
    return round(achieved * 100 / total_required)


def unlocked_combos(
    patterns: Dict[str, int], character_id: Optional[str] = None
) -> List[PatternCombo]:
    """Combos whose requirements are currently met, optionally for one character"""
    return [
        combo
        for combo in PATTERN_COMBOS
        if (character_id is None or combo.character_id == character_id)
        and meets_combo_requirements(patterns, combo)
    ]


def combo_condition(combo: PatternCombo) -> Condition:
    """Condition that holds while every combo requirement is met"""
    return Condition(
        patterns={pattern: Range(min=required) for pattern, required in combo.requirements.items()}
    )


def combo_state_change(combo: PatternCombo) -> StateChange:
    """Guarded change that materializes the combo flag once its thresholds are met"""
    return StateChange(
        when=combo_condition(combo),
        add_global_flags=[combo_flag(combo.id)],
    )
