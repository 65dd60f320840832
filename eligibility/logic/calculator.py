"""
Eligibility Calculator

Runs every applicable sub-check for one (applicant, program) pair and
combines them into a 0-100 score, an eligibility verdict and a note.

Score = round(100 * earned / possible) over applicable checks only.
A user is eligible when every applicable mandatory check is met. Optional
checks only move the score.
"""

from datetime import date
from typing import List, Optional

from .contracts import (
    ApplicantSnapshot,
    ProgramCriteria,
    EligibilityConfig,
    EligibilityOutcome,
    CheckOutcome,
)
from .checks import SUB_CHECKS, exclude_expired
from .constants import (
    CHECK_ORDER,
    NOTE_ELIGIBLE,
    NOTE_CLOSE_MATCH,
    NOTE_NOT_ELIGIBLE,
)


def evaluate(
    snapshot: ApplicantSnapshot,
    criteria: ProgramCriteria,
    today: date,
    config: Optional[EligibilityConfig] = None,
) -> EligibilityOutcome:
    """
    Evaluate one program for one applicant.

    Args:
        snapshot: Applicant data (expired scores are filtered here)
        criteria: Validated program requirements
        today: Evaluation date, used for test score expiry
        config: Optional scoring weights and note threshold

    Returns:
        EligibilityOutcome with the per-check breakdown
    """
    config = config or EligibilityConfig()
    current = snapshot.model_copy(update={"test_scores": exclude_expired(snapshot.test_scores, today)})

    breakdown: List[CheckOutcome] = []
    earned = 0
    possible = 0

    for name in CHECK_ORDER:
        result = SUB_CHECKS[name](current, criteria)
        if result is None:
            continue
        outcome, credit = result
        weight = config.weights.get(name, 0)
        # Floor keeps partial credit from rounding up to a full check
        outcome.points = int(weight * credit)
        outcome.max_points = weight
        earned += outcome.points
        possible += weight
        breakdown.append(outcome)

    score = int(100 * earned / possible + 0.5) if possible else 100
    is_eligible = all(c.met for c in breakdown if c.mandatory)

    return EligibilityOutcome(
        program_id=criteria.program_id,
        eligibility_score=score,
        is_eligible=is_eligible,
        breakdown=breakdown,
        recommendation_notes=recommendation_note(score, is_eligible, config),
    )


def recommendation_note(score: int, is_eligible: bool, config: EligibilityConfig) -> str:
    if is_eligible:
        return NOTE_ELIGIBLE
    if score >= config.partial_match_threshold:
        return NOTE_CLOSE_MATCH
    return NOTE_NOT_ELIGIBLE


def evaluate_all(
    snapshot: ApplicantSnapshot,
    criteria_list: List[ProgramCriteria],
    today: date,
    config: Optional[EligibilityConfig] = None,
) -> List[EligibilityOutcome]:
    return [evaluate(snapshot, c, today, config) for c in criteria_list]
