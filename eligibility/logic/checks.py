"""
Requirement Sub-Checks

One function per requirement a program can declare. Each returns ``None``
when the program does not declare that requirement (not applicable), or a
tuple of (CheckOutcome, credit) where credit is the fraction of the check's
weight that was earned (0.0 - 1.0).

All logic is deterministic and side-effect free.
"""

import math
from datetime import date
from typing import Dict, List, Optional, Tuple

from .contracts import ApplicantSnapshot, ProgramCriteria, CheckOutcome, TestResult
from .constants import (
    EDUCATION_LEVEL_RANK,
    CHECK_EDUCATION_LEVEL,
    CHECK_TEST_SCORES,
    CHECK_GPA,
    CHECK_DOCUMENTS,
    CHECK_WORK_EXPERIENCE,
    CHECK_FIELD_OF_STUDY,
    CHECK_NATIONALITY,
    CHECK_DESTINATION,
    MANDATORY_CHECKS,
    WORK_EXPERIENCE_DOCUMENT,
)

CheckResult = Optional[Tuple[CheckOutcome, float]]


# =============================================================================
# PREPARATION HELPERS
# =============================================================================

def exclude_expired(scores: List[TestResult], today: date) -> List[TestResult]:
    """Drop scores whose expiry date is before ``today``. Scores without expiry never expire."""
    return [s for s in scores if s.expiry_date is None or s.expiry_date >= today]


def highest_attained_level(snapshot: ApplicantSnapshot) -> Optional[str]:
    """
    Highest education level the user has completed.

    Uses graduated history entries. Only when the user has no history at all
    does it fall back to the self-reported level on the profile.
    """
    if not snapshot.education_history:
        level = snapshot.highest_education_level
        return level if level in EDUCATION_LEVEL_RANK else None

    graduated = [
        e.education_level for e in snapshot.education_history
        if e.graduated and e.education_level in EDUCATION_LEVEL_RANK
    ]
    if not graduated:
        return None
    return max(graduated, key=lambda level: EDUCATION_LEVEL_RANK[level])


def best_scores_by_type(scores: List[TestResult]) -> Dict[str, float]:
    best: Dict[str, float] = {}
    for s in scores:
        if s.overall_score is None:
            continue
        if s.test_type not in best or s.overall_score > best[s.test_type]:
            best[s.test_type] = s.overall_score
    return best


def parse_grade(raw) -> Optional[float]:
    """Numeric value of a free-text grade or score. None when blank, non-numeric, inf or nan."""
    if raw is None:
        return None
    try:
        value = float(str(raw).strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _outcome(check: str, met: bool, detail: str, mandatory: Optional[bool] = None) -> CheckOutcome:
    if mandatory is None:
        mandatory = check in MANDATORY_CHECKS
    return CheckOutcome(check=check, met=met, mandatory=mandatory, detail=detail)


# =============================================================================
# SUB-CHECKS
# =============================================================================

def check_education_level(snapshot: ApplicantSnapshot, criteria: ProgramCriteria) -> CheckResult:
    required = criteria.minimum_education_level
    if not required:
        return None

    attained = highest_attained_level(snapshot)
    met = attained is not None and EDUCATION_LEVEL_RANK[attained] >= EDUCATION_LEVEL_RANK[required]
    detail = f"Required: {required}, attained: {attained or 'none'}"
    return _outcome(CHECK_EDUCATION_LEVEL, met, detail), 1.0 if met else 0.0


def check_test_scores(snapshot: ApplicantSnapshot, criteria: ProgramCriteria) -> CheckResult:
    """
    Required tests must all be passed. When a program only lists optional
    tests, passing any one of them is enough.
    """
    if not criteria.test_requirements:
        return None

    best = best_scores_by_type(snapshot.test_scores)
    passed: List[str] = []
    failed: List[str] = []
    required_ok = True
    any_optional_ok = False
    has_required = False

    for req in criteria.test_requirements:
        score = best.get(req.test_type)
        if req.minimum_score is None:
            ok = score is not None
        else:
            ok = score is not None and score >= req.minimum_score
        label = f"{req.test_type}: {score if score is not None else 'not provided'}"
        if req.minimum_score is not None:
            label += f" (required {req.minimum_score})"
        (passed if ok else failed).append(label)

        if req.required:
            has_required = True
            required_ok = required_ok and ok
        elif ok:
            any_optional_ok = True

    met = required_ok if has_required else any_optional_ok
    parts = []
    if passed:
        parts.append("passed " + "; ".join(passed))
    if failed:
        parts.append("missing " + "; ".join(failed))
    return _outcome(CHECK_TEST_SCORES, met, ", ".join(parts), mandatory=has_required), 1.0 if met else 0.0


def check_gpa(snapshot: ApplicantSnapshot, criteria: ProgramCriteria) -> CheckResult:
    if criteria.minimum_gpa is None:
        return None

    gpa = parse_grade(snapshot.gpa)
    if gpa is None:
        # Most recent graduated entry that carries a numeric grade
        graduated = sorted(
            (e for e in snapshot.education_history if e.graduated and e.grade),
            key=lambda e: e.end_date or date.min,
            reverse=True,
        )
        for entry in graduated:
            gpa = parse_grade(entry.grade)
            if gpa is not None:
                break

    met = gpa is not None and gpa >= criteria.minimum_gpa
    detail = f"GPA: {gpa if gpa is not None else 'not provided'} (required {criteria.minimum_gpa})"
    return _outcome(CHECK_GPA, met, detail), 1.0 if met else 0.0


def check_documents(snapshot: ApplicantSnapshot, criteria: ProgramCriteria) -> CheckResult:
    """Partial credit: fraction of required document types uploaded."""
    required = list(dict.fromkeys(criteria.required_documents))
    if not required:
        return None

    uploaded = set(snapshot.document_types)
    missing = [d for d in required if d not in uploaded]
    present = len(required) - len(missing)
    detail = f"{present}/{len(required)} uploaded"
    if missing:
        detail += "; missing " + ", ".join(missing)
    return _outcome(CHECK_DOCUMENTS, not missing, detail), present / len(required)


def check_work_experience(snapshot: ApplicantSnapshot, criteria: ProgramCriteria) -> CheckResult:
    if not criteria.work_experience_required:
        return None

    met = WORK_EXPERIENCE_DOCUMENT in snapshot.document_types
    years = criteria.minimum_work_experience_years or 0
    detail = f"Work experience letter {'provided' if met else 'required'} ({years} years)"
    return _outcome(CHECK_WORK_EXPERIENCE, met, detail), 1.0 if met else 0.0


def check_field_of_study(snapshot: ApplicantSnapshot, criteria: ProgramCriteria) -> CheckResult:
    if not criteria.accepted_fields:
        return None

    user_fields = [snapshot.field_of_study] + [e.field_of_study for e in snapshot.education_history]
    user_fields = [f for f in user_fields if f and f.strip()]
    matched = None
    for accepted in criteria.accepted_fields:
        for field in user_fields:
            if _fuzzy_match(field, accepted):
                matched = field
                break
        if matched:
            break

    detail = f"Accepted: {', '.join(criteria.accepted_fields)}; yours: {matched or ', '.join(user_fields) or 'not provided'}"
    return _outcome(CHECK_FIELD_OF_STUDY, matched is not None, detail), 1.0 if matched else 0.0


def check_nationality(snapshot: ApplicantSnapshot, criteria: ProgramCriteria) -> CheckResult:
    if not criteria.eligible_nationalities:
        return None

    eligible = {n.strip().lower() for n in criteria.eligible_nationalities}
    nationality = (snapshot.nationality or "").strip()
    met = nationality.lower() in eligible if nationality else False
    detail = f"Nationality: {nationality or 'not provided'}"
    return _outcome(CHECK_NATIONALITY, met, detail), 1.0 if met else 0.0


def check_destination(snapshot: ApplicantSnapshot, criteria: ProgramCriteria) -> CheckResult:
    if not snapshot.preferred_countries or not criteria.country:
        return None

    preferred = {c.strip().lower() for c in snapshot.preferred_countries}
    met = criteria.country.strip().lower() in preferred
    detail = f"Program country: {criteria.country}"
    return _outcome(CHECK_DESTINATION, met, detail), 1.0 if met else 0.0


SUB_CHECKS = {
    CHECK_EDUCATION_LEVEL: check_education_level,
    CHECK_TEST_SCORES: check_test_scores,
    CHECK_GPA: check_gpa,
    CHECK_DOCUMENTS: check_documents,
    CHECK_WORK_EXPERIENCE: check_work_experience,
    CHECK_FIELD_OF_STUDY: check_field_of_study,
    CHECK_NATIONALITY: check_nationality,
    CHECK_DESTINATION: check_destination,
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _fuzzy_match(term1: str, term2: str) -> bool:
    """Case-insensitive exact or substring match in either direction."""
    t1 = term1.lower().strip()
    t2 = term2.lower().strip()
    return t1 == t2 or t1 in t2 or t2 in t1
