"""
Data Adapter for the Eligibility Engine

Reads the academic profile and program requirement rows and turns them into
the pydantic contracts the calculator works with.

This is a pure READ + TRANSFORM layer:
- NO scoring logic
- NO DB writes
"""

from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from models import AcademicProfile, Program
from models.enums import TestType
from .checks import parse_grade
from .constants import EDUCATION_LEVEL_RANK
from .contracts import (
    ApplicantSnapshot,
    EducationRecord,
    TestResult,
    ProgramCriteria,
    TestRequirement,
)

KNOWN_TEST_TYPES = {t.value for t in TestType}


class RequirementError(ValueError):
    """A program's stored requirement cannot be evaluated."""


def _to_float(raw) -> Optional[float]:
    if raw is None or raw == "":
        return None
    return parse_grade(raw)


def build_snapshot(profile: AcademicProfile) -> ApplicantSnapshot:
    return ApplicantSnapshot(
        user_id=profile.user_id,
        highest_education_level=profile.highest_education_level,
        field_of_study=profile.field_of_study,
        nationality=profile.nationality,
        preferred_countries=list(profile.preferred_countries or []),
        gpa=profile.gpa,
        education_history=[
            EducationRecord(
                education_level=e.education_level,
                field_of_study=e.field_of_study,
                graduated=bool(e.graduated),
                grade=e.grade,
                end_date=e.end_date,
            )
            for e in profile.education_history
        ],
        test_scores=[
            TestResult(
                test_type=t.test_type,
                overall_score=_to_float(t.overall_score),
                expiry_date=t.expiry_date,
            )
            for t in profile.test_scores
        ],
        document_types=sorted({d.document_type for d in profile.documents}),
    )


def build_criteria(program: Program) -> ProgramCriteria:
    """
    Validate and convert a program's requirement row.

    Raises:
        RequirementError: no requirement row, unknown level or test type,
            a required test without a minimum score, or a non-numeric GPA.
    """
    req = program.requirement
    if req is None:
        raise RequirementError("program has no requirement record")

    level = req.minimum_education_level or None
    if level is not None and level not in EDUCATION_LEVEL_RANK:
        raise RequirementError(f"unknown education level {level!r}")

    tests: List[TestRequirement] = []
    for raw in req.test_requirements or []:
        if not isinstance(raw, dict):
            raise RequirementError("test requirement must be an object")
        test_type = raw.get("test_type")
        if test_type not in KNOWN_TEST_TYPES:
            raise RequirementError(f"unknown test type {test_type!r}")
        minimum = _to_float(raw.get("minimum_score"))
        if raw.get("minimum_score") not in (None, "") and minimum is None:
            raise RequirementError(f"non-numeric minimum score for {test_type}")
        required = bool(raw.get("required", False))
        if required and minimum is None:
            raise RequirementError(f"required test {test_type} has no minimum score")
        tests.append(TestRequirement(test_type=test_type, minimum_score=minimum, required=required))

    minimum_gpa = _to_float(req.minimum_gpa)
    if req.minimum_gpa not in (None, "") and minimum_gpa is None:
        raise RequirementError(f"non-numeric minimum GPA {req.minimum_gpa!r}")

    return ProgramCriteria(
        program_id=program.id,
        country=program.country,
        minimum_education_level=level,
        test_requirements=tests,
        minimum_gpa=minimum_gpa,
        required_documents=list(req.required_documents or []),
        accepted_fields=list(req.accepted_fields or []),
        eligible_nationalities=list(req.eligible_nationalities or []),
        work_experience_required=bool(req.work_experience_required),
        minimum_work_experience_years=req.minimum_work_experience_years,
    )


def fetch_active_programs(db: Session) -> List[Program]:
    stmt = (
        select(Program)
        .where(Program.is_active.is_(True))
        .options(selectinload(Program.requirement))
        .order_by(Program.id)
    )
    return list(db.scalars(stmt))


def split_criteria(programs: List[Program]) -> Tuple[List[ProgramCriteria], List[Tuple[str, str]]]:
    """Returns (valid criteria, [(program_id, reason)] for malformed programs)."""
    valid: List[ProgramCriteria] = []
    malformed: List[Tuple[str, str]] = []
    for program in programs:
        try:
            valid.append(build_criteria(program))
        except RequirementError as e:
            malformed.append((program.id, str(e)))
    return valid, malformed
