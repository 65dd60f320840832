"""
Data Contracts for the Eligibility Engine

Pydantic models for the applicant snapshot (input), program criteria (input)
and the per-program outcome (output). The calculator only sees these, never
ORM rows.
"""

from datetime import date
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from .constants import SCORING_WEIGHTS, PARTIAL_MATCH_THRESHOLD


# =============================================================================
# INPUT CONTRACTS
# =============================================================================

class EducationRecord(BaseModel):
    education_level: str
    field_of_study: Optional[str] = None
    graduated: bool = False
    grade: Optional[str] = None
    end_date: Optional[date] = None


class TestResult(BaseModel):
    __test__ = False

    test_type: str
    overall_score: Optional[float] = None
    expiry_date: Optional[date] = None


class ApplicantSnapshot(BaseModel):
    """
    Everything the calculator knows about one user.
    Built from the AcademicProfile and its children by the adapter.
    """
    user_id: str
    highest_education_level: Optional[str] = None  # self-reported
    field_of_study: Optional[str] = None
    nationality: Optional[str] = None
    preferred_countries: List[str] = Field(default_factory=list)
    gpa: Optional[str] = None
    education_history: List[EducationRecord] = Field(default_factory=list)
    test_scores: List[TestResult] = Field(default_factory=list)
    document_types: List[str] = Field(default_factory=list)


class TestRequirement(BaseModel):
    __test__ = False

    test_type: str
    minimum_score: Optional[float] = None
    required: bool = False


class ProgramCriteria(BaseModel):
    """Validated requirement set for one program."""
    program_id: str
    country: Optional[str] = None
    minimum_education_level: Optional[str] = None
    test_requirements: List[TestRequirement] = Field(default_factory=list)
    minimum_gpa: Optional[float] = None
    required_documents: List[str] = Field(default_factory=list)
    accepted_fields: List[str] = Field(default_factory=list)
    eligible_nationalities: List[str] = Field(default_factory=list)
    work_experience_required: bool = False
    minimum_work_experience_years: Optional[int] = None


class EligibilityConfig(BaseModel):
    """Scoring configuration. Defaults come from the scoring table in constants."""
    weights: Dict[str, int] = Field(default_factory=lambda: dict(SCORING_WEIGHTS))
    partial_match_threshold: int = PARTIAL_MATCH_THRESHOLD


# =============================================================================
# OUTPUT CONTRACTS
# =============================================================================

class CheckOutcome(BaseModel):
    """Result of one applicable sub-check."""
    check: str
    met: bool
    mandatory: bool = False
    points: int = 0
    max_points: int = 0
    detail: str = ""


class EligibilityOutcome(BaseModel):
    program_id: str
    eligibility_score: int = Field(ge=0, le=100)
    is_eligible: bool
    breakdown: List[CheckOutcome] = Field(default_factory=list)
    recommendation_notes: str = ""

    def breakdown_rows(self) -> List[dict]:
        return [c.model_dump() for c in self.breakdown]


class RecomputeSummary(BaseModel):
    updated: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
