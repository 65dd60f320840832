"""
Request/response schemas for the REST API.

Patch models are allow-lists: only the fields declared here can be written,
anything else in the body is rejected with a 422.
"""

import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from models.enums import (
    ApplicationStatus,
    DocumentType,
    EducationLevel,
    GradingSystem,
    OrderKind,
    TestType,
)


class PatchModel(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class OutModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# ACADEMIC PROFILE
# =============================================================================

class AcademicProfilePatch(PatchModel):
    current_education_level: Optional[EducationLevel] = None
    highest_education_level: Optional[EducationLevel] = None
    intended_study_level: Optional[EducationLevel] = None
    field_of_study: Optional[str] = Field(default=None, max_length=255)
    preferred_countries: Optional[List[str]] = None
    nationality: Optional[str] = Field(default=None, max_length=64)
    gpa: Optional[str] = Field(default=None, max_length=32)
    grading_system: Optional[GradingSystem] = None
    institution_name: Optional[str] = Field(default=None, max_length=255)

    @field_validator("preferred_countries")
    @classmethod
    def _strip_countries(cls, value):
        if value is None:
            return value
        return [c.strip() for c in value if c and c.strip()]


class EducationHistoryCreate(PatchModel):
    education_level: EducationLevel
    institution_name: str = Field(min_length=1, max_length=255)
    field_of_study: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    graduated: bool = False
    grade: Optional[str] = Field(default=None, max_length=32)

    @model_validator(mode="after")
    def _check_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class EducationHistoryPatch(PatchModel):
    education_level: Optional[EducationLevel] = None
    institution_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    field_of_study: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    graduated: Optional[bool] = None
    grade: Optional[str] = Field(default=None, max_length=32)


class EducationHistoryOut(OutModel):
    id: str
    education_level: str
    institution_name: str
    field_of_study: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    graduated: bool
    grade: Optional[str] = None


class TestScoreCreate(PatchModel):
    __test__ = False

    test_type: TestType
    test_date: Optional[date] = None
    expiry_date: Optional[date] = None
    overall_score: Optional[str] = Field(default=None, max_length=16)
    reading_score: Optional[str] = None
    writing_score: Optional[str] = None
    listening_score: Optional[str] = None
    speaking_score: Optional[str] = None
    quantitative_score: Optional[str] = None
    verbal_score: Optional[str] = None
    analytical_writing: Optional[str] = None
    score_document_url: Optional[str] = None

    @field_validator(
        "overall_score", "reading_score", "writing_score", "listening_score", "speaking_score",
        "quantitative_score", "verbal_score", "analytical_writing",
        mode="before",
    )
    @classmethod
    def _numeric_score(cls, value):
        if value is None or isinstance(value, bool):
            return value
        text = str(value).strip()
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            raise ValueError("score must be a number")
        if not math.isfinite(float(number)) or number < 0:
            raise ValueError("score must be a finite, non-negative number")
        return text


class TestScoreOut(OutModel):
    __test__ = False

    id: str
    test_type: str
    test_date: Optional[date] = None
    expiry_date: Optional[date] = None
    overall_score: Optional[str] = None
    reading_score: Optional[str] = None
    writing_score: Optional[str] = None
    listening_score: Optional[str] = None
    speaking_score: Optional[str] = None


class DocumentCreate(PatchModel):
    document_type: DocumentType
    file_url: str = Field(min_length=1)
    file_name: Optional[str] = None


class DocumentOut(OutModel):
    id: str
    document_type: str
    file_name: Optional[str] = None
    file_url: str
    is_verified: bool
    verified_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    created_at: datetime


class DocumentReview(PatchModel):
    is_verified: bool
    review_notes: Optional[str] = None


class AcademicProfileOut(OutModel):
    id: str
    user_id: str
    current_education_level: Optional[str] = None
    highest_education_level: Optional[str] = None
    intended_study_level: Optional[str] = None
    field_of_study: Optional[str] = None
    preferred_countries: List[str] = Field(default_factory=list)
    nationality: Optional[str] = None
    gpa: Optional[str] = None
    grading_system: Optional[str] = None
    institution_name: Optional[str] = None
    education_history: List[EducationHistoryOut] = Field(default_factory=list)
    test_scores: List[TestScoreOut] = Field(default_factory=list)
    documents: List[DocumentOut] = Field(default_factory=list)


# =============================================================================
# PROGRAMS
# =============================================================================

class TestRequirementIn(BaseModel):
    __test__ = False
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    test_type: TestType
    minimum_score: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    required: bool = False

    @model_validator(mode="after")
    def _required_needs_threshold(self):
        if self.required and self.minimum_score is None:
            raise ValueError(f"{self.test_type} is required but has no minimum_score")
        return self


class ProgramRequirementIn(PatchModel):
    minimum_education_level: Optional[EducationLevel] = None
    test_requirements: List[TestRequirementIn] = Field(default_factory=list)
    minimum_gpa: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    required_documents: List[DocumentType] = Field(default_factory=list)
    accepted_fields: List[str] = Field(default_factory=list)
    eligible_nationalities: List[str] = Field(default_factory=list)
    work_experience_required: bool = False
    minimum_work_experience_years: Optional[int] = Field(default=None, ge=0)
    additional_requirements: Optional[str] = None


class ProgramCreate(PatchModel):
    title: str = Field(min_length=1, max_length=255)
    university: Optional[str] = None
    country: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True
    requirement: Optional[ProgramRequirementIn] = None


class ProgramPatch(PatchModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    university: Optional[str] = None
    country: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class ProgramRequirementOut(OutModel):
    minimum_education_level: Optional[str] = None
    test_requirements: List[Dict[str, Any]] = Field(default_factory=list)
    minimum_gpa: Optional[str] = None
    required_documents: List[str] = Field(default_factory=list)
    accepted_fields: List[str] = Field(default_factory=list)
    eligible_nationalities: List[str] = Field(default_factory=list)
    work_experience_required: bool = False
    minimum_work_experience_years: Optional[int] = None
    additional_requirements: Optional[str] = None


class ProgramOut(OutModel):
    id: str
    title: str
    university: Optional[str] = None
    country: Optional[str] = None
    description: Optional[str] = None
    is_active: bool
    requirement: Optional[ProgramRequirementOut] = None


class ProgramSummary(OutModel):
    id: str
    title: str
    university: Optional[str] = None
    country: Optional[str] = None


class EligibilityResultOut(OutModel):
    program_id: str
    program: Optional[ProgramSummary] = None
    eligibility_score: int
    is_eligible: bool
    breakdown: List[Dict[str, Any]] = Field(default_factory=list)
    recommendation_notes: Optional[str] = None
    last_calculated_at: datetime


# =============================================================================
# ORDERS
# =============================================================================

class OrderCreate(PatchModel):
    kind: OrderKind
    title: str = Field(min_length=1, max_length=255)
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    currency: str = Field(default="GHS", min_length=3, max_length=3)
    contact_email: Optional[EmailStr] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class OrderOut(OutModel):
    id: str
    kind: str
    title: str
    amount: Decimal
    currency: str
    payment_status: str
    status: str
    payment_reference: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class OrderCancel(PatchModel):
    reason: Optional[str] = None


# =============================================================================
# APPLICATIONS
# =============================================================================

class ApplicationEducation(PatchModel):
    institution_name: str = Field(min_length=1, max_length=255)
    education_level: Optional[EducationLevel] = None
    field_of_study: Optional[str] = None
    country: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    graduated: bool = False
    grade: Optional[str] = None


class ApplicationFields(PatchModel):
    program_name: Optional[str] = Field(default=None, max_length=255)
    program_country: Optional[str] = Field(default=None, max_length=64)
    program_university: Optional[str] = Field(default=None, max_length=255)

    first_name: Optional[str] = Field(default=None, max_length=128)
    middle_name: Optional[str] = Field(default=None, max_length=128)
    last_name: Optional[str] = Field(default=None, max_length=128)
    date_of_birth: Optional[date] = None
    place_of_birth: Optional[str] = Field(default=None, max_length=128)
    nationality: Optional[str] = Field(default=None, max_length=64)
    sex: Optional[str] = Field(default=None, max_length=16)

    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=32)
    address: Optional[str] = None
    city: Optional[str] = Field(default=None, max_length=128)
    country: Optional[str] = Field(default=None, max_length=64)
    emergency_contact_name: Optional[str] = Field(default=None, max_length=255)
    emergency_contact_phone: Optional[str] = Field(default=None, max_length=32)
    emergency_contact_relation: Optional[str] = Field(default=None, max_length=64)

    passport_number: Optional[str] = Field(default=None, max_length=64)
    passport_issue_date: Optional[date] = None
    passport_expiry_date: Optional[date] = None
    passport_issue_country: Optional[str] = Field(default=None, max_length=64)

    current_education_level: Optional[EducationLevel] = None
    gpa: Optional[str] = Field(default=None, max_length=32)
    education: Optional[List[ApplicationEducation]] = None
    work_experience: Optional[List[Dict[str, Any]]] = None
    motivation: Optional[str] = None
    documents: Optional[Dict[DocumentType, str]] = None

    @model_validator(mode="after")
    def _passport_dates(self):
        if self.passport_issue_date and self.passport_expiry_date and self.passport_expiry_date <= self.passport_issue_date:
            raise ValueError("passport_expiry_date must be after passport_issue_date")
        return self


class ApplicationCreate(ApplicationFields):
    program_id: Optional[str] = None
    status: ApplicationStatus = ApplicationStatus.DRAFT

    @field_validator("status")
    @classmethod
    def _draft_or_submitted(cls, value):
        if value not in (ApplicationStatus.DRAFT, ApplicationStatus.SUBMITTED):
            raise ValueError("new applications are DRAFT or SUBMITTED")
        return value


class ApplicationPatch(ApplicationFields):
    pass


class ApplicationReview(PatchModel):
    status: ApplicationStatus
    review_notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def _review_status(cls, value):
        if value in (ApplicationStatus.DRAFT, ApplicationStatus.SUBMITTED):
            raise ValueError("status must be UNDER_REVIEW, ACCEPTED or REJECTED")
        return value


class ApplicationOut(OutModel):
    id: str
    user_id: str
    program_id: Optional[str] = None
    status: str
    program_name: str
    program_country: Optional[str] = None
    program_university: Optional[str] = None
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    place_of_birth: Optional[str] = None
    nationality: Optional[str] = None
    sex: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relation: Optional[str] = None
    passport_number: Optional[str] = None
    passport_issue_date: Optional[date] = None
    passport_expiry_date: Optional[date] = None
    passport_issue_country: Optional[str] = None
    current_education_level: Optional[str] = None
    gpa: Optional[str] = None
    education: List[Dict[str, Any]] = Field(default_factory=list)
    work_experience: List[Dict[str, Any]] = Field(default_factory=list)
    motivation: Optional[str] = None
    documents: Dict[str, str] = Field(default_factory=dict)
    review_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class NotificationOut(OutModel):
    id: str
    kind: str
    title: str
    message: str
    action_url: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict, serialization_alias="metadata")
    is_read: bool
    created_at: datetime


class NotificationPatch(PatchModel):
    is_read: bool
