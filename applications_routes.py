"""
Applications API Routes

Program applications of the signed-in user. An application starts as a
DRAFT, can be edited or deleted while it is a draft, and is locked once
submitted. Admins see every application and move submitted ones through
review from the admin router.

A student can hold one application per program.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from db import get_db
from models import AcademicProfile, Application, EligibilityResult, Program
from models.enums import ApplicationStatus
from models.schemas import (
    ApplicationCreate,
    ApplicationOut,
    ApplicationPatch,
    EducationHistoryOut,
    ProgramRequirementOut,
    TestScoreOut,
)
from models.schemas_user import UserOut
from payments.routes import get_notifier
from utils.current_user import auth_user
from utils.errors import ConflictError, Forbidden, NotFound, ValidationError
from utils.notifications import Notifier

logger = logging.getLogger("applications")

router = APIRouter(prefix="/api/applications", tags=["applications"])

REQUIRED_ON_SUBMIT = (
    "program_name",
    "program_country",
    "first_name",
    "last_name",
    "date_of_birth",
    "place_of_birth",
    "nationality",
    "sex",
    "email",
    "phone",
    "address",
    "city",
    "country",
    "emergency_contact_name",
    "emergency_contact_phone",
    "emergency_contact_relation",
    "passport_number",
    "passport_issue_date",
    "passport_expiry_date",
    "passport_issue_country",
)

_JSON_DEFAULTS = {"education": list, "work_experience": list, "documents": dict}


def _column_values(payload) -> dict:
    data = payload.changes()
    for field, empty in _JSON_DEFAULTS.items():
        if field in data:
            data[field] = payload.model_dump(mode="json", include={field})[field] or empty()
    return data


def load_application(db: Session, application_id: str) -> Application:
    application = db.get(Application, application_id)
    if application is None:
        raise NotFound("Application not found")
    return application


def _visible(application: Application, current: UserOut) -> Application:
    if application.user_id != current.id and not current.is_admin:
        raise Forbidden("Not your application")
    return application


def _own_draft(db: Session, application_id: str, current: UserOut, action: str) -> Application:
    application = load_application(db, application_id)
    if application.user_id != current.id:
        raise Forbidden("Not your application")
    if application.status != ApplicationStatus.DRAFT.value:
        raise ConflictError(f"Only draft applications can be {action}")
    return application


def _check_complete(application: Application) -> None:
    missing = [field for field in REQUIRED_ON_SUBMIT if not getattr(application, field)]
    if missing:
        raise ValidationError(f"{missing[0]} is required", detail={"missing": missing})
    if not application.education:
        raise ValidationError("At least one education entry is required")
    if application.passport_expiry_date <= application.passport_issue_date:
        raise ValidationError("passport_expiry_date must be after passport_issue_date")


def _mark_submitted(application: Application) -> None:
    _check_complete(application)
    application.status = ApplicationStatus.SUBMITTED.value
    application.submitted_at = datetime.utcnow()


def _announce(notifier: Notifier, application: Application, current: UserOut) -> None:
    notifier.notify_admins(
        "New application submitted",
        f"New application for {application.program_name} from {current.email}",
        "/admin/applications",
        metadata={"applicationId": application.id},
    )


# ─────────────────────────────────────────────
# Listing
# ─────────────────────────────────────────────
@router.get("", response_model=list[ApplicationOut], summary="List applications")
def list_applications(
    status: Optional[ApplicationStatus] = Query(default=None),
    user_id: Optional[str] = Query(default=None, description="Admins only"),
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
):
    """Students see their own applications, admins see everyone's."""
    stmt = select(Application).order_by(Application.created_at.desc())
    if not current.is_admin:
        stmt = stmt.where(Application.user_id == current.id)
    elif user_id:
        stmt = stmt.where(Application.user_id == user_id)
    if status:
        stmt = stmt.where(Application.status == status.value)
    return list(db.scalars(stmt))


@router.get("/auto-fill", summary="Prefill an application from the academic profile")
def auto_fill(
    program_id: str = Query(...),
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
):
    """
    Build the starting values of an application to ``program_id`` from the
    program, the user's account and their academic profile. Nothing is
    written; the client posts the result back to create the draft.
    """
    program = db.scalars(
        select(Program).where(Program.id == program_id).options(selectinload(Program.requirement))
    ).first()
    if program is None or not program.is_active:
        raise NotFound("Program not found")

    profile = db.scalars(
        select(AcademicProfile)
        .where(AcademicProfile.user_id == current.id)
        .options(
            selectinload(AcademicProfile.education_history),
            selectinload(AcademicProfile.test_scores),
            selectinload(AcademicProfile.documents),
        )
    ).first()
    eligibility = db.scalars(
        select(EligibilityResult).where(
            EligibilityResult.user_id == current.id, EligibilityResult.program_id == program.id
        )
    ).first()
    existing = db.scalars(
        select(Application.id).where(Application.user_id == current.id, Application.program_id == program.id)
    ).first()

    first_name, _, last_name = (current.full_name or "").strip().partition(" ")
    application = {
        "program_id": program.id,
        "program_name": program.title,
        "program_country": program.country,
        "program_university": program.university,
        "first_name": first_name or None,
        "last_name": last_name.strip() or None,
        "email": current.email,
        "nationality": None,
        "current_education_level": None,
        "gpa": None,
        "education": [],
        "documents": {},
    }
    history, scores = [], []
    if profile is not None:
        application.update(
            nationality=profile.nationality,
            current_education_level=profile.current_education_level or profile.highest_education_level,
            gpa=profile.gpa,
            education=[
                {
                    "institution_name": entry.institution_name,
                    "education_level": entry.education_level,
                    "field_of_study": entry.field_of_study,
                    "start_date": entry.start_date.isoformat() if entry.start_date else None,
                    "end_date": entry.end_date.isoformat() if entry.end_date else None,
                    "graduated": entry.graduated,
                    "grade": entry.grade,
                }
                for entry in profile.education_history
            ],
            # latest upload wins when a type was uploaded twice
            documents={
                doc.document_type: doc.file_url
                for doc in sorted(profile.documents, key=lambda d: d.created_at)
            },
        )
        history = [EducationHistoryOut.model_validate(e) for e in profile.education_history]
        scores = [TestScoreOut.model_validate(s) for s in profile.test_scores]

    return {
        "application": application,
        "education_history": history,
        "test_scores": scores,
        "requirement": ProgramRequirementOut.model_validate(program.requirement) if program.requirement else None,
        "eligibility": {
            "is_eligible": eligibility.is_eligible,
            "score": eligibility.eligibility_score,
            "notes": eligibility.recommendation_notes,
        } if eligibility else None,
        "already_applied": existing is not None,
    }


@router.get("/{application_id}", response_model=ApplicationOut, summary="Fetch one application")
def get_application(application_id: str, current: UserOut = Depends(auth_user), db: Session = Depends(get_db)):
    return _visible(load_application(db, application_id), current)


# ─────────────────────────────────────────────
# Drafts
# ─────────────────────────────────────────────
@router.post("", response_model=ApplicationOut, status_code=201, summary="Create an application")
def create_application(
    payload: ApplicationCreate,
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    data = _column_values(payload)
    program_id = data.pop("program_id", None)
    submit = ApplicationStatus(data.pop("status", ApplicationStatus.DRAFT)) == ApplicationStatus.SUBMITTED

    if program_id:
        program = db.get(Program, program_id)
        if program is None or not program.is_active:
            raise NotFound("Program not found")
        duplicate = db.scalars(
            select(Application.id).where(Application.user_id == current.id, Application.program_id == program_id)
        ).first()
        if duplicate:
            raise ConflictError("You have already applied to this program")
        data["program_name"] = data.get("program_name") or program.title
        data["program_country"] = data.get("program_country") or program.country
        data["program_university"] = data.get("program_university") or program.university

    application = Application(
        user_id=current.id,
        program_id=program_id,
        status=ApplicationStatus.DRAFT.value,
        **data,
    )
    if submit:
        _mark_submitted(application)
    db.add(application)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("You have already applied to this program")
    db.refresh(application)
    logger.info("Application %s (%s) created by %s", application.id, application.status, current.id)

    if submit:
        _announce(notifier, application, current)
    return application


@router.patch("/{application_id}", response_model=ApplicationOut, summary="Edit a draft application")
def update_application(
    application_id: str,
    payload: ApplicationPatch,
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
):
    application = _own_draft(db, application_id, current, "edited")
    for field, value in _column_values(payload).items():
        setattr(application, field, value)
    if (
        application.passport_issue_date
        and application.passport_expiry_date
        and application.passport_expiry_date <= application.passport_issue_date
    ):
        raise ValidationError("passport_expiry_date must be after passport_issue_date")
    db.commit()
    db.refresh(application)
    return application


@router.post("/{application_id}/submit", response_model=ApplicationOut, summary="Submit a draft application")
def submit_application(
    application_id: str,
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    application = _own_draft(db, application_id, current, "submitted")
    _mark_submitted(application)
    db.commit()
    db.refresh(application)
    logger.info("Application %s submitted by %s", application.id, current.id)

    _announce(notifier, application, current)
    return application


@router.delete("/{application_id}", status_code=204, summary="Delete a draft application")
def delete_application(application_id: str, current: UserOut = Depends(auth_user), db: Session = Depends(get_db)):
    db.delete(_own_draft(db, application_id, current, "deleted"))
    db.commit()
