"""
Admin API Routes

Program catalog management, document and application review, user accounts
and dashboard counters.
Every endpoint requires an admin token.

Changing a program or its requirements recomputes eligibility for every
user with an academic profile, so stored results never go stale.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from applications_routes import load_application
from db import get_db
from eligibility.logic.runner import recompute_for_all_users
from models import AcademicProfile, Application, Order, Program, ProgramRequirement, User, UserDocument
from models.enums import ApplicationStatus, DocumentType, NotificationKind, OrderStatus, PaymentStatus
from models.models_user import ROLE_STUDENT
from models.schemas import (
    ApplicationOut,
    ApplicationReview,
    DocumentOut,
    DocumentReview,
    ProgramCreate,
    ProgramOut,
    ProgramPatch,
    ProgramRequirementIn,
)
from models.schemas_user import AdminUserCreate, UserOut, UserStatusPatch
from payments.routes import get_notifier
from utils.auth_utils import hash_password
from utils.crud_user import create_user, get_user_by_email
from utils.current_user import admin_user
from utils.errors import ConflictError, NotFound, ValidationError
from utils.notifications import Notifier

logger = logging.getLogger("admin")

router = APIRouter(prefix="/api/admin", tags=["admin"])
catalog_router = APIRouter(prefix="/api/programs", tags=["programs"])

REVIEWABLE = {ApplicationStatus.SUBMITTED.value, ApplicationStatus.UNDER_REVIEW.value}


def _requirement_row(payload: ProgramRequirementIn, row: Optional[ProgramRequirement] = None) -> ProgramRequirement:
    data = payload.model_dump()
    if data["minimum_gpa"] is not None:
        data["minimum_gpa"] = str(data["minimum_gpa"])
    row = row or ProgramRequirement()
    for field, value in data.items():
        setattr(row, field, value)
    return row


def _load_program(db: Session, program_id: str) -> Program:
    program = db.scalars(
        select(Program).where(Program.id == program_id).options(selectinload(Program.requirement))
    ).first()
    if program is None:
        raise NotFound("Program not found")
    return program


def _refresh_results(db: Session, program: Program) -> None:
    db.flush()
    count = recompute_for_all_users(db)
    db.commit()
    logger.info("Program %s changed, eligibility recomputed for %d users", program.id, count)


# ─────────────────────────────────────────────
# Public catalog
# ─────────────────────────────────────────────
@catalog_router.get("", response_model=list[ProgramOut], summary="List active programs")
def list_programs(
    country: Optional[str] = Query(default=None),
    q: Optional[str] = Query(default=None, description="Search title or university"),
    db: Session = Depends(get_db),
):
    stmt = (
        select(Program)
        .where(Program.is_active.is_(True))
        .options(selectinload(Program.requirement))
        .order_by(Program.title)
    )
    if country:
        stmt = stmt.where(func.lower(Program.country) == country.strip().lower())
    if q:
        like = f"%{q.strip().lower()}%"
        stmt = stmt.where(func.lower(Program.title).like(like) | func.lower(Program.university).like(like))
    return list(db.scalars(stmt))


@catalog_router.get("/{program_id}", response_model=ProgramOut, summary="Fetch one program")
def get_program(program_id: str, db: Session = Depends(get_db)):
    program = _load_program(db, program_id)
    if not program.is_active:
        raise NotFound("Program not found")
    return program


# ─────────────────────────────────────────────
# Programs
# ─────────────────────────────────────────────
@router.post("/programs", response_model=ProgramOut, status_code=201, summary="Create program")
def create_program(payload: ProgramCreate, admin: UserOut = Depends(admin_user), db: Session = Depends(get_db)):
    data = payload.changes()
    data.pop("requirement", None)
    program = Program(**data)
    if payload.requirement is not None:
        program.requirement = _requirement_row(payload.requirement)
    db.add(program)
    _refresh_results(db, program)
    logger.info("Admin %s created program %s", admin.id, program.id)
    return _load_program(db, program.id)


@router.patch("/programs/{program_id}", response_model=ProgramOut, summary="Update program")
def update_program(
    program_id: str,
    payload: ProgramPatch,
    admin: UserOut = Depends(admin_user),
    db: Session = Depends(get_db),
):
    program = _load_program(db, program_id)
    for field, value in payload.changes().items():
        setattr(program, field, value)
    _refresh_results(db, program)
    return _load_program(db, program_id)


@router.put("/programs/{program_id}/requirements", response_model=ProgramOut, summary="Replace program requirements")
def put_requirements(
    program_id: str,
    payload: ProgramRequirementIn,
    admin: UserOut = Depends(admin_user),
    db: Session = Depends(get_db),
):
    program = _load_program(db, program_id)
    program.requirement = _requirement_row(payload, program.requirement)
    _refresh_results(db, program)
    return _load_program(db, program_id)


# ─────────────────────────────────────────────
# Documents
# ─────────────────────────────────────────────
@router.get("/documents", summary="List uploaded documents for review")
def list_documents(
    status: Optional[str] = Query(default=None, pattern="^(verified|pending)$"),
    document_type: Optional[DocumentType] = Query(default=None),
    admin: UserOut = Depends(admin_user),
    db: Session = Depends(get_db),
):
    stmt = select(UserDocument).order_by(UserDocument.created_at.desc())
    if status == "verified":
        stmt = stmt.where(UserDocument.is_verified.is_(True))
    elif status == "pending":
        stmt = stmt.where(UserDocument.is_verified.is_(False))
    if document_type:
        stmt = stmt.where(UserDocument.document_type == document_type.value)

    documents = [DocumentOut.model_validate(d) for d in db.scalars(stmt)]
    verified = db.scalar(select(func.count()).select_from(UserDocument).where(UserDocument.is_verified.is_(True)))
    total = db.scalar(select(func.count()).select_from(UserDocument))
    return {
        "documents": documents,
        "stats": {"total": total, "verified": verified, "pending": total - verified},
    }


@router.patch("/documents/{document_id}", response_model=DocumentOut, summary="Verify or reject a document")
def review_document(
    document_id: str,
    payload: DocumentReview,
    admin: UserOut = Depends(admin_user),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    document = db.get(UserDocument, document_id)
    if document is None:
        raise NotFound("Document not found")

    document.is_verified = payload.is_verified
    document.review_notes = payload.review_notes
    if payload.is_verified:
        document.verified_by = admin.id
        document.verified_at = datetime.utcnow()
    else:
        document.verified_by = None
        document.verified_at = None
    owner_id = document.profile.user_id
    db.commit()
    db.refresh(document)
    logger.info("Admin %s marked document %s verified=%s", admin.id, document.id, payload.is_verified)

    label = document.document_type.replace("_", " ").title()
    if payload.is_verified:
        message = f"Your {label} has been verified."
    else:
        message = f"Your {label} could not be verified." + (f" {payload.review_notes}" if payload.review_notes else "")
    notifier.notify_user(
        owner_id,
        NotificationKind.DOCUMENT_VERIFIED.value,
        "Document reviewed",
        message,
        action_url="/profile/documents",
        metadata={"documentId": document.id, "isVerified": payload.is_verified},
    )
    return document


# ─────────────────────────────────────────────
# Dashboard
# ─────────────────────────────────────────────
@router.get("/stats", summary="Dashboard counters")
def stats(admin: UserOut = Depends(admin_user), db: Session = Depends(get_db)):
    def count(stmt):
        return db.scalar(stmt) or 0

    orders_by_status = dict(db.execute(select(Order.status, func.count()).group_by(Order.status)).all())
    orders_by_kind = dict(db.execute(select(Order.kind, func.count()).group_by(Order.kind)).all())
    revenue = {
        currency: f"{total:.2f}"
        for currency, total in db.execute(
            select(Order.currency, func.sum(Order.amount))
            .where(Order.payment_status == PaymentStatus.PAID.value)
            .group_by(Order.currency)
        ).all()
    }

    return {
        "stats": {
            "total_students": count(select(func.count()).select_from(User).where(User.role == ROLE_STUDENT)),
            "academic_profiles": count(select(func.count()).select_from(AcademicProfile)),
            "active_programs": count(select(func.count()).select_from(Program).where(Program.is_active.is_(True))),
            "pending_documents": count(
                select(func.count()).select_from(UserDocument).where(UserDocument.is_verified.is_(False))
            ),
            "applications_awaiting_review": count(
                select(func.count()).select_from(Application).where(Application.status.in_(REVIEWABLE))
            ),
            "total_orders": sum(orders_by_status.values()),
            "pending_orders": orders_by_status.get(OrderStatus.PENDING.value, 0),
            "confirmed_orders": orders_by_status.get(OrderStatus.CONFIRMED.value, 0),
            "cancelled_orders": orders_by_status.get(OrderStatus.CANCELLED.value, 0),
        },
        "orders_by_kind": orders_by_kind,
        "revenue": revenue,
    }


# ─────────────────────────────────────────────
# Applications
# ─────────────────────────────────────────────

@router.patch("/applications/{application_id}/status", response_model=ApplicationOut, summary="Review an application")
def review_application(
    application_id: str,
    payload: ApplicationReview,
    admin: UserOut = Depends(admin_user),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Move a submitted application to UNDER_REVIEW, ACCEPTED or REJECTED and tell the student."""
    application = load_application(db, application_id)
    if application.status not in REVIEWABLE:
        raise ConflictError(f"A {application.status} application cannot be reviewed")

    application.status = payload.status
    application.review_notes = payload.review_notes
    application.reviewed_by = admin.id
    application.reviewed_at = datetime.utcnow()
    db.commit()
    db.refresh(application)
    logger.info("Admin %s set application %s to %s", admin.id, application.id, application.status)

    label = application.status.replace("_", " ").lower()
    message = f"Your application for {application.program_name} is now {label}."
    if payload.review_notes:
        message += f" {payload.review_notes}"
    notifier.notify_user(
        application.user_id,
        NotificationKind.APPLICATION_STATUS_CHANGE.value,
        "Application update",
        message,
        action_url=f"/profile/applications/{application.id}",
        metadata={"applicationId": application.id, "status": application.status},
    )
    return application


# ─────────────────────────────────────────────
# Users
# ─────────────────────────────────────────────
@router.get("/users", response_model=list[UserOut], summary="List user accounts")
def list_users(
    role: Optional[str] = Query(default=None, pattern="^(student|admin)$"),
    is_active: Optional[bool] = Query(default=None),
    q: Optional[str] = Query(default=None, description="Search email or name"),
    admin: UserOut = Depends(admin_user),
    db: Session = Depends(get_db),
):
    stmt = select(User).order_by(User.created_at.desc())
    if role:
        stmt = stmt.where(User.role == role)
    if is_active is not None:
        stmt = stmt.where(User.is_active.is_(is_active))
    if q:
        like = f"%{q.strip().lower()}%"
        stmt = stmt.where(func.lower(User.email).like(like) | func.lower(User.full_name).like(like))
    return list(db.scalars(stmt))


@router.post("/users", response_model=UserOut, status_code=201, summary="Create an account")
def create_account(payload: AdminUserCreate, admin: UserOut = Depends(admin_user), db: Session = Depends(get_db)):
    """Accounts created here skip the OTP step and can log in straight away."""
    if get_user_by_email(db, payload.email):
        raise ConflictError("A user with this email already exists")
    user = create_user(
        db,
        email=payload.email,
        full_name=payload.full_name,
        role=payload.role,
        password_hash=hash_password(payload.password),
    )
    user.is_verified = True
    db.commit()
    db.refresh(user)
    logger.info("Admin %s created %s account %s", admin.id, user.role, user.id)
    return user


@router.patch("/users/{user_id}/toggle", response_model=UserOut, summary="Enable or disable an account")
def toggle_user(
    user_id: str,
    payload: Optional[UserStatusPatch] = None,
    admin: UserOut = Depends(admin_user),
    db: Session = Depends(get_db),
):
    """Sets ``is_active`` when given, flips it otherwise. Disabled accounts cannot log in or use tokens."""
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    target = payload.is_active if payload and payload.is_active is not None else not user.is_active
    if user.id == admin.id and not target:
        raise ValidationError("You cannot deactivate your own account")

    user.is_active = target
    db.commit()
    db.refresh(user)
    logger.info("Admin %s set user %s is_active=%s", admin.id, user.id, user.is_active)
    return user
