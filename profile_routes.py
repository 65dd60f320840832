"""
Profile API Routes

Academic profile, education history, test scores and documents of the
signed-in user. The profile is created lazily on first access.

Every successful write recomputes the user's eligibility results in the same
transaction, so stale results are never served after a mutation.
"""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from db import get_db
from eligibility.logic.runner import get_or_create_profile, recompute_eligibility
from models import AcademicProfile, EducationHistoryEntry, TestScore, UserDocument
from models.schemas import (
    AcademicProfileOut,
    AcademicProfilePatch,
    DocumentCreate,
    DocumentOut,
    EducationHistoryCreate,
    EducationHistoryOut,
    EducationHistoryPatch,
    TestScoreCreate,
    TestScoreOut,
)
from models.schemas_user import UserOut
from utils.current_user import auth_user
from utils.errors import Forbidden, NotFound, ValidationError
from utils.storage import StorageError, mirror_to_r2, r2_configured

logger = logging.getLogger("profile")

router = APIRouter(prefix="/api/user", tags=["profile"])


def _commit_and_recompute(db: Session, user_id: str) -> None:
    db.flush()
    recompute_eligibility(db, user_id)
    db.commit()


def _owned(db: Session, model, item_id: str, profile: AcademicProfile):
    item = db.get(model, item_id)
    if item is None:
        raise NotFound(f"{model.__name__} not found")
    if item.profile_id != profile.id:
        raise Forbidden("Not your record")
    return item


# ─────────────────────────────────────────────
# Academic profile
# ─────────────────────────────────────────────
@router.get("/academic-profile", response_model=AcademicProfileOut, summary="Fetch academic profile")
def get_academic_profile(current: UserOut = Depends(auth_user), db: Session = Depends(get_db)):
    profile = get_or_create_profile(db, current.id)
    db.commit()
    return profile


@router.patch("/academic-profile", response_model=AcademicProfileOut, summary="Update academic profile")
def update_academic_profile(
    payload: AcademicProfilePatch,
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
):
    """Only fields declared on AcademicProfilePatch can be written."""
    profile = get_or_create_profile(db, current.id)
    for field, value in payload.changes().items():
        if field == "preferred_countries" and value is None:
            value = []
        setattr(profile, field, value)
    _commit_and_recompute(db, current.id)
    return get_or_create_profile(db, current.id)


# ─────────────────────────────────────────────
# Education history
# ─────────────────────────────────────────────
@router.get("/education-history", response_model=list[EducationHistoryOut])
def list_education_history(current: UserOut = Depends(auth_user), db: Session = Depends(get_db)):
    profile = get_or_create_profile(db, current.id)
    db.commit()
    return profile.education_history


@router.post("/education-history", response_model=EducationHistoryOut, status_code=201)
def add_education_history(
    payload: EducationHistoryCreate,
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
):
    profile = get_or_create_profile(db, current.id)
    entry = EducationHistoryEntry(profile_id=profile.id, **payload.changes())
    db.add(entry)
    _commit_and_recompute(db, current.id)
    db.refresh(entry)
    return entry


@router.patch("/education-history/{entry_id}", response_model=EducationHistoryOut)
def update_education_history(
    entry_id: str,
    payload: EducationHistoryPatch,
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
):
    profile = get_or_create_profile(db, current.id)
    entry = _owned(db, EducationHistoryEntry, entry_id, profile)
    for field, value in payload.changes().items():
        setattr(entry, field, value)
    if entry.start_date and entry.end_date and entry.end_date < entry.start_date:
        raise ValidationError("end_date must not be before start_date")
    _commit_and_recompute(db, current.id)
    db.refresh(entry)
    return entry


@router.delete("/education-history/{entry_id}", status_code=204)
def delete_education_history(entry_id: str, current: UserOut = Depends(auth_user), db: Session = Depends(get_db)):
    profile = get_or_create_profile(db, current.id)
    db.delete(_owned(db, EducationHistoryEntry, entry_id, profile))
    _commit_and_recompute(db, current.id)


# ─────────────────────────────────────────────
# Test scores
# ─────────────────────────────────────────────
@router.get("/test-scores", response_model=list[TestScoreOut])
def list_test_scores(current: UserOut = Depends(auth_user), db: Session = Depends(get_db)):
    profile = get_or_create_profile(db, current.id)
    db.commit()
    return profile.test_scores


@router.post("/test-scores", response_model=TestScoreOut, status_code=201)
def add_test_score(payload: TestScoreCreate, current: UserOut = Depends(auth_user), db: Session = Depends(get_db)):
    profile = get_or_create_profile(db, current.id)
    score = TestScore(profile_id=profile.id, **payload.changes())
    db.add(score)
    _commit_and_recompute(db, current.id)
    db.refresh(score)
    return score


@router.delete("/test-scores/{score_id}", status_code=204)
def delete_test_score(score_id: str, current: UserOut = Depends(auth_user), db: Session = Depends(get_db)):
    profile = get_or_create_profile(db, current.id)
    db.delete(_owned(db, TestScore, score_id, profile))
    _commit_and_recompute(db, current.id)


# ─────────────────────────────────────────────
# Documents
# ─────────────────────────────────────────────
@router.get("/documents", response_model=list[DocumentOut])
def list_documents(current: UserOut = Depends(auth_user), db: Session = Depends(get_db)):
    profile = get_or_create_profile(db, current.id)
    db.commit()
    return profile.documents


@router.post("/documents", response_model=DocumentOut, status_code=201)
def add_document(payload: DocumentCreate, current: UserOut = Depends(auth_user), db: Session = Depends(get_db)):
    """
    Register an uploaded document. When R2 is configured the file is copied
    into our bucket; if the copy fails the original URL is kept.
    """
    profile = get_or_create_profile(db, current.id)
    data = payload.changes()

    if r2_configured():
        try:
            data["file_url"] = mirror_to_r2(data["file_url"], key_prefix=f"documents/{current.id}/")
        except StorageError as e:
            logger.error("Document mirror failed for user %s: %s", current.id, e)

    document = UserDocument(profile_id=profile.id, **data)
    db.add(document)
    _commit_and_recompute(db, current.id)
    db.refresh(document)
    return document


@router.delete("/documents/{document_id}", status_code=204)
def delete_document(document_id: str, current: UserOut = Depends(auth_user), db: Session = Depends(get_db)):
    profile = get_or_create_profile(db, current.id)
    db.delete(_owned(db, UserDocument, document_id, profile))
    _commit_and_recompute(db, current.id)
