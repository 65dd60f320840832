"""
Eligibility API Routes

GET  /api/user/eligible-programs       stored results, best match first
POST /api/user/eligibility/recompute   explicit recomputation trigger
"""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from db import get_db
from models.schemas import AcademicProfileOut, EligibilityResultOut
from models.schemas_user import UserOut
from utils.current_user import auth_user
from .logic.runner import get_or_create_profile, list_results, recompute_eligibility


router = APIRouter(prefix="/api/user", tags=["eligibility"])


def _summary(results: List[EligibilityResultOut]) -> dict:
    return {
        "total": len(results),
        "eligible": sum(1 for r in results if r.is_eligible),
        "high_match": sum(1 for r in results if r.eligibility_score >= 80),
        "medium_match": sum(1 for r in results if 60 <= r.eligibility_score < 80),
        "low_match": sum(1 for r in results if r.eligibility_score < 60),
    }


@router.get("/eligible-programs", summary="List eligibility results")
def eligible_programs(
    only_eligible: bool = Query(default=False),
    min_score: int = Query(default=0, ge=0, le=100),
    recalculate: bool = Query(default=False),
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
):
    """
    Return the user's stored eligibility results ordered by score.
    Close matches (not eligible) are included unless ``only_eligible`` is set.
    """
    profile = get_or_create_profile(db, current.id)
    if recalculate:
        recompute_eligibility(db, current.id)
        db.commit()

    results = [EligibilityResultOut.model_validate(r) for r in list_results(db, current.id, only_eligible, min_score)]
    return {
        "eligibility": results,
        "profile": AcademicProfileOut.model_validate(profile),
        "summary": _summary(results),
    }


@router.post("/eligibility/recompute", summary="Recompute eligibility for every active program")
def recompute(current: UserOut = Depends(auth_user), db: Session = Depends(get_db)):
    summary = recompute_eligibility(db, current.id)
    db.commit()
    return summary.model_dump()
