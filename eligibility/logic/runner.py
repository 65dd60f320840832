"""
Eligibility Runner

Orchestrates one recomputation pass for a user:
1. Locks and loads the academic profile
2. Builds the snapshot and program criteria via the adapter
3. Runs the calculator for every active program
4. Upserts EligibilityResult rows and removes stale ones

Results are flushed, not committed. The caller owns the transaction.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.orm import Session, selectinload

from models import AcademicProfile, EligibilityResult, Program
from utils.errors import NotFound
from .adapter import build_snapshot, fetch_active_programs, split_criteria
from .calculator import evaluate_all
from .contracts import EligibilityConfig, EligibilityOutcome, RecomputeSummary

logger = logging.getLogger("eligibility")


def get_or_create_profile(db: Session, user_id: str) -> AcademicProfile:
    """Profiles are created lazily on first access or first write."""
    profile = db.scalars(select(AcademicProfile).where(AcademicProfile.user_id == user_id)).first()
    if profile is None:
        profile = AcademicProfile(user_id=user_id, preferred_countries=[])
        db.add(profile)
        db.flush()
        logger.info("Created academic profile for user %s", user_id)
    return profile


def _load_profile_for_update(db: Session, user_id: str) -> Optional[AcademicProfile]:
    stmt = (
        select(AcademicProfile)
        .where(AcademicProfile.user_id == user_id)
        .options(
            selectinload(AcademicProfile.education_history),
            selectinload(AcademicProfile.test_scores),
            selectinload(AcademicProfile.documents),
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.scalars(stmt).first()


def _same_content(row: EligibilityResult, outcome: EligibilityOutcome) -> bool:
    return (
        row.eligibility_score == outcome.eligibility_score
        and row.is_eligible == outcome.is_eligible
        and row.breakdown == outcome.breakdown_rows()
        and row.recommendation_notes == outcome.recommendation_notes
    )


def recompute_eligibility(
    db: Session,
    user_id: str,
    now: Optional[datetime] = None,
    config: Optional[EligibilityConfig] = None,
) -> RecomputeSummary:
    """
    Recompute every active program's EligibilityResult for ``user_id``.

    Malformed programs are skipped and reported, never raised. Rows whose
    content did not change are left untouched, so running this twice with
    the same inputs leaves identical rows.

    Raises:
        NotFound: the user has no academic profile
    """
    now = now or datetime.utcnow()
    db.flush()

    profile = _load_profile_for_update(db, user_id)
    if profile is None:
        raise NotFound("profile not found")

    snapshot = build_snapshot(profile)
    criteria, malformed = split_criteria(fetch_active_programs(db))
    for program_id, reason in malformed:
        logger.warning("Skipping program %s for user %s: %s", program_id, user_id, reason)

    outcomes = evaluate_all(snapshot, criteria, now.date(), config)

    existing = {
        r.program_id: r
        for r in db.scalars(select(EligibilityResult).where(EligibilityResult.user_id == user_id))
    }

    updated: List[str] = []
    for outcome in outcomes:
        row = existing.get(outcome.program_id)
        if row is None:
            db.add(EligibilityResult(
                user_id=user_id,
                program_id=outcome.program_id,
                eligibility_score=outcome.eligibility_score,
                is_eligible=outcome.is_eligible,
                breakdown=outcome.breakdown_rows(),
                recommendation_notes=outcome.recommendation_notes,
                last_calculated_at=now,
            ))
        elif not _same_content(row, outcome):
            row.eligibility_score = outcome.eligibility_score
            row.is_eligible = outcome.is_eligible
            row.breakdown = outcome.breakdown_rows()
            row.recommendation_notes = outcome.recommendation_notes
            row.last_calculated_at = now
        updated.append(outcome.program_id)

    # Skipped, inactive and deleted programs must not keep a stale result
    current_ids = set(updated)
    stale_ids = [pid for pid in existing if pid not in current_ids]
    if stale_ids:
        db.execute(
            delete(EligibilityResult)
            .where(EligibilityResult.user_id == user_id, EligibilityResult.program_id.in_(stale_ids))
            .execution_options(synchronize_session="fetch")
        )

    db.flush()
    skipped = [pid for pid, _ in malformed]
    logger.info(
        "Recomputed eligibility for user %s: %d updated, %d skipped, %d removed",
        user_id, len(updated), len(skipped), len(stale_ids),
    )
    return RecomputeSummary(updated=updated, skipped=skipped)


def list_results(db: Session, user_id: str, eligible_only: bool = False, min_score: int = 0) -> List[EligibilityResult]:
    stmt = (
        select(EligibilityResult)
        .join(Program, Program.id == EligibilityResult.program_id)
        .where(EligibilityResult.user_id == user_id, Program.is_active.is_(True))
        .options(selectinload(EligibilityResult.program))
        .order_by(EligibilityResult.eligibility_score.desc(), Program.title)
    )
    if eligible_only:
        stmt = stmt.where(EligibilityResult.is_eligible.is_(True))
    if min_score > 0:
        stmt = stmt.where(EligibilityResult.eligibility_score >= min_score)
    return list(db.scalars(stmt))


def recompute_for_all_users(db: Session, now: Optional[datetime] = None) -> int:
    """Used after a program or its requirements change. Returns the number of users recomputed."""
    user_ids = list(db.scalars(select(AcademicProfile.user_id)))
    for user_id in user_ids:
        recompute_eligibility(db, user_id, now=now)
    return len(user_ids)
