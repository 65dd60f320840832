"""
Test eligibility recomputation against the database.
"""

from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import select

from conftest import make_profile, make_program
from eligibility.logic import recompute_eligibility
from models import EducationHistoryEntry, EligibilityResult, TestScore, UserDocument
from utils.errors import NotFound

NOW = datetime(2026, 3, 1, 9, 30)


def _results(db, user_id):
    db.expire_all()
    rows = db.scalars(select(EligibilityResult).where(EligibilityResult.user_id == user_id)).all()
    return {r.program_id: r for r in rows}


def _row_tuple(row):
    return (
        row.program_id,
        row.eligibility_score,
        row.is_eligible,
        row.breakdown,
        row.recommendation_notes,
        row.last_calculated_at,
    )


def test_unknown_profile_raises_not_found(db, student):
    with pytest.raises(NotFound):
        recompute_eligibility(db, student.id, now=NOW)


def test_expired_ielts_scenario_is_persisted(db, student):
    profile = make_profile(db, student)
    db.add(EducationHistoryEntry(
        profile_id=profile.id, education_level="UNDERGRADUATE", institution_name="KNUST", graduated=True,
    ))
    db.add(TestScore(profile_id=profile.id, test_type="IELTS", overall_score="7.0", expiry_date=NOW.date() - timedelta(days=1)))
    program = make_program(
        db,
        minimum_education_level="UNDERGRADUATE",
        test_requirements=[{"test_type": "IELTS", "minimum_score": 6.0, "required": True}],
    )
    db.commit()

    summary = recompute_eligibility(db, student.id, now=NOW)
    db.commit()

    assert summary.updated == [program.id]
    assert summary.skipped == []
    row = _results(db, student.id)[program.id]
    assert row.is_eligible is False
    assert row.eligibility_score == 58
    assert [c["check"] for c in row.breakdown if c["met"]] == ["education_level"]


def test_recompute_twice_leaves_rows_identical(db, student):
    profile = make_profile(db, student, highest_education_level="MASTERS", nationality="Ghanaian")
    db.add(UserDocument(profile_id=profile.id, document_type="PASSPORT_COPY", file_url="https://files.example/p.pdf"))
    db.commit()
    make_program(db, title="MBA", minimum_education_level="UNDERGRADUATE", required_documents=["PASSPORT_COPY", "CV_RESUME"])
    make_program(db, title="PhD Physics", minimum_education_level="MASTERS", eligible_nationalities=["Nigerian"])

    recompute_eligibility(db, student.id, now=NOW)
    db.commit()
    first = sorted(_row_tuple(r) for r in _results(db, student.id).values())

    recompute_eligibility(db, student.id, now=NOW + timedelta(hours=5))
    db.commit()
    second = sorted(_row_tuple(r) for r in _results(db, student.id).values())

    assert len(first) == 2
    assert first == second


def test_changed_input_updates_the_row(db, student):
    profile = make_profile(db, student, highest_education_level="DIPLOMA")
    program = make_program(db, minimum_education_level="UNDERGRADUATE")

    recompute_eligibility(db, student.id, now=NOW)
    db.commit()
    assert _results(db, student.id)[program.id].is_eligible is False

    profile.highest_education_level = "UNDERGRADUATE"
    db.commit()
    later = NOW + timedelta(days=1)
    recompute_eligibility(db, student.id, now=later)
    db.commit()

    row = _results(db, student.id)[program.id]
    assert row.is_eligible is True
    assert row.last_calculated_at == later


def test_malformed_program_is_skipped_and_its_result_removed(db, student):
    make_profile(db, student, highest_education_level="UNDERGRADUATE")
    good = make_program(db, title="MSc Finance", minimum_education_level="UNDERGRADUATE")
    broken = make_program(db, title="MSc Broken", minimum_education_level="UNDERGRADUATE")

    recompute_eligibility(db, student.id, now=NOW)
    db.commit()
    assert set(_results(db, student.id)) == {good.id, broken.id}

    # a required test without a threshold cannot be evaluated
    broken.requirement.test_requirements = [{"test_type": "IELTS", "required": True}]
    no_requirement = make_program(db, title="BA Music", with_requirement=False)
    unknown_level = make_program(db, title="BSc Nursing", minimum_education_level="GRADE_SCHOOL")
    db.commit()

    summary = recompute_eligibility(db, student.id, now=NOW)
    db.commit()

    assert summary.updated == [good.id]
    assert set(summary.skipped) == {broken.id, no_requirement.id, unknown_level.id}
    assert set(_results(db, student.id)) == {good.id}


def test_inactive_program_result_is_removed(db, student):
    make_profile(db, student, highest_education_level="UNDERGRADUATE")
    program = make_program(db, minimum_education_level="UNDERGRADUATE")

    recompute_eligibility(db, student.id, now=NOW)
    db.commit()
    assert program.id in _results(db, student.id)

    program.is_active = False
    db.commit()
    summary = recompute_eligibility(db, student.id, now=NOW)
    db.commit()

    assert summary.updated == []
    assert _results(db, student.id) == {}


def test_results_are_per_user(db, student, other_student):
    make_profile(db, student, highest_education_level="MASTERS")
    make_profile(db, other_student, highest_education_level="HIGH_SCHOOL")
    program = make_program(db, minimum_education_level="UNDERGRADUATE")

    recompute_eligibility(db, student.id, now=NOW)
    recompute_eligibility(db, other_student.id, now=NOW)
    db.commit()

    assert _results(db, student.id)[program.id].is_eligible is True
    assert _results(db, other_student.id)[program.id].is_eligible is False


def test_test_score_expiry_uses_evaluation_date(db, student):
    profile = make_profile(db, student)
    db.add(TestScore(profile_id=profile.id, test_type="IELTS", overall_score="6.5", expiry_date=date(2026, 6, 30)))
    db.commit()
    program = make_program(db, test_requirements=[{"test_type": "IELTS", "minimum_score": 6.0, "required": True}])

    recompute_eligibility(db, student.id, now=datetime(2026, 6, 30, 12, 0))
    db.commit()
    assert _results(db, student.id)[program.id].is_eligible is True

    recompute_eligibility(db, student.id, now=datetime(2026, 7, 1, 12, 0))
    db.commit()
    assert _results(db, student.id)[program.id].is_eligible is False


def test_stored_non_finite_scores_are_ignored(db, student):
    profile = make_profile(db, student)
    db.add(TestScore(profile_id=profile.id, test_type="IELTS", overall_score="nan"))
    db.add(TestScore(profile_id=profile.id, test_type="IELTS", overall_score="7.0"))
    db.add(TestScore(profile_id=profile.id, test_type="TOEFL", overall_score="inf"))
    db.commit()
    ielts = make_program(db, title="MSc A", test_requirements=[{"test_type": "IELTS", "minimum_score": 6.5, "required": True}])
    toefl = make_program(db, title="MSc B", test_requirements=[{"test_type": "TOEFL", "minimum_score": 90, "required": True}])

    recompute_eligibility(db, student.id, now=NOW)
    db.commit()

    results = _results(db, student.id)
    assert results[ielts.id].is_eligible is True
    assert results[toefl.id].is_eligible is False
