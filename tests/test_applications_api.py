"""
Test program applications: drafts, submission, auto-fill and admin review.
"""

from datetime import date
from unittest.mock import Mock

from sqlalchemy import select

from conftest import auth_header, make_profile, make_program
from models import Application, EducationHistoryEntry, UserDocument
from payments.routes import get_notifier
from utils.notifications import Notifier


def _use_notifier():
    from main import app

    notifier = Mock(spec=Notifier)
    app.dependency_overrides[get_notifier] = lambda: notifier
    return notifier


def _complete(**fields) -> dict:
    body = {
        "first_name": "Ama",
        "last_name": "Mensah",
        "date_of_birth": "2001-04-12",
        "place_of_birth": "Kumasi",
        "nationality": "Ghanaian",
        "sex": "F",
        "email": "ama@abroadpass.io",
        "phone": "+233200000000",
        "address": "12 Ring Road",
        "city": "Accra",
        "country": "Ghana",
        "emergency_contact_name": "Efua Mensah",
        "emergency_contact_phone": "+233200000001",
        "emergency_contact_relation": "Mother",
        "passport_number": "G1234567",
        "passport_issue_date": "2022-01-10",
        "passport_expiry_date": "2032-01-09",
        "passport_issue_country": "Ghana",
        "education": [{"institution_name": "KNUST", "education_level": "UNDERGRADUATE", "graduated": True}],
    }
    body.update(fields)
    return body


def test_draft_lifecycle(client, db, student):
    program = make_program(db)
    notifier = _use_notifier()
    headers = auth_header(student)

    resp = client.post("/api/applications", json={"program_id": program.id, "first_name": "Ama"}, headers=headers)
    assert resp.status_code == 201
    draft = resp.json()
    assert draft["status"] == "DRAFT"
    assert draft["program_name"] == "MSc Data Science"
    assert draft["program_country"] == "United Kingdom"
    assert draft["program_university"] == "University of Leeds"
    assert draft["education"] == []
    assert draft["submitted_at"] is None
    notifier.notify_admins.assert_not_called()

    resp = client.patch(f"/api/applications/{draft['id']}", json={"last_name": "Mensah", "city": "Accra"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["last_name"] == "Mensah"

    listed = client.get("/api/applications", headers=headers).json()
    assert [a["id"] for a in listed] == [draft["id"]]

    assert client.delete(f"/api/applications/{draft['id']}", headers=headers).status_code == 204
    assert client.get(f"/api/applications/{draft['id']}", headers=headers).status_code == 404


def test_one_application_per_program(client, db, student):
    program = make_program(db)
    _use_notifier()
    headers = auth_header(student)

    assert client.post("/api/applications", json={"program_id": program.id}, headers=headers).status_code == 201
    resp = client.post("/api/applications", json={"program_id": program.id}, headers=headers)

    assert resp.status_code == 409
    assert resp.json()["error"]["message"] == "You have already applied to this program"
    assert len(db.scalars(select(Application)).all()) == 1


def test_unknown_or_inactive_program_is_not_found(client, db, student):
    closed = make_program(db, title="MSc Closed", is_active=False)
    headers = auth_header(student)

    assert client.post("/api/applications", json={"program_id": "missing"}, headers=headers).status_code == 404
    assert client.post("/api/applications", json={"program_id": closed.id}, headers=headers).status_code == 404


def test_submit_requires_a_complete_application(client, db, student):
    program = make_program(db)
    notifier = _use_notifier()
    headers = auth_header(student)
    draft = client.post("/api/applications", json={"program_id": program.id, "first_name": "Ama"}, headers=headers).json()

    resp = client.post(f"/api/applications/{draft['id']}/submit", headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "last_name is required"

    client.patch(f"/api/applications/{draft['id']}", json=_complete(education=[]), headers=headers)
    resp = client.post(f"/api/applications/{draft['id']}/submit", headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "At least one education entry is required"
    notifier.notify_admins.assert_not_called()

    client.patch(
        f"/api/applications/{draft['id']}",
        json={"education": [{"institution_name": "KNUST", "start_date": "2019-09-01", "graduated": True}]},
        headers=headers,
    )
    resp = client.post(f"/api/applications/{draft['id']}/submit", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "SUBMITTED"
    assert body["submitted_at"] is not None
    assert body["education"][0]["start_date"] == "2019-09-01"
    notifier.notify_admins.assert_called_once()
    assert "MSc Data Science" in notifier.notify_admins.call_args.args[1]


def test_submitted_applications_are_locked(client, db, student):
    notifier = _use_notifier()
    headers = auth_header(student)

    resp = client.post(
        "/api/applications",
        json=_complete(program_name="Exchange semester", program_country="Germany", status="SUBMITTED"),
        headers=headers,
    )
    assert resp.status_code == 201
    app_id = resp.json()["id"]
    assert resp.json()["status"] == "SUBMITTED"
    assert resp.json()["program_id"] is None
    notifier.notify_admins.assert_called_once()

    assert client.patch(f"/api/applications/{app_id}", json={"city": "Kumasi"}, headers=headers).status_code == 409
    assert client.post(f"/api/applications/{app_id}/submit", headers=headers).status_code == 409
    assert client.delete(f"/api/applications/{app_id}", headers=headers).status_code == 409
    assert notifier.notify_admins.call_count == 1


def test_incomplete_submission_on_create_saves_nothing(client, db, student):
    _use_notifier()

    resp = client.post(
        "/api/applications",
        json={"program_name": "MBA", "status": "SUBMITTED"},
        headers=auth_header(student),
    )

    assert resp.status_code == 400
    assert db.scalars(select(Application)).all() == []


def test_create_validates_fields(client, student):
    headers = auth_header(student)

    for body in (
        {"status": "ACCEPTED"},
        {"user_id": "someone-else"},
        {"documents": {"SELFIE": "https://files.example/me.png"}},
        {"passport_issue_date": "2030-01-01", "passport_expiry_date": "2029-01-01"},
        {"education": [{"institution_name": ""}]},
    ):
        assert client.post("/api/applications", json=body, headers=headers).status_code == 422, body


def test_patch_cannot_invert_passport_dates(client, db, student):
    _use_notifier()
    headers = auth_header(student)
    draft = client.post("/api/applications", json={"passport_issue_date": "2022-01-10"}, headers=headers).json()

    resp = client.patch(f"/api/applications/{draft['id']}", json={"passport_expiry_date": "2021-01-10"}, headers=headers)

    assert resp.status_code == 400


def test_other_students_cannot_touch_an_application(client, db, student, other_student, admin):
    _use_notifier()
    draft = client.post("/api/applications", json={"program_name": "MBA"}, headers=auth_header(student)).json()
    stranger = auth_header(other_student)

    assert client.get(f"/api/applications/{draft['id']}", headers=stranger).status_code == 403
    assert client.patch(f"/api/applications/{draft['id']}", json={"city": "Tema"}, headers=stranger).status_code == 403
    assert client.post(f"/api/applications/{draft['id']}/submit", headers=stranger).status_code == 403
    assert client.delete(f"/api/applications/{draft['id']}", headers=stranger).status_code == 403
    assert client.get("/api/applications", headers=stranger).json() == []

    assert client.get(f"/api/applications/{draft['id']}", headers=auth_header(admin)).status_code == 200


def test_admins_list_every_application(client, db, student, other_student, admin):
    _use_notifier()
    client.post("/api/applications", json={"program_name": "MBA"}, headers=auth_header(student))
    client.post(
        "/api/applications",
        json=_complete(program_name="MSc Physics", program_country="Canada", status="SUBMITTED"),
        headers=auth_header(other_student),
    )
    headers = auth_header(admin)

    assert len(client.get("/api/applications", headers=headers).json()) == 2
    submitted = client.get("/api/applications?status=SUBMITTED", headers=headers).json()
    assert [a["program_name"] for a in submitted] == ["MSc Physics"]
    mine = client.get(f"/api/applications?user_id={student.id}", headers=headers).json()
    assert [a["program_name"] for a in mine] == ["MBA"]


# =============================================================================
# AUTO-FILL
# =============================================================================

def test_auto_fill_from_profile(client, db, student):
    profile = make_profile(
        db, student, nationality="Ghanaian", highest_education_level="UNDERGRADUATE", gpa="3.6"
    )
    db.add(EducationHistoryEntry(
        profile_id=profile.id,
        education_level="UNDERGRADUATE",
        institution_name="KNUST",
        field_of_study="Computer Science",
        start_date=date(2018, 9, 1),
        end_date=date(2022, 7, 31),
        graduated=True,
        grade="3.6",
    ))
    db.add(UserDocument(profile_id=profile.id, document_type="PASSPORT_COPY", file_url="https://files.example/p.pdf"))
    db.commit()
    program = make_program(db, minimum_education_level="UNDERGRADUATE")
    headers = auth_header(student)
    client.post("/api/user/eligibility/recompute", headers=headers)

    resp = client.get(f"/api/applications/auto-fill?program_id={program.id}", headers=headers)

    assert resp.status_code == 200
    body = resp.json()
    filled = body["application"]
    assert filled["program_id"] == program.id
    assert filled["program_name"] == "MSc Data Science"
    assert filled["first_name"] == "Ama"
    assert filled["last_name"] == "Mensah"
    assert filled["email"] == student.email
    assert filled["nationality"] == "Ghanaian"
    assert filled["current_education_level"] == "UNDERGRADUATE"
    assert filled["gpa"] == "3.6"
    assert filled["education"][0]["institution_name"] == "KNUST"
    assert filled["education"][0]["start_date"] == "2018-09-01"
    assert filled["documents"] == {"PASSPORT_COPY": "https://files.example/p.pdf"}
    assert body["requirement"]["minimum_education_level"] == "UNDERGRADUATE"
    assert body["eligibility"]["is_eligible"] is True
    assert body["already_applied"] is False

    _use_notifier()
    created = client.post("/api/applications", json=filled, headers=headers)
    assert created.status_code == 201
    assert created.json()["documents"] == {"PASSPORT_COPY": "https://files.example/p.pdf"}
    again = client.get(f"/api/applications/auto-fill?program_id={program.id}", headers=headers).json()
    assert again["already_applied"] is True


def test_auto_fill_without_profile(client, db, student):
    program = make_program(db, with_requirement=False)

    body = client.get(f"/api/applications/auto-fill?program_id={program.id}", headers=auth_header(student)).json()

    assert body["application"]["education"] == []
    assert body["application"]["nationality"] is None
    assert body["education_history"] == []
    assert body["requirement"] is None
    assert body["eligibility"] is None


def test_auto_fill_needs_a_known_program(client, student):
    headers = auth_header(student)

    assert client.get("/api/applications/auto-fill", headers=headers).status_code == 422
    assert client.get("/api/applications/auto-fill?program_id=missing", headers=headers).status_code == 404


# =============================================================================
# ADMIN REVIEW
# =============================================================================

def test_admin_review_notifies_the_student(client, db, student, admin):
    notifier = _use_notifier()
    submitted = client.post(
        "/api/applications",
        json=_complete(program_name="MSc Physics", program_country="Canada", status="SUBMITTED"),
        headers=auth_header(student),
    ).json()
    headers = auth_header(admin)

    resp = client.patch(
        f"/api/admin/applications/{submitted['id']}/status", json={"status": "UNDER_REVIEW"}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "UNDER_REVIEW"

    resp = client.patch(
        f"/api/admin/applications/{submitted['id']}/status",
        json={"status": "ACCEPTED", "review_notes": "Offer letter to follow."},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["review_notes"] == "Offer letter to follow."
    assert resp.json()["reviewed_at"] is not None

    assert notifier.notify_user.call_count == 2
    args = notifier.notify_user.call_args.args
    assert args[0] == student.id
    assert args[1] == "APPLICATION_STATUS_CHANGE"
    assert args[3] == "Your application for MSc Physics is now accepted. Offer letter to follow."

    resp = client.patch(f"/api/admin/applications/{submitted['id']}/status", json={"status": "REJECTED"}, headers=headers)
    assert resp.status_code == 409


def test_drafts_cannot_be_reviewed(client, db, student, admin):
    notifier = _use_notifier()
    draft = client.post("/api/applications", json={"program_name": "MBA"}, headers=auth_header(student)).json()
    headers = auth_header(admin)

    resp = client.patch(f"/api/admin/applications/{draft['id']}/status", json={"status": "ACCEPTED"}, headers=headers)
    assert resp.status_code == 409

    resp = client.patch(f"/api/admin/applications/{draft['id']}/status", json={"status": "SUBMITTED"}, headers=headers)
    assert resp.status_code == 422
    notifier.notify_user.assert_not_called()

    resp = client.patch(
        f"/api/admin/applications/{draft['id']}/status", json={"status": "ACCEPTED"}, headers=auth_header(student)
    )
    assert resp.status_code == 403
