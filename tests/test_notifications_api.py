"""
Test the notification store and its endpoints.
"""

from unittest.mock import Mock

from sqlalchemy import select

from conftest import auth_header
from models import Notification
from utils.notifications import Notifier


def test_notifier_stores_and_emails(db, student):
    mailer = Mock(return_value=True)

    Notifier(mailer=mailer).notify_user(
        student.id, "SYSTEM", "Welcome", "Your profile is ready.", metadata={"step": 1}
    )

    rows = db.scalars(select(Notification).where(Notification.user_id == student.id)).all()
    assert len(rows) == 1
    assert rows[0].extra == {"step": 1}
    assert rows[0].is_read is False
    mailer.assert_called_once_with(student.email, "Welcome", "Your profile is ready.")


def test_notifier_can_skip_email(db, student):
    mailer = Mock(return_value=True)

    Notifier(mailer=mailer).notify_user(student.id, "SYSTEM", "Quiet", "No email for this one.", email=False)

    mailer.assert_not_called()


def test_admin_alert_goes_to_every_admin(db, student, admin):
    Notifier().notify_admins("New visa booking", "Someone booked a visa.", "/admin/orders")

    rows = db.scalars(select(Notification)).all()
    assert [(r.user_id, r.kind, r.action_url) for r in rows] == [(admin.id, "ADMIN_ALERT", "/admin/orders")]


def test_list_and_mark_read(client, db, student):
    notifier = Notifier(mailer=Mock(return_value=True))
    notifier.notify_user(student.id, "SYSTEM", "First", "One", metadata={"orderId": "o-1"})
    notifier.notify_user(student.id, "SYSTEM", "Second", "Two")
    headers = auth_header(student)

    body = client.get("/api/notifications", headers=headers).json()
    assert body["unread_count"] == 2
    assert {n["title"] for n in body["notifications"]} == {"First", "Second"}
    first = next(n for n in body["notifications"] if n["title"] == "First")
    assert first["metadata"] == {"orderId": "o-1"}

    resp = client.patch(f"/api/notifications/{first['id']}", json={"is_read": True}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["is_read"] is True
    assert client.get("/api/notifications", headers=headers).json()["unread_count"] == 1

    unread = client.get("/api/notifications?unread_only=true", headers=headers).json()
    assert [n["title"] for n in unread["notifications"]] == ["Second"]

    assert client.post("/api/notifications/mark-all-read", headers=headers).json() == {"updated": 1}
    assert client.get("/api/notifications", headers=headers).json()["unread_count"] == 0


def test_cannot_mark_someone_elses_notification(client, student, other_student):
    Notifier(mailer=Mock(return_value=True)).notify_user(student.id, "SYSTEM", "Private", "Mine")
    own = client.get("/api/notifications", headers=auth_header(student)).json()["notifications"][0]

    resp = client.patch(f"/api/notifications/{own['id']}", json={"is_read": True}, headers=auth_header(other_student))

    assert resp.status_code == 403
