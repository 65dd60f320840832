"""
Test the orders and webhook endpoints through the FastAPI app.
"""

import json
from unittest.mock import Mock

from sqlalchemy import func, select

from conftest import auth_header, make_order
from models import Notification, Order
from payments.contracts import GatewayVerification
from payments.gateway import PaystackClient
from payments.routes import get_gateway, get_notifier
from payments.signature import compute_signature
from utils.errors import UpstreamError
from utils.notifications import Notifier

SECRET = "sk_test_webhook_secret"


def _use_gateway(amount=50000, status="success"):
    from main import app

    gateway = Mock(spec=PaystackClient)
    gateway.verify_transaction.side_effect = lambda reference: GatewayVerification(
        success=status == "success", status=status, amount_minor_units=amount, reference=reference,
    )
    app.dependency_overrides[get_gateway] = lambda: gateway
    return gateway


def _use_notifier():
    from main import app

    notifier = Mock(spec=Notifier)
    app.dependency_overrides[get_notifier] = lambda: notifier
    return notifier


def _order(db, order_id) -> Order:
    db.expire_all()
    return db.get(Order, order_id)


def test_create_and_list_orders(client, db, student, admin):
    headers = auth_header(student)

    resp = client.post(
        "/api/orders",
        json={"kind": "visa", "title": "UK student visa assistance", "amount": "350.00"},
        headers=headers,
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["payment_status"] == "UNPAID"
    assert body["status"] == "PENDING"
    assert _order(db, body["id"]).contact_email == student.email
    admin_alerts = db.scalar(select(func.count()).select_from(Notification).where(Notification.user_id == admin.id))
    assert admin_alerts == 1

    listed = client.get("/api/orders?kind=visa", headers=headers).json()
    assert [o["id"] for o in listed] == [body["id"]]
    assert client.get("/api/orders?kind=flight", headers=headers).json() == []


def test_create_order_rejects_unknown_kind(client, student):
    resp = client.post(
        "/api/orders",
        json={"kind": "spaceship", "title": "Moon", "amount": "10.00"},
        headers=auth_header(student),
    )
    assert resp.status_code == 422


def test_owner_verification_confirms_order(client, db, student):
    order = make_order(db, student)
    gateway = _use_gateway()
    notifier = _use_notifier()

    resp = client.post(
        "/api/orders/payment/verify",
        json={"reference": "REF-1", "orderId": order.id},
        headers=auth_header(student),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["payment_status"] == "PAID"
    assert body["status"] == "CONFIRMED"
    assert body["message"] == "Payment verified successfully"
    gateway.verify_transaction.assert_called_once_with("REF-1")
    notifier.notify_user.assert_called_once()
    notifier.notify_admins.assert_called_once()

    again = client.post(
        "/api/orders/payment/verify",
        json={"reference": "REF-1", "orderId": order.id},
        headers=auth_header(student),
    ).json()
    assert again["already_paid"] is True
    assert again["message"] == "Payment already verified"
    assert gateway.verify_transaction.call_count == 1


def test_amount_mismatch_is_a_conflict(client, db, student):
    order = make_order(db, student, amount="12.00")
    _use_gateway(amount=1000)
    _use_notifier()

    resp = client.post(
        "/api/orders/payment/verify",
        json={"reference": "REF-1", "orderId": order.id},
        headers=auth_header(student),
    )

    assert resp.status_code == 409
    assert resp.json() == {"error": {"kind": "conflict", "message": "Payment could not be confirmed"}}
    assert _order(db, order.id).payment_status == "UNPAID"


def test_gateway_outage_is_bad_gateway(client, db, student):
    from main import app

    order = make_order(db, student)
    gateway = Mock(spec=PaystackClient)
    gateway.verify_transaction.side_effect = UpstreamError(detail={"reason": "timeout"})
    app.dependency_overrides[get_gateway] = lambda: gateway
    _use_notifier()

    resp = client.post(
        "/api/orders/payment/verify",
        json={"reference": "REF-1", "orderId": order.id},
        headers=auth_header(student),
    )

    assert resp.status_code == 502
    assert resp.json()["error"]["kind"] == "upstream_error"


def test_verify_request_rejects_extra_fields(client, db, student):
    order = make_order(db, student)
    _use_gateway()

    resp = client.post(
        "/api/orders/payment/verify",
        json={"reference": "REF-1", "orderId": order.id, "amount": 1},
        headers=auth_header(student),
    )
    assert resp.status_code == 422


def test_other_users_cannot_see_or_verify_an_order(client, db, student, other_student, admin):
    order = make_order(db, student)
    gateway = _use_gateway()
    _use_notifier()

    assert client.get(f"/api/orders/{order.id}", headers=auth_header(other_student)).status_code == 403
    assert client.get(f"/api/orders/{order.id}", headers=auth_header(admin)).status_code == 200

    resp = client.post(
        "/api/orders/payment/verify",
        json={"reference": "REF-1", "orderId": order.id},
        headers=auth_header(other_student),
    )
    assert resp.status_code == 403
    gateway.verify_transaction.assert_not_called()


def test_cancel_endpoint(client, db, student):
    order = make_order(db, student)
    _use_notifier()
    headers = auth_header(student)

    resp = client.post(f"/api/orders/{order.id}/cancel", json={"reason": "Dates changed"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "CANCELLED"

    resp = client.post(f"/api/orders/{order.id}/cancel", headers=headers)
    assert resp.status_code == 409


def test_unknown_order_is_not_found(client, student):
    _use_gateway()
    resp = client.post(
        "/api/orders/payment/verify",
        json={"reference": "REF-1", "orderId": "missing"},
        headers=auth_header(student),
    )
    assert resp.status_code == 404


# =============================================================================
# WEBHOOK
# =============================================================================

def _charge(order_id, reference="REF-WH", amount=50000) -> bytes:
    return json.dumps({
        "event": "charge.success",
        "data": {"reference": reference, "amount": amount, "metadata": {"orderId": order_id}},
    }).encode()


def test_signed_webhook_confirms_order(client, db, student):
    order = make_order(db, student)
    gateway = _use_gateway()
    notifier = _use_notifier()
    body = _charge(order.id)

    resp = client.post(
        "/api/webhooks/paystack",
        content=body,
        headers={"x-paystack-signature": compute_signature(body, SECRET), "Content-Type": "application/json"},
    )

    assert resp.status_code == 200
    assert resp.json()["handled"] is True
    assert _order(db, order.id).payment_status == "PAID"
    gateway.verify_transaction.assert_called_once_with("REF-WH")
    notifier.notify_user.assert_called_once()


def test_unsigned_or_tampered_webhook_is_rejected(client, db, student):
    order = make_order(db, student)
    gateway = _use_gateway()
    _use_notifier()
    body = _charge(order.id)

    missing = client.post("/api/webhooks/paystack", content=body)
    tampered = client.post(
        "/api/webhooks/paystack",
        content=body,
        headers={"x-paystack-signature": compute_signature(body + b"\n", SECRET)},
    )

    assert missing.status_code == 401
    assert tampered.status_code == 401
    assert tampered.json() == {"error": {"kind": "unauthorized", "message": "Invalid signature"}}
    gateway.verify_transaction.assert_not_called()
    assert _order(db, order.id).payment_status == "UNPAID"


def test_signed_malformed_webhook_is_a_validation_error(client):
    _use_gateway()
    _use_notifier()
    body = b"not json at all"

    resp = client.post("/api/webhooks/paystack", content=body, headers={"x-paystack-signature": compute_signature(body, SECRET)})

    assert resp.status_code == 400
    assert resp.json()["error"]["kind"] == "validation_error"
