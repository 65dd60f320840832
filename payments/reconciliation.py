"""
Payment Reconciliation

Confirms a claimed payment against the gateway and moves the order from
UNPAID/PENDING to PAID/CONFIRMED exactly once.

Flow for every verification (owner call or signed webhook):
1. Authorise the caller (ownership, or webhook signature)
2. Idempotency guard: an order already PAID reports success, nothing else
3. Gateway verification (failure/timeout -> UpstreamError, nothing mutated)
4. Amount check in minor units (mismatch -> AmountMismatchError)
5. Conditional UPDATE ... WHERE payment_status='UNPAID' AND status='PENDING'
6. One user notification and one admin notification

``_commit_paid`` is the only place that writes PAID.
"""

import os
import time
import logging
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from models import Order
from models.enums import NotificationKind, OrderStatus, PaymentStatus
from models.schemas_user import UserOut
from utils.errors import (
    AmountMismatchError,
    AppError,
    ConflictError,
    Forbidden,
    NotFound,
    Unauthorized,
    UpstreamError,
    ValidationError,
)
from .contracts import CHARGE_SUCCESS, ChargeData, InitializeResult, PaymentOutcome, WebhookEvent
from .signature import signature_matches

load_dotenv()

logger = logging.getLogger("payments")

APP_URL = os.getenv("APP_URL", "http://localhost:3000")

PAID = PaymentStatus.PAID.value
UNPAID = PaymentStatus.UNPAID.value
PENDING = OrderStatus.PENDING.value
CONFIRMED = OrderStatus.CONFIRMED.value
CANCELLED = OrderStatus.CANCELLED.value


def load_order(db: Session, order_id: str) -> Order:
    order = db.get(Order, order_id)
    if order is None:
        raise NotFound("Order not found")
    return order


def _outcome(order: Order, already_paid: bool = False) -> PaymentOutcome:
    return PaymentOutcome(
        order_id=order.id,
        payment_status=order.payment_status,
        status=order.status,
        reference=order.payment_reference,
        already_paid=already_paid,
    )


# =============================================================================
# VERIFICATION
# =============================================================================

def verify_order_payment(
    db: Session,
    order_id: str,
    reference: str,
    caller: UserOut,
    gateway,
    notifier,
) -> PaymentOutcome:
    """
    Owner-initiated verification (the client returns from the gateway's
    checkout page with a reference).
    """
    order = load_order(db, order_id)
    if order.user_id != caller.id:
        logger.warning("User %s tried to verify order %s owned by %s", caller.id, order.id, order.user_id)
        raise Forbidden("Not your order")
    return _reconcile(db, order, reference, gateway, notifier, source="owner")


def handle_webhook(
    db: Session,
    raw_body: bytes,
    signature: Optional[str],
    gateway,
    notifier,
    secret: Optional[str] = None,
) -> dict:
    """
    Signed gateway callback. The signature is checked over the raw body
    before anything is parsed or read from the database.
    """
    secret = secret or os.getenv("PAYSTACK_SECRET_KEY")
    if not secret:
        logger.error("Webhook received but PAYSTACK_SECRET_KEY is not configured")
        raise AppError("Configuration error")

    if not signature_matches(raw_body, signature, secret):
        logger.warning("Rejected webhook with missing or invalid signature")
        raise Unauthorized("Invalid signature")

    try:
        event = WebhookEvent.model_validate_json(raw_body)
    except PydanticValidationError:
        raise ValidationError("Malformed webhook payload")

    logger.info("Paystack webhook received: %s", event.event)
    if event.event != CHARGE_SUCCESS:
        return {"received": True, "handled": False}

    try:
        data = ChargeData.model_validate(event.data)
    except PydanticValidationError:
        raise ValidationError("Malformed webhook payload")

    order_id = data.metadata.order_id if data.metadata else None
    if not order_id:
        logger.warning("charge.success %s carried no orderId, ignoring", data.reference)
        return {"received": True, "handled": False}

    order = load_order(db, order_id)
    if data.metadata.order_type and data.metadata.order_type != order.kind:
        logger.warning(
            "Webhook orderType %s does not match order %s kind %s",
            data.metadata.order_type, order.id, order.kind,
        )

    outcome = _reconcile(db, order, data.reference, gateway, notifier, source="webhook")
    return {"received": True, "handled": True, **outcome.model_dump()}


def _reconcile(db: Session, order: Order, reference: str, gateway, notifier, source: str) -> PaymentOutcome:
    if order.payment_status == PAID:
        logger.info("Order %s already paid, skipping verification (%s)", order.id, source)
        return _outcome(order, already_paid=True)

    if order.status == CANCELLED:
        raise ConflictError("Order has been cancelled")

    if order.payment_reference and order.payment_reference != reference:
        logger.warning(
            "Reference %s does not match order %s reference %s (%s)",
            reference, order.id, order.payment_reference, source,
        )
        raise ConflictError("Payment reference does not match this order")

    used_by = db.scalars(
        select(Order.id).where(Order.payment_reference == reference, Order.id != order.id)
    ).first()
    if used_by:
        logger.warning("Reference %s already belongs to order %s", reference, used_by)
        raise ConflictError("Payment reference already used")

    verification = gateway.verify_transaction(reference)
    if not verification.success:
        logger.error(
            "Gateway reports %s for reference %s (order %s)", verification.status or "no status", reference, order.id
        )
        raise UpstreamError(detail={"reason": "transaction not successful", "gateway_status": verification.status})

    expected = order.amount_minor_units
    if verification.amount_minor_units != expected:
        logger.error(
            "Amount mismatch for order %s reference %s: expected %s, paid %s",
            order.id, reference, expected, verification.amount_minor_units,
        )
        raise AmountMismatchError(expected, verification.amount_minor_units)

    if not _commit_paid(db, order, reference):
        db.refresh(order)
        if order.payment_status == PAID:
            logger.info("Order %s was settled by a concurrent call (%s)", order.id, source)
            return _outcome(order, already_paid=True)
        raise ConflictError("Order can no longer be paid")

    db.refresh(order)
    logger.info("Order %s paid via %s, reference %s", order.id, source, reference)
    _notify_paid(notifier, order)
    return _outcome(order)


def _commit_paid(db: Session, order: Order, reference: str) -> bool:
    """Conditional transition. Returns False when another call got there first."""
    result = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.payment_status == UNPAID, Order.status == PENDING)
        .values(
            payment_status=PAID,
            status=CONFIRMED,
            confirmed_at=datetime.utcnow(),
            payment_reference=func.coalesce(Order.payment_reference, reference),
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def _notify_paid(notifier, order: Order) -> None:
    # the payment already happened, the order must stay PAID whatever fails here
    amount = f"{order.currency} {order.amount:.2f}"
    try:
        notifier.notify_user(
            order.user_id,
            NotificationKind.PAYMENT_RECEIVED.value,
            "Payment received",
            f"We received your payment of {amount} for {order.title}. Your {order.kind} booking is confirmed.",
            action_url="/profile/bookings",
            metadata={"orderId": order.id, "orderType": order.kind, "reference": order.payment_reference},
        )
    except Exception:
        logger.exception("User notification failed after payment of order %s", order.id)

    try:
        notifier.notify_admins(
            "Payment confirmed",
            f"Payment confirmed for {order.kind} order '{order.title}'. Amount: {amount}",
            "/admin/orders",
        )
    except Exception:
        logger.exception("Admin notification failed after payment of order %s", order.id)


# =============================================================================
# INITIALISATION & CANCELLATION
# =============================================================================

def initialize_order_payment(db: Session, order_id: str, caller: UserOut, gateway) -> InitializeResult:
    order = load_order(db, order_id)
    if order.user_id != caller.id:
        raise Forbidden("Not your order")
    if order.payment_status == PAID:
        raise ConflictError("Order is already paid")
    if order.status != PENDING:
        raise ConflictError("Order can no longer be paid")

    reference = f"{order.kind.upper()}-{order.id}-{int(time.time() * 1000)}"
    payload = {
        "email": order.contact_email or caller.email,
        "amount": order.amount_minor_units,
        "currency": order.currency,
        "reference": reference,
        "callback_url": f"{APP_URL.rstrip('/')}/payment/verify?orderId={order.id}",
        "metadata": {"orderId": order.id, "orderType": order.kind, "userId": order.user_id},
    }
    result = gateway.initialize_transaction(payload)

    order.payment_reference = result.reference
    db.commit()
    logger.info("Initialized payment for order %s with reference %s", order.id, result.reference)
    return result


def cancel_order(db: Session, order_id: str, caller: UserOut, reason: Optional[str] = None, notifier=None) -> Order:
    """Owner or admin. Only PENDING and UNPAID orders can be cancelled."""
    order = load_order(db, order_id)
    if order.user_id != caller.id and not caller.is_admin:
        raise Forbidden("Not your order")

    result = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == PENDING, Order.payment_status == UNPAID)
        .values(status=CANCELLED, cancelled_at=datetime.utcnow(), cancellation_reason=reason)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        raise ConflictError("Only pending, unpaid orders can be cancelled")

    db.refresh(order)
    logger.info("Order %s cancelled by %s", order.id, caller.id)

    if notifier is not None and order.user_id != caller.id:
        try:
            notifier.notify_user(
                order.user_id,
                NotificationKind.BOOKING_STATUS_CHANGE.value,
                "Booking cancelled",
                f"Your {order.kind} booking '{order.title}' was cancelled." + (f" Reason: {reason}" if reason else ""),
                action_url="/profile/bookings",
                metadata={"orderId": order.id, "status": CANCELLED},
            )
        except Exception:
            logger.exception("Cancellation notification failed for order %s", order.id)
    return order
