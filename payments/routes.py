"""
Orders & Payments API Routes

Orders of every kind (flight, hotel, package, consultation, visa, itinerary,
service) share one lifecycle. Payment is initialised with the gateway, then
confirmed either by the owner returning from checkout or by the gateway's
signed webhook.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Header, Query, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.orm import Session

from db import get_db
from models import Order
from models.enums import OrderKind, OrderStatus
from models.schemas import OrderCancel, OrderCreate, OrderOut
from models.schemas_user import UserOut
from utils.circuit_breaker import CircuitBreaker
from utils.current_user import auth_user
from utils.errors import Forbidden
from utils.notifications import Notifier
from .contracts import VerifyPaymentRequest
from .gateway import PAYSTACK_BREAKER_COOLDOWN_SECONDS, PaystackClient
from .reconciliation import (
    cancel_order,
    handle_webhook,
    initialize_order_payment,
    load_order,
    verify_order_payment,
)

logger = logging.getLogger("payments")

router = APIRouter(prefix="/api/orders", tags=["orders"])
webhook_router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

# One breaker for the process, shared by every client instance
paystack_breaker = CircuitBreaker("paystack", PAYSTACK_BREAKER_COOLDOWN_SECONDS)


def get_gateway() -> PaystackClient:
    return PaystackClient(breaker=paystack_breaker)


def get_notifier() -> Notifier:
    return Notifier()


# ─────────────────────────────────────────────
# Orders
# ─────────────────────────────────────────────
@router.get("", response_model=list[OrderOut], summary="List my orders")
def list_orders(
    kind: Optional[OrderKind] = Query(default=None),
    status: Optional[OrderStatus] = Query(default=None),
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
):
    stmt = select(Order).where(Order.user_id == current.id).order_by(Order.created_at.desc())
    if kind:
        stmt = stmt.where(Order.kind == kind.value)
    if status:
        stmt = stmt.where(Order.status == status.value)
    return list(db.scalars(stmt))


@router.post("", response_model=OrderOut, status_code=201, summary="Create an order")
def create_order(
    payload: OrderCreate,
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    data = payload.changes()
    order = Order(
        user_id=current.id,
        kind=payload.kind,
        title=payload.title,
        amount=payload.amount,
        currency=payload.currency.upper(),
        contact_email=data.get("contact_email") or current.email,
        details=payload.details,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info("Order %s (%s) created by %s", order.id, order.kind, current.id)

    notifier.notify_admins(
        f"New {order.kind} booking",
        f"{current.full_name or current.email} booked '{order.title}'. Amount: {order.currency} {order.amount:.2f}",
        "/admin/orders",
    )
    return order


@router.post("/payment/verify", summary="Verify a payment after checkout")
def verify_payment(
    payload: VerifyPaymentRequest,
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
    gateway: PaystackClient = Depends(get_gateway),
    notifier: Notifier = Depends(get_notifier),
):
    outcome = verify_order_payment(db, payload.order_id, payload.reference, current, gateway, notifier)
    message = "Payment already verified" if outcome.already_paid else "Payment verified successfully"
    return {"success": True, "message": message, **outcome.model_dump()}


@router.get("/{order_id}", response_model=OrderOut, summary="Fetch one order")
def get_order(order_id: str, current: UserOut = Depends(auth_user), db: Session = Depends(get_db)):
    order = load_order(db, order_id)
    if order.user_id != current.id and not current.is_admin:
        raise Forbidden("Not your order")
    return order


@router.post("/{order_id}/cancel", response_model=OrderOut, summary="Cancel a pending order")
def cancel(
    order_id: str,
    payload: Optional[OrderCancel] = Body(default=None),
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    reason = payload.reason if payload else None
    return cancel_order(db, order_id, current, reason=reason, notifier=notifier)


@router.post("/{order_id}/payment", summary="Start a gateway checkout")
def start_payment(
    order_id: str,
    current: UserOut = Depends(auth_user),
    db: Session = Depends(get_db),
    gateway: PaystackClient = Depends(get_gateway),
):
    result = initialize_order_payment(db, order_id, current, gateway)
    return result.model_dump()


# ─────────────────────────────────────────────
# Webhook
# ─────────────────────────────────────────────
@webhook_router.post("/paystack", summary="Paystack webhook")
async def paystack_webhook(
    request: Request,
    x_paystack_signature: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    gateway: PaystackClient = Depends(get_gateway),
    notifier: Notifier = Depends(get_notifier),
):
    # signature is computed over the exact bytes received
    raw_body = await request.body()
    return await run_in_threadpool(handle_webhook, db, raw_body, x_paystack_signature, gateway, notifier)
