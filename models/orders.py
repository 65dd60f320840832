import uuid
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, JSON, Text
from sqlalchemy.orm import relationship

from db import Base
from models.enums import OrderStatus, PaymentStatus


class Order(Base):
    """
    A paid request for any service: flight, hotel, package, consultation,
    visa assistance, itinerary planning or a catalog service.

    Every kind shares one state machine:
        status:          PENDING -> CONFIRMED | CANCELLED
        payment_status:  UNPAID  -> PAID
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(32), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    details = Column(JSON, default=dict, nullable=False)
    contact_email = Column(String(255))

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="GHS")

    payment_status = Column(String(16), nullable=False, default=PaymentStatus.UNPAID.value)
    status = Column(String(16), nullable=False, default=OrderStatus.PENDING.value)
    payment_reference = Column(String(128), index=True)
    cancellation_reason = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    confirmed_at = Column(DateTime)
    cancelled_at = Column(DateTime)

    user = relationship("User")

    @property
    def amount_minor_units(self) -> int:
        return to_minor_units(self.amount)


def to_minor_units(amount) -> int:
    """Major currency units (e.g. GHS 500.00) to the gateway's minor units (50000 pesewas)."""
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
