"""
Data Contracts for Payment Reconciliation

Gateway responses, webhook payloads and reconciliation outcomes.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# GATEWAY
# =============================================================================

class GatewayVerification(BaseModel):
    """Normalised result of the gateway's transaction-status endpoint."""
    success: bool
    status: str
    amount_minor_units: int
    reference: str
    currency: Optional[str] = None
    paid_at: Optional[str] = None


class InitializeResult(BaseModel):
    authorization_url: str
    access_code: Optional[str] = None
    reference: str


# =============================================================================
# WEBHOOK
# =============================================================================

class ChargeMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    order_id: Optional[str] = Field(default=None, alias="orderId")
    order_type: Optional[str] = Field(default=None, alias="orderType")
    user_id: Optional[str] = Field(default=None, alias="userId")


class ChargeData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    reference: str
    amount: Optional[int] = None
    metadata: Optional[ChargeMetadata] = None

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_object(cls, value):
        # Paystack sends "" or a JSON string when a charge carries no metadata
        return value if isinstance(value, dict) else None


class WebhookEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event: str
    data: Dict[str, Any] = Field(default_factory=dict)


CHARGE_SUCCESS = "charge.success"


# =============================================================================
# OUTCOMES
# =============================================================================

class PaymentOutcome(BaseModel):
    """
    What a verification call reports back.

    ``already_paid`` is set when the order was settled by an earlier call,
    in which case nothing was changed and no notification was sent.
    """
    order_id: str
    payment_status: str
    status: str
    reference: Optional[str] = None
    already_paid: bool = False


class VerifyPaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    reference: str = Field(min_length=1)
    order_id: str = Field(min_length=1, alias="orderId")
