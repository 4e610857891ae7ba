"""Request/response schemas for checkout, payment records and webhooks."""

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CheckoutRequest(BaseModel):
    price_id: str = Field(
        ..., min_length=1, max_length=255, description="Stripe Price ID, e.g. price_123"
    )


class CheckoutResponse(BaseModel):
    session_id: str
    url: str | None = None


class PaymentRecordOut(BaseModel):
    """A ledger entry as returned by the API."""

    id: int
    user_id: int
    plan_id: str
    price_id: str
    external_payment_id: str
    status: Literal["pending", "completed", "failed", "cancelled"]
    amount: int
    currency: str
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    metadata: dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("payment_metadata", "metadata")
    )
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class PaymentRecordsListResponse(BaseModel):
    """Response for GET /admin/subscriptions (admin only)."""

    payments: list[PaymentRecordOut]


class MessageResponse(BaseModel):
    message: str


class CheckoutCallbackResponse(BaseModel):
    """Payload for the Stripe redirect landing routes."""

    success: bool
    message: str
    note: str
    session_id: str | None = None


class WebhookAck(BaseModel):
    """Acknowledgement returned to Stripe for every verified delivery."""

    received: Literal[True] = True
    error: str | None = None
