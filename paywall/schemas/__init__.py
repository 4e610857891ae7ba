"""Pydantic request/response schemas."""

from paywall.schemas.auth import (
    AuthResponse,
    RefreshRequest,
    SignInRequest,
    SignUpRequest,
    TokenPayload,
    UsersListResponse,
    UserView,
)
from paywall.schemas.health import HealthResponse
from paywall.schemas.payment import (
    CheckoutCallbackResponse,
    CheckoutRequest,
    CheckoutResponse,
    MessageResponse,
    PaymentRecordOut,
    PaymentRecordsListResponse,
    WebhookAck,
)

__all__ = [
    "AuthResponse",
    "CheckoutCallbackResponse",
    "CheckoutRequest",
    "CheckoutResponse",
    "HealthResponse",
    "MessageResponse",
    "PaymentRecordOut",
    "PaymentRecordsListResponse",
    "RefreshRequest",
    "SignInRequest",
    "SignUpRequest",
    "TokenPayload",
    "UserView",
    "UsersListResponse",
    "WebhookAck",
]
