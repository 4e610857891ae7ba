"""Service-layer exceptions. Routes translate these into HTTP responses."""


class ServiceError(Exception):
    """Base class for errors raised by the auth and payment services."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AlreadyExists(ServiceError):
    """Raised on signup when the email is already registered."""


class RoleMissing(ServiceError):
    """Raised when required role reference data has not been seeded."""


class Unauthorized(ServiceError):
    """Raised for bad credentials and invalid, expired or rotated-out tokens."""


class NotFound(ServiceError):
    """Raised when a user, customer reference or ledger record does not exist."""


class InvalidSignature(ServiceError):
    """Raised when a webhook payload fails signature verification."""


class GatewayFailure(ServiceError):
    """Raised when a payment gateway call fails or times out."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class ActivePaymentExists(ServiceError):
    """Raised on checkout when the user already has a completed payment."""
