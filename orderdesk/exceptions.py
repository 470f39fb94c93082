"""
Application Error Taxonomy

Every error raised by the service layer derives from OrderDeskError and
carries the HTTP status the API boundary maps it to. The exception
handlers registered in orderdesk.main turn them into ErrorResponse bodies.
"""

from typing import Optional


class OrderDeskError(Exception):
    """Base exception for all handled application errors."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, message: str, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(OrderDeskError):
    """Missing or invalid input."""

    status_code = 400
    error = "Validation Error"


class InvalidTransitionError(ValidationError):
    """Requested order status change is not allowed by the state machine."""

    def __init__(self, order_id: int, current: str, requested: str) -> None:
        super().__init__(
            f"Order #{order_id} cannot move from {current} to {requested}",
        )
        self.order_id = order_id
        self.current = current
        self.requested = requested


class AuthenticationError(OrderDeskError):
    """No valid staff session."""

    status_code = 401
    error = "Unauthorized"


class AuthorizationError(OrderDeskError):
    """Authenticated, but not allowed (wrong role or other tenant)."""

    status_code = 403
    error = "Forbidden"


class NotFoundError(OrderDeskError):
    """Restaurant, order, category or product absent."""

    status_code = 404
    error = "Not Found"


class ExternalServiceError(OrderDeskError):
    """Payment or pub/sub provider failure."""

    status_code = 502
    error = "External Service Error"

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message, detail)
        self.provider = provider


class PaymentConfigurationError(ExternalServiceError):
    """Payment provider credentials are not configured."""

    status_code = 500


class InternalError(OrderDeskError):
    """Unexpected failure."""
