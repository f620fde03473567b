"""
Domain errors raised by the booking and payment services.

Request-time errors are rendered as JSON by the handler registered in
``ticketpay.main``. Callback-time errors never reach the gateway as an
HTTP error; the reconciler turns them into a failure redirect.
"""

from fastapi import status


class TicketPayError(Exception):
    """Base exception for all domain-level errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(TicketPayError):
    """Booking, coupon or referral source does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(TicketPayError):
    """Operation is not allowed from the booking's current state."""

    status_code = status.HTTP_409_CONFLICT


class InvalidInputError(TicketPayError):
    """Request payload is malformed or out of bounds."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidCodeError(InvalidInputError):
    """A coupon or referral code cannot be applied."""

    def __init__(self, code: str, message: str | None = None):
        self.code = code
        super().__init__(message or f"Invalid or already used code: {code}")


class ForbiddenError(TicketPayError):
    status_code = status.HTTP_403_FORBIDDEN


class IntegrityFailure(TicketPayError):
    """Gateway payload failed hash verification. Terminal, never retried."""

    status_code = status.HTTP_400_BAD_REQUEST


class UpstreamInconsistency(TicketPayError):
    """Verified callback references a booking we cannot match."""

    status_code = status.HTTP_400_BAD_REQUEST
