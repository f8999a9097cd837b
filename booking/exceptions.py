"""
exceptions.py
-------------
Error taxonomy of the booking engine.

The services raise these; booking/views.py turns them into HTTP responses.
BookingValidationError subclasses ValueError so older callers that catch
ValueError around BookingManager keep working.
"""


class BookingError(Exception):
    """Base class for every error raised by the booking services."""

    code = "booking_error"

    def __init__(self, message: str = "", **details):
        super().__init__(message)
        self.message = message
        self.details = details


class BookingValidationError(BookingError, ValueError):
    """Missing/malformed input, start >= end, blocked date, unsupported option."""

    code = "validation_error"


class BookingNotFound(BookingError, LookupError):
    code = "not_found"


class InvalidTransition(BookingValidationError):
    """The booking is not in a status that allows the requested change."""

    code = "invalid_transition"


class ConflictError(BookingError):
    """The requested interval overlaps an active booking of the same room."""

    code = "conflict"


class InsufficientBalanceError(BookingError):
    """The user's token/package balance cannot cover the charge."""

    code = "insufficient_balance"

    def __init__(self, message: str = "", *, field: str = "", required: int = 0, available: int = 0):
        super().__init__(message, field=field, required=required, available=available)
        self.field = field
        self.required = required
        self.available = available


class CancellationFeeError(InsufficientBalanceError):
    """
    The cancellation fee cannot be paid.
    Nothing was changed; the booking is still active.
    """

    code = "insufficient_tokens"


class TransientError(BookingError):
    """Network/timeout/unknown persistence failure. Retryable by the caller."""

    code = "transient_error"
