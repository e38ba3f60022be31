"""Domain error taxonomy for the booking engine."""

from typing import Optional


class BookingSystemError(Exception):
    """Base class for all errors raised by the booking engine."""


class ValidationError(BookingSystemError, ValueError):
    """Raised when input is malformed or missing."""


class NotFoundError(BookingSystemError):
    """Raised when a referenced entity does not exist."""

    entity = "Entity"

    def __init__(self, entity_id: object):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} not found: {entity_id}")


class ClientNotFoundError(NotFoundError):
    entity = "Client"


class BookingNotFoundError(NotFoundError):
    entity = "Booking"


class ConflictError(BookingSystemError):
    """Raised when a request conflicts with the current state of the store.

    Callers are expected to refresh their view of availability before retrying.
    """

    reason = "conflict"
    default_message = "Request conflicts with current state"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class SlotTakenError(ConflictError):
    reason = "slot_taken"
    default_message = "This slot has already been booked"


class DuplicateBookingForDayError(ConflictError):
    reason = "duplicate_booking_for_day"
    default_message = "Client already has a session booked on this day"


class BookingAlreadyCompletedError(ConflictError):
    reason = "already_completed"
    default_message = "Booking already completed"


class BookingNotUpcomingError(ConflictError):
    reason = "booking_not_upcoming"
    default_message = "Only upcoming bookings can be completed"


class SlotUnavailableError(ConflictError):
    reason = "slot_unavailable"
    default_message = "This slot is not available for booking"


class ClientNameTakenError(ConflictError):
    reason = "client_name_taken"
    default_message = "A client with this name already exists"


class InvalidPinError(BookingSystemError):
    """Raised when a PIN does not match the client's PIN."""

    def __init__(self, message: str = "Invalid PIN"):
        super().__init__(message)


class DataAccessError(BookingSystemError):
    """Raised when the store is unreachable or a transaction is aborted."""
