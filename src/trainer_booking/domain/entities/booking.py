"""Booking entity for training session management."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from ..exceptions import BookingAlreadyCompletedError, BookingNotUpcomingError, ValidationError


class BookingStatus(Enum):
    """Booking status enumeration."""
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Booking:
    """Booking entity representing one client's claim on an hourly slot."""

    def __init__(
        self,
        client_id: int,
        session_date: date,
        hour: int,
        booking_id: Optional[int] = None,
        status: BookingStatus = BookingStatus.UPCOMING,
        created_at: Optional[datetime] = None
    ):
        if not 0 <= hour <= 23:
            raise ValidationError(f"Hour must be between 0 and 23, got {hour}")
        self._id = booking_id
        self._client_id = client_id
        self._date = session_date
        self._hour = hour
        self._status = status
        self._created_at = created_at or datetime.utcnow()

    @property
    def id(self) -> Optional[int]:
        """Get booking ID (None until persisted)."""
        return self._id

    @property
    def client_id(self) -> int:
        """Get owning client ID."""
        return self._client_id

    @property
    def date(self) -> date:
        """Get civil date of the session."""
        return self._date

    @property
    def hour(self) -> int:
        """Get starting hour of the session (0-23)."""
        return self._hour

    @property
    def status(self) -> BookingStatus:
        """Get booking status."""
        return self._status

    @property
    def created_at(self) -> datetime:
        """Get creation timestamp."""
        return self._created_at

    @property
    def slot_key(self) -> tuple:
        """Get the (date, hour) pair this booking occupies."""
        return (self._date, self._hour)

    def assign_id(self, booking_id: int) -> None:
        """Attach the surrogate ID issued by the store."""
        self._id = booking_id

    def complete(self) -> None:
        """Mark booking as completed."""
        if self._status == BookingStatus.COMPLETED:
            raise BookingAlreadyCompletedError()
        if self._status != BookingStatus.UPCOMING:
            raise BookingNotUpcomingError()
        self._status = BookingStatus.COMPLETED

    def cancel(self) -> None:
        """Cancel the booking. Cancelling twice is a no-op."""
        if self._status == BookingStatus.COMPLETED:
            raise BookingAlreadyCompletedError("Completed bookings cannot be cancelled")
        self._status = BookingStatus.CANCELLED

    def is_upcoming(self) -> bool:
        """Check if booking still holds its slot."""
        return self._status == BookingStatus.UPCOMING

    def __eq__(self, other: object) -> bool:
        """Check equality based on booking ID."""
        if not isinstance(other, Booking):
            return False
        if self._id is None or other._id is None:
            return self is other
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id) if self._id is not None else id(self)

    def __str__(self) -> str:
        return f"Booking({self._id}, client={self._client_id}, {self._date.isoformat()} {self._hour:02d}:00, {self._status.value})"
