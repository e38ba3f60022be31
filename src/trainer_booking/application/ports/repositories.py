"""Port interfaces for repositories (Dependency Inversion Principle)."""

from abc import ABC, abstractmethod
from datetime import date
from typing import AsyncContextManager, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from src.trainer_booking.domain.entities.booking import Booking, BookingStatus
    from src.trainer_booking.domain.entities.client import Client
    from src.trainer_booking.domain.entities.blocked_time import BlockedTime
    from src.trainer_booking.domain.value_objects.schedule_entry import ScheduleEntry


class UnitOfWork(ABC):
    """Port interface for an atomic scope spanning several repository writes."""

    @abstractmethod
    def atomic(self) -> AsyncContextManager[None]:
        """Open a scope whose writes all commit or all roll back."""
        raise NotImplementedError


class ClientRepository(ABC):
    """Port interface for client repository."""

    @abstractmethod
    async def add(self, client: "Client") -> "Client":
        """Insert a new client. Raises ClientNameTakenError on duplicate name."""
        raise NotImplementedError

    @abstractmethod
    async def update(self, client: "Client") -> "Client":
        """Persist changes to an existing client."""
        raise NotImplementedError

    @abstractmethod
    async def find_by_id(self, client_id: int) -> Optional["Client"]:
        """Find client by ID."""
        raise NotImplementedError

    @abstractmethod
    async def find_all(self) -> List["Client"]:
        """Find all clients ordered by name."""
        raise NotImplementedError

    @abstractmethod
    async def consume_session(self, client_id: int) -> bool:
        """Decrement sessions_remaining by one, floored at zero."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, client_id: int) -> bool:
        """Delete a client row."""
        raise NotImplementedError


class BookingRepository(ABC):
    """Port interface for booking repository."""

    @abstractmethod
    async def add(self, booking: "Booking") -> "Booking":
        """Insert an upcoming booking.

        Raises SlotTakenError or DuplicateBookingForDayError when the store's
        uniqueness guarantees reject the row.
        """
        raise NotImplementedError

    @abstractmethod
    async def find_by_id(self, booking_id: int, for_update: bool = False) -> Optional["Booking"]:
        """Find booking by ID, optionally locking the row."""
        raise NotImplementedError

    @abstractmethod
    async def find_upcoming_in_range(self, start_date: date, end_date: date) -> List["Booking"]:
        """Find upcoming bookings with start_date <= date < end_date."""
        raise NotImplementedError

    @abstractmethod
    async def find_upcoming_by_client(self, client_id: int) -> List["Booking"]:
        """Find a client's upcoming bookings ordered by date and hour."""
        raise NotImplementedError

    @abstractmethod
    async def find_schedule(self, today: date) -> List["ScheduleEntry"]:
        """Find all upcoming bookings plus today's completed and cancelled ones."""
        raise NotImplementedError

    @abstractmethod
    async def find_upcoming_at_hour(self, target_date: date, hour: int) -> List["ScheduleEntry"]:
        """Find upcoming bookings scheduled at exactly (date, hour)."""
        raise NotImplementedError

    @abstractmethod
    async def find_ended_upcoming(self, today: date, current_hour: int) -> List["Booking"]:
        """Find upcoming bookings whose hour has fully elapsed."""
        raise NotImplementedError

    @abstractmethod
    async def is_slot_booked(self, target_date: date, hour: int) -> bool:
        """Check if any upcoming booking occupies (date, hour)."""
        raise NotImplementedError

    @abstractmethod
    async def has_client_booking_on_date(self, client_id: int, target_date: date) -> bool:
        """Check if the client already holds an upcoming booking on the date."""
        raise NotImplementedError

    @abstractmethod
    async def transition_status(
        self,
        booking_id: int,
        from_status: "BookingStatus",
        to_status: "BookingStatus"
    ) -> bool:
        """Move a booking to to_status only if it is currently from_status.

        Returns False when the booking was not in from_status, so concurrent
        transitions on the same row cannot both succeed.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete_by_client(self, client_id: int) -> int:
        """Delete every booking owned by the client."""
        raise NotImplementedError


class BlockedTimeRepository(ABC):
    """Port interface for blocked time repository."""

    @abstractmethod
    async def add(self, blocked_time: "BlockedTime") -> "BlockedTime":
        """Insert a blocked time window."""
        raise NotImplementedError

    @abstractmethod
    async def find_all(self) -> List["BlockedTime"]:
        """Find all blocked time windows."""
        raise NotImplementedError
