"""In-memory repository implementations for testing and development."""

import copy
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import AsyncIterator, Dict, List, Optional

from src.trainer_booking.application.ports.repositories import (
    BlockedTimeRepository,
    BookingRepository,
    ClientRepository,
    UnitOfWork
)
from src.trainer_booking.domain.entities.blocked_time import BlockedTime
from src.trainer_booking.domain.entities.booking import Booking, BookingStatus
from src.trainer_booking.domain.entities.client import Client
from src.trainer_booking.domain.exceptions import (
    ClientNameTakenError,
    DataAccessError,
    DuplicateBookingForDayError,
    SlotTakenError
)
from src.trainer_booking.domain.value_objects.pin import Pin
from src.trainer_booking.domain.value_objects.schedule_entry import ScheduleEntry


@dataclass
class InMemoryStore:
    """Rows shared by all in-memory repositories.

    Rows are plain dicts so entities handed out by repositories never alias
    stored state. Each repository method runs without awaiting, so under
    asyncio every check-and-write below is atomic.
    """
    clients: Dict[int, dict] = field(default_factory=dict)
    bookings: Dict[int, dict] = field(default_factory=dict)
    blocked_times: Dict[int, dict] = field(default_factory=dict)
    next_ids: Dict[str, int] = field(default_factory=lambda: {"clients": 1, "bookings": 1, "blocked_times": 1})

    def issue_id(self, table: str) -> int:
        issued = self.next_ids[table]
        self.next_ids[table] = issued + 1
        return issued

    def snapshot(self) -> dict:
        return copy.deepcopy({
            "clients": self.clients,
            "bookings": self.bookings,
            "blocked_times": self.blocked_times,
            "next_ids": self.next_ids,
        })

    def restore(self, state: dict) -> None:
        self.clients = state["clients"]
        self.bookings = state["bookings"]
        self.blocked_times = state["blocked_times"]
        self.next_ids = state["next_ids"]


class InMemoryUnitOfWork(UnitOfWork):
    """Snapshot-and-restore atomic scope over an InMemoryStore."""

    def __init__(self, store: InMemoryStore):
        self._store = store

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        state = self._store.snapshot()
        try:
            yield
        except BaseException:
            self._store.restore(state)
            raise


class InMemoryClientRepository(ClientRepository):
    """In-memory implementation of client repository."""

    def __init__(self, store: InMemoryStore):
        self._store = store

    async def add(self, client: Client) -> Client:
        """Insert a new client."""
        if any(row["name"] == client.name for row in self._store.clients.values()):
            raise ClientNameTakenError()

        client_id = self._store.issue_id("clients")
        self._store.clients[client_id] = self._entity_to_row(client, client_id)
        client.assign_id(client_id)
        return client

    async def update(self, client: Client) -> Client:
        """Persist changes to an existing client."""
        if client.id not in self._store.clients:
            raise DataAccessError(f"Client row {client.id} vanished during update")
        if any(
            row["name"] == client.name and row_id != client.id
            for row_id, row in self._store.clients.items()
        ):
            raise ClientNameTakenError()

        self._store.clients[client.id] = self._entity_to_row(client, client.id)
        return client

    async def find_by_id(self, client_id: int) -> Optional[Client]:
        """Find client by ID."""
        row = self._store.clients.get(client_id)
        return self._row_to_entity(row) if row else None

    async def find_all(self) -> List[Client]:
        """Find all clients ordered by name."""
        rows = sorted(self._store.clients.values(), key=lambda row: row["name"])
        return [self._row_to_entity(row) for row in rows]

    async def consume_session(self, client_id: int) -> bool:
        """Decrement sessions_remaining by one, floored at zero."""
        row = self._store.clients.get(client_id)
        if not row:
            return False
        row["sessions_remaining"] = max(row["sessions_remaining"] - 1, 0)
        return True

    async def delete(self, client_id: int) -> bool:
        """Delete a client row, cascading to its bookings."""
        if self._store.clients.pop(client_id, None) is None:
            return False
        for booking_id in [
            booking_id for booking_id, row in self._store.bookings.items()
            if row["client_id"] == client_id
        ]:
            del self._store.bookings[booking_id]
        return True

    @staticmethod
    def _entity_to_row(client: Client, client_id: int) -> dict:
        return {
            "id": client_id,
            "name": client.name,
            "pin": client.pin.value,
            "sessions_remaining": client.sessions_remaining,
            "sessions_expires_at": client.sessions_expires_at,
            "created_at": client.created_at,
        }

    @staticmethod
    def _row_to_entity(row: dict) -> Client:
        return Client(
            client_id=row["id"],
            name=row["name"],
            pin=Pin(row["pin"]),
            sessions_remaining=row["sessions_remaining"],
            sessions_expires_at=row["sessions_expires_at"],
            created_at=row["created_at"]
        )


class InMemoryBookingRepository(BookingRepository):
    """In-memory implementation of booking repository."""

    def __init__(self, store: InMemoryStore):
        self._store = store

    async def add(self, booking: Booking) -> Booking:
        """Insert an upcoming booking, enforcing both uniqueness rules."""
        upcoming = [row for row in self._store.bookings.values() if row["status"] == BookingStatus.UPCOMING]
        if any(row["date"] == booking.date and row["hour"] == booking.hour for row in upcoming):
            raise SlotTakenError()
        if any(row["client_id"] == booking.client_id and row["date"] == booking.date for row in upcoming):
            raise DuplicateBookingForDayError()
        if booking.client_id not in self._store.clients:
            raise DataAccessError(f"Foreign key violation: client {booking.client_id}")

        booking_id = self._store.issue_id("bookings")
        self._store.bookings[booking_id] = {
            "id": booking_id,
            "client_id": booking.client_id,
            "date": booking.date,
            "hour": booking.hour,
            "status": booking.status,
            "created_at": booking.created_at,
        }
        booking.assign_id(booking_id)
        return booking

    async def find_by_id(self, booking_id: int, for_update: bool = False) -> Optional[Booking]:
        """Find booking by ID."""
        row = self._store.bookings.get(booking_id)
        return self._row_to_entity(row) if row else None

    async def find_upcoming_in_range(self, start_date: date, end_date: date) -> List[Booking]:
        """Find upcoming bookings in [start_date, end_date)."""
        return self._select(
            lambda row: row["status"] == BookingStatus.UPCOMING and start_date <= row["date"] < end_date
        )

    async def find_upcoming_by_client(self, client_id: int) -> List[Booking]:
        """Find a client's upcoming bookings."""
        return self._select(
            lambda row: row["status"] == BookingStatus.UPCOMING and row["client_id"] == client_id
        )

    async def find_schedule(self, today: date) -> List[ScheduleEntry]:
        """Find all upcoming bookings plus today's completed and cancelled ones."""
        return self._join_clients(self._select(
            lambda row: row["status"] == BookingStatus.UPCOMING or row["date"] == today
        ))

    async def find_upcoming_at_hour(self, target_date: date, hour: int) -> List[ScheduleEntry]:
        """Find upcoming bookings at exactly (date, hour)."""
        return self._join_clients(self._select(
            lambda row: row["status"] == BookingStatus.UPCOMING
            and row["date"] == target_date
            and row["hour"] == hour
        ))

    async def find_ended_upcoming(self, today: date, current_hour: int) -> List[Booking]:
        """Find upcoming bookings whose hour has fully elapsed."""
        return self._select(
            lambda row: row["status"] == BookingStatus.UPCOMING
            and (row["date"] < today or (row["date"] == today and row["hour"] < current_hour))
        )

    async def is_slot_booked(self, target_date: date, hour: int) -> bool:
        """Check if any upcoming booking occupies (date, hour)."""
        return any(
            row["status"] == BookingStatus.UPCOMING and row["date"] == target_date and row["hour"] == hour
            for row in self._store.bookings.values()
        )

    async def has_client_booking_on_date(self, client_id: int, target_date: date) -> bool:
        """Check if the client already holds an upcoming booking on the date."""
        return any(
            row["status"] == BookingStatus.UPCOMING and row["client_id"] == client_id and row["date"] == target_date
            for row in self._store.bookings.values()
        )

    async def transition_status(
        self,
        booking_id: int,
        from_status: BookingStatus,
        to_status: BookingStatus
    ) -> bool:
        """Move the booking to to_status only if it is currently from_status."""
        row = self._store.bookings.get(booking_id)
        if not row or row["status"] != from_status:
            return False
        row["status"] = to_status
        return True

    async def delete_by_client(self, client_id: int) -> int:
        """Delete every booking owned by the client."""
        doomed = [booking_id for booking_id, row in self._store.bookings.items() if row["client_id"] == client_id]
        for booking_id in doomed:
            del self._store.bookings[booking_id]
        return len(doomed)

    def _select(self, predicate) -> List[Booking]:
        rows = sorted(
            (row for row in self._store.bookings.values() if predicate(row)),
            key=lambda row: (row["date"], row["hour"], row["id"])
        )
        return [self._row_to_entity(row) for row in rows]

    def _join_clients(self, bookings: List[Booking]) -> List[ScheduleEntry]:
        entries = []
        for booking in bookings:
            client_row = self._store.clients.get(booking.client_id)
            if client_row is None:
                continue
            entries.append(ScheduleEntry(
                booking=booking,
                client_name=client_row["name"],
                client_sessions=client_row["sessions_remaining"]
            ))
        return entries

    @staticmethod
    def _row_to_entity(row: dict) -> Booking:
        return Booking(
            booking_id=row["id"],
            client_id=row["client_id"],
            session_date=row["date"],
            hour=row["hour"],
            status=row["status"],
            created_at=row["created_at"]
        )


class InMemoryBlockedTimeRepository(BlockedTimeRepository):
    """In-memory implementation of blocked time repository."""

    def __init__(self, store: InMemoryStore):
        self._store = store

    async def add(self, blocked_time: BlockedTime) -> BlockedTime:
        """Insert a blocked time window."""
        blocked_id = self._store.issue_id("blocked_times")
        self._store.blocked_times[blocked_id] = {
            "id": blocked_id,
            "start_time": blocked_time.start_time,
            "end_time": blocked_time.end_time,
            "day_of_week": blocked_time.day_of_week,
            "created_at": blocked_time.created_at or datetime.utcnow(),
        }
        return BlockedTime(**self._store.blocked_times[blocked_id])

    async def find_all(self) -> List[BlockedTime]:
        """Find all blocked time windows."""
        return [BlockedTime(**row) for _, row in sorted(self._store.blocked_times.items())]
