"""Client service for managing the trainer's roster."""

from datetime import date
from typing import List, Optional

from ..ports.repositories import BlockedTimeRepository, BookingRepository, ClientRepository, UnitOfWork
from ...domain.entities.blocked_time import BlockedTime
from ...domain.entities.client import Client
from ...domain.exceptions import ClientNotFoundError, InvalidPinError
from ...domain.value_objects.pin import DEFAULT_PIN, Pin
from ...infrastructure.logging import get_logger, log_pin_verification

_UNSET = object()


class ClientService:
    """Application service for clients, their PINs and the blocked-time table."""

    def __init__(
        self,
        client_repository: ClientRepository,
        booking_repository: BookingRepository,
        blocked_time_repository: BlockedTimeRepository,
        unit_of_work: UnitOfWork
    ):
        self._client_repository = client_repository
        self._booking_repository = booking_repository
        self._blocked_time_repository = blocked_time_repository
        self._unit_of_work = unit_of_work
        self._logger = get_logger(__name__)

    async def list_clients(self) -> List[Client]:
        """Get all clients ordered by name."""
        return await self._client_repository.find_all()

    async def get_client(self, client_id: int) -> Client:
        """Get a specific client by ID."""
        client = await self._client_repository.find_by_id(client_id)
        if not client:
            raise ClientNotFoundError(client_id)
        return client

    async def create_client(
        self,
        name: str,
        sessions_remaining: int = 0,
        pin: str = DEFAULT_PIN,
        sessions_expires_at: Optional[date] = None
    ) -> Client:
        """Add a client to the roster."""
        client = Client(
            name=name,
            sessions_remaining=sessions_remaining,
            pin=Pin(pin),
            sessions_expires_at=sessions_expires_at
        )
        saved = await self._client_repository.add(client)
        self._logger.info(
            "Client created",
            extra={"client_id": saved.id, "sessions_remaining": saved.sessions_remaining}
        )
        return saved

    async def update_client(
        self,
        client_id: int,
        sessions_remaining=_UNSET,
        pin=_UNSET,
        sessions_expires_at=_UNSET
    ) -> Client:
        """Apply a partial update. Only the given fields change."""
        client = await self.get_client(client_id)

        if sessions_remaining is not _UNSET:
            client.set_sessions(sessions_remaining)
        if pin is not _UNSET:
            client.change_pin(Pin(pin))
        if sessions_expires_at is not _UNSET:
            client.set_expiry(sessions_expires_at)

        updated = await self._client_repository.update(client)
        self._logger.info(
            "Client updated",
            extra={"client_id": client_id, "sessions_remaining": updated.sessions_remaining}
        )
        return updated

    async def delete_client(self, client_id: int) -> None:
        """Delete a client together with all of its bookings."""
        async with self._unit_of_work.atomic():
            removed_bookings = await self._booking_repository.delete_by_client(client_id)
            if not await self._client_repository.delete(client_id):
                raise ClientNotFoundError(client_id)

        self._logger.info(
            "Client deleted",
            extra={"client_id": client_id, "bookings_removed": removed_bookings}
        )

    async def verify_pin(self, client_id: int, pin: str) -> Client:
        """Check a client's PIN.

        An unknown client fails the same way as a wrong PIN.
        """
        client = await self._client_repository.find_by_id(client_id)
        if not client or not client.pin.matches(pin):
            log_pin_verification(self._logger, client_id, False)
            raise InvalidPinError()

        log_pin_verification(self._logger, client_id, True)
        return client

    async def list_blocked_times(self) -> List[BlockedTime]:
        """Get all recurring blocked windows."""
        return await self._blocked_time_repository.find_all()

    async def create_blocked_time(
        self,
        start_time: str,
        end_time: str,
        day_of_week: Optional[int] = None
    ) -> BlockedTime:
        """Declare a new recurring blocked window."""
        blocked_time = await self._blocked_time_repository.add(
            BlockedTime(start_time=start_time, end_time=end_time, day_of_week=day_of_week)
        )
        self._logger.info(
            "Blocked time created",
            extra={"start_time": start_time, "end_time": end_time, "day_of_week": day_of_week}
        )
        return blocked_time
