"""Unit tests for booking service application layer."""

import asyncio
import pytest
from datetime import date, datetime
from unittest.mock import AsyncMock, patch

from src.trainer_booking.application.services.availability_service import AvailabilityService
from src.trainer_booking.application.services.booking_service import BookingService
from src.trainer_booking.domain.entities.booking import Booking, BookingStatus
from src.trainer_booking.domain.entities.client import Client
from src.trainer_booking.domain.exceptions import (
    BookingAlreadyCompletedError,
    BookingNotFoundError,
    BookingNotUpcomingError,
    ClientNotFoundError,
    DataAccessError,
    DuplicateBookingForDayError,
    SlotTakenError,
    SlotUnavailableError
)
from src.trainer_booking.domain.services.civil_clock import CivilClock
from src.trainer_booking.infrastructure.repositories.memory_repositories import (
    InMemoryBlockedTimeRepository,
    InMemoryBookingRepository,
    InMemoryClientRepository,
    InMemoryStore,
    InMemoryUnitOfWork
)

TODAY = date(2025, 6, 10)
YESTERDAY = date(2025, 6, 9)
TOMORROW = date(2025, 6, 11)


class FailingClientRepository(InMemoryClientRepository):
    """Client repository whose balance update always fails."""

    async def consume_session(self, client_id: int) -> bool:
        raise DataAccessError("connection lost")


class BookingServiceTestCase:
    """Shared setup over the in-memory store."""

    def setup_service(self, now=datetime(2025, 6, 10, 9, 30), client_repository_class=InMemoryClientRepository):
        """Set up a booking service over a fresh store."""
        self.store = InMemoryStore()
        self.clock = CivilClock.fixed(now)
        self.client_repo = client_repository_class(self.store)
        self.booking_repo = InMemoryBookingRepository(self.store)
        self.service = self.build_service()

    def build_service(self, availability_service=None) -> BookingService:
        """Build a booking service sharing this test's store."""
        return BookingService(
            booking_repository=self.booking_repo,
            client_repository=self.client_repo,
            unit_of_work=InMemoryUnitOfWork(self.store),
            availability_service=availability_service or AvailabilityService(
                booking_repository=self.booking_repo,
                blocked_time_repository=InMemoryBlockedTimeRepository(self.store),
                clock=self.clock
            ),
            clock=self.clock
        )

    async def add_client(self, name, sessions_remaining=5) -> Client:
        return await self.client_repo.add(Client(name=name, sessions_remaining=sessions_remaining))

    async def add_booking(self, client, session_date, hour) -> Booking:
        """Insert a booking directly, bypassing slot validation."""
        return await self.booking_repo.add(Booking(client_id=client.id, session_date=session_date, hour=hour))

    async def balance(self, client) -> int:
        return (await self.client_repo.find_by_id(client.id)).sessions_remaining


class TestCreateBooking(BookingServiceTestCase):
    """Test cases for booking creation."""

    @pytest.mark.asyncio
    async def test_create_booking_success(self):
        """Test booking an open slot."""
        self.setup_service()
        client = await self.add_client("Sharikh")

        booking = await self.service.create_booking(client.id, TODAY, 14)

        assert booking.id is not None
        assert booking.status == BookingStatus.UPCOMING
        assert booking.slot_key == (TODAY, 14)
        assert await self.booking_repo.is_slot_booked(TODAY, 14) is True

    @pytest.mark.asyncio
    async def test_create_booking_unknown_client(self):
        """Test booking for a missing client."""
        self.setup_service()

        with pytest.raises(ClientNotFoundError):
            await self.service.create_booking(999, TODAY, 14)

    @pytest.mark.asyncio
    async def test_slot_taken_by_another_client(self):
        """Test a slot booked by one client is taken for the next."""
        self.setup_service()
        first = await self.add_client("Sharikh")
        second = await self.add_client("Tannu")
        await self.service.create_booking(first.id, TODAY, 14)

        with pytest.raises(SlotTakenError) as exc_info:
            await self.service.create_booking(second.id, TODAY, 14)

        assert exc_info.value.reason == "slot_taken"

    @pytest.mark.asyncio
    async def test_one_booking_per_client_per_day(self):
        """Test a second slot on the same day is rejected."""
        self.setup_service()
        client = await self.add_client("Sharikh")
        await self.service.create_booking(client.id, TOMORROW, 14)

        with pytest.raises(DuplicateBookingForDayError):
            await self.service.create_booking(client.id, TOMORROW, 16)

        # A different day is fine
        await self.service.create_booking(client.id, date(2025, 6, 12), 16)

    @pytest.mark.asyncio
    async def test_slot_taken_reported_before_duplicate_day(self):
        """Test rebooking one's own slot reports the slot as taken."""
        self.setup_service()
        client = await self.add_client("Sharikh")
        await self.service.create_booking(client.id, TOMORROW, 14)

        with pytest.raises(SlotTakenError):
            await self.service.create_booking(client.id, TOMORROW, 14)

    @pytest.mark.asyncio
    async def test_unavailable_slot_rejected(self):
        """Test blocked slots are rejected before insert."""
        self.setup_service()
        client = await self.add_client("Sharikh")

        with pytest.raises(SlotUnavailableError):
            await self.service.create_booking(client.id, TOMORROW, 18)

        assert await self.booking_repo.find_upcoming_by_client(client.id) == []

    @pytest.mark.asyncio
    async def test_zero_balance_does_not_block_booking(self):
        """Test a client with no sessions left can still book."""
        self.setup_service()
        client = await self.add_client("Riyan", sessions_remaining=0)

        booking = await self.service.create_booking(client.id, TOMORROW, 12)

        assert booking.status == BookingStatus.UPCOMING

    @pytest.mark.asyncio
    async def test_cancelled_slot_can_be_rebooked(self):
        """Test cancelling frees both the slot and the client's day."""
        self.setup_service()
        client = await self.add_client("Sharikh")
        booking = await self.service.create_booking(client.id, TOMORROW, 14)

        await self.service.cancel_booking(booking.id)
        rebooked = await self.service.create_booking(client.id, TOMORROW, 14)

        assert rebooked.id != booking.id

    @pytest.mark.asyncio
    async def test_concurrent_creates_for_one_slot(self):
        """Test exactly one of two racing creates wins the slot."""
        self.setup_service()
        first = await self.add_client("Sharikh")
        second = await self.add_client("Tannu")

        results = await asyncio.gather(
            self.service.create_booking(first.id, TOMORROW, 14),
            self.service.create_booking(second.id, TOMORROW, 14),
            return_exceptions=True
        )

        successes = [result for result in results if isinstance(result, Booking)]
        failures = [result for result in results if isinstance(result, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], SlotTakenError)

    @pytest.mark.asyncio
    async def test_store_rejects_when_prechecks_pass(self):
        """Test the store still serializes creates whose pre-checks both passed."""
        self.setup_service()
        first = await self.add_client("Sharikh")
        second = await self.add_client("Tannu")
        permissive = AsyncMock()
        permissive.ensure_bookable.return_value = None
        service = self.build_service(availability_service=permissive)

        await service.create_booking(first.id, TOMORROW, 14)

        with pytest.raises(SlotTakenError):
            await service.create_booking(second.id, TOMORROW, 14)

        self.booking_repo.has_client_booking_on_date = AsyncMock(return_value=False)
        with pytest.raises(DuplicateBookingForDayError):
            await service.create_booking(first.id, TOMORROW, 15)


class TestCancelBooking(BookingServiceTestCase):
    """Test cases for booking cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_keeps_balance(self):
        """Test cancelling never touches the session balance."""
        self.setup_service()
        client = await self.add_client("Sharikh", sessions_remaining=3)
        booking = await self.service.create_booking(client.id, TOMORROW, 14)

        cancelled = await self.service.cancel_booking(booking.id)

        assert cancelled.status == BookingStatus.CANCELLED
        assert (await self.booking_repo.find_by_id(booking.id)).status == BookingStatus.CANCELLED
        assert await self.balance(client) == 3

    @pytest.mark.asyncio
    async def test_cancel_twice_succeeds(self):
        """Test cancelling a cancelled booking is a no-op success."""
        self.setup_service()
        client = await self.add_client("Sharikh")
        booking = await self.service.create_booking(client.id, TOMORROW, 14)
        await self.service.cancel_booking(booking.id)

        again = await self.service.cancel_booking(booking.id)

        assert again.status == BookingStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_completed_rejected(self):
        """Test completed bookings cannot be cancelled."""
        self.setup_service()
        client = await self.add_client("Sharikh")
        booking = await self.service.create_booking(client.id, TOMORROW, 14)
        await self.service.complete_booking(booking.id)

        with pytest.raises(BookingAlreadyCompletedError):
            await self.service.cancel_booking(booking.id)

        assert (await self.booking_repo.find_by_id(booking.id)).status == BookingStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_cancel_missing_booking(self):
        """Test cancelling an unknown booking."""
        self.setup_service()

        with pytest.raises(BookingNotFoundError):
            await self.service.cancel_booking(42)


class TestCompleteBooking(BookingServiceTestCase):
    """Test cases for booking completion."""

    @pytest.mark.asyncio
    async def test_complete_deducts_one_session(self):
        """Test completion moves status and deducts one session."""
        self.setup_service()
        client = await self.add_client("Sharikh", sessions_remaining=24)
        booking = await self.service.create_booking(client.id, TOMORROW, 14)

        completed = await self.service.complete_booking(booking.id)

        assert completed.status == BookingStatus.COMPLETED
        assert await self.balance(client) == 23

    @pytest.mark.asyncio
    async def test_complete_twice_deducts_once(self):
        """Test a second completion is rejected without a second deduction."""
        self.setup_service()
        client = await self.add_client("Tannu", sessions_remaining=2)
        booking = await self.service.create_booking(client.id, TOMORROW, 14)
        await self.service.complete_booking(booking.id)

        with pytest.raises(BookingAlreadyCompletedError):
            await self.service.complete_booking(booking.id)

        assert await self.balance(client) == 1

    @pytest.mark.asyncio
    async def test_concurrent_completes_deduct_once(self):
        """Test racing completions deduct exactly one session."""
        self.setup_service()
        client = await self.add_client("Tannu", sessions_remaining=2)
        booking = await self.service.create_booking(client.id, TOMORROW, 14)

        results = await asyncio.gather(
            self.service.complete_booking(booking.id),
            self.service.complete_booking(booking.id),
            return_exceptions=True
        )

        assert sum(isinstance(result, Booking) for result in results) == 1
        assert sum(isinstance(result, BookingAlreadyCompletedError) for result in results) == 1
        assert await self.balance(client) == 1

    @pytest.mark.asyncio
    async def test_complete_with_zero_balance(self):
        """Test the balance never goes negative."""
        self.setup_service()
        client = await self.add_client("Riyan", sessions_remaining=0)
        booking = await self.service.create_booking(client.id, TOMORROW, 14)

        await self.service.complete_booking(booking.id)

        assert await self.balance(client) == 0

    @pytest.mark.asyncio
    async def test_complete_cancelled_rejected(self):
        """Test cancelled bookings cannot be completed."""
        self.setup_service()
        client = await self.add_client("Sharikh", sessions_remaining=5)
        booking = await self.service.create_booking(client.id, TOMORROW, 14)
        await self.service.cancel_booking(booking.id)

        with pytest.raises(BookingNotUpcomingError):
            await self.service.complete_booking(booking.id)

        assert await self.balance(client) == 5

    @pytest.mark.asyncio
    async def test_complete_missing_booking(self):
        """Test completing an unknown booking."""
        self.setup_service()

        with pytest.raises(BookingNotFoundError):
            await self.service.complete_booking(42)

    @pytest.mark.asyncio
    async def test_failed_deduction_rolls_back_status(self):
        """Test status and balance change together or not at all."""
        self.setup_service(client_repository_class=FailingClientRepository)
        client = await self.add_client("Sharikh", sessions_remaining=5)
        booking = await self.add_booking(client, TOMORROW, 14)

        with pytest.raises(DataAccessError):
            await self.service.complete_booking(booking.id)

        assert (await self.booking_repo.find_by_id(booking.id)).status == BookingStatus.UPCOMING
        assert await self.balance(client) == 5


class TestExpireOverdue(BookingServiceTestCase):
    """Test cases for sweeping bookings whose hour has ended."""

    async def seed(self):
        """Seed bookings around 2025-06-10 15:10."""
        self.sharikh = await self.add_client("Sharikh", sessions_remaining=10)
        self.tannu = await self.add_client("Tannu", sessions_remaining=1)
        self.riyan = await self.add_client("Riyan", sessions_remaining=0)
        self.yesterday_booking = await self.add_booking(self.sharikh, YESTERDAY, 14)
        self.ended_booking = await self.add_booking(self.tannu, TODAY, 14)
        self.running_booking = await self.add_booking(self.riyan, TODAY, 15)
        self.tomorrow_booking = await self.add_booking(self.sharikh, TOMORROW, 14)

    @pytest.mark.asyncio
    async def test_expire_overdue(self):
        """Test only bookings whose hour has ended are completed."""
        self.setup_service(now=datetime(2025, 6, 10, 15, 10))
        await self.seed()

        expired = await self.service.expire_overdue()

        assert expired == 2
        assert (await self.booking_repo.find_by_id(self.yesterday_booking.id)).status == BookingStatus.COMPLETED
        assert (await self.booking_repo.find_by_id(self.ended_booking.id)).status == BookingStatus.COMPLETED
        assert (await self.booking_repo.find_by_id(self.running_booking.id)).status == BookingStatus.UPCOMING
        assert (await self.booking_repo.find_by_id(self.tomorrow_booking.id)).status == BookingStatus.UPCOMING
        assert await self.balance(self.sharikh) == 9
        assert await self.balance(self.tannu) == 0
        assert await self.balance(self.riyan) == 0

    @pytest.mark.asyncio
    async def test_expire_overdue_is_idempotent(self):
        """Test a second sweep transitions nothing."""
        self.setup_service(now=datetime(2025, 6, 10, 15, 10))
        await self.seed()
        await self.service.expire_overdue()

        assert await self.service.expire_overdue() == 0
        assert await self.balance(self.sharikh) == 9

    @pytest.mark.asyncio
    async def test_expire_skips_completed_booking(self):
        """Test a booking completed manually is not deducted again."""
        self.setup_service(now=datetime(2025, 6, 10, 15, 10))
        await self.seed()
        await self.service.complete_booking(self.ended_booking.id)

        expired = await self.service.expire_overdue()

        assert expired == 1
        assert await self.balance(self.tannu) == 0

    @pytest.mark.asyncio
    async def test_sweep_uses_one_atomic_scope(self):
        """Test a sweep snapshots the store once however many bookings it moves."""
        self.setup_service(now=datetime(2025, 6, 10, 15, 10))
        await self.seed()

        with patch.object(self.store, "snapshot", wraps=self.store.snapshot) as snapshot:
            expired = await self.service.expire_overdue()

        assert expired == 2
        snapshot.assert_called_once()

    @pytest.mark.asyncio
    async def test_failed_sweep_changes_nothing(self):
        """Test a failing balance update rolls back the whole sweep."""
        self.setup_service(
            now=datetime(2025, 6, 10, 15, 10),
            client_repository_class=FailingClientRepository
        )
        await self.seed()

        with pytest.raises(DataAccessError):
            await self.service.expire_overdue()

        assert (await self.booking_repo.find_by_id(self.yesterday_booking.id)).status == BookingStatus.UPCOMING
        assert (await self.booking_repo.find_by_id(self.ended_booking.id)).status == BookingStatus.UPCOMING

    @pytest.mark.asyncio
    async def test_concurrent_sweeps_deduct_once(self):
        """Test overlapping sweeps complete each booking once."""
        self.setup_service(now=datetime(2025, 6, 10, 15, 10))
        await self.seed()

        counts = await asyncio.gather(self.service.expire_overdue(), self.service.expire_overdue())

        assert sum(counts) == 2
        assert await self.balance(self.sharikh) == 9

    @pytest.mark.asyncio
    async def test_list_in_progress(self):
        """Test only the current hour's bookings are in progress."""
        self.setup_service(now=datetime(2025, 6, 10, 15, 10))
        await self.seed()

        entries = await self.service.list_in_progress()

        assert [entry.booking.id for entry in entries] == [self.running_booking.id]
        assert entries[0].client_name == "Riyan"

    @pytest.mark.asyncio
    async def test_list_schedule_sweeps_first(self):
        """Test the schedule shows upcoming plus today's finished bookings."""
        self.setup_service(now=datetime(2025, 6, 10, 15, 10))
        await self.seed()

        schedule = await self.service.list_schedule()

        assert [(entry.booking.date, entry.booking.hour) for entry in schedule] == [
            (TODAY, 14),
            (TODAY, 15),
            (TOMORROW, 14),
        ]
        assert schedule[0].booking.status == BookingStatus.COMPLETED
        assert schedule[0].client_name == "Tannu"
        assert schedule[0].client_sessions == 0


class TestBookingQueries(BookingServiceTestCase):
    """Test cases for booking lookups."""

    @pytest.mark.asyncio
    async def test_list_client_bookings(self):
        """Test a client's upcoming bookings in slot order."""
        self.setup_service()
        client = await self.add_client("Sharikh")
        later = await self.service.create_booking(client.id, date(2025, 6, 12), 13)
        sooner = await self.service.create_booking(client.id, TOMORROW, 16)
        cancelled = await self.service.create_booking(client.id, date(2025, 6, 13), 12)
        await self.service.cancel_booking(cancelled.id)

        bookings = await self.service.list_client_bookings(client.id)

        assert [booking.id for booking in bookings] == [sooner.id, later.id]

    @pytest.mark.asyncio
    async def test_get_booking(self):
        """Test fetching a booking by ID."""
        self.setup_service()
        client = await self.add_client("Sharikh")
        booking = await self.service.create_booking(client.id, TOMORROW, 14)

        assert await self.service.get_booking(booking.id) == booking

        with pytest.raises(BookingNotFoundError):
            await self.service.get_booking(999)
