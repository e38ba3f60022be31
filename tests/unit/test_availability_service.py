"""Unit tests for the availability service."""

import pytest
from datetime import date, datetime
from unittest.mock import AsyncMock

from src.trainer_booking.application.services.availability_service import (
    AvailabilityService,
    MAX_WINDOW_DAYS,
    WORKING_HOURS,
    resolve_slot_status
)
from src.trainer_booking.domain.entities.blocked_time import BlockedTime
from src.trainer_booking.domain.entities.booking import Booking, BookingStatus
from src.trainer_booking.domain.entities.client import Client
from src.trainer_booking.domain.exceptions import (
    DataAccessError,
    SlotTakenError,
    SlotUnavailableError,
    ValidationError
)
from src.trainer_booking.domain.services.blocked_time_policy import BlockedTimePolicy
from src.trainer_booking.domain.services.civil_clock import CivilClock
from src.trainer_booking.domain.value_objects.time_slot import SlotStatus
from src.trainer_booking.infrastructure.repositories.memory_repositories import (
    InMemoryBlockedTimeRepository,
    InMemoryBookingRepository,
    InMemoryClientRepository,
    InMemoryStore
)

TODAY = date(2025, 6, 10)
TOMORROW = date(2025, 6, 11)
NOW = datetime(2025, 6, 10, 9, 30)


class TestResolveSlotStatus:
    """Test cases for slot status priority."""

    def test_past_beats_blocked_and_booked(self):
        """Test a past slot reports past even when blocked and booked."""
        status = resolve_slot_status(TODAY, 8, NOW, BlockedTimePolicy(), frozenset({(TODAY, 8)}))

        assert status == SlotStatus.PAST

    def test_blocked_beats_booked(self):
        """Test a blocked slot reports blocked even when booked."""
        status = resolve_slot_status(TOMORROW, 18, NOW, BlockedTimePolicy(), frozenset({(TOMORROW, 18)}))

        assert status == SlotStatus.BLOCKED

    def test_booked_and_available(self):
        """Test booked and available slots."""
        booked = frozenset({(TOMORROW, 14)})

        assert resolve_slot_status(TOMORROW, 14, NOW, BlockedTimePolicy(), booked) == SlotStatus.BOOKED
        assert resolve_slot_status(TOMORROW, 15, NOW, BlockedTimePolicy(), booked) == SlotStatus.AVAILABLE

    def test_past_boundary(self):
        """Test the current hour is past and the next is not."""
        now = datetime(2025, 6, 10, 14, 0)

        assert resolve_slot_status(TODAY, 14, now, BlockedTimePolicy(), frozenset()) == SlotStatus.PAST
        assert resolve_slot_status(TODAY, 15, now, BlockedTimePolicy(), frozenset()) == SlotStatus.AVAILABLE
        assert resolve_slot_status(date(2025, 6, 9), 21, now, BlockedTimePolicy(), frozenset()) == SlotStatus.PAST


class TestAvailabilityService:
    """Test cases for AvailabilityService over the in-memory store."""

    def setup_service(self, now=NOW, use_blocked_times_table=True):
        """Set up the service over a fresh store."""
        self.store = InMemoryStore()
        self.client_repo = InMemoryClientRepository(self.store)
        self.booking_repo = InMemoryBookingRepository(self.store)
        self.blocked_time_repo = InMemoryBlockedTimeRepository(self.store)
        self.service = AvailabilityService(
            booking_repository=self.booking_repo,
            blocked_time_repository=self.blocked_time_repo,
            clock=CivilClock.fixed(now),
            use_blocked_times_table=use_blocked_times_table
        )

    async def add_booking(self, session_date, hour, name="Sharikh"):
        """Add a client and an upcoming booking for them."""
        client = await self.client_repo.add(Client(name=name, sessions_remaining=5))
        return await self.booking_repo.add(Booking(client_id=client.id, session_date=session_date, hour=hour))

    @pytest.mark.asyncio
    async def test_default_window(self):
        """Test seven days of sixteen slots each."""
        self.setup_service()

        availability = await self.service.compute_availability()

        assert [day.date for day in availability] == [date(2025, 6, 10 + offset) for offset in range(7)]
        for day in availability:
            assert [slot.hour for slot in day.slots] == list(WORKING_HOURS)
            assert len(day.slots) == 16

    @pytest.mark.asyncio
    async def test_today_statuses(self):
        """Test today's slots at 09:30."""
        self.setup_service()

        today = (await self.service.compute_availability(1))[0]
        statuses = {slot.hour: slot.status for slot in today.slots}

        assert all(statuses[hour] == SlotStatus.PAST for hour in (6, 7, 8, 9))
        assert statuses[10] == SlotStatus.BLOCKED
        assert statuses[11] == SlotStatus.BLOCKED
        assert all(statuses[hour] == SlotStatus.AVAILABLE for hour in (12, 13, 14, 15, 16, 21))
        assert all(statuses[hour] == SlotStatus.BLOCKED for hour in (17, 18, 19, 20))

    @pytest.mark.asyncio
    async def test_booked_slot_shows_booked_for_everyone(self):
        """Test a booked slot is booked in the shared view."""
        self.setup_service()
        await self.add_booking(TODAY, 14)

        today = (await self.service.compute_availability(1))[0]

        assert today.slots[14 - 6].status == SlotStatus.BOOKED
        assert "14:00" not in today.available_times

    @pytest.mark.asyncio
    async def test_cancelled_booking_frees_slot(self):
        """Test only upcoming bookings occupy slots."""
        self.setup_service()
        booking = await self.add_booking(TOMORROW, 14)
        await self.booking_repo.transition_status(booking.id, BookingStatus.UPCOMING, BookingStatus.CANCELLED)

        status = await self.service.slot_status(TOMORROW, 14)

        assert status == SlotStatus.AVAILABLE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("days", [0, -1, MAX_WINDOW_DAYS + 1])
    async def test_days_out_of_range(self, days):
        """Test invalid window sizes are rejected."""
        self.setup_service()

        with pytest.raises(ValidationError):
            await self.service.compute_availability(days)

    @pytest.mark.asyncio
    async def test_list_open_slots(self):
        """Test the open-slot view lists only available labels."""
        self.setup_service()
        await self.add_booking(TOMORROW, 12)

        open_slots = await self.service.list_open_slots(2)

        assert open_slots == [
            (TODAY, ["12:00", "13:00", "14:00", "15:00", "16:00", "21:00"]),
            (TOMORROW, ["13:00", "14:00", "15:00", "16:00", "21:00"]),
        ]

    @pytest.mark.asyncio
    async def test_blocked_times_table_toggle(self):
        """Test table rows only apply when the table is enabled."""
        self.setup_service()
        await self.blocked_time_repo.add(BlockedTime(start_time="13:00", end_time="14:00"))
        assert await self.service.slot_status(TOMORROW, 13) == SlotStatus.BLOCKED

        disabled = AvailabilityService(
            booking_repository=self.booking_repo,
            blocked_time_repository=self.blocked_time_repo,
            clock=CivilClock.fixed(NOW),
            use_blocked_times_table=False
        )
        assert await disabled.slot_status(TOMORROW, 13) == SlotStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self):
        """Test a failing store yields no partial result."""
        booking_repo = AsyncMock()
        booking_repo.find_upcoming_in_range.side_effect = DataAccessError("connection lost")
        service = AvailabilityService(booking_repo, None, CivilClock.fixed(NOW))

        with pytest.raises(DataAccessError):
            await service.compute_availability()

    @pytest.mark.asyncio
    async def test_single_bulk_read(self):
        """Test one bookings query serves the whole window."""
        booking_repo = AsyncMock()
        booking_repo.find_upcoming_in_range.return_value = []
        service = AvailabilityService(booking_repo, None, CivilClock.fixed(NOW))

        await service.compute_availability(7)

        booking_repo.find_upcoming_in_range.assert_called_once_with(TODAY, date(2025, 6, 17))


class TestEnsureBookable:
    """Test cases for server-side slot re-validation."""

    def setup_service(self):
        """Set up the service over a fresh store."""
        self.store = InMemoryStore()
        self.client_repo = InMemoryClientRepository(self.store)
        self.booking_repo = InMemoryBookingRepository(self.store)
        self.service = AvailabilityService(
            booking_repository=self.booking_repo,
            blocked_time_repository=InMemoryBlockedTimeRepository(self.store),
            clock=CivilClock.fixed(NOW)
        )

    @pytest.mark.asyncio
    async def test_available_slot_passes(self):
        """Test an open slot is bookable."""
        self.setup_service()

        await self.service.ensure_bookable(TODAY, 14)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "session_date, hour",
        [
            (TODAY, 9),               # current hour
            (date(2025, 6, 9), 14),   # yesterday
            (TOMORROW, 8),            # fixed morning block
            (TOMORROW, 19),           # fixed evening block
            (TOMORROW, 22),           # after working hours
            (TOMORROW, 5),            # before working hours
            (date(2025, 6, 17), 14),  # beyond the seven-day window
        ]
    )
    async def test_unavailable_slots(self, session_date, hour):
        """Test past, blocked and out-of-range slots are rejected."""
        self.setup_service()

        with pytest.raises(SlotUnavailableError) as exc_info:
            await self.service.ensure_bookable(session_date, hour)

        assert exc_info.value.reason == "slot_unavailable"

    @pytest.mark.asyncio
    async def test_last_day_of_window_is_bookable(self):
        """Test today + 6 is inside the window."""
        self.setup_service()

        await self.service.ensure_bookable(date(2025, 6, 16), 21)

    @pytest.mark.asyncio
    async def test_taken_slot(self):
        """Test a booked slot raises SlotTakenError."""
        self.setup_service()
        client = await self.client_repo.add(Client(name="Sharikh"))
        await self.booking_repo.add(Booking(client_id=client.id, session_date=TOMORROW, hour=14))

        with pytest.raises(SlotTakenError):
            await self.service.ensure_bookable(TOMORROW, 14)
