"""Booking service implementing the session booking lifecycle."""

from datetime import date
from typing import List

from ..ports.repositories import BookingRepository, ClientRepository, UnitOfWork
from .availability_service import AvailabilityService
from ...domain.entities.booking import Booking, BookingStatus
from ...domain.exceptions import (
    BookingAlreadyCompletedError,
    BookingNotFoundError,
    ClientNotFoundError,
    DuplicateBookingForDayError,
)
from ...domain.services.civil_clock import CivilClock
from ...domain.value_objects.schedule_entry import ScheduleEntry
from ...infrastructure.logging import (
    get_logger,
    log_booking_transition,
    log_business_rule_violation
)


class BookingService:
    """Application service for booking management.

    Store-level uniqueness and conditional status updates are what keep
    concurrent calls safe; the checks made here only pick the right error
    for the common, uncontended case.
    """

    def __init__(
        self,
        booking_repository: BookingRepository,
        client_repository: ClientRepository,
        unit_of_work: UnitOfWork,
        availability_service: AvailabilityService,
        clock: CivilClock
    ):
        self._booking_repository = booking_repository
        self._client_repository = client_repository
        self._unit_of_work = unit_of_work
        self._availability_service = availability_service
        self._clock = clock
        self._logger = get_logger(__name__)

    async def create_booking(self, client_id: int, session_date: date, hour: int) -> Booking:
        """Book an hourly slot for a client."""
        client = await self._client_repository.find_by_id(client_id)
        if not client:
            raise ClientNotFoundError(client_id)

        # Past, blocked and already-taken slots
        await self._availability_service.ensure_bookable(session_date, hour)

        if await self._booking_repository.has_client_booking_on_date(client_id, session_date):
            log_business_rule_violation(
                self._logger,
                "one_booking_per_day",
                "client already booked on this date",
                client_id=client_id,
                slot_date=str(session_date)
            )
            raise DuplicateBookingForDayError()

        booking = await self._booking_repository.add(
            Booking(client_id=client_id, session_date=session_date, hour=hour)
        )

        self._logger.info(
            "Booking created",
            extra={
                "booking_id": booking.id,
                "client_id": client_id,
                "slot_date": str(session_date),
                "slot_hour": hour,
                "sessions_remaining": client.sessions_remaining
            }
        )
        return booking

    async def cancel_booking(self, booking_id: int) -> Booking:
        """Cancel a booking. Cancelling an already-cancelled booking succeeds."""
        async with self._unit_of_work.atomic():
            booking = await self._booking_repository.find_by_id(booking_id, for_update=True)
            if not booking:
                raise BookingNotFoundError(booking_id)

            if booking.status == BookingStatus.CANCELLED:
                return booking

            booking.cancel()

            if not await self._booking_repository.transition_status(
                booking_id, BookingStatus.UPCOMING, BookingStatus.CANCELLED
            ):
                raise BookingAlreadyCompletedError("Completed bookings cannot be cancelled")

        log_booking_transition(
            self._logger, booking_id, BookingStatus.UPCOMING.value, BookingStatus.CANCELLED.value
        )
        return booking

    async def complete_booking(self, booking_id: int) -> Booking:
        """Mark a booking completed and deduct one session from its client.

        Both writes happen in one atomic scope; completing twice never
        deducts twice.
        """
        async with self._unit_of_work.atomic():
            booking = await self._booking_repository.find_by_id(booking_id, for_update=True)
            if not booking:
                raise BookingNotFoundError(booking_id)

            booking.complete()

            if not await self._booking_repository.transition_status(
                booking_id, BookingStatus.UPCOMING, BookingStatus.COMPLETED
            ):
                raise BookingAlreadyCompletedError()

            await self._client_repository.consume_session(booking.client_id)

        log_booking_transition(
            self._logger,
            booking_id,
            BookingStatus.UPCOMING.value,
            BookingStatus.COMPLETED.value,
            client_id=booking.client_id
        )
        return booking

    async def expire_overdue(self) -> int:
        """Complete every upcoming booking whose hour has ended.

        Returns the number of bookings this call transitioned. Bookings moved
        by a concurrent complete or cancel are skipped.
        """
        now = self._clock.now()
        overdue = await self._booking_repository.find_ended_upcoming(now.date(), now.hour)

        if not overdue:
            return 0

        # One scope for the whole sweep; a failure leaves every row for the next one.
        moved_bookings = []
        async with self._unit_of_work.atomic():
            for booking in overdue:
                if await self._booking_repository.transition_status(
                    booking.id, BookingStatus.UPCOMING, BookingStatus.COMPLETED
                ):
                    await self._client_repository.consume_session(booking.client_id)
                    moved_bookings.append(booking)

        for booking in moved_bookings:
            log_booking_transition(
                self._logger,
                booking.id,
                BookingStatus.UPCOMING.value,
                BookingStatus.COMPLETED.value,
                client_id=booking.client_id,
                trigger="expiry"
            )

        expired = len(moved_bookings)
        if expired:
            self._logger.info("Expired overdue bookings", extra={"expired_count": expired})
        return expired

    async def list_in_progress(self) -> List[ScheduleEntry]:
        """Get upcoming bookings whose hour is the current hour."""
        now = self._clock.now()
        return await self._booking_repository.find_upcoming_at_hour(now.date(), now.hour)

    async def list_schedule(self) -> List[ScheduleEntry]:
        """Get the trainer's schedule after sweeping overdue bookings."""
        await self.expire_overdue()
        return await self._booking_repository.find_schedule(self._clock.today())

    async def list_client_bookings(self, client_id: int) -> List[Booking]:
        """Get a client's upcoming bookings."""
        return await self._booking_repository.find_upcoming_by_client(client_id)

    async def get_booking(self, booking_id: int) -> Booking:
        """Get a specific booking by ID."""
        booking = await self._booking_repository.find_by_id(booking_id)
        if not booking:
            raise BookingNotFoundError(booking_id)
        return booking
