"""Availability service deriving the bookable-slot view of the rolling window."""

from datetime import date, datetime, timedelta
from typing import FrozenSet, List, Optional, Tuple

from ..ports.repositories import BookingRepository, BlockedTimeRepository
from ...domain.exceptions import SlotTakenError, SlotUnavailableError, ValidationError
from ...domain.services.blocked_time_policy import BlockedTimePolicy
from ...domain.services.civil_clock import CivilClock
from ...domain.value_objects.time_slot import DayAvailability, SlotStatus, TimeSlot
from ...infrastructure.logging import get_logger, log_business_rule_violation

# 06:00 through 21:00 inclusive, one-hour slots.
WORKING_DAY_START_HOUR = 6
WORKING_DAY_END_HOUR = 22
WORKING_HOURS = range(WORKING_DAY_START_HOUR, WORKING_DAY_END_HOUR)

DEFAULT_WINDOW_DAYS = 7
MAX_WINDOW_DAYS = 60


def resolve_slot_status(
    target_date: date,
    hour: int,
    now: datetime,
    policy: BlockedTimePolicy,
    booked_slots: FrozenSet[Tuple[date, int]]
) -> SlotStatus:
    """Decide a slot's status. Priority: past, blocked, booked, available."""
    today = now.date()
    if target_date < today or (target_date == today and hour <= now.hour):
        return SlotStatus.PAST
    if policy.is_blocked(target_date, hour):
        return SlotStatus.BLOCKED
    if (target_date, hour) in booked_slots:
        return SlotStatus.BOOKED
    return SlotStatus.AVAILABLE


class AvailabilityService:
    """Application service computing slot availability.

    Never writes to the store; every call derives a fresh view from the
    clock, the blocked-time policy and the upcoming bookings.
    """

    def __init__(
        self,
        booking_repository: BookingRepository,
        blocked_time_repository: Optional[BlockedTimeRepository],
        clock: CivilClock,
        window_days: int = DEFAULT_WINDOW_DAYS,
        use_blocked_times_table: bool = True
    ):
        self._booking_repository = booking_repository
        self._blocked_time_repository = blocked_time_repository
        self._clock = clock
        self._window_days = window_days
        self._use_blocked_times_table = use_blocked_times_table
        self._logger = get_logger(__name__)

    @property
    def window_days(self) -> int:
        return self._window_days

    async def load_policy(self) -> BlockedTimePolicy:
        """Build the blocked-time policy, consulting the table when enabled."""
        if not self._use_blocked_times_table or self._blocked_time_repository is None:
            return BlockedTimePolicy()
        return BlockedTimePolicy(await self._blocked_time_repository.find_all())

    async def compute_availability(self, days: Optional[int] = None) -> List[DayAvailability]:
        """Get every working-hour slot from today through today + days - 1."""
        days = self._window_days if days is None else days
        if days < 1 or days > MAX_WINDOW_DAYS:
            raise ValidationError(f"Days must be between 1 and {MAX_WINDOW_DAYS}")

        now = self._clock.now()
        today = now.date()
        end_date = today + timedelta(days=days)

        bookings = await self._booking_repository.find_upcoming_in_range(today, end_date)
        booked_slots = frozenset(booking.slot_key for booking in bookings)
        policy = await self.load_policy()

        availability = []
        for offset in range(days):
            target_date = today + timedelta(days=offset)
            slots = tuple(
                TimeSlot(
                    date=target_date,
                    hour=hour,
                    status=resolve_slot_status(target_date, hour, now, policy, booked_slots)
                )
                for hour in WORKING_HOURS
            )
            availability.append(DayAvailability(date=target_date, slots=slots))

        self._logger.debug(
            "Availability computed",
            extra={"start_date": str(today), "days": days, "booked_count": len(booked_slots)}
        )
        return availability

    async def list_open_slots(self, days: Optional[int] = None) -> List[Tuple[date, List[str]]]:
        """Get, per date, only the HH:00 labels of available slots."""
        return [(day.date, day.available_times) for day in await self.compute_availability(days)]

    async def slot_status(self, target_date: date, hour: int) -> SlotStatus:
        """Get the current status of a single slot."""
        now = self._clock.now()
        policy = await self.load_policy()
        booked = frozenset()
        if await self._booking_repository.is_slot_booked(target_date, hour):
            booked = frozenset({(target_date, hour)})
        return resolve_slot_status(target_date, hour, now, policy, booked)

    async def ensure_bookable(self, target_date: date, hour: int) -> None:
        """Re-validate a slot server-side before a booking is created.

        Raises SlotUnavailableError for past, blocked or out-of-range slots
        and SlotTakenError when another client already holds it.
        """
        if hour not in WORKING_HOURS:
            self._reject("working_hours", f"{hour:02d}:00 is outside working hours", target_date, hour)

        today = self._clock.today()
        if target_date >= today + timedelta(days=self._window_days):
            self._reject("booking_window", f"{target_date.isoformat()} is beyond the booking window", target_date, hour)

        status = await self.slot_status(target_date, hour)
        if status == SlotStatus.PAST:
            self._reject("slot_past", "This slot is in the past", target_date, hour)
        if status == SlotStatus.BLOCKED:
            self._reject("slot_blocked", "This slot is blocked", target_date, hour)
        if status == SlotStatus.BOOKED:
            log_business_rule_violation(
                self._logger, "slot_taken", "slot already booked",
                slot_date=str(target_date), slot_hour=hour
            )
            raise SlotTakenError()

    def _reject(self, rule: str, message: str, target_date: date, hour: int) -> None:
        log_business_rule_violation(
            self._logger, rule, message, slot_date=str(target_date), slot_hour=hour
        )
        raise SlotUnavailableError(message)
