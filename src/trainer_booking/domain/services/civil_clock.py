"""Civil clock resolving "today" and "current hour" in the operator's local time."""

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CivilClock:
    """Stateless view of wall-clock time in one fixed civil timezone.

    The reference time is injectable so callers can pin "now" in tests.
    Naive datetimes returned by a provider are taken to already be civil time.
    """

    def __init__(self, tz_name: str = "Asia/Kolkata", now_provider: Optional[Callable[[], datetime]] = None):
        self._tz = ZoneInfo(tz_name)
        self._now_provider = now_provider or _utc_now

    @classmethod
    def fixed(cls, reference: datetime, tz_name: str = "Asia/Kolkata") -> "CivilClock":
        """Create a clock frozen at the given reference time."""
        return cls(tz_name, lambda: reference)

    @property
    def timezone_name(self) -> str:
        return self._tz.key

    def now(self) -> datetime:
        """Get the current civil datetime (naive, local)."""
        current = self._now_provider()
        if current.tzinfo is not None:
            current = current.astimezone(self._tz).replace(tzinfo=None)
        return current

    def today(self) -> date:
        return self.now().date()

    def current_hour(self) -> int:
        return self.now().hour

    def date_after(self, days: int) -> date:
        """Get the civil date `days` after today."""
        return self.today() + timedelta(days=days)

    @staticmethod
    def day_of_week(target_date: date) -> int:
        """Get weekday with 0 = Sunday, 6 = Saturday."""
        return (target_date.weekday() + 1) % 7

    def is_slot_past(self, target_date: date, hour: int) -> bool:
        """Check if a slot has started.

        A slot is past the instant its hour begins, so the current hour is
        never bookable.
        """
        now = self.now()
        today = now.date()
        if target_date < today:
            return True
        return target_date == today and hour <= now.hour

    def has_slot_ended(self, target_date: date, hour: int) -> bool:
        """Check if a slot's full hour has elapsed."""
        now = self.now()
        today = now.date()
        if target_date < today:
            return True
        return target_date == today and hour < now.hour

    def is_slot_in_progress(self, target_date: date, hour: int) -> bool:
        """Check if the slot's hour is the current hour today."""
        now = self.now()
        return target_date == now.date() and hour == now.hour
