"""Blocked-time policy deciding which hours are never bookable."""

from datetime import date
from typing import Iterable, List, Tuple

from ..entities.blocked_time import BlockedTime
from .civil_clock import CivilClock

# Group-class hours, inclusive on both ends, blocked every day.
FIXED_BLOCKED_HOUR_RANGES: Tuple[Tuple[int, int], ...] = ((6, 11), (17, 20))


def is_fixed_blocked_hour(hour: int) -> bool:
    """Check if the hour falls in one of the fixed daily blocked ranges."""
    return any(start <= hour <= end for start, end in FIXED_BLOCKED_HOUR_RANGES)


class BlockedTimePolicy:
    """Combines the fixed daily ranges with rows from the blocked_times table.

    The fixed ranges always apply; table rows can only block additional hours.
    """

    def __init__(self, blocked_times: Iterable[BlockedTime] = ()):
        self._blocked_times = list(blocked_times)

    @property
    def blocked_times(self) -> List[BlockedTime]:
        return list(self._blocked_times)

    def is_blocked(self, target_date: date, hour: int) -> bool:
        """Check if the hour on the given date is off-limits."""
        if is_fixed_blocked_hour(hour):
            return True
        weekday = CivilClock.day_of_week(target_date)
        return any(
            window.applies_on(weekday) and window.covers_hour(hour)
            for window in self._blocked_times
        )

    def blocked_hours(self, target_date: date, hours: Iterable[int] = range(24)) -> List[int]:
        """List the blocked hours among `hours` on the given date."""
        return [hour for hour in hours if self.is_blocked(target_date, hour)]
