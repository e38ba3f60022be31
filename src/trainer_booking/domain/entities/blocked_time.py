"""Blocked time entity for recurring unavailable windows."""

from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Optional

from ..exceptions import ValidationError


def parse_clock_time(value: str) -> time:
    """Parse an "HH:MM" string into a time."""
    try:
        return datetime.strptime(value, "%H:%M").time()
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Time must be in HH:MM format, got {value!r}") from e


@dataclass(frozen=True)
class BlockedTime:
    """A recurring window during which no slot can be booked.

    day_of_week follows the 0 = Sunday convention; None means every day.
    """
    start_time: str
    end_time: str
    day_of_week: Optional[int] = None
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self) -> None:
        """Validate blocked time data."""
        if parse_clock_time(self.start_time) >= parse_clock_time(self.end_time):
            raise ValidationError("Start time must be before end time")
        if self.day_of_week is not None and not 0 <= self.day_of_week <= 6:
            raise ValidationError("Day of week must be between 0 and 6")

    def applies_on(self, day_of_week: int) -> bool:
        """Check if the window recurs on the given weekday."""
        return self.day_of_week is None or self.day_of_week == day_of_week

    def covers_hour(self, hour: int) -> bool:
        """Check if the window overlaps the hour starting at hour:00."""
        start = _minutes(parse_clock_time(self.start_time))
        end = _minutes(parse_clock_time(self.end_time))
        return start < (hour + 1) * 60 and end > hour * 60


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute
