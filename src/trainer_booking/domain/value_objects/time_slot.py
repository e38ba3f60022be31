"""Time slot value objects for the availability view."""

from dataclasses import dataclass
from datetime import date, time
from enum import Enum
from typing import List, Tuple


class SlotStatus(Enum):
    """Display status of an hourly slot."""
    AVAILABLE = "available"
    BOOKED = "booked"
    BLOCKED = "blocked"
    PAST = "past"


@dataclass(frozen=True)
class TimeSlot:
    """Immutable value object representing one hourly slot on a given date."""

    date: date
    hour: int
    status: SlotStatus = SlotStatus.AVAILABLE

    def __post_init__(self) -> None:
        """Validate time slot data."""
        if not 0 <= self.hour <= 23:
            raise ValueError("Hour must be between 0 and 23")

    @property
    def key(self) -> Tuple[date, int]:
        """Get the (date, hour) key used for membership checks."""
        return (self.date, self.hour)

    @property
    def start_time(self) -> time:
        """Get the slot's starting time of day."""
        return time(self.hour, 0)

    @property
    def is_available(self) -> bool:
        """Check if the slot can be booked."""
        return self.status == SlotStatus.AVAILABLE

    def format_time(self) -> str:
        """Get the slot start formatted as HH:00."""
        return f"{self.hour:02d}:00"

    @property
    def time(self) -> str:
        """Get formatted start time as property."""
        return self.format_time()


@dataclass(frozen=True)
class DayAvailability:
    """All working-hour slots of one civil date, in hour order."""

    date: date
    slots: Tuple[TimeSlot, ...]

    @property
    def available_times(self) -> List[str]:
        """Get the HH:00 labels of bookable slots."""
        return [slot.time for slot in self.slots if slot.is_available]

    @property
    def available_count(self) -> int:
        """Get number of bookable slots."""
        return sum(1 for slot in self.slots if slot.is_available)
