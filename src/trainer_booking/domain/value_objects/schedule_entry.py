"""Booking joined with the owning client's display data."""

from dataclasses import dataclass

from ..entities.booking import Booking


@dataclass(frozen=True)
class ScheduleEntry:
    """Value object for a booking row as shown on the trainer's schedule."""
    booking: Booking
    client_name: str
    client_sessions: int
