"""Pydantic schemas for booking and availability API requests and responses."""

from datetime import datetime, date as Date
from typing import List

from pydantic import Field

from .base import CamelModel
from ....domain.entities.booking import Booking, BookingStatus
from ....domain.value_objects.schedule_entry import ScheduleEntry
from ....domain.value_objects.time_slot import DayAvailability, SlotStatus, TimeSlot


class BookingRequest(CamelModel):
    """Request model for creating a booking."""
    client_id: int = Field(..., gt=0, description="ID of the client booking the slot")
    date: Date = Field(..., description="Civil date of the session (YYYY-MM-DD)")
    hour: int = Field(..., ge=0, le=23, description="Starting hour of the session")


class BookingResponse(CamelModel):
    """Response model for booking operations."""
    id: int
    client_id: int
    date: Date
    hour: int
    time: str = Field(..., description="Start time in HH:00 format")
    status: BookingStatus
    created_at: datetime

    @classmethod
    def from_entity(cls, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            client_id=booking.client_id,
            date=booking.date,
            hour=booking.hour,
            time=f"{booking.hour:02d}:00",
            status=booking.status,
            created_at=booking.created_at
        )


class ScheduleEntryResponse(BookingResponse):
    """Booking with the owning client's name and balance."""
    client_name: str
    client_sessions: int

    @classmethod
    def from_entry(cls, entry: ScheduleEntry) -> "ScheduleEntryResponse":
        booking = BookingResponse.from_entity(entry.booking)
        return cls(
            **booking.model_dump(),
            client_name=entry.client_name,
            client_sessions=entry.client_sessions
        )


class ExpireOverdueResponse(CamelModel):
    """Result of sweeping overdue bookings."""
    expired_count: int


class TimeSlotResponse(CamelModel):
    """Response model for one hourly slot."""
    hour: int
    time: str = Field(..., description="Start time in HH:00 format")
    status: SlotStatus

    @classmethod
    def from_value(cls, slot: TimeSlot) -> "TimeSlotResponse":
        return cls(hour=slot.hour, time=slot.time, status=slot.status)


class DayAvailabilityResponse(CamelModel):
    """Response model for the slots of one date."""
    date: Date
    slots: List[TimeSlotResponse]
    available_count: int

    @classmethod
    def from_value(cls, day: DayAvailability) -> "DayAvailabilityResponse":
        return cls(
            date=day.date,
            slots=[TimeSlotResponse.from_value(slot) for slot in day.slots],
            available_count=day.available_count
        )


class OpenSlotsResponse(CamelModel):
    """Only the bookable HH:00 labels of one date."""
    date: Date
    times: List[str]
