"""Booking endpoints."""

from typing import List, Optional, Union
from fastapi import APIRouter, Depends, Path, Query, status

from src.trainer_booking.infrastructure.services import ServiceFactory, get_service_factory
from ..schemas.booking_schemas import (
    BookingRequest,
    BookingResponse,
    ExpireOverdueResponse,
    ScheduleEntryResponse
)

router = APIRouter()


@router.get("")
async def list_bookings(
    client_id: Optional[int] = Query(None, alias="clientId", gt=0, description="Only this client's upcoming bookings"),
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> Union[List[ScheduleEntryResponse], List[BookingResponse]]:
    """Get a client's upcoming bookings, or the trainer's schedule when no client is given.

    Loading the schedule first completes any booking whose hour has ended.
    """
    async with service_factory.get_booking_service() as booking_service:
        if client_id is not None:
            bookings = await booking_service.list_client_bookings(client_id)
            return [BookingResponse.from_entity(booking) for booking in bookings]

        schedule = await booking_service.list_schedule()

    return [ScheduleEntryResponse.from_entry(entry) for entry in schedule]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: BookingRequest,
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> BookingResponse:
    """Book an hourly slot for a client."""
    async with service_factory.get_booking_service() as booking_service:
        booking = await booking_service.create_booking(
            client_id=request.client_id,
            session_date=request.date,
            hour=request.hour
        )

    return BookingResponse.from_entity(booking)


@router.get("/in-progress")
async def list_in_progress(
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> List[ScheduleEntryResponse]:
    """Get the sessions running in the current hour."""
    async with service_factory.get_booking_service() as booking_service:
        entries = await booking_service.list_in_progress()

    return [ScheduleEntryResponse.from_entry(entry) for entry in entries]


@router.post("/expire-overdue")
async def expire_overdue(
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> ExpireOverdueResponse:
    """Complete every upcoming booking whose hour has ended."""
    async with service_factory.get_booking_service() as booking_service:
        expired_count = await booking_service.expire_overdue()

    return ExpireOverdueResponse(expired_count=expired_count)


@router.get("/{booking_id}")
async def get_booking(
    booking_id: int = Path(..., description="Booking ID"),
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> BookingResponse:
    """Get booking by ID."""
    async with service_factory.get_booking_service() as booking_service:
        booking = await booking_service.get_booking(booking_id)

    return BookingResponse.from_entity(booking)


@router.patch("/{booking_id}")
@router.delete("/{booking_id}")
async def cancel_booking(
    booking_id: int = Path(..., description="Booking ID"),
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> BookingResponse:
    """Cancel a booking. The client's session balance is not touched."""
    async with service_factory.get_booking_service() as booking_service:
        booking = await booking_service.cancel_booking(booking_id)

    return BookingResponse.from_entity(booking)


@router.post("/{booking_id}/complete")
async def complete_booking(
    booking_id: int = Path(..., description="Booking ID"),
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> BookingResponse:
    """Mark a booking completed and deduct one session from its client."""
    async with service_factory.get_booking_service() as booking_service:
        booking = await booking_service.complete_booking(booking_id)

    return BookingResponse.from_entity(booking)
