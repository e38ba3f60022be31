"""Availability endpoints."""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from src.trainer_booking.application.services.availability_service import MAX_WINDOW_DAYS
from src.trainer_booking.infrastructure.services import ServiceFactory, get_service_factory
from ..schemas.booking_schemas import DayAvailabilityResponse, OpenSlotsResponse

router = APIRouter()


@router.get("")
async def get_availability(
    days: Optional[int] = Query(None, ge=1, le=MAX_WINDOW_DAYS, description="Number of days from today"),
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> List[DayAvailabilityResponse]:
    """Get every working-hour slot of the booking window with its status."""
    async with service_factory.get_availability_service() as availability_service:
        availability = await availability_service.compute_availability(days)

    return [DayAvailabilityResponse.from_value(day) for day in availability]


@router.get("/open")
async def get_open_slots(
    days: Optional[int] = Query(None, ge=1, le=MAX_WINDOW_DAYS, description="Number of days from today"),
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> List[OpenSlotsResponse]:
    """Get only the bookable start times, grouped by date."""
    async with service_factory.get_availability_service() as availability_service:
        open_slots = await availability_service.list_open_slots(days)

    return [OpenSlotsResponse(date=slot_date, times=times) for slot_date, times in open_slots]
