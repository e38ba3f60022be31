"""Blocked time endpoints."""

from typing import List
from fastapi import APIRouter, Depends, status

from src.trainer_booking.infrastructure.services import ServiceFactory, get_service_factory
from ..schemas.client_schemas import BlockedTimeRequest, BlockedTimeResponse

router = APIRouter()


@router.get("")
async def list_blocked_times(
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> List[BlockedTimeResponse]:
    """List the recurring blocked windows."""
    async with service_factory.get_client_service() as client_service:
        blocked_times = await client_service.list_blocked_times()

    return [BlockedTimeResponse.from_entity(blocked_time) for blocked_time in blocked_times]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_blocked_time(
    request: BlockedTimeRequest,
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> BlockedTimeResponse:
    """Declare a recurring blocked window."""
    async with service_factory.get_client_service() as client_service:
        blocked_time = await client_service.create_blocked_time(
            start_time=request.start_time,
            end_time=request.end_time,
            day_of_week=request.day_of_week
        )

    return BlockedTimeResponse.from_entity(blocked_time)
