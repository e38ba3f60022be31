"""Client roster and PIN endpoints."""

from typing import List
from fastapi import APIRouter, Depends, Path, Response, status

from src.trainer_booking.infrastructure.services import ServiceFactory, get_service_factory
from ..schemas.client_schemas import (
    ClientCreateRequest,
    ClientResponse,
    ClientUpdateRequest,
    VerifyPinRequest,
    VerifyPinResponse
)

router = APIRouter()


@router.get("")
async def list_clients(
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> List[ClientResponse]:
    """List all clients ordered by name."""
    async with service_factory.get_client_service() as client_service:
        clients = await client_service.list_clients()

    today = service_factory.clock.today()
    return [ClientResponse.from_entity(client, today) for client in clients]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_client(
    request: ClientCreateRequest,
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> ClientResponse:
    """Add a client to the roster."""
    async with service_factory.get_client_service() as client_service:
        client = await client_service.create_client(
            name=request.name,
            sessions_remaining=request.sessions_remaining,
            pin=request.pin,
            sessions_expires_at=request.sessions_expires_at
        )

    return ClientResponse.from_entity(client, service_factory.clock.today())


@router.post("/verify-pin")
async def verify_pin(
    request: VerifyPinRequest,
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> VerifyPinResponse:
    """Check a client's PIN before showing their booking page."""
    async with service_factory.get_client_service() as client_service:
        client = await client_service.verify_pin(request.client_id, request.pin)

    return VerifyPinResponse(
        valid=True,
        client=ClientResponse.from_entity(client, service_factory.clock.today())
    )


@router.get("/{client_id}")
async def get_client(
    client_id: int = Path(..., description="Client ID"),
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> ClientResponse:
    """Get client by ID."""
    async with service_factory.get_client_service() as client_service:
        client = await client_service.get_client(client_id)

    return ClientResponse.from_entity(client, service_factory.clock.today())


@router.patch("/{client_id}")
async def update_client(
    request: ClientUpdateRequest,
    client_id: int = Path(..., description="Client ID"),
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> ClientResponse:
    """Change a client's session balance, PIN or pack expiry."""
    async with service_factory.get_client_service() as client_service:
        client = await client_service.update_client(client_id, **request.model_dump(exclude_unset=True))

    return ClientResponse.from_entity(client, service_factory.clock.today())


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(
    client_id: int = Path(..., description="Client ID"),
    service_factory: ServiceFactory = Depends(get_service_factory)
) -> Response:
    """Delete a client together with all of their bookings."""
    async with service_factory.get_client_service() as client_service:
        await client_service.delete_client(client_id)

    return Response(status_code=status.HTTP_204_NO_CONTENT)
