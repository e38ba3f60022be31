"""Pydantic schemas for client, PIN and blocked-time API requests and responses."""

from datetime import datetime, date as Date
from typing import Optional

from pydantic import Field, field_validator

from .base import CamelModel
from ....domain.entities.blocked_time import BlockedTime
from ....domain.entities.client import Client


class ClientCreateRequest(CamelModel):
    """Request model for adding a client."""
    name: str = Field(..., min_length=1, max_length=100)
    sessions_remaining: int = Field(default=0, ge=0)
    pin: str = Field(default="0000", description="4-digit PIN")
    sessions_expires_at: Optional[Date] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate name is not blank."""
        if not v.strip():
            raise ValueError('Name is required')
        return v.strip()


class ClientUpdateRequest(CamelModel):
    """Request model for a partial client update; omitted fields are left alone."""
    sessions_remaining: Optional[int] = Field(default=None, ge=0)
    pin: Optional[str] = None
    sessions_expires_at: Optional[Date] = None


class ClientResponse(CamelModel):
    """Response model for a client. The PIN is never returned."""
    id: int
    name: str
    sessions_remaining: int
    sessions_expires_at: Optional[Date]
    is_pack_expired: bool
    created_at: datetime

    @classmethod
    def from_entity(cls, client: Client, today: Date) -> "ClientResponse":
        return cls(
            id=client.id,
            name=client.name,
            sessions_remaining=client.sessions_remaining,
            sessions_expires_at=client.sessions_expires_at,
            is_pack_expired=client.is_pack_expired(today),
            created_at=client.created_at
        )


class VerifyPinRequest(CamelModel):
    """Request model for checking a client's PIN."""
    client_id: int
    pin: str


class VerifyPinResponse(CamelModel):
    """Response model for a successful PIN check."""
    valid: bool
    client: ClientResponse


class BlockedTimeRequest(CamelModel):
    """Request model for declaring a blocked window."""
    start_time: str = Field(..., description="Start time in HH:MM format")
    end_time: str = Field(..., description="End time in HH:MM format")
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6, description="0 = Sunday; omit for every day")


class BlockedTimeResponse(CamelModel):
    """Response model for a blocked window."""
    id: int
    start_time: str
    end_time: str
    day_of_week: Optional[int]
    created_at: datetime

    @classmethod
    def from_entity(cls, blocked_time: BlockedTime) -> "BlockedTimeResponse":
        return cls(
            id=blocked_time.id,
            start_time=blocked_time.start_time,
            end_time=blocked_time.end_time,
            day_of_week=blocked_time.day_of_week,
            created_at=blocked_time.created_at
        )
