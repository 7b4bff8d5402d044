"""Room and room-token Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.models.room import RoomType


class ArenaCreate(BaseModel):
    """Schema for creating the arena room."""

    name: str | None = Field(default=None, min_length=1, max_length=128, description="Arena room name")


class RoomResponse(BaseModel):
    """Schema for persisted room responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Room unique identifier")
    name: str = Field(description="Room name used with the video provider")
    type: RoomType = Field(description="Room type")
    is_active: bool = Field(description="Whether this is the current arena")
    created_by: UUID = Field(description="Profile ID of the creating admin")
    created_at: datetime = Field(description="Creation timestamp")
    last_active: datetime = Field(description="Last activity timestamp")


class TouchResult(BaseModel):
    """Outcome of recording room activity."""

    updated: bool = Field(description="False if the room was missing or the write failed")


class RoomTokenResponse(BaseModel):
    """Signed credential for joining a room on the video provider."""

    token: str = Field(description="Signed access token")
    room: str = Field(description="Room the token is scoped to")
    identity: str = Field(description="Participant identity inside the room")
    can_publish: bool = Field(description="Whether the holder may publish media")
    can_subscribe: bool = Field(description="Whether the holder may receive media")
    server_url: str | None = Field(default=None, description="Video provider URL to connect to")
    expires_in: int = Field(description="Token lifetime in seconds")
