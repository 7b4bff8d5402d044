"""Breakout invitation Pydantic schemas for API request/response models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.models.invitation import InvitationResponseKind, InvitationStatus


class InvitationCreate(BaseModel):
    """Schema for sending a breakout invitation."""

    model_config = ConfigDict(from_attributes=True)

    invitee_id: UUID = Field(..., description="Profile ID of the client to invite")
    room_name: str | None = Field(
        default=None,
        min_length=1,
        max_length=128,
        pattern=r"^[A-Za-z0-9_-]+$",
        description="Breakout room name; generated when omitted",
    )


class InvitationCreated(BaseModel):
    """Schema returned after sending an invitation."""

    invite_id: UUID = Field(description="New invitation ID")
    room_id: str = Field(description="Breakout room the invitation is for")
    expires_at: datetime = Field(description="When the invitation stops being answerable")


class InvitationRespond(BaseModel):
    """Schema for answering an invitation."""

    response: InvitationResponseKind = Field(..., description="accept or decline")


class InvitationRespondResult(BaseModel):
    """Outcome of answering an invitation."""

    status: InvitationStatus = Field(description="Resulting status (declined rows are deleted)")
    room_id: str = Field(description="Breakout room ID")
    inviter_id: UUID = Field(description="Inviting team member profile ID")
    invitee_id: UUID = Field(description="Invited client profile ID")


class InvitationResponse(BaseModel):
    """Schema for invitation API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Invitation unique identifier")
    inviter_id: UUID = Field(description="Inviting team member profile ID")
    invitee_id: UUID = Field(description="Invited client profile ID")
    room_id: str = Field(description="Breakout room ID")
    status: InvitationStatus = Field(description="Current invitation status")
    created_at: datetime = Field(description="Invitation creation timestamp")
    expires_at: datetime = Field(description="Invitation expiration timestamp")


class ParticipantSummary(BaseModel):
    """Public profile details of an invitation party."""

    id: UUID | None = Field(default=None, description="Profile ID, absent when the profile is gone")
    name: str = Field(description="Display name or 'Unknown'")
    email: str = Field(description="Email or 'Unknown'")
    role: str | None = Field(default=None, description="Application role or 'Unknown'")


class PendingInvitation(InvitationResponse):
    """Pending invitation as seen by the invitee."""

    inviter: ParticipantSummary = Field(description="Who sent the invitation")
    time_remaining: int = Field(description="Seconds until expiry, floored at 0")


class SentInvitation(InvitationResponse):
    """Invitation as seen by the team member who sent it."""

    invitee: ParticipantSummary = Field(description="Who the invitation is for")


class ActiveBreakout(InvitationResponse):
    """Live breakout the caller takes part in."""

    inviter: ParticipantSummary = Field(description="Inviting team member")
    invitee: ParticipantSummary = Field(description="Invited client")


class CompleteResult(BaseModel):
    """Outcome of ending a breakout room."""

    deleted_count: int = Field(description="Invitations removed from the store")
    external_room_deleted: bool = Field(description="Whether the provider room was deleted")
    external_error: str | None = Field(default=None, description="Provider error, if deletion failed")


class ExternalRoomDeleteResult(BaseModel):
    """Outcome of deleting the provider-side room."""

    success: bool = Field(description="Whether the provider accepted the deletion")
    error: str | None = Field(default=None, description="Provider error message")


class SweepResult(BaseModel):
    """Outcome of an expiration sweep."""

    expired_count: int = Field(description="Invitations moved to expired")


class RoomExistence(BaseModel):
    """Whether a breakout room still has invitations."""

    room_id: str = Field(description="Breakout room ID")
    exists: bool = Field(description="False once the session has ended")
