"""Breakout invitation model type definitions for database operations."""

from datetime import datetime
from enum import Enum
from typing import TypedDict
from uuid import UUID


class InvitationStatus(str, Enum):
    """Breakout invitation status values matching database enum."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    EXPIRED = "expired"


# The breakout is still running while any row holds one of these.
LIVE_STATUSES: frozenset[InvitationStatus] = frozenset(
    {InvitationStatus.ACCEPTED, InvitationStatus.ONGOING}
)

# Statuses that associate a profile with a room for token issuance.
ASSOCIATED_STATUSES: frozenset[InvitationStatus] = frozenset(
    {InvitationStatus.PENDING, InvitationStatus.ACCEPTED, InvitationStatus.ONGOING}
)


class InvitationResponseKind(str, Enum):
    """Answers an invitee may give to a pending invitation."""

    ACCEPT = "accept"
    DECLINE = "decline"


class BreakoutInvite(TypedDict):
    """Breakout invitation table row representation."""

    id: UUID
    inviter_id: UUID
    invitee_id: UUID
    room_id: str
    status: InvitationStatus
    created_at: datetime
    expires_at: datetime
