"""Database model type definitions."""

from src.models.invitation import (
    ASSOCIATED_STATUSES,
    LIVE_STATUSES,
    BreakoutInvite,
    InvitationResponseKind,
    InvitationStatus,
)
from src.models.profile import Profile, UserRole
from src.models.room import PersistentRoom, RoomType

__all__ = [
    "ASSOCIATED_STATUSES",
    "LIVE_STATUSES",
    "BreakoutInvite",
    "InvitationResponseKind",
    "InvitationStatus",
    "PersistentRoom",
    "Profile",
    "RoomType",
    "UserRole",
]
