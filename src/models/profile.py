"""Profile model type definitions for database operations."""

from datetime import datetime
from enum import Enum
from typing import TypedDict
from uuid import UUID


class UserRole(str, Enum):
    """Closed set of roles a caller can hold.

    ``user`` is the stored value for team members.
    """

    ADMIN = "admin"
    TEAM_MEMBER = "user"
    CLIENT = "client"
    GUEST = "guest"

    @classmethod
    def parse(cls, value: str | None) -> "UserRole":
        """Map a stored role string to a role, treating unknown values as guest."""
        if value is None:
            return cls.GUEST
        try:
            return cls(value)
        except ValueError:
            return cls.GUEST

    @property
    def is_team(self) -> bool:
        """Admins and team members may originate breakout invitations."""
        return self in (UserRole.ADMIN, UserRole.TEAM_MEMBER)

    @property
    def can_publish_in_arena(self) -> bool:
        """Everyone except guests may publish media into the arena."""
        return self is not UserRole.GUEST


class Profile(TypedDict):
    """Profile table row representation.

    One row per signed-in user; ``role`` is assigned by the team and client
    list management flows.
    """

    id: UUID
    user_id: UUID
    name: str | None
    email: str | None
    role: str | None
    created_at: datetime
