"""Arena room resolution and activation."""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from fastapi import status
from postgrest.exceptions import APIError as PostgrestAPIError

from src.api.middleware.error_handler import APIError, AuthorizationError
from src.core.config import get_settings
from src.core.supabase import get_supabase_client
from src.models.profile import UserRole
from src.models.room import RoomType
from src.schemas.auth import Caller

logger = logging.getLogger(__name__)

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


class RoomService:
    """Service for the persistent arena room.

    The ``persistent_rooms_one_active_arena`` partial unique index allows a
    single active arena row. Activation goes through the ``activate_arena``
    database function, which deactivates the current arena and inserts the
    new one in one transaction. A unique violation means another activation
    committed in between; nothing was changed and the call is retried.
    """

    TABLE = "persistent_rooms"
    ACTIVATE_FUNCTION = "activate_arena"
    MAX_ACTIVATION_ATTEMPTS = 3

    def __init__(self) -> None:
        """Initialize room service with Supabase client."""
        self.client = get_supabase_client()
        self.default_name = get_settings().arena_default_name

    async def get_arena(self) -> dict[str, Any] | None:
        """Get the active arena room.

        Returns:
            dict | None: The active arena, or None if none was created yet.
        """
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("type", RoomType.ARENA.value)
            .eq("is_active", True)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    async def get_room(self, room_id: UUID | str) -> dict[str, Any] | None:
        """Get a persisted room by ID, active or not."""
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("id", str(room_id))
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    async def create_arena(self, caller: Caller, name: str | None = None) -> dict[str, Any]:
        """Create a new arena room and make it the only active one.

        Args:
            caller: Must be an admin.
            name: Room name; defaults to the configured arena name.

        Returns:
            dict: The new active arena row.

        Raises:
            AuthorizationError: If the caller is not an admin.
            APIError: If activation kept losing to concurrent creators.
        """
        if caller.role is not UserRole.ADMIN:
            raise AuthorizationError("Only admins can create arena rooms")

        room_name = name or self.default_name

        for attempt in range(1, self.MAX_ACTIVATION_ATTEMPTS + 1):
            try:
                response = self.client.rpc(
                    self.ACTIVATE_FUNCTION,
                    {"p_name": room_name, "p_created_by": str(caller.profile_id)},
                ).execute()
            except PostgrestAPIError as e:
                if e.code != UNIQUE_VIOLATION:
                    raise
                logger.warning("Arena activation raced another creator (attempt %d)", attempt)
                continue

            room = response.data[0]
            logger.info("Arena room %s (%s) activated by %s", room["id"], room_name, caller.profile_id)
            return room

        raise APIError(
            "Could not activate arena room, please retry",
            status_code=status.HTTP_409_CONFLICT,
            error_type="arena_activation_conflict",
        )

    async def touch(self, room_id: UUID | str) -> bool:
        """Update a room's last activity time.

        Best-effort: failures are logged and reported as False.
        """
        try:
            response = (
                self.client.table(self.TABLE)
                .update({"last_active": datetime.now(timezone.utc).isoformat()})
                .eq("id", str(room_id))
                .execute()
            )
        except Exception as e:
            logger.warning("Failed to update activity for room %s: %s", room_id, str(e))
            return False

        return bool(response.data)
