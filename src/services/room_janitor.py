"""Cleanup of breakout rooms on the video provider."""

import logging
from typing import Any

from livekit import api

from src.core.livekit import create_livekit_api

logger = logging.getLogger(__name__)


class RoomJanitor:
    """Deletes provider-side rooms once a breakout has ended.

    Failures are returned rather than raised so invitation cleanup in the
    database never waits on provider health.
    """

    async def delete_external_room(self, room_id: str) -> dict[str, Any]:
        """Delete a room on the video provider.

        Args:
            room_id: The breakout room name.

        Returns:
            dict: ``{"success": True}`` or ``{"success": False, "error": str}``.
        """
        try:
            livekit_api = create_livekit_api()
        except Exception as e:
            logger.error("Cannot delete LiveKit room %s: %s", room_id, str(e))
            return {"success": False, "error": str(e)}

        try:
            await livekit_api.room.delete_room(api.DeleteRoomRequest(room=room_id))
            logger.info("LiveKit room %s deleted", room_id)
            return {"success": True}

        except Exception as e:
            logger.error("Failed to delete LiveKit room %s: %s", room_id, str(e))
            return {"success": False, "error": str(e)}

        finally:
            try:
                await livekit_api.aclose()
            except Exception as e:
                logger.warning("Failed to close LiveKit API session: %s", str(e))
