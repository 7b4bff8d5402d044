"""LiveKit room access token issuance."""

import json
import logging
import secrets
import string
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from livekit import api

from src.api.middleware.error_handler import NotInvitedError
from src.core.config import get_settings
from src.core.livekit import get_livekit_credentials
from src.models.invitation import ASSOCIATED_STATUSES
from src.models.profile import UserRole
from src.schemas.auth import Caller
from src.services.invitation_store import InvitationStore

logger = logging.getLogger(__name__)

GUEST_ID_LENGTH = 5


@dataclass(frozen=True)
class RoomGrant:
    """Who joins a room and what they may do there."""

    identity: str
    name: str
    role: UserRole
    can_publish: bool
    can_subscribe: bool = True

    @property
    def metadata(self) -> str:
        return json.dumps({"name": self.name, "role": self.role.value})


def guest_identity() -> str:
    """Random identity for an unauthenticated arena viewer."""
    alphabet = string.ascii_lowercase + string.digits
    return "public-" + "".join(secrets.choice(alphabet) for _ in range(GUEST_ID_LENGTH))


def arena_grant(caller: Caller | None) -> RoomGrant:
    """Decide arena permissions from the caller's role.

    Everyone may watch; admins, team members and clients may also publish.
    """
    if caller is None:
        identity = guest_identity()
        return RoomGrant(identity=identity, name=identity, role=UserRole.GUEST, can_publish=False)

    return RoomGrant(
        identity=caller.media_identity,
        name=caller.display_name,
        role=caller.role,
        can_publish=caller.role.can_publish_in_arena,
    )


class TokenService:
    """Service minting signed LiveKit credentials."""

    def __init__(self) -> None:
        """Initialize token service with settings and the invitation store."""
        settings = get_settings()
        self.store = InvitationStore()
        self.ttl = timedelta(seconds=settings.livekit_token_ttl_seconds)
        self.server_url = settings.livekit_url
        self.arena_room_name = settings.arena_room_name

    def issue_token(
        self,
        identity: str,
        room_name: str,
        can_publish: bool,
        can_subscribe: bool,
        metadata: str | None = None,
        name: str | None = None,
    ) -> str:
        """Mint a room-scoped access token.

        Args:
            identity: Participant identity inside the room.
            room_name: Room the token is valid for.
            can_publish: Allow publishing audio/video.
            can_subscribe: Allow receiving other participants' tracks.
            metadata: Optional participant metadata string.
            name: Optional display name.

        Returns:
            str: Signed JWT for the video provider.

        Raises:
            ConfigurationError: If LiveKit credentials are not configured.
        """
        credentials = get_livekit_credentials()

        token = (
            api.AccessToken(credentials.api_key, credentials.api_secret)
            .with_identity(identity)
            .with_ttl(self.ttl)
            .with_grants(
                api.VideoGrants(
                    room_join=True,
                    room=room_name,
                    can_publish=can_publish,
                    can_subscribe=can_subscribe,
                )
            )
        )
        if name:
            token = token.with_name(name)
        if metadata is not None:
            token = token.with_metadata(metadata)

        return token.to_jwt()

    def _token_response(self, grant: RoomGrant, room_name: str) -> dict[str, Any]:
        token = self.issue_token(
            identity=grant.identity,
            room_name=room_name,
            can_publish=grant.can_publish,
            can_subscribe=grant.can_subscribe,
            metadata=grant.metadata,
            name=grant.name,
        )
        return {
            "token": token,
            "room": room_name,
            "identity": grant.identity,
            "can_publish": grant.can_publish,
            "can_subscribe": grant.can_subscribe,
            "server_url": self.server_url or None,
            "expires_in": int(self.ttl.total_seconds()),
        }

    async def issue_arena_token(self, caller: Caller | None, room_name: str | None = None) -> dict[str, Any]:
        """Mint an arena token with role-based grants.

        Args:
            caller: The signed-in caller, or None for a guest viewer.
            room_name: Active arena name; falls back to the configured name.
        """
        grant = arena_grant(caller)
        return self._token_response(grant, room_name or self.arena_room_name)

    async def issue_breakout_token(self, caller: Caller, room_id: str) -> dict[str, Any]:
        """Mint a breakout token after re-checking the caller's invitation.

        The caller must be inviter or invitee of a pending, accepted or
        ongoing invitation for the room.

        Raises:
            NotInvitedError: If no such invitation exists.
            ConfigurationError: If LiveKit credentials are not configured.
        """
        invitation = await self.store.find_association(room_id, caller.profile_id, ASSOCIATED_STATUSES)
        if invitation is None:
            logger.warning("Breakout token denied for %s in room %s", caller.profile_id, room_id)
            raise NotInvitedError()

        grant = RoomGrant(
            identity=caller.media_identity,
            name=caller.display_name,
            role=caller.role,
            can_publish=True,
            can_subscribe=True,
        )
        logger.info("Breakout token issued for %s in room %s", caller.profile_id, room_id)
        return self._token_response(grant, room_id)
