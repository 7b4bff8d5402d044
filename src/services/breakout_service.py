"""Breakout invitation lifecycle.

State machine::

    pending  -> accepted | <deleted on decline> | expired
    accepted -> ongoing  | <deleted on completion>
    ongoing  -> <deleted on completion>

A breakout room is live while any invitation for it is accepted or ongoing,
and is over once no row references it.
"""

import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from src.api.middleware.error_handler import (
    AlreadyHandledError,
    AuthorizationError,
    NoActiveSessionError,
    NotFoundError,
    ValidationError,
)
from src.core.config import get_settings
from src.models.invitation import (
    LIVE_STATUSES,
    InvitationResponseKind,
    InvitationStatus,
)
from src.models.profile import UserRole
from src.schemas.auth import Caller
from src.services.invitation_store import InvitationStore
from src.services.profile_service import ProfileService

logger = logging.getLogger(__name__)

ROOM_ID_ALPHABET = string.ascii_lowercase + string.digits
ROOM_ID_LENGTH = 7


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse a timestamptz value returned by PostgREST."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def participant_summary(profile: dict[str, Any] | None, include_role: bool = True) -> dict[str, Any]:
    """Public view of a profile, with placeholders when it no longer exists."""
    if profile is None:
        summary: dict[str, Any] = {"id": None, "name": "Unknown", "email": "Unknown"}
        if include_role:
            summary["role"] = "Unknown"
        return summary

    summary = {
        "id": profile["id"],
        "name": profile.get("name") or "Unknown",
        "email": profile.get("email") or "Unknown",
    }
    if include_role:
        summary["role"] = profile.get("role") or "Unknown"
    return summary


def _is_participant(invitation: dict[str, Any], caller: Caller) -> bool:
    pid = str(caller.profile_id)
    return pid in (str(invitation["inviter_id"]), str(invitation["invitee_id"]))


class BreakoutService:
    """Service applying state transitions to breakout invitations."""

    def __init__(self) -> None:
        """Initialize breakout service with the invitation store."""
        settings = get_settings()
        self.store = InvitationStore()
        self.profiles = ProfileService()
        self.invitation_ttl = timedelta(seconds=settings.invitation_ttl_seconds)
        self.room_prefix = settings.breakout_room_prefix

    def generate_room_id(self) -> str:
        """Generate a short random breakout room id.

        Collisions are not checked; seven base36 characters make them
        unlikely enough for the number of concurrent breakouts we run.
        """
        suffix = "".join(secrets.choice(ROOM_ID_ALPHABET) for _ in range(ROOM_ID_LENGTH))
        return f"{self.room_prefix}{suffix}"

    async def _get_or_raise(self, invitation_id: UUID | str) -> dict[str, Any]:
        invitation = await self.store.get(invitation_id)
        if not invitation:
            raise NotFoundError("Invitation not found")
        return invitation

    async def _raise_for_current_state(self, invitation_id: UUID | str) -> None:
        """Report why a conditional write matched no row."""
        current = await self.store.get(invitation_id)
        if current is None:
            raise NotFoundError("Invitation not found")
        raise AlreadyHandledError(current["status"])

    async def create_invitation(
        self,
        caller: Caller,
        invitee_id: UUID,
        room_name: str | None = None,
    ) -> dict[str, Any]:
        """Send a breakout invitation from a team member to a client.

        Args:
            caller: The inviting team member.
            invitee_id: Profile ID of the client being invited.
            room_name: Room to invite into; generated when omitted.

        Returns:
            dict: ``invite_id``, ``room_id`` and ``expires_at``.

        Raises:
            AuthorizationError: If the caller is not an admin or team member.
            NotFoundError: If the invitee profile does not exist.
            ValidationError: If the invitee is not a client.
        """
        if not caller.role.is_team:
            logger.warning(
                "Rejected breakout invite from %s with role %s",
                caller.profile_id,
                caller.role.value,
            )
            raise AuthorizationError("Only team members can send breakout invitations")

        invitee = await self.profiles.get_profile(invitee_id)
        if not invitee:
            raise NotFoundError("Invitee not found")
        if UserRole.parse(invitee.get("role")) is not UserRole.CLIENT:
            raise ValidationError("Breakout invitations can only be sent to clients")

        room_id = room_name or self.generate_room_id()
        now = datetime.now(timezone.utc)
        expires_at = now + self.invitation_ttl

        invitation = await self.store.create({
            "inviter_id": str(caller.profile_id),
            "invitee_id": str(invitee_id),
            "room_id": room_id,
            "status": InvitationStatus.PENDING.value,
            "created_at": now.isoformat(),
            "expires_at": expires_at.isoformat(),
        })

        logger.info(
            "Breakout invite %s created for room %s, expires in %d seconds",
            invitation["id"],
            room_id,
            int(self.invitation_ttl.total_seconds()),
        )

        return {
            "invite_id": invitation["id"],
            "room_id": room_id,
            "expires_at": expires_at,
        }

    async def respond(
        self,
        caller: Caller,
        invitation_id: UUID,
        response: InvitationResponseKind,
    ) -> dict[str, Any]:
        """Accept or decline a pending invitation.

        Accepting moves the row to ``accepted``. Declining deletes the row, so
        a repeated decline reports NotFoundError.

        Expiry is enforced here as well as by the sweeper: a pending row past
        ``expires_at`` that the sweeper has not reached yet is marked
        ``expired`` on the spot and rejected, rather than answered late.

        Args:
            caller: Must be the invitee.
            invitation_id: The invitation's UUID.
            response: Accept or decline.

        Returns:
            dict: ``status``, ``room_id``, ``inviter_id`` and ``invitee_id``.

        Raises:
            NotFoundError: If the invitation does not exist.
            AuthorizationError: If the caller is not the invitee.
            AlreadyHandledError: If the invitation is no longer pending.
        """
        invitation = await self._get_or_raise(invitation_id)

        if str(invitation["invitee_id"]) != str(caller.profile_id):
            raise AuthorizationError("Not the invitation recipient")

        if invitation["status"] != InvitationStatus.PENDING.value:
            raise AlreadyHandledError(invitation["status"])

        now = datetime.now(timezone.utc)
        if parse_timestamp(invitation["expires_at"]) < now:
            await self.store.update(
                invitation_id,
                {"status": InvitationStatus.EXPIRED.value},
                expected_status=InvitationStatus.PENDING,
            )
            raise AlreadyHandledError(InvitationStatus.EXPIRED.value, "Invitation has expired")

        if response is InvitationResponseKind.ACCEPT:
            result = await self.store.update(
                invitation_id,
                {"status": InvitationStatus.ACCEPTED.value},
                expected_status=InvitationStatus.PENDING,
            )
            new_status = InvitationStatus.ACCEPTED
        else:
            result = await self.store.delete(invitation_id, expected_status=InvitationStatus.PENDING)
            new_status = InvitationStatus.DECLINED

        if result is None:
            # Someone else changed the row between our read and write
            await self._raise_for_current_state(invitation_id)

        logger.info("Breakout invite %s %s", invitation_id, new_status.value)

        return {
            "status": new_status,
            "room_id": invitation["room_id"],
            "inviter_id": invitation["inviter_id"],
            "invitee_id": invitation["invitee_id"],
        }

    async def mark_ongoing(self, caller: Caller, invitation_id: UUID) -> dict[str, Any]:
        """Record that a participant joined the breakout room.

        Repeated join events are a no-op once the invitation is ongoing.

        Raises:
            NotFoundError: If the invitation does not exist.
            AuthorizationError: If the caller is not a participant.
            AlreadyHandledError: If the invitation is neither accepted nor ongoing.
        """
        invitation = await self._get_or_raise(invitation_id)

        if not _is_participant(invitation, caller):
            raise AuthorizationError("Not a participant of this invitation")

        if invitation["status"] == InvitationStatus.ONGOING.value:
            return invitation
        if invitation["status"] != InvitationStatus.ACCEPTED.value:
            raise AlreadyHandledError(invitation["status"])

        updated = await self.store.update(
            invitation_id,
            {"status": InvitationStatus.ONGOING.value},
            expected_status=InvitationStatus.ACCEPTED,
        )
        if updated is not None:
            logger.info("Breakout invite %s ongoing", invitation_id)
            return updated

        current = await self.store.get(invitation_id)
        if current is None:
            raise NotFoundError("Invitation not found")
        if current["status"] == InvitationStatus.ONGOING.value:
            return current
        raise AlreadyHandledError(current["status"])

    async def complete_for_room(self, caller: Caller, room_id: str) -> dict[str, int]:
        """End a breakout for everyone by deleting its live invitations.

        Args:
            caller: Must be inviter or invitee on a live invitation for the
                room. Admins may end any room.
            room_id: The breakout room id.

        Returns:
            dict: ``deleted_count``.

        Raises:
            NoActiveSessionError: If no accepted or ongoing invitation exists.
            AuthorizationError: If the caller does not participate.
        """
        live = await self.store.list_by_room(room_id, LIVE_STATUSES)
        if not live:
            raise NoActiveSessionError()

        if caller.role is not UserRole.ADMIN and not any(_is_participant(inv, caller) for inv in live):
            raise AuthorizationError("Not a participant of this breakout session")

        deleted = await self.store.delete_for_room(room_id, LIVE_STATUSES)
        logger.info(
            "Breakout room %s ended by %s, %d invites removed",
            room_id,
            caller.profile_id,
            len(deleted),
        )
        return {"deleted_count": len(deleted)}

    async def sweep_expired(self, now: datetime | None = None) -> dict[str, int]:
        """Move pending invitations past their expiry to ``expired``.

        Safe to run concurrently: each row is only updated while it is still
        pending.
        """
        now = now or datetime.now(timezone.utc)
        candidates = await self.store.list_expired_pending(now)

        count = 0
        for invitation in candidates:
            updated = await self.store.update(
                invitation["id"],
                {"status": InvitationStatus.EXPIRED.value},
                expected_status=InvitationStatus.PENDING,
            )
            if updated is not None:
                count += 1

        if count:
            logger.info("Expired %d breakout invites", count)
        return {"expired_count": count}

    async def exists_for_room(self, room_id: str) -> bool:
        """Check whether the breakout room still has any invitation."""
        return await self.store.exists_for_room(room_id)

    async def list_pending_for(self, caller: Caller, now: datetime | None = None) -> list[dict[str, Any]]:
        """Pending invitations addressed to the caller with inviter details.

        Rows past their expiry still show until the sweep marks them.
        """
        now = now or datetime.now(timezone.utc)
        invitations = await self.store.list_by_invitee(caller.profile_id, {InvitationStatus.PENDING})
        inviters = await self.profiles.get_profiles(inv["inviter_id"] for inv in invitations)

        result = []
        for inv in invitations:
            remaining = (parse_timestamp(inv["expires_at"]) - now).total_seconds()
            result.append({
                **inv,
                "inviter": participant_summary(inviters.get(str(inv["inviter_id"]))),
                "time_remaining": max(0, int(remaining)),
            })
        return result

    async def list_sent_by(
        self,
        caller: Caller,
        include_expired: bool = False,
        include_completed: bool = False,
    ) -> list[dict[str, Any]]:
        """Invitations the caller sent, with invitee details."""
        statuses = set(InvitationStatus)
        if not include_expired:
            statuses.discard(InvitationStatus.EXPIRED)
        if not include_completed:
            statuses.discard(InvitationStatus.COMPLETED)

        invitations = await self.store.list_by_inviter(caller.profile_id, statuses)
        invitees = await self.profiles.get_profiles(inv["invitee_id"] for inv in invitations)

        return [
            {**inv, "invitee": participant_summary(invitees.get(str(inv["invitee_id"])), include_role=False)}
            for inv in invitations
        ]

    async def list_active_for(self, caller: Caller) -> list[dict[str, Any]]:
        """Live breakouts the caller takes part in, as inviter or invitee."""
        invitations = await self.store.list_participating(caller.profile_id, LIVE_STATUSES)
        ids = [inv["inviter_id"] for inv in invitations] + [inv["invitee_id"] for inv in invitations]
        profiles = await self.profiles.get_profiles(ids)

        return [
            {
                **inv,
                "inviter": participant_summary(profiles.get(str(inv["inviter_id"]))),
                "invitee": participant_summary(profiles.get(str(inv["invitee_id"]))),
            }
            for inv in invitations
        ]

    async def get_room_participants(self, room_id: str) -> list[dict[str, Any]]:
        """Distinct inviter and invitee profiles of a room's live invitations."""
        invitations = await self.store.list_by_room(room_id, LIVE_STATUSES)

        ids: list[str] = []
        for inv in invitations:
            for pid in (str(inv["inviter_id"]), str(inv["invitee_id"])):
                if pid not in ids:
                    ids.append(pid)

        profiles = await self.profiles.get_profiles(ids)
        return [participant_summary(profiles[pid]) for pid in ids if pid in profiles]
