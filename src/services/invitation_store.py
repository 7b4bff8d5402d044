"""Persistence for breakout invitation rows."""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any
from uuid import UUID

from src.core.events import InvitationEvent, InvitationEventType, get_event_broker
from src.core.supabase import get_supabase_client
from src.models.invitation import InvitationStatus

logger = logging.getLogger(__name__)


def _status_values(statuses: Iterable[InvitationStatus]) -> list[str]:
    return sorted(s.value for s in statuses)


class InvitationStore:
    """Indexed storage for the ``breakout_invites`` table.

    The store is the only owner of invitation rows. Every mutation publishes
    an invalidation event so room and inbox observers can re-read.
    Deletion is permanent.
    """

    TABLE = "breakout_invites"

    def __init__(self) -> None:
        """Initialize invitation store with Supabase client and event broker."""
        self.client = get_supabase_client()
        self.broker = get_event_broker()

    def _publish(self, event_type: InvitationEventType, row: dict[str, Any]) -> None:
        self.broker.publish(
            InvitationEvent(
                event_type=event_type,
                invitation_id=str(row["id"]),
                room_id=row["room_id"],
                inviter_id=str(row["inviter_id"]),
                invitee_id=str(row["invitee_id"]),
                status=row.get("status") if event_type is not InvitationEventType.DELETED else None,
            )
        )

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a new invitation row.

        Args:
            data: Column values for the new row.

        Returns:
            dict: The created invitation row.
        """
        response = self.client.table(self.TABLE).insert(data).execute()
        row = response.data[0]
        self._publish(InvitationEventType.CREATED, row)
        return row

    async def get(self, invitation_id: UUID | str) -> dict[str, Any] | None:
        """Get an invitation by ID.

        Returns:
            dict | None: The invitation row or None if it does not exist.
        """
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("id", str(invitation_id))
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    async def update(
        self,
        invitation_id: UUID | str,
        patch: dict[str, Any],
        expected_status: InvitationStatus | None = None,
    ) -> dict[str, Any] | None:
        """Patch fields on one invitation.

        When ``expected_status`` is given the update only applies if the row
        still holds that status, so two concurrent transitions cannot both
        succeed.

        Args:
            invitation_id: The invitation's UUID.
            patch: Fields to change.
            expected_status: Required current status, if any.

        Returns:
            dict | None: The updated row, or None if no row matched.
        """
        query = self.client.table(self.TABLE).update(patch).eq("id", str(invitation_id))
        if expected_status is not None:
            query = query.eq("status", expected_status.value)

        response = query.execute()
        if not response.data:
            return None

        row = response.data[0]
        self._publish(InvitationEventType.UPDATED, row)
        return row

    async def delete(
        self,
        invitation_id: UUID | str,
        expected_status: InvitationStatus | None = None,
    ) -> dict[str, Any] | None:
        """Delete one invitation.

        Args:
            invitation_id: The invitation's UUID.
            expected_status: Required current status, if any.

        Returns:
            dict | None: The deleted row, or None if no row matched.
        """
        query = self.client.table(self.TABLE).delete().eq("id", str(invitation_id))
        if expected_status is not None:
            query = query.eq("status", expected_status.value)

        response = query.execute()
        if not response.data:
            return None

        row = response.data[0]
        self._publish(InvitationEventType.DELETED, row)
        return row

    async def delete_for_room(
        self,
        room_id: str,
        statuses: Iterable[InvitationStatus],
    ) -> list[dict[str, Any]]:
        """Delete every invitation for a room whose status is in ``statuses``.

        Returns:
            list[dict]: The deleted rows.
        """
        response = (
            self.client.table(self.TABLE)
            .delete()
            .eq("room_id", room_id)
            .in_("status", _status_values(statuses))
            .execute()
        )
        rows = response.data or []
        for row in rows:
            self._publish(InvitationEventType.DELETED, row)
        return rows

    async def _list(
        self,
        column: str,
        value: str,
        statuses: Iterable[InvitationStatus] | None = None,
    ) -> list[dict[str, Any]]:
        query = self.client.table(self.TABLE).select("*").eq(column, value)
        if statuses is not None:
            query = query.in_("status", _status_values(statuses))
        response = query.order("created_at", desc=True).execute()
        return response.data or []

    async def list_by_invitee(
        self,
        profile_id: UUID | str,
        statuses: Iterable[InvitationStatus] | None = None,
    ) -> list[dict[str, Any]]:
        """List invitations addressed to a profile, newest first."""
        return await self._list("invitee_id", str(profile_id), statuses)

    async def list_by_inviter(
        self,
        profile_id: UUID | str,
        statuses: Iterable[InvitationStatus] | None = None,
    ) -> list[dict[str, Any]]:
        """List invitations sent by a profile, newest first."""
        return await self._list("inviter_id", str(profile_id), statuses)

    async def list_by_room(
        self,
        room_id: str,
        statuses: Iterable[InvitationStatus] | None = None,
    ) -> list[dict[str, Any]]:
        """List invitations referencing a room, newest first."""
        return await self._list("room_id", room_id, statuses)

    async def list_by_status(self, status: InvitationStatus) -> list[dict[str, Any]]:
        """List every invitation currently holding ``status``."""
        return await self._list("status", status.value)

    async def list_participating(
        self,
        profile_id: UUID | str,
        statuses: Iterable[InvitationStatus],
    ) -> list[dict[str, Any]]:
        """List invitations where the profile is inviter or invitee."""
        pid = str(profile_id)
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .or_(f"inviter_id.eq.{pid},invitee_id.eq.{pid}")
            .in_("status", _status_values(statuses))
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    async def find_association(
        self,
        room_id: str,
        profile_id: UUID | str,
        statuses: Iterable[InvitationStatus],
    ) -> dict[str, Any] | None:
        """Find one invitation tying a profile to a room.

        Returns:
            dict | None: A matching invitation where the profile is inviter or
            invitee and the status is in ``statuses``.
        """
        pid = str(profile_id)
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("room_id", room_id)
            .or_(f"inviter_id.eq.{pid},invitee_id.eq.{pid}")
            .in_("status", _status_values(statuses))
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    async def list_expired_pending(self, now: datetime) -> list[dict[str, Any]]:
        """List pending invitations whose expiry is strictly before ``now``."""
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("status", InvitationStatus.PENDING.value)
            .lt("expires_at", now.isoformat())
            .execute()
        )
        return response.data or []

    async def exists_for_room(self, room_id: str) -> bool:
        """Check whether any invitation row references the room."""
        response = (
            self.client.table(self.TABLE)
            .select("id")
            .eq("room_id", room_id)
            .limit(1)
            .execute()
        )
        return bool(response.data)
