"""Profile lookups for caller identity and participant summaries."""

from collections.abc import Iterable
from typing import Any
from uuid import UUID

from src.core.supabase import get_supabase_client


class ProfileService:
    """Read access to the ``profiles`` table.

    Profiles and their roles are managed by the team and client list flows;
    this service only resolves them.
    """

    def __init__(self) -> None:
        """Initialize profile service with Supabase client."""
        self.client = get_supabase_client()

    async def get_profile_by_user_id(self, user_id: UUID) -> dict[str, Any] | None:
        """Get a profile by auth user ID.

        Args:
            user_id: The auth user ID (JWT subject).

        Returns:
            dict | None: The profile data or None if not found.
        """
        response = (
            self.client.table("profiles")
            .select("*")
            .eq("user_id", str(user_id))
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    async def get_profile(self, profile_id: UUID | str) -> dict[str, Any] | None:
        """Get a profile by profile ID.

        Args:
            profile_id: The profile's UUID.

        Returns:
            dict | None: The profile data or None if not found.
        """
        response = (
            self.client.table("profiles")
            .select("*")
            .eq("id", str(profile_id))
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    async def get_profiles(self, profile_ids: Iterable[UUID | str]) -> dict[str, dict[str, Any]]:
        """Get several profiles keyed by profile ID.

        Missing profiles are simply absent from the result.
        """
        ids = sorted({str(pid) for pid in profile_ids})
        if not ids:
            return {}

        response = (
            self.client.table("profiles")
            .select("*")
            .in_("id", ids)
            .execute()
        )
        return {str(row["id"]): row for row in response.data or []}
