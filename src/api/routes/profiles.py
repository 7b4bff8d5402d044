"""Profile API routes."""

from fastapi import APIRouter

from src.api.deps import CurrentCaller
from src.schemas.auth import ProfileResponse

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get(
    "/me",
    response_model=ProfileResponse,
    summary="Get current user's profile",
    description="Returns the authenticated user's profile and application role.",
)
async def get_my_profile(caller: CurrentCaller) -> ProfileResponse:
    """Get the authenticated user's profile.

    Args:
        caller: The resolved caller.

    Returns:
        ProfileResponse: Profile ID, name, email and role.
    """
    return ProfileResponse(
        id=caller.profile_id,
        user_id=caller.user_id,
        name=caller.name,
        email=caller.email,
        role=caller.role,
    )
