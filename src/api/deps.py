"""FastAPI dependency injection functions."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from src.api.middleware.error_handler import AuthenticationError
from src.models.profile import UserRole
from src.schemas.auth import Caller, UserContext
from src.services.profile_service import ProfileService


async def get_current_user(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> UserContext:
    """Extract and validate the current user from the Authorization header.

    Args:
        authorization: The Authorization header value (Bearer token).

    Returns:
        UserContext: The authenticated user's context.

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_jwt(parts[1])
        return payload.to_user_context()

    except AuthError as e:
        if e.code == AuthErrorCode.TOKEN_EXPIRED:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_optional_user(
    authorization: Annotated[str | None, Header()] = None,
) -> UserContext | None:
    """Extract the current user if an Authorization header is present.

    A present but invalid token is still rejected.

    Returns:
        UserContext | None: The user context if authenticated, None otherwise.
    """
    if not authorization:
        return None
    return await get_current_user(authorization)


CurrentUser = Annotated[UserContext, Depends(get_current_user)]
OptionalUser = Annotated[UserContext | None, Depends(get_optional_user)]


async def resolve_caller(user: UserContext) -> Caller:
    """Load the caller's profile and application role.

    Raises:
        AuthenticationError: If the user has no profile yet.
    """
    profile = await ProfileService().get_profile_by_user_id(user.user_id)
    if not profile:
        raise AuthenticationError("User profile not found")

    return Caller(
        profile_id=UUID(str(profile["id"])),
        user_id=user.user_id,
        email=profile.get("email") or user.email,
        name=profile.get("name"),
        role=UserRole.parse(profile.get("role")),
    )


async def get_current_caller(user: CurrentUser) -> Caller:
    """Caller for endpoints that require a signed-in user."""
    return await resolve_caller(user)


async def get_optional_caller(user: OptionalUser) -> Caller | None:
    """Caller for endpoints that also serve unauthenticated guests."""
    if user is None:
        return None
    return await resolve_caller(user)


CurrentCaller = Annotated[Caller, Depends(get_current_caller)]
OptionalCaller = Annotated[Caller | None, Depends(get_optional_caller)]
