"""Authentication schemas for JWT tokens, user context and callers."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.models.profile import UserRole


class UserContext(BaseModel):
    """Authenticated user context extracted from JWT token.

    Populated by the auth dependency from the validated JWT. The role
    claim here is Supabase's Postgres role, not the application role;
    see Caller for that.
    """

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID = Field(description="Unique identifier for the user (from JWT sub claim)")
    email: str | None = Field(default=None, description="User's email address if available")
    role: str | None = Field(default=None, description="Token role claim (e.g., 'authenticated')")


class TokenPayload(BaseModel):
    """JWT token payload structure for Supabase tokens."""

    model_config = ConfigDict(from_attributes=True)

    sub: str = Field(description="Subject - the user's UUID")
    email: str | None = Field(default=None, description="User's email address")
    role: str | None = Field(default=None, description="User's role")
    exp: int = Field(description="Expiration timestamp (Unix epoch)")
    iat: int = Field(description="Issued at timestamp (Unix epoch)")
    aud: str | None = Field(default=None, description="Audience - intended recipient")
    iss: str | None = Field(default=None, description="Issuer - token issuer URL")

    def to_user_context(self) -> UserContext:
        """Convert token payload to UserContext.

        Returns:
            UserContext: User context derived from token claims.
        """
        return UserContext(
            user_id=UUID(self.sub),
            email=self.email,
            role=self.role,
        )


class Caller(BaseModel):
    """Identity and application role of the party making a request.

    Every lifecycle operation takes a Caller; ownership checks compare
    ``profile_id`` against invitation inviter/invitee ids.
    """

    model_config = ConfigDict(from_attributes=True)

    profile_id: UUID = Field(description="Profile ID used as the caller's identity")
    user_id: UUID = Field(description="Auth user ID")
    email: str | None = Field(default=None, description="Caller email")
    name: str | None = Field(default=None, description="Caller display name")
    role: UserRole = Field(default=UserRole.GUEST, description="Application role")

    @property
    def display_name(self) -> str:
        """Name shown to other participants."""
        return self.name or self.email or "Unknown"

    @property
    def media_identity(self) -> str:
        """Identity presented to the video provider."""
        return self.email or str(self.profile_id)


class AuthenticatedResponse(BaseModel):
    """Response for authenticated test endpoint."""

    model_config = ConfigDict(from_attributes=True)

    authenticated: bool = Field(default=True, description="Authentication status")
    user_id: str = Field(description="Authenticated user ID")
    email: str | None = Field(default=None, description="User email if available")
    role: str | None = Field(default=None, description="User role if available")


class ProfileResponse(BaseModel):
    """Caller profile with application role."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Profile ID")
    user_id: UUID = Field(description="Auth user ID")
    name: str | None = Field(default=None, description="Display name")
    email: str | None = Field(default=None, description="Email address")
    role: UserRole = Field(description="Application role")
