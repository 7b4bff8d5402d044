"""Pytest configuration and fixtures."""

import os
import time
from collections.abc import Callable, Generator
from contextlib import ExitStack
from typing import Any
from unittest.mock import MagicMock, patch
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from jose import jwt

TEST_JWT_SECRET = "test-jwt-secret-for-unit-tests-0123456789"

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SUPABASE_SIGNING_KEY_JWK", "")
os.environ.setdefault("SUPABASE_JWT_SECRET", TEST_JWT_SECRET)
os.environ.setdefault("LIVEKIT_URL", "wss://test-project.livekit.cloud")
os.environ.setdefault("LIVEKIT_API_KEY", "test-livekit-key")
os.environ.setdefault("LIVEKIT_API_SECRET", "test-livekit-secret-0123456789abcdef")
os.environ.setdefault("INVITATION_SWEEP_INTERVAL_SECONDS", "0")
os.environ.setdefault("ROOM_WATCH_POLL_SECONDS", "0.05")

from tests.fakes import FakeSupabaseClient  # noqa: E402

# Modules that bind get_supabase_client at import time
SUPABASE_CONSUMERS = (
    "src.core.supabase",
    "src.services.invitation_store",
    "src.services.profile_service",
    "src.services.room_service",
)


def create_test_token(
    sub: str = "550e8400-e29b-41d4-a716-446655440000",
    email: str | None = "test@example.com",
    role: str | None = "authenticated",
    exp_offset: int = 3600,
) -> str:
    """Create a test JWT token signed with the HS256 test secret."""
    now = int(time.time())
    payload = {
        "sub": sub,
        "email": email,
        "role": role,
        "exp": now + exp_offset,
        "iat": now,
    }
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def fresh_event_broker() -> Generator[None, None, None]:
    """Give every test its own event broker."""
    import src.core.events as events

    events._broker = None
    yield
    events._broker = None


@pytest.fixture
def fake_supabase() -> Generator[FakeSupabaseClient, None, None]:
    """Provide an in-memory Supabase client wired into every service.

    Yields:
        FakeSupabaseClient: The shared fake database.
    """
    fake = FakeSupabaseClient()
    with ExitStack() as stack:
        for module in SUPABASE_CONSUMERS:
            stack.enter_context(patch(f"{module}.get_supabase_client", return_value=fake))
        yield fake


@pytest.fixture
def mock_supabase_client() -> Generator[MagicMock, None, None]:
    """Provide a mocked Supabase client for the health checks.

    Yields:
        MagicMock: Mocked Supabase client for testing.
    """
    mock_client = MagicMock()

    mock_response = MagicMock()
    mock_response.data = []
    mock_client.table.return_value.select.return_value.limit.return_value.execute.return_value = (
        mock_response
    )

    with patch("src.core.supabase.get_supabase_client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def people(fake_supabase: FakeSupabaseClient) -> dict[str, dict[str, Any]]:
    """Seed one profile per role plus a second client.

    Returns:
        dict: Profile rows keyed by ``admin``, ``team``, ``client``,
        ``other_client`` and ``other_team``.
    """
    rows = fake_supabase.seed("profiles", [
        {
            "id": "11111111-1111-4111-8111-111111111111",
            "user_id": "a1111111-1111-4111-8111-111111111111",
            "name": "Ada Admin",
            "email": "ada@example.com",
            "role": "admin",
        },
        {
            "id": "22222222-2222-4222-8222-222222222222",
            "user_id": "a2222222-2222-4222-8222-222222222222",
            "name": "Tom Team",
            "email": "tom@example.com",
            "role": "user",
        },
        {
            "id": "33333333-3333-4333-8333-333333333333",
            "user_id": "a3333333-3333-4333-8333-333333333333",
            "name": "Cleo Client",
            "email": "cleo@example.com",
            "role": "client",
        },
        {
            "id": "44444444-4444-4444-8444-444444444444",
            "user_id": "a4444444-4444-4444-8444-444444444444",
            "name": "Carl Client",
            "email": "carl@example.com",
            "role": "client",
        },
        {
            "id": "55555555-5555-4555-8555-555555555555",
            "user_id": "a5555555-5555-4555-8555-555555555555",
            "name": "Tina Team",
            "email": "tina@example.com",
            "role": "user",
        },
    ])
    keys = ("admin", "team", "client", "other_client", "other_team")
    return dict(zip(keys, rows))


@pytest.fixture
def caller_for() -> Callable[[dict[str, Any]], Any]:
    """Build a Caller from a seeded profile row."""
    from src.models.profile import UserRole
    from src.schemas.auth import Caller

    def _build(profile: dict[str, Any]) -> Caller:
        return Caller(
            profile_id=UUID(profile["id"]),
            user_id=UUID(profile["user_id"]),
            email=profile.get("email"),
            name=profile.get("name"),
            role=UserRole.parse(profile.get("role")),
        )

    return _build


@pytest.fixture
def auth_headers() -> Callable[[dict[str, Any]], dict[str, str]]:
    """Build Authorization headers for a seeded profile row."""

    def _build(profile: dict[str, Any]) -> dict[str, str]:
        token = create_test_token(sub=profile["user_id"], email=profile.get("email"))
        return {"Authorization": f"Bearer {token}"}

    return _build


@pytest.fixture
def client(fake_supabase: FakeSupabaseClient) -> Generator[TestClient, None, None]:
    """Provide a test client backed by the in-memory database.

    Args:
        fake_supabase: In-memory Supabase fixture.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app

    with TestClient(app) as test_client:
        yield test_client
