"""LiveKit server SDK configuration helpers."""

import logging
from dataclasses import dataclass

from livekit import api

from src.api.middleware.error_handler import ConfigurationError
from src.core.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiveKitCredentials:
    """API credentials and endpoint for the LiveKit deployment."""

    url: str
    api_key: str
    api_secret: str

    @property
    def http_url(self) -> str:
        """Server API base URL (the room service speaks HTTP, not WebSocket)."""
        if self.url.startswith("wss://"):
            return "https://" + self.url[len("wss://"):]
        if self.url.startswith("ws://"):
            return "http://" + self.url[len("ws://"):]
        return self.url


def get_livekit_credentials() -> LiveKitCredentials:
    """Read LiveKit credentials from settings.

    Returns:
        LiveKitCredentials: Configured URL, key and secret.

    Raises:
        ConfigurationError: If the API key or secret is missing.
    """
    settings = get_settings()
    if not settings.livekit_configured:
        logger.error("LiveKit API credentials not configured")
        raise ConfigurationError("LiveKit API credentials not configured")
    return LiveKitCredentials(
        url=settings.livekit_url,
        api_key=settings.livekit_api_key,
        api_secret=settings.livekit_api_secret,
    )


def create_livekit_api() -> api.LiveKitAPI:
    """Create a LiveKit server API client.

    The client owns an HTTP session; callers must ``await client.aclose()``
    when done.

    Returns:
        api.LiveKitAPI: Client bound to the configured deployment.

    Raises:
        ConfigurationError: If credentials or the server URL are missing.
    """
    credentials = get_livekit_credentials()
    if not credentials.url:
        raise ConfigurationError("LiveKit server URL not configured")
    return api.LiveKitAPI(
        url=credentials.http_url,
        api_key=credentials.api_key,
        api_secret=credentials.api_secret,
    )


def check_livekit_configuration() -> dict[str, object]:
    """Report whether LiveKit credentials are configured.

    Returns:
        dict: Status with 'healthy' boolean and optional 'error' message.
    """
    settings = get_settings()
    if not settings.livekit_configured:
        return {"healthy": False, "error": "LiveKit API credentials not configured"}
    if not settings.livekit_url:
        return {"healthy": False, "error": "LiveKit server URL not configured"}
    return {"healthy": True}
