"""API client factory.

Provides factory functions to get the appropriate API client and session
store based on configuration (real HTTP backend or in-memory mock).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from codemonk.auth.credentials import FileCredentialStore
from codemonk.config import get_settings

if TYPE_CHECKING:
    from codemonk.auth.credentials import CredentialStore
    from codemonk.auth.mock import MockApiClient
    from codemonk.auth.protocol import ApiClientProtocol
    from codemonk.auth.session import SessionStore


# Cached mock client instance to preserve backend state across calls
_mock_client_instance: MockApiClient | None = None


def get_credential_store() -> CredentialStore:
    """Return the file-backed store at the configured token path."""
    return FileCredentialStore(get_settings().token_path)


def get_api_client(credentials: CredentialStore | None = None) -> ApiClientProtocol:
    """Get the appropriate API client based on configuration.

    If DEV__API_MOCK=true, returns MockApiClient (singleton to preserve its
    in-memory accounts), rebound to the given credential store so it reads
    and erases the same token as the caller's SessionStore. Otherwise,
    returns CodeMonkApiClient pointed at API__BASE_URL.

    Args:
        credentials: Token store; defaults to the configured token file.

    Raises:
        ValueError: If api.base_url is empty and mock mode is disabled.
    """
    global _mock_client_instance  # noqa: PLW0603
    settings = get_settings()
    credentials = credentials or get_credential_store()

    if settings.dev.api_mock:
        from codemonk.auth.mock import MockApiClient

        if _mock_client_instance is None:
            _mock_client_instance = MockApiClient(credentials)
        else:
            _mock_client_instance.bind_credentials(credentials)
        return _mock_client_instance

    if not settings.api.base_url:
        msg = (
            "API__BASE_URL is required when DEV__API_MOCK is not enabled. "
            "Set API__BASE_URL in your .env file."
        )
        raise ValueError(msg)

    from codemonk.auth.client import CodeMonkApiClient

    return CodeMonkApiClient(settings.api.base_url, credentials)


def create_session_store(
    client: ApiClientProtocol | None = None,
    credentials: CredentialStore | None = None,
) -> SessionStore:
    """Build a SessionStore wired to the configured client and retry policy."""
    from codemonk.auth.session import RetryPolicy, SessionStore

    settings = get_settings()
    credentials = credentials or get_credential_store()
    client = client or get_api_client(credentials)
    return SessionStore(
        client,
        credentials,
        retry_policy=RetryPolicy(
            max_attempts=settings.session.probe_max_attempts,
            delay=settings.session.probe_retry_delay,
        ),
    )


def clear_config_cache() -> None:
    """Clear the configuration and mock client caches.

    Useful for testing when you need to reload configuration
    or reset mock backend state.
    """
    global _mock_client_instance  # noqa: PLW0603
    get_settings.cache_clear()
    _mock_client_instance = None
