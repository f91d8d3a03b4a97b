"""Authentication module for the Code Monk client.

Provides the session lifecycle on top of the Code Monk REST API:
- Startup probe with a bounded retry
- Email/password login and logout
- Global handling of expired credentials (401)
- Mock client for testing

Usage:
    from codemonk.auth import create_session_store

    store = create_session_store()
    await store.initialize()
    result = await store.login("student@example.com", "Abc12345")
"""

from __future__ import annotations

from codemonk.auth.credentials import (
    CredentialStore,
    FileCredentialStore,
    MemoryCredentialStore,
)
from codemonk.auth.factory import (
    clear_config_cache,
    create_session_store,
    get_api_client,
)
from codemonk.auth.models import (
    ActionResult,
    ErrorKind,
    Session,
    SessionStatus,
    UserProfile,
    UserResult,
    VerifyResult,
)
from codemonk.auth.protocol import ApiClientProtocol
from codemonk.auth.roles import Role, dashboard_for, is_privileged_user, role_of
from codemonk.auth.session import RetryPolicy, SessionStore

__all__ = [
    "ActionResult",
    "ApiClientProtocol",
    "CredentialStore",
    "ErrorKind",
    "FileCredentialStore",
    "MemoryCredentialStore",
    "RetryPolicy",
    "Role",
    "Session",
    "SessionStatus",
    "SessionStore",
    "UserProfile",
    "UserResult",
    "VerifyResult",
    "clear_config_cache",
    "create_session_store",
    "dashboard_for",
    "get_api_client",
    "is_privileged_user",
    "role_of",
]
