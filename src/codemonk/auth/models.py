"""Data models for session state and API operation results.

These dataclasses represent the outcomes of auth and registration calls,
providing a consistent interface between the real HTTP client and the mock.
Failures are values, never exceptions.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    """Why an operation failed."""

    NETWORK_FAILURE = "network_failure"
    UNAUTHORIZED = "unauthorized"
    VALIDATION_FAILURE = "validation_failure"
    SERVER_FAILURE = "server_failure"
    CLIENT_VALIDATION_FAILURE = "client_validation_failure"

    @property
    def is_transient(self) -> bool:
        """Network and 5xx failures may clear up on their own."""
        return self in (ErrorKind.NETWORK_FAILURE, ErrorKind.SERVER_FAILURE)


class SessionStatus(StrEnum):
    """Lifecycle of the session store.

    LOGGING_IN is the transient sub-state of UNAUTHENTICATED while a login
    request is in flight.
    """

    UNKNOWN = "unknown"
    LOGGING_IN = "logging_in"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


# Server user keys that map onto named UserProfile attributes.
_PROFILE_KEYS = {
    "id": "id",
    "_id": "id",
    "email": "email",
    "fullName": "full_name",
    "role": "role",
    "usn": "usn",
    "phone": "phone",
    "whatsappNumber": "whatsapp_number",
}


@dataclass(frozen=True)
class UserProfile:
    """Snapshot of the authenticated account as the server reported it.

    Attributes:
        id: Server-side account identifier.
        email: Account email address.
        full_name: Display name.
        role: One of "student", "mentor", "admin".
        usn: University seat number (students only).
        phone: Contact number.
        whatsapp_number: Optional WhatsApp number.
        extra: Any other fields the server sent, kept verbatim.
    """

    id: int | str
    email: str | None = None
    full_name: str | None = None
    role: str = "student"
    usn: str | None = None
    phone: str | None = None
    whatsapp_number: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> UserProfile:
        """Build a profile from the server's ``user`` object."""
        known: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in payload.items():
            attr = _PROFILE_KEYS.get(key)
            if attr is None:
                extra[key] = value
            elif attr not in known:
                known[attr] = value
        if "id" not in known:
            msg = "user payload has no id"
            raise ValueError(msg)
        if known.get("role") is None:
            known.pop("role", None)
        return cls(**known, extra=extra)


@dataclass(frozen=True)
class Session:
    """Immutable view of who, if anyone, is logged in.

    Attributes:
        status: Current lifecycle status.
        user: The authenticated account; set iff status is AUTHENTICATED.
        last_error: Message from the last failed operation, if any.
    """

    status: SessionStatus = SessionStatus.UNKNOWN
    user: UserProfile | None = None
    last_error: str | None = None

    def __post_init__(self) -> None:
        if (self.user is not None) != (self.status is SessionStatus.AUTHENTICATED):
            msg = f"user must be set iff status is authenticated (got {self.status})"
            raise ValueError(msg)

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATED

    @property
    def loading(self) -> bool:
        """True while the startup probe or a login is in flight."""
        return self.status in (SessionStatus.UNKNOWN, SessionStatus.LOGGING_IN)


@dataclass(frozen=True)
class ActionResult:
    """Uniform result of a public operation.

    Attributes:
        success: Whether the operation succeeded.
        message: Human-readable outcome; never empty on failure.
        error: Failure category if the operation failed.
        field_errors: Per-field messages keyed by client field name.
    """

    success: bool
    message: str = ""
    error: ErrorKind | None = None
    field_errors: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str = "") -> ActionResult:
        return cls(success=True, message=message)

    @classmethod
    def fail(
        cls,
        message: str,
        error: ErrorKind,
        field_errors: Mapping[str, str] | None = None,
    ) -> ActionResult:
        return cls(
            success=False,
            message=message,
            error=error,
            field_errors=dict(field_errors or {}),
        )


@dataclass(frozen=True)
class UserResult:
    """Result of the "who am I" probe or a login.

    Attributes:
        success: Whether the server returned a user.
        user: The returned account (if successful).
        token: Bearer token issued by login, if the server sent one.
        message: Server message, or a fallback on failure.
        error: Failure category if the call failed.
        field_errors: Per-field messages from server validation.
    """

    success: bool
    user: UserProfile | None = None
    token: str | None = None
    message: str = ""
    error: ErrorKind | None = None
    field_errors: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class VerifyResult:
    """Result of confirming an OTP.

    Attributes:
        success: Whether the code was accepted.
        verification_token: Short-lived token required to register.
        message: Server message, or a fallback on failure.
        error: Failure category if verification failed.
        field_errors: Per-field messages from server validation.
    """

    success: bool
    verification_token: str | None = None
    message: str = ""
    error: ErrorKind | None = None
    field_errors: Mapping[str, str] = field(default_factory=dict)
