"""Mock API client for testing and offline development.

This module provides an in-memory implementation of the ApiClientProtocol
that behaves like the Code Monk backend (same messages, same OTP rules)
without making HTTP calls.

Any email can register; a few accounts are seeded so login works out of
the box.
"""

from __future__ import annotations

import hashlib
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from codemonk.auth.credentials import CredentialStore, MemoryCredentialStore
from codemonk.auth.models import (
    ActionResult,
    ErrorKind,
    UserProfile,
    UserResult,
    VerifyResult,
)
from codemonk.auth.protocol import (
    LOGIN_PATH,
    LOGOUT_PATH,
    ME_PATH,
    REGISTER_PATH,
    RESEND_OTP_PATH,
    SEND_OTP_PATH,
    VERIFY_OTP_PATH,
    UnauthorizedListener,
)

# Predefined test values for consistent behaviour in tests
MOCK_OTP_CODE = "123456"
MOCK_PASSWORD = "Abc12345"
MOCK_STUDENT_EMAIL = "student@codemonk.dev"
MOCK_MENTOR_EMAIL = "mentor@codemonk.dev"
MOCK_ADMIN_EMAIL = "admin@codemonk.dev"

OTP_TTL_SECONDS = 600
OTP_MAX_ATTEMPTS = 3
OTP_RESEND_COOLDOWN_SECONDS = 60


def _digest(value: str, length: int) -> str:
    return hashlib.md5(value.encode()).hexdigest()[:length]


def _email_to_session_token(email: str) -> str:
    """Generate a deterministic session token from an email."""
    return f"mock-session-{_digest(email, 12)}"


def _email_to_verification_token(email: str) -> str:
    """Generate a deterministic verification token from an email."""
    return f"mock-verified-{_digest(email, 16)}"


@dataclass
class _OtpRecord:
    code: str
    created_at: float
    attempts: int = 0


class MockApiClient:
    """Mock implementation of ApiClientProtocol.

    OTP rules match the backend: codes live 10 minutes, three wrong guesses
    burn the code, and a resend within a minute of the last code is refused.
    Every code is MOCK_OTP_CODE unless another is given.
    """

    def __init__(
        self,
        credentials: CredentialStore | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        otp_code: str = MOCK_OTP_CODE,
    ) -> None:
        self._credentials = credentials or MemoryCredentialStore()
        self._clock = clock
        self._otp_code = otp_code
        self._listeners: list[UnauthorizedListener] = []
        # email -> wire-format user (including "password")
        self._users: dict[str, dict[str, Any]] = {}
        # session token -> email
        self._sessions: dict[str, str] = {}
        # email -> pending OTP
        self._otps: dict[str, _OtpRecord] = {}
        # verification token -> email
        self._verified: dict[str, str] = {}
        self._requests: list[dict[str, Any]] = []
        self._sent_otps: list[dict[str, str]] = []
        self._next_id = 1

        self.add_user(MOCK_STUDENT_EMAIL, full_name="Test Student", usn="NU25MCA001")
        self.add_user(MOCK_MENTOR_EMAIL, full_name="Test Mentor", role="mentor")
        self.add_user(MOCK_ADMIN_EMAIL, full_name="Test Admin", role="admin")

    # Backend state helpers

    def add_user(
        self,
        email: str,
        *,
        password: str = MOCK_PASSWORD,
        full_name: str = "Test User",
        role: str = "student",
        usn: str | None = None,
        phone: str = "9876543210",
    ) -> dict[str, Any]:
        """Seed an account and return its public user object."""
        user = {
            "id": self._next_id,
            "fullName": full_name,
            "email": email.lower(),
            "usn": usn,
            "phone": phone,
            "whatsappNumber": None,
            "role": role,
            "password": password,
        }
        self._next_id += 1
        self._users[email.lower()] = user
        return self._public(user)

    def bind_credentials(self, credentials: CredentialStore) -> None:
        """Read and erase tokens in ``credentials`` from now on.

        Backend state (accounts, sessions, pending OTPs) is kept.
        """
        self._credentials = credentials

    @staticmethod
    def _public(user: Mapping[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in user.items() if k != "password"}

    def _record(self, path: str, body: Mapping[str, Any] | None = None) -> None:
        self._requests.append({"path": path, "body": dict(body or {})})

    def add_unauthorized_listener(
        self, listener: UnauthorizedListener
    ) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _unauthorized(self, path: str, message: str) -> UserResult:
        self._credentials.clear()
        for listener in list(self._listeners):
            listener(path)
        return UserResult(
            success=False,
            message=message,
            error=ErrorKind.UNAUTHORIZED,
        )

    @staticmethod
    def _rejected(message: str) -> ActionResult:
        return ActionResult.fail(message, ErrorKind.VALIDATION_FAILURE)

    # ApiClientProtocol

    async def aclose(self) -> None:
        """Nothing to release; present for protocol compatibility."""

    async def get_me(self) -> UserResult:
        self._record(ME_PATH)
        token = self._credentials.load()
        if token is None:
            return self._unauthorized(ME_PATH, "Not authorized, no token")
        email = self._sessions.get(token)
        if email is None or email not in self._users:
            return self._unauthorized(ME_PATH, "Not authorized, token failed")
        user = UserProfile.from_api(self._public(self._users[email]))
        return UserResult(success=True, user=user)

    async def login(self, email: str, password: str) -> UserResult:
        self._record(LOGIN_PATH, {"email": email})
        user = self._users.get(email.lower())
        if user is None or user["password"] != password:
            return self._unauthorized(LOGIN_PATH, "Invalid email or password")
        token = _email_to_session_token(user["email"])
        self._sessions[token] = user["email"]
        return UserResult(
            success=True,
            user=UserProfile.from_api(self._public(user)),
            token=token,
            message="Login successful",
        )

    async def logout(self) -> ActionResult:
        self._record(LOGOUT_PATH)
        token = self._credentials.load()
        if token is not None:
            self._sessions.pop(token, None)
        return ActionResult.ok("Logged out successfully")

    async def register(self, profile: Mapping[str, Any]) -> ActionResult:
        self._record(REGISTER_PATH, profile)
        email = str(profile.get("email") or "").lower()
        token = profile.get("verificationToken")
        if not token:
            return self._rejected(
                "Email verification required. Please verify your email first."
            )
        if self._verified.get(token) != email:
            return self._rejected("Email not verified. Please verify your email first.")
        if email in self._users:
            return self._rejected("User already exists with this email")
        usn = str(profile.get("usn") or "").upper()
        if usn and any(u.get("usn") == usn for u in self._users.values()):
            return self._rejected("User already exists with this USN")

        self.add_user(
            email,
            password=str(profile.get("password") or ""),
            full_name=str(profile.get("fullName") or ""),
            usn=usn or None,
            phone=str(profile.get("phone") or ""),
        )
        self._users[email]["whatsappNumber"] = profile.get("whatsappNumber")
        del self._verified[token]
        return ActionResult.ok("Registration successful! Please log in to continue.")

    async def send_otp(self, email: str, name: str) -> ActionResult:
        self._record(SEND_OTP_PATH, {"email": email, "name": name})
        email = email.lower()
        if email in self._users:
            return self._rejected("Email is already registered")
        self._issue_otp(email, name)
        return ActionResult.ok("OTP sent successfully to your email address")

    async def verify_otp(self, email: str, otp: str) -> VerifyResult:
        self._record(VERIFY_OTP_PATH, {"email": email, "otp": otp})
        email = email.lower()
        record = self._otps.get(email)
        if record is None or self._clock() - record.created_at > OTP_TTL_SECONDS:
            self._otps.pop(email, None)
            return self._verify_rejected(
                "OTP not found or has expired. Please request a new one."
            )
        if record.attempts >= OTP_MAX_ATTEMPTS:
            del self._otps[email]
            return self._verify_rejected(
                "Too many failed attempts. Please request a new OTP."
            )
        if record.code != otp:
            record.attempts += 1
            remaining = OTP_MAX_ATTEMPTS - record.attempts
            return self._verify_rejected(
                f"Invalid OTP. {remaining} attempts remaining."
            )

        del self._otps[email]
        token = _email_to_verification_token(email)
        self._verified[token] = email
        return VerifyResult(
            success=True,
            verification_token=token,
            message="Email verified successfully",
        )

    async def resend_otp(self, email: str, name: str) -> ActionResult:
        self._record(RESEND_OTP_PATH, {"email": email, "name": name})
        email = email.lower()
        if email in self._users:
            return self._rejected("Email is already registered")
        record = self._otps.get(email)
        if (
            record is not None
            and self._clock() - record.created_at < OTP_RESEND_COOLDOWN_SECONDS
        ):
            return self._rejected(
                "Please wait at least 1 minute before requesting another OTP"
            )
        self._issue_otp(email, name)
        return ActionResult.ok("New OTP sent successfully to your email address")

    def _issue_otp(self, email: str, name: str) -> None:
        self._otps[email] = _OtpRecord(code=self._otp_code, created_at=self._clock())
        self._sent_otps.append({"email": email, "name": name, "code": self._otp_code})

    @staticmethod
    def _verify_rejected(message: str) -> VerifyResult:
        return VerifyResult(
            success=False,
            message=message,
            error=ErrorKind.VALIDATION_FAILURE,
        )

    # Test helper methods

    def get_requests(self) -> list[dict[str, Any]]:
        """Return every call made so far, as ``{"path", "body"}`` dicts."""
        return [dict(r) for r in self._requests]

    def get_request_paths(self) -> list[str]:
        return [r["path"] for r in self._requests]

    def clear_requests(self) -> None:
        self._requests.clear()

    def get_sent_otps(self) -> list[dict[str, str]]:
        """Return the OTP emails that were 'sent' (for test assertions)."""
        return [dict(s) for s in self._sent_otps]
