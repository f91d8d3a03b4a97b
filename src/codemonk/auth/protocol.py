"""Protocol defining the API client interface.

Both CodeMonkApiClient and MockApiClient implement this protocol,
allowing them to be used interchangeably.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from codemonk.auth.models import ActionResult, UserResult, VerifyResult

# Called with the request path whenever any endpoint answers 401.
UnauthorizedListener = Callable[[str], None]

ME_PATH = "/auth/me"
LOGIN_PATH = "/auth/login"
LOGOUT_PATH = "/auth/logout"
REGISTER_PATH = "/auth/register"
SEND_OTP_PATH = "/otp/send-otp"
VERIFY_OTP_PATH = "/otp/verify-otp"
RESEND_OTP_PATH = "/otp/resend-otp"


class ApiClientProtocol(Protocol):
    """Protocol for Code Monk API clients.

    This defines the interface that both the real HTTP client
    and the mock client must implement. No method raises for a failed
    request; failures come back as results.
    """

    def add_unauthorized_listener(
        self, listener: UnauthorizedListener
    ) -> Callable[[], None]:
        """Register a callback fired after any 401 response.

        The stored credential has already been erased when it runs.

        Returns:
            A callable that removes the listener.
        """
        ...

    async def aclose(self) -> None:
        """Release any network resources held by the client."""
        ...

    async def get_me(self) -> UserResult:
        """Ask the server who the stored credential belongs to."""
        ...

    async def login(self, email: str, password: str) -> UserResult:
        """Exchange email and password for a user and (maybe) a token."""
        ...

    async def logout(self) -> ActionResult:
        """Tell the server the session is over."""
        ...

    async def register(self, profile: Mapping[str, Any]) -> ActionResult:
        """Create an account from a wire-format profile.

        Args:
            profile: Request body, including ``verificationToken``.
        """
        ...

    async def send_otp(self, email: str, name: str) -> ActionResult:
        """Email a one-time passcode to a candidate address."""
        ...

    async def verify_otp(self, email: str, otp: str) -> VerifyResult:
        """Confirm a passcode and obtain a verification token."""
        ...

    async def resend_otp(self, email: str, name: str) -> ActionResult:
        """Email a fresh passcode, replacing the previous one."""
        ...
