"""Session store: the single source of truth for who is logged in.

One store is created at application start and shared by every caller.
It owns the in-memory Session and is the only writer of the stored
credential (apart from the API client's 401 hook, which the store listens
to).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from codemonk.auth.models import (
    ActionResult,
    ErrorKind,
    Session,
    SessionStatus,
    UserProfile,
    UserResult,
)
from codemonk.auth.protocol import LOGIN_PATH, ME_PATH

if TYPE_CHECKING:
    from codemonk.auth.credentials import CredentialStore
    from codemonk.auth.protocol import ApiClientProtocol

logger = logging.getLogger(__name__)

SessionListener = Callable[[Session], None]

LOGIN_FAILED_MESSAGE = "Login failed"
REGISTRATION_FAILED_MESSAGE = "Registration failed"

# A 401 from these requests never triggers a redirect: the probe runs before
# any view exists, and a failed login is already on the auth view.
_NO_REDIRECT_PATHS = frozenset({ME_PATH, LOGIN_PATH})


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry for the startup probe.

    Attributes:
        max_attempts: Total attempts including the first (2 = one retry).
        delay: Fixed pause between attempts, in seconds.
    """

    max_attempts: int = 2
    delay: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = "max_attempts must be at least 1"
            raise ValueError(msg)


class SessionStore:
    """Authentication state container with an explicit lifecycle.

    ``UNKNOWN`` until ``initialize()`` settles, then ``AUTHENTICATED`` or
    ``UNAUTHENTICATED``; afterwards changed only by ``login``, ``logout``,
    ``update_user``, ``refresh_user`` and the global 401 rule. No public
    method raises for a failed request.
    """

    def __init__(
        self,
        client: ApiClientProtocol,
        credentials: CredentialStore,
        *,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        redirect_to_login: Callable[[], None] | None = None,
        is_auth_view: Callable[[], bool] = lambda: False,
    ) -> None:
        """Create a store in the UNKNOWN state.

        Args:
            client: API client; the store subscribes to its 401 events.
            credentials: Persistent home of the bearer token.
            retry_policy: Probe retry bound (defaults to one retry after 1s).
            sleep: Awaitable used for the retry pause (tests may stub it).
            redirect_to_login: Called when a 401 should send the user to the
                auth entry point.
            is_auth_view: Whether the auth view is currently showing; no
                redirect happens while it is.
        """
        self._client = client
        self._credentials = credentials
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._redirect_to_login = redirect_to_login
        self._is_auth_view = is_auth_view
        self._session = Session()
        self._listeners: list[SessionListener] = []
        self._init_task: asyncio.Task[None] | None = None
        self._unsubscribe_client = client.add_unauthorized_listener(
            self._on_unauthorized
        )

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------
    @property
    def session(self) -> Session:
        return self._session

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    @property
    def user(self) -> UserProfile | None:
        return self._session.user

    @property
    def last_error(self) -> str | None:
        return self._session.last_error

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    @property
    def loading(self) -> bool:
        return self._session.loading

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Call ``listener`` with every new Session; returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Detach from the API client's 401 events."""
        self._unsubscribe_client()

    def _set(
        self,
        status: SessionStatus,
        user: UserProfile | None = None,
        last_error: str | None = None,
    ) -> None:
        self._session = Session(status=status, user=user, last_error=last_error)
        for listener in list(self._listeners):
            listener(self._session)

    # ------------------------------------------------------------------
    # Startup probe
    # ------------------------------------------------------------------
    async def initialize(self) -> Session:
        """Run the "who am I" probe once and settle the status.

        Concurrent and repeated calls share the first probe.
        """
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._probe())
        await self._init_task
        return self._session

    async def _settle_probe(self) -> None:
        """Wait for a started probe so its late 401 cannot undo a login."""
        if self._init_task is not None and not self._init_task.done():
            await self._init_task

    async def _probe(self) -> None:
        policy = self._retry_policy
        attempt = 1
        while True:
            result = await self._client.get_me()
            if result.success and result.user is not None:
                logger.info("Session probe: authenticated as user %s", result.user.id)
                self._set(SessionStatus.AUTHENTICATED, result.user)
                return

            retryable = (
                result.error is not None
                and result.error.is_transient
                and self._credentials.load() is not None
                and attempt < policy.max_attempts
            )
            if not retryable:
                break
            logger.warning(
                "Session probe failed (%s); retrying in %.1fs (attempt %d/%d)",
                result.error,
                policy.delay,
                attempt + 1,
                policy.max_attempts,
            )
            await self._sleep(policy.delay)
            attempt += 1

        logger.info("Session probe: unauthenticated (%s)", result.error)
        self._set(SessionStatus.UNAUTHENTICATED)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    async def login(self, email: str, password: str) -> ActionResult:
        """Authenticate with email and password.

        Returns a result instead of raising; on failure ``last_error``
        carries the same message and no credential stays stored. A probe
        still in flight is allowed to finish first.
        """
        await self._settle_probe()
        if self._session.status is SessionStatus.LOGGING_IN:
            return ActionResult.fail(
                "A login is already in progress.",
                ErrorKind.CLIENT_VALIDATION_FAILURE,
            )

        field_errors: dict[str, str] = {}
        if not email or not email.strip():
            field_errors["email"] = "Please enter your email address"
        if not password:
            field_errors["password"] = "Password is required"
        if field_errors:
            message = next(iter(field_errors.values()))
            self._set(self._settled_status(), self._session.user, message)
            return ActionResult.fail(
                message, ErrorKind.CLIENT_VALIDATION_FAILURE, field_errors
            )

        self._set(SessionStatus.LOGGING_IN)
        result = await self._client.login(email.strip(), password)

        if not result.success or result.user is None:
            message = result.message or LOGIN_FAILED_MESSAGE
            self._credentials.clear()
            self._set(SessionStatus.UNAUTHENTICATED, last_error=message)
            return ActionResult.fail(
                message,
                result.error or ErrorKind.SERVER_FAILURE,
                result.field_errors,
            )

        if result.token:
            self._credentials.save(result.token)
        logger.info("Logged in as user %s", result.user.id)
        self._set(SessionStatus.AUTHENTICATED, result.user)
        return ActionResult.ok(result.message)

    def _settled_status(self) -> SessionStatus:
        """Status to keep when an operation is refused before it starts."""
        if self._session.status is SessionStatus.UNKNOWN:
            return SessionStatus.UNKNOWN
        if self._session.is_authenticated:
            return SessionStatus.AUTHENTICATED
        return SessionStatus.UNAUTHENTICATED

    async def logout(self) -> None:
        """End the session locally, telling the server when there is one.

        Always succeeds locally, including when already logged out.
        """
        await self._settle_probe()
        try:
            if self._session.is_authenticated:
                result = await self._client.logout()
                if not result.success:
                    logger.warning("Logout notification failed: %s", result.message)
        finally:
            self._credentials.clear()
            self._set(SessionStatus.UNAUTHENTICATED)
            logger.info("Logged out")

    async def register(self, profile: Mapping[str, Any]) -> ActionResult:
        """Forward a wire-format profile to the server.

        Never changes the session: a new account must still log in.
        """
        result = await self._client.register(profile)
        if result.success:
            return result
        return ActionResult.fail(
            result.message or REGISTRATION_FAILED_MESSAGE,
            result.error or ErrorKind.SERVER_FAILURE,
            result.field_errors,
        )

    def update_user(self, patch: UserProfile | Mapping[str, Any]) -> None:
        """Replace the cached user after a server-confirmed profile edit."""
        if not self._session.is_authenticated:
            logger.warning("update_user ignored: no authenticated session")
            return
        user = patch if isinstance(patch, UserProfile) else UserProfile.from_api(patch)
        self._set(SessionStatus.AUTHENTICATED, user, self._session.last_error)

    async def refresh_user(self) -> UserResult:
        """Re-fetch the current user.

        A failure leaves the status alone (a stale profile beats a forced
        logout) unless it was a 401, which the global rule handles.
        """
        result = await self._client.get_me()
        if result.success and result.user is not None:
            if self._session.is_authenticated:
                self._set(SessionStatus.AUTHENTICATED, result.user)
            return result
        logger.warning("User refresh failed: %s", result.error)
        return result

    def clear_error(self) -> None:
        if self._session.last_error is not None:
            self._set(self._session.status, self._session.user)

    # ------------------------------------------------------------------
    # Global 401 rule
    # ------------------------------------------------------------------
    def _on_unauthorized(self, path: str) -> None:
        was_authenticated = self._session.is_authenticated
        if self._session.status is not SessionStatus.UNAUTHENTICATED:
            self._set(SessionStatus.UNAUTHENTICATED, last_error=self._session.last_error)
        if was_authenticated:
            logger.info("Session expired (401 from %s)", path)

        if (
            path not in _NO_REDIRECT_PATHS
            and self._redirect_to_login is not None
            and not self._is_auth_view()
        ):
            self._redirect_to_login()
