"""HTTP client for the Code Monk REST API.

This module wraps an ``httpx.AsyncClient`` and implements the
ApiClientProtocol: it attaches the stored bearer token to every request,
erases it on any 401, and turns every failure into a result value.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Generator, Mapping
from typing import TYPE_CHECKING, Any

import httpx

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

if TYPE_CHECKING:
    from types import TracebackType

    from codemonk.auth.credentials import CredentialStore

logger = logging.getLogger(__name__)

FALLBACK_MESSAGES = {
    ErrorKind.NETWORK_FAILURE: (
        "Unable to reach the server. Check your connection and try again."
    ),
    ErrorKind.UNAUTHORIZED: "Your session has expired. Please log in again.",
    ErrorKind.VALIDATION_FAILURE: "The request was rejected. Please check your input.",
    ErrorKind.SERVER_FAILURE: "The server ran into a problem. Please try again shortly.",
    ErrorKind.CLIENT_VALIDATION_FAILURE: "Please fix the highlighted fields.",
}

# Server (camelCase) field names -> client field names
_FIELD_ALIASES = {
    "fullName": "full_name",
    "confirmPassword": "confirm_password",
    "whatsappNumber": "whatsapp_number",
    "verificationToken": "verification_token",
}


class ApiError(Exception):
    """A request that did not produce a usable success body.

    Raised inside the client only; public methods convert it to a result.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status_code: int | None = None,
        field_errors: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.field_errors = dict(field_errors or {})

    def as_action(self) -> ActionResult:
        return ActionResult.fail(self.message, self.kind, self.field_errors)

    def as_user_result(self) -> UserResult:
        return UserResult(
            success=False,
            message=self.message,
            error=self.kind,
            field_errors=self.field_errors,
        )

    def as_verify_result(self) -> VerifyResult:
        return VerifyResult(
            success=False,
            message=self.message,
            error=self.kind,
            field_errors=self.field_errors,
        )


def _classify(status_code: int) -> ErrorKind:
    """Map an HTTP error status onto the failure taxonomy."""
    if status_code == 401:
        return ErrorKind.UNAUTHORIZED
    if status_code >= 500:
        return ErrorKind.SERVER_FAILURE
    return ErrorKind.VALIDATION_FAILURE


def _extract_field_errors(raw_errors: Any) -> dict[str, str]:
    """Collect per-field messages from an express-validator style list.

    Entries name their field as ``path`` (newer), ``param`` (older) or
    ``field``. The first message per field wins, in server order.
    """
    if not isinstance(raw_errors, list):
        return {}
    field_errors: dict[str, str] = {}
    for item in raw_errors:
        if not isinstance(item, dict):
            continue
        name = item.get("path") or item.get("param") or item.get("field")
        message = item.get("msg") or item.get("message")
        if not name or not message:
            continue
        field_errors.setdefault(_FIELD_ALIASES.get(name, name), str(message))
    return field_errors


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _data(body: Mapping[str, Any]) -> Mapping[str, Any]:
    data = body.get("data")
    return data if isinstance(data, dict) else {}


def _parse_user(body: Mapping[str, Any]) -> UserProfile:
    raw_user = _data(body).get("user")
    if not isinstance(raw_user, dict):
        raise ApiError(
            ErrorKind.SERVER_FAILURE,
            "Unexpected response from the server.",
        )
    try:
        return UserProfile.from_api(raw_user)
    except ValueError as e:
        raise ApiError(
            ErrorKind.SERVER_FAILURE,
            "Unexpected response from the server.",
        ) from e


class BearerCredentialAuth(httpx.Auth):
    """Attach ``Authorization: Bearer <token>`` when a token is stored.

    The store is read per request, so a login or 401 elsewhere takes effect
    on the very next call.
    """

    def __init__(self, credentials: CredentialStore) -> None:
        self._credentials = credentials

    def auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        token = self._credentials.load()
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
        yield request


class CodeMonkApiClient:
    """Async client for the Code Monk backend.

    This class implements the ApiClientProtocol. It is the only component
    that talks HTTP; the session store and the registration flow consume it.
    """

    def __init__(
        self,
        base_url: str,
        credentials: CredentialStore,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API root, e.g. "http://localhost:5000/api".
            credentials: Where the bearer token is read from and erased.
            transport: Optional httpx transport (tests pass a MockTransport).
        """
        self._credentials = credentials
        self._listeners: list[UnauthorizedListener] = []
        self._http = httpx.AsyncClient(
            base_url=base_url,
            auth=BearerCredentialAuth(credentials),
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> CodeMonkApiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def add_unauthorized_listener(
        self, listener: UnauthorizedListener
    ) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _handle_unauthorized(self, path: str) -> None:
        """Erase the credential and tell everyone who asked."""
        self._credentials.clear()
        logger.info("Unauthorized response from %s; stored credential erased", path)
        for listener in list(self._listeners):
            listener(path)

    async def _request(
        self,
        method: str,
        path: str,
        payload: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one request and return the JSON body of a success.

        Raises:
            ApiError: On transport failure, a non-2xx status, or a
                ``success: false`` body.
        """
        try:
            response = await self._http.request(
                method,
                path,
                json=dict(payload) if payload is not None else None,
            )
        except httpx.RequestError as e:
            logger.warning(
                "Request to %s failed: %s",
                path,
                type(e).__name__,
            )
            raise ApiError(
                ErrorKind.NETWORK_FAILURE,
                FALLBACK_MESSAGES[ErrorKind.NETWORK_FAILURE],
            ) from e

        body = _json_body(response)
        if response.status_code == 401:
            self._handle_unauthorized(path)

        if response.is_success and body.get("success", True) is not False:
            return body

        kind = (
            _classify(response.status_code)
            if not response.is_success
            else ErrorKind.VALIDATION_FAILURE
        )
        field_errors = _extract_field_errors(body.get("errors"))
        server_message = body.get("message")
        message = (
            next(iter(field_errors.values()), None)
            or (server_message if isinstance(server_message, str) else None)
            or FALLBACK_MESSAGES[kind]
        )
        raise ApiError(
            kind,
            message,
            status_code=response.status_code,
            field_errors=field_errors,
        )

    async def get_me(self) -> UserResult:
        try:
            body = await self._request("GET", ME_PATH)
            return UserResult(success=True, user=_parse_user(body))
        except ApiError as e:
            logger.debug(
                "Session probe failed",
                extra={"error_type": e.kind, "status": e.status_code},
            )
            return e.as_user_result()

    async def login(self, email: str, password: str) -> UserResult:
        try:
            body = await self._request(
                "POST", LOGIN_PATH, {"email": email, "password": password}
            )
            user = _parse_user(body)
        except ApiError as e:
            logger.warning(
                "Login failed",
                extra={"email": email, "error_type": e.kind},
            )
            return e.as_user_result()

        token = body.get("token") or _data(body).get("token")
        return UserResult(
            success=True,
            user=user,
            token=token if isinstance(token, str) else None,
            message=str(body.get("message") or ""),
        )

    async def logout(self) -> ActionResult:
        try:
            body = await self._request("POST", LOGOUT_PATH)
        except ApiError as e:
            return e.as_action()
        return ActionResult.ok(str(body.get("message") or ""))

    async def register(self, profile: Mapping[str, Any]) -> ActionResult:
        try:
            body = await self._request("POST", REGISTER_PATH, profile)
        except ApiError as e:
            logger.warning(
                "Registration failed",
                extra={"email": profile.get("email"), "error_type": e.kind},
            )
            return e.as_action()
        return ActionResult.ok(str(body.get("message") or ""))

    async def send_otp(self, email: str, name: str) -> ActionResult:
        try:
            body = await self._request(
                "POST", SEND_OTP_PATH, {"email": email, "name": name}
            )
        except ApiError as e:
            logger.warning(
                "OTP send failed",
                extra={"email": email, "error_type": e.kind},
            )
            return e.as_action()
        return ActionResult.ok(str(body.get("message") or ""))

    async def verify_otp(self, email: str, otp: str) -> VerifyResult:
        try:
            body = await self._request(
                "POST", VERIFY_OTP_PATH, {"email": email, "otp": otp}
            )
            token = _data(body).get("verificationToken")
            if not isinstance(token, str) or not token:
                raise ApiError(
                    ErrorKind.SERVER_FAILURE,
                    "Unexpected response from the server.",
                )
        except ApiError as e:
            logger.warning(
                "OTP verification failed",
                extra={"email": email, "error_type": e.kind},
            )
            return e.as_verify_result()
        return VerifyResult(
            success=True,
            verification_token=token,
            message=str(body.get("message") or ""),
        )

    async def resend_otp(self, email: str, name: str) -> ActionResult:
        try:
            body = await self._request(
                "POST", RESEND_OTP_PATH, {"email": email, "name": name}
            )
        except ApiError as e:
            logger.warning(
                "OTP resend failed",
                extra={"email": email, "error_type": e.kind},
            )
            return e.as_action()
        return ActionResult.ok(str(body.get("message") or ""))
