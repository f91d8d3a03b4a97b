"""Email-OTP gated registration flow.

The flow is a small state machine:

    COLLECTING_EMAIL --send_otp--> OTP_SENT --verify--> EMAIL_VERIFIED
        ^                            |  ^                    |
        |                            |  +--resend            |
        +-----------back-------------+----------back---------+
                                                             |
                                          submit_profile --> SUBMITTED

Every operation returns an ActionResult and none of them raise. Input that
fails local validation never reaches the network.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TypeVar

from codemonk.auth.models import ActionResult, ErrorKind, VerifyResult
from codemonk.registration.messages import (
    friendly_message,
    is_otp_expired,
    is_verification_rejected,
)
from codemonk.registration.validation import (
    ProfileForm,
    ValidationRules,
    validate_email,
    validate_otp,
    validate_profile,
)

if TYPE_CHECKING:
    from codemonk.auth.protocol import ApiClientProtocol

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_OTP_NAME = "User"
FIX_FIELDS_MESSAGE = "Please fix the highlighted fields above"
ABANDONED_MESSAGE = "Registration was restarted before the server answered."


class RegistrationStep(StrEnum):
    COLLECTING_EMAIL = "collecting_email"
    OTP_SENT = "otp_sent"
    EMAIL_VERIFIED = "email_verified"
    SUBMITTED = "submitted"


class ResendCountdown:
    """Gate for the "resend code" action.

    Computed from a monotonic clock on demand; nothing runs in the
    background, and it never touches in-flight requests.
    """

    def __init__(
        self,
        seconds: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._seconds = seconds
        self._clock = clock
        self._deadline: float | None = None

    def start(self) -> None:
        self._deadline = self._clock() + self._seconds

    def reset(self) -> None:
        self._deadline = None

    @property
    def remaining(self) -> int:
        """Whole seconds left, rounded up; 0 when resend is allowed."""
        if self._deadline is None:
            return 0
        return max(0, math.ceil(self._deadline - self._clock()))

    @property
    def ready(self) -> bool:
        return self.remaining == 0


@dataclass
class RegistrationDraft:
    """Transient data collected while the flow runs.

    Attributes:
        email_candidate: Address being verified.
        otp_attempt: Last code the user entered.
        verification_token: Issued once the OTP is confirmed.
        profile: Last profile form submitted.
        email_locked: True once the email is verified; it may not change.
    """

    email_candidate: str | None = None
    otp_attempt: str | None = None
    verification_token: str | None = None
    profile: ProfileForm | None = None
    email_locked: bool = False


class RegistrationFlow:
    """Drive one registration from email entry to a created account.

    Args:
        client: API client used for the OTP and register calls.
        rules: Profile validation rules.
        resend_cooldown: Seconds before a code may be resent.
        clock: Monotonic clock for the resend countdown.
        on_success: Called once the account exists; the caller should send
            the user to the login step.
    """

    def __init__(
        self,
        client: ApiClientProtocol,
        *,
        rules: ValidationRules | None = None,
        resend_cooldown: int = 60,
        clock: Callable[[], float] = time.monotonic,
        on_success: Callable[[], None] | None = None,
    ) -> None:
        self._client = client
        self._rules = rules or ValidationRules()
        self._countdown = ResendCountdown(resend_cooldown, clock)
        self._on_success = on_success
        self._step = RegistrationStep.COLLECTING_EMAIL
        self._draft = RegistrationDraft()
        self._otp_name = DEFAULT_OTP_NAME
        self._otp_expired = False
        self._busy = False
        # Bumped by back()/cancel(); responses from an older generation are dropped
        self._generation = 0

    @property
    def step(self) -> RegistrationStep:
        return self._step

    @property
    def draft(self) -> RegistrationDraft:
        """A copy of the draft; mutate the flow only through its methods."""
        return replace(self._draft)

    @property
    def countdown(self) -> ResendCountdown:
        return self._countdown

    @property
    def otp_expired(self) -> bool:
        """True when the server said the code is gone; resend is needed."""
        return self._otp_expired

    @property
    def busy(self) -> bool:
        return self._busy

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------
    def _refuse(self, expected: RegistrationStep) -> ActionResult | None:
        if self._busy:
            return ActionResult.fail(
                "Please wait for the current request to finish.",
                ErrorKind.CLIENT_VALIDATION_FAILURE,
            )
        if self._step is RegistrationStep.SUBMITTED:
            return ActionResult.fail(
                "Registration is already complete. Please log in.",
                ErrorKind.CLIENT_VALIDATION_FAILURE,
            )
        if self._step is not expected:
            return ActionResult.fail(
                _WRONG_STEP_MESSAGES[expected],
                ErrorKind.CLIENT_VALIDATION_FAILURE,
            )
        return None

    @staticmethod
    def _invalid(
        field_errors: dict[str, str], message: str | None = None
    ) -> ActionResult:
        return ActionResult.fail(
            message or next(iter(field_errors.values())),
            ErrorKind.CLIENT_VALIDATION_FAILURE,
            field_errors,
        )

    async def _send(self, request: Awaitable[T]) -> T | None:
        """Await one request with the busy flag held.

        Returns None when back() or cancel() ran while it was in flight;
        the caller must then leave the flow untouched.
        """
        generation = self._generation
        self._busy = True
        try:
            result = await request
        finally:
            if generation == self._generation:
                self._busy = False
        if generation != self._generation:
            logger.info("Discarding response for an abandoned registration step")
            return None
        return result

    @staticmethod
    def _abandoned() -> ActionResult:
        return ActionResult.fail(
            ABANDONED_MESSAGE, ErrorKind.CLIENT_VALIDATION_FAILURE
        )

    @staticmethod
    def _failed(result: ActionResult | VerifyResult) -> ActionResult:
        return ActionResult.fail(
            friendly_message(result.message, result.field_errors),
            result.error or ErrorKind.SERVER_FAILURE,
            result.field_errors,
        )

    # ------------------------------------------------------------------
    # Phase 1: email verification
    # ------------------------------------------------------------------
    async def send_otp(self, email: str, name: str | None = None) -> ActionResult:
        """Request a code for ``email`` and move to OTP_SENT."""
        if refused := self._refuse(RegistrationStep.COLLECTING_EMAIL):
            return refused
        email = (email or "").strip()
        self._draft.email_candidate = email or None
        if error := validate_email(email):
            return self._invalid({"email": error})

        self._otp_name = (name or "").strip() or DEFAULT_OTP_NAME
        result = await self._send(self._client.send_otp(email, self._otp_name))
        if result is None:
            return self._abandoned()
        if not result.success:
            return self._failed(result)

        logger.info("Verification code sent to %s", email)
        self._step = RegistrationStep.OTP_SENT
        self._otp_expired = False
        self._draft.otp_attempt = None
        self._countdown.start()
        return ActionResult.ok("Verification code sent to your email!")

    async def verify(self, code: str) -> ActionResult:
        """Confirm the emailed code; malformed codes never leave the client."""
        if refused := self._refuse(RegistrationStep.OTP_SENT):
            return refused
        self._draft.otp_attempt = code
        if error := validate_otp(code):
            return self._invalid({"otp": error})

        email = self._draft.email_candidate or ""
        result = await self._send(self._client.verify_otp(email, code))
        if result is None:
            return self._abandoned()
        if not result.success or not result.verification_token:
            if is_otp_expired(result.message):
                self._otp_expired = True
            return self._failed(result)

        logger.info("Email %s verified", email)
        self._draft.verification_token = result.verification_token
        self._draft.email_locked = True
        self._otp_expired = False
        self._step = RegistrationStep.EMAIL_VERIFIED
        return ActionResult.ok(
            "Email verified successfully! Complete your registration below."
        )

    async def resend(self) -> ActionResult:
        """Send a fresh code once the countdown has run out."""
        if refused := self._refuse(RegistrationStep.OTP_SENT):
            return refused
        if not self._countdown.ready:
            return ActionResult.fail(
                f"Please wait {self._countdown.remaining} seconds "
                "before requesting a new code.",
                ErrorKind.CLIENT_VALIDATION_FAILURE,
            )

        email = self._draft.email_candidate or ""
        result = await self._send(self._client.resend_otp(email, self._otp_name))
        if result is None:
            return self._abandoned()
        if not result.success:
            return self._failed(result)

        logger.info("Verification code re-sent to %s", email)
        self._countdown.start()
        self._otp_expired = False
        self._draft.otp_attempt = None
        return ActionResult.ok("New verification code sent to your email!")

    # ------------------------------------------------------------------
    # Phase 2: profile completion
    # ------------------------------------------------------------------
    async def submit_profile(self, form: ProfileForm) -> ActionResult:
        """Validate every field, then create the account.

        Any invalid field blocks the request. A server rejection keeps the
        verification token unless the server refused the token itself, in
        which case the flow restarts from email entry.
        """
        if refused := self._refuse(RegistrationStep.EMAIL_VERIFIED):
            return refused
        self._draft.profile = form
        token = self._draft.verification_token
        if not token:
            self._restart(keep_email=True)
            return ActionResult.fail(
                "Please verify your email address before completing registration.",
                ErrorKind.CLIENT_VALIDATION_FAILURE,
            )
        if field_errors := validate_profile(form, self._rules):
            return self._invalid(field_errors, FIX_FIELDS_MESSAGE)

        payload = self._build_payload(form, self._draft.email_candidate or "", token)
        result = await self._send(self._client.register(payload))
        if result is None:
            return self._abandoned()
        if not result.success:
            if is_verification_rejected(result.message):
                logger.info("Verification token rejected; restarting registration")
                self._restart(keep_email=True)
            return self._failed(result)

        logger.info("Registration completed for %s", payload["email"])
        self._step = RegistrationStep.SUBMITTED
        self._draft.verification_token = None
        if self._on_success is not None:
            self._on_success()
        return ActionResult.ok(
            result.message or "Registration successful! Please login to continue."
        )

    @staticmethod
    def _build_payload(form: ProfileForm, email: str, token: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "fullName": form.full_name.strip(),
            "usn": form.usn.strip().upper(),
            "email": email,
            "password": form.password,
            "phone": form.phone.strip(),
            "verificationToken": token,
        }
        if whatsapp := form.whatsapp_number.strip():
            payload["whatsappNumber"] = whatsapp
        if section := form.section.strip():
            payload["section"] = section.upper()
        return payload

    # ------------------------------------------------------------------
    # Leaving the happy path
    # ------------------------------------------------------------------
    def back(self) -> None:
        """Return to email entry, discarding the OTP and verification token.

        The email stays pre-filled but editable.
        """
        if self._step not in (
            RegistrationStep.OTP_SENT,
            RegistrationStep.EMAIL_VERIFIED,
        ):
            logger.debug("back() ignored in step %s", self._step)
            return
        self._restart(keep_email=True)

    def cancel(self) -> None:
        """Throw the whole draft away."""
        self._restart(keep_email=False)

    def _restart(self, *, keep_email: bool) -> None:
        email = self._draft.email_candidate if keep_email else None
        self._draft = RegistrationDraft(
            email_candidate=email,
            profile=self._draft.profile if keep_email else None,
        )
        self._step = RegistrationStep.COLLECTING_EMAIL
        self._otp_expired = False
        self._countdown.reset()
        self._generation += 1
        self._busy = False


_WRONG_STEP_MESSAGES = {
    RegistrationStep.COLLECTING_EMAIL: (
        "A verification code was already sent. Go back to change your email."
    ),
    RegistrationStep.OTP_SENT: "Please request a verification code first.",
    RegistrationStep.EMAIL_VERIFIED: "Please verify your email address first.",
}
