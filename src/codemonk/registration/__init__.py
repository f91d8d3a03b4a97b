"""OTP-gated registration for the Code Monk client.

Usage:
    from codemonk.registration import ProfileForm, create_registration_flow

    flow = create_registration_flow(on_success=show_login)
    await flow.send_otp("student@example.com", name="Asha")
    await flow.verify("123456")
    await flow.submit_profile(ProfileForm(...))
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from codemonk.registration.flow import (
    RegistrationDraft,
    RegistrationFlow,
    RegistrationStep,
    ResendCountdown,
)
from codemonk.registration.messages import friendly_message
from codemonk.registration.validation import (
    ProfileForm,
    ValidationRules,
    validate_profile,
)

if TYPE_CHECKING:
    from codemonk.auth.protocol import ApiClientProtocol


def rules_from_settings() -> ValidationRules:
    """Validation rules as configured under ``REGISTRATION__*``."""
    from codemonk.config import get_settings

    cfg = get_settings().registration
    return ValidationRules(
        password_policy=cfg.password_policy,
        usn_prefixes=cfg.usn_prefixes,
        usn_number_min=cfg.usn_number_min,
        usn_number_max=cfg.usn_number_max,
    )


def create_registration_flow(
    client: ApiClientProtocol | None = None,
    *,
    on_success: Callable[[], None] | None = None,
) -> RegistrationFlow:
    """Build a RegistrationFlow from configuration."""
    from codemonk.auth.factory import get_api_client
    from codemonk.config import get_settings

    return RegistrationFlow(
        client or get_api_client(),
        rules=rules_from_settings(),
        resend_cooldown=get_settings().registration.resend_cooldown_seconds,
        on_success=on_success,
    )


__all__ = [
    "ProfileForm",
    "RegistrationDraft",
    "RegistrationFlow",
    "RegistrationStep",
    "ResendCountdown",
    "ValidationRules",
    "create_registration_flow",
    "friendly_message",
    "rules_from_settings",
    "validate_profile",
]
