"""Map raw server messages of the registration endpoints to friendly text."""

from __future__ import annotations

from collections.abc import Mapping

GENERIC_FAILURE = "Something went wrong. Please try again."

_FRIENDLY_MESSAGES = {
    "User already exists with this email": (
        "This email is already registered. Try logging in instead."
    ),
    "Email is already registered": (
        "This email is already registered. Try logging in instead."
    ),
    "User already exists with this USN": (
        "This USN is already registered. Please check your USN."
    ),
    "OTP not found or has expired. Please request a new one.": (
        "Your verification code has expired. Please request a new one."
    ),
    "Invalid OTP": (
        "The verification code you entered is incorrect. Please try again."
    ),
    "Too many failed attempts. Please request a new OTP.": (
        "Too many incorrect attempts. Please request a new verification code."
    ),
    "Email not verified. Please verify your email first.": (
        "Please verify your email address before completing registration."
    ),
    "Email verification required. Please verify your email first.": (
        "Please verify your email address before completing registration."
    ),
    "Please wait at least 1 minute before requesting another OTP": (
        "Please wait a moment before requesting another verification code."
    ),
    "Validation failed": "Please check your information and try again.",
    "Failed to send OTP. Please try again.": (
        "Unable to send verification code. "
        "Please check your email address and try again."
    ),
}

# Field-level server errors, keyed by client field name
_FRIENDLY_FIELD_MESSAGES = {
    "email": "Please enter a valid email address",
    "full_name": "Full name must be between 2 and 100 characters",
    "usn": "Please enter a valid USN (e.g., NU25MCA123)",
    "phone": "Please enter a valid 10-digit phone number",
    "whatsapp_number": "Please enter a valid WhatsApp number",
    "otp": "Please enter a valid 6-digit OTP",
}

# Server messages meaning the OTP is gone and a new one is needed
_OTP_EXPIRED_PREFIXES = (
    "OTP not found or has expired",
    "Too many failed attempts",
)

# Server messages meaning the verification token was refused
_VERIFICATION_REJECTED_PREFIXES = (
    "Email not verified",
    "Email verification required",
)


def friendly_message(
    message: str | None,
    field_errors: Mapping[str, str] | None = None,
) -> str:
    """Turn a server failure into something a user can act on.

    Field errors win (first one only). Known messages are rewritten,
    "Invalid OTP. N attempts remaining." keeps its count, unknown messages
    pass through, and an empty message becomes a generic fallback.
    """
    if field_errors:
        name, raw = next(iter(field_errors.items()))
        return _FRIENDLY_FIELD_MESSAGES.get(name, raw or GENERIC_FAILURE)
    if not message:
        return GENERIC_FAILURE
    if message in _FRIENDLY_MESSAGES:
        return _FRIENDLY_MESSAGES[message]
    if message.startswith("Invalid OTP."):
        remaining = message.removeprefix("Invalid OTP.").strip()
        return f"{_FRIENDLY_MESSAGES['Invalid OTP']} {remaining}".strip()
    return message


def is_otp_expired(message: str | None) -> bool:
    return bool(message) and message.startswith(_OTP_EXPIRED_PREFIXES)


def is_verification_rejected(message: str | None) -> bool:
    return bool(message) and message.startswith(_VERIFICATION_REJECTED_PREFIXES)
