"""Client-side validation for the registration flow.

These rules mirror the server's so obviously bad input never costs a
request. They do not replace server validation.

Every validator returns an error message, or None when the value is fine.
``validate_profile`` collects all of them at once so a form can highlight
every bad field in one pass.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from codemonk.config import DEFAULT_USN_PREFIXES

PasswordPolicy = Literal["standard", "strict"]

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
OTP_PATTERN = re.compile(r"[0-9]{6}")
# 10-digit local mobile number, or E.164 (+, no leading zero, 8-15 digits)
PHONE_PATTERN = re.compile(r"[6-9][0-9]{9}|\+[1-9][0-9]{7,14}")
_STRICT_PASSWORD_CLASSES = (
    re.compile(r"[a-z]"),
    re.compile(r"[A-Z]"),
    re.compile(r"[0-9]"),
)

FULL_NAME_MIN = 2
FULL_NAME_MAX = 100
PASSWORD_MIN = {"standard": 6, "strict": 8}


@dataclass(frozen=True)
class ProfileForm:
    """Phase-two registration fields, exactly as the user typed them.

    The email is not part of the form: it comes from the verified draft.
    """

    full_name: str
    usn: str
    password: str
    confirm_password: str
    phone: str
    whatsapp_number: str = ""
    section: str = ""


@dataclass(frozen=True)
class ValidationRules:
    """Institution-specific knobs for the validators."""

    password_policy: PasswordPolicy = "standard"
    usn_prefixes: Sequence[str] = DEFAULT_USN_PREFIXES
    usn_number_min: int = 1
    usn_number_max: int = 180

    def usn_pattern(self) -> re.Pattern[str]:
        prefixes = "|".join(re.escape(p) for p in self.usn_prefixes)
        return re.compile(rf"({prefixes})([0-9]{{1,3}})", re.IGNORECASE)


def validate_email(email: str) -> str | None:
    if not email or not email.strip():
        return "Please enter your email address"
    if not EMAIL_PATTERN.fullmatch(email.strip()):
        return "Please enter a valid email address"
    return None


def validate_otp(code: str) -> str | None:
    if not code:
        return "Please enter the verification code"
    if len(code) != 6:
        return "Verification code must be 6 digits"
    if not OTP_PATTERN.fullmatch(code):
        return "Verification code should contain only numbers"
    return None


def validate_full_name(full_name: str) -> str | None:
    name = (full_name or "").strip()
    if not name:
        return "Please enter your full name"
    if len(name) < FULL_NAME_MIN:
        return f"Name must be at least {FULL_NAME_MIN} characters long"
    if len(name) > FULL_NAME_MAX:
        return f"Name must be at most {FULL_NAME_MAX} characters long"
    return None


def validate_usn(usn: str, rules: ValidationRules) -> str | None:
    value = (usn or "").strip()
    if not value:
        return "Please enter your USN"
    example = f"{rules.usn_prefixes[0]}123" if rules.usn_prefixes else "USN123"
    match = rules.usn_pattern().fullmatch(value)
    if match is None:
        return f"Please enter a valid USN (e.g., {example})"
    number = int(match.group(2))
    if not rules.usn_number_min <= number <= rules.usn_number_max:
        return (
            f"USN number must be between {rules.usn_number_min} "
            f"and {rules.usn_number_max}"
        )
    return None


def validate_password(password: str, policy: PasswordPolicy = "standard") -> str | None:
    if not password:
        return "Please create a password"
    minimum = PASSWORD_MIN[policy]
    if len(password) < minimum:
        return f"Password must be at least {minimum} characters long"
    if policy == "strict" and not all(
        p.search(password) for p in _STRICT_PASSWORD_CLASSES
    ):
        return (
            "Password must contain at least one lowercase letter, "
            "one uppercase letter, and one number"
        )
    return None


def validate_confirm_password(password: str, confirm_password: str) -> str | None:
    if not confirm_password:
        return "Please confirm your password"
    if password != confirm_password:
        return "Passwords do not match"
    return None


def validate_phone(phone: str) -> str | None:
    value = (phone or "").strip()
    if not value:
        return "Please enter your phone number"
    if not PHONE_PATTERN.fullmatch(value):
        return "Please enter a valid 10-digit phone number"
    return None


def validate_whatsapp(whatsapp_number: str) -> str | None:
    value = (whatsapp_number or "").strip()
    if value and not PHONE_PATTERN.fullmatch(value):
        return "Please enter a valid WhatsApp number"
    return None


def validate_profile(form: ProfileForm, rules: ValidationRules) -> dict[str, str]:
    """Run every profile rule; returns ``{field: message}`` for failures."""
    checks = {
        "full_name": validate_full_name(form.full_name),
        "usn": validate_usn(form.usn, rules),
        "password": validate_password(form.password, rules.password_policy),
        "confirm_password": validate_confirm_password(
            form.password, form.confirm_password
        ),
        "phone": validate_phone(form.phone),
        "whatsapp_number": validate_whatsapp(form.whatsapp_number),
    }
    return {name: message for name, message in checks.items() if message}
