"""Role helpers for choosing what an authenticated user may see."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from codemonk.auth.models import UserProfile


class Role(StrEnum):
    STUDENT = "student"
    MENTOR = "mentor"
    ADMIN = "admin"


_PRIVILEGED_ROLES = frozenset({Role.MENTOR, Role.ADMIN})

_DASHBOARDS = {
    Role.STUDENT: "student-dashboard",
    Role.MENTOR: "mentor-dashboard",
    Role.ADMIN: "admin-panel",
}


def role_of(user: UserProfile | None) -> Role | None:
    """Return the user's role, or None for anonymous or unrecognised roles."""
    if user is None:
        return None
    try:
        return Role(str(user.role).strip().lower())
    except ValueError:
        return None


def is_privileged_user(user: UserProfile | None) -> bool:
    """Check if user has mentor or admin privileges.

    Returns False for students, unauthenticated users, or unknown roles.
    """
    return role_of(user) in _PRIVILEGED_ROLES


def dashboard_for(user: UserProfile | None) -> str | None:
    """Name of the dashboard the user lands on after login.

    Unknown roles fall back to the student dashboard; anonymous users get
    None (they belong on the login view).
    """
    if user is None:
        return None
    return _DASHBOARDS[role_of(user) or Role.STUDENT]
