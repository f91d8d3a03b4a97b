"""Tests for role helpers."""

from __future__ import annotations

import pytest

from codemonk.auth.models import UserProfile
from codemonk.auth.roles import Role, dashboard_for, is_privileged_user, role_of


def _user(role: str) -> UserProfile:
    return UserProfile(id=1, role=role)


class TestRoleOf:
    def test_known_roles(self):
        assert role_of(_user("admin")) is Role.ADMIN
        assert role_of(_user(" Mentor ")) is Role.MENTOR

    def test_unknown_role(self):
        assert role_of(_user("janitor")) is None

    def test_anonymous(self):
        assert role_of(None) is None


class TestIsPrivilegedUser:
    @pytest.mark.parametrize(
        ("role", "expected"),
        [("admin", True), ("mentor", True), ("student", False), ("x", False)],
    )
    def test_roles(self, role, expected):
        assert is_privileged_user(_user(role)) is expected

    def test_anonymous(self):
        assert is_privileged_user(None) is False


class TestDashboardFor:
    @pytest.mark.parametrize(
        ("role", "dashboard"),
        [
            ("student", "student-dashboard"),
            ("mentor", "mentor-dashboard"),
            ("admin", "admin-panel"),
            ("unknown", "student-dashboard"),
        ],
    )
    def test_dashboards(self, role, dashboard):
        assert dashboard_for(_user(role)) == dashboard

    def test_anonymous_has_none(self):
        assert dashboard_for(None) is None

    def test_from_api_default_role(self):
        user = UserProfile.from_api({"id": 3, "role": None})
        assert dashboard_for(user) == "student-dashboard"
