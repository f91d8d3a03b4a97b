"""Tests for pydantic-settings configuration.

Each test builds ``Settings(_env_file=None)`` so a developer's .env file
cannot leak in.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from codemonk.config import (
    DEFAULT_USN_PREFIXES,
    RegistrationConfig,
    SessionConfig,
    Settings,
)


@pytest.mark.usefixtures("clean_settings")
class TestDefaults:
    """Defaults with no environment overrides."""

    def test_api_base_url(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.api.base_url == "http://localhost:5000/api"

    def test_session_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.session.probe_max_attempts == 2
        assert s.session.probe_retry_delay == 1.0
        assert s.token_path == Path("~/.codemonk/token").expanduser()

    def test_registration_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.registration.resend_cooldown_seconds == 60
        assert s.registration.password_policy == "standard"
        assert s.registration.usn_prefixes == DEFAULT_USN_PREFIXES
        assert (s.registration.usn_number_min, s.registration.usn_number_max) == (
            1,
            180,
        )

    def test_mock_disabled(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.dev.api_mock is False


@pytest.mark.usefixtures("clean_settings")
class TestEnvOverrides:
    """Nested ``__`` environment variables override the defaults."""

    def test_base_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("API__BASE_URL", "https://club.example/api")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.api.base_url == "https://club.example/api"

    def test_api_mock(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEV__API_MOCK", "true")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.dev.api_mock is True

    def test_password_policy(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REGISTRATION__PASSWORD_POLICY", "strict")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.registration.password_policy == "strict"

    def test_unknown_password_policy_rejected(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("REGISTRATION__PASSWORD_POLICY", "lenient")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)  # type: ignore[call-arg]

    def test_token_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
        monkeypatch.setenv("SESSION__TOKEN_FILE", str(tmp_path / "tok"))
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.token_path == tmp_path / "tok"


class TestValidators:
    def test_probe_attempts_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            SessionConfig(probe_max_attempts=0)

    def test_usn_range_must_be_ordered(self) -> None:
        with pytest.raises(ValidationError):
            RegistrationConfig(usn_number_min=200, usn_number_max=10)


@pytest.mark.usefixtures("clean_settings")
class TestGetSettings:
    def test_cached(self) -> None:
        from codemonk.config import get_settings

        assert get_settings() is get_settings()

    def test_cache_clear_rereads_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from codemonk.config import get_settings

        first = get_settings()
        monkeypatch.setenv("API__BASE_URL", "https://other.example/api")
        get_settings.cache_clear()

        assert get_settings() is not first
        assert get_settings().api.base_url == "https://other.example/api"
