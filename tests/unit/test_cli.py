"""Tests for the codemonk CLI: argument parsing and subcommand behaviour.

Commands run against MockApiClient; prompts are answered from a script and
output goes to an in-memory rich Console.
"""

from __future__ import annotations

from io import StringIO

import pytest
from rich.console import Console

from codemonk.auth.mock import (
    MOCK_OTP_CODE,
    MOCK_PASSWORD,
    MOCK_STUDENT_EMAIL,
    MockApiClient,
)
from codemonk.auth.session import SessionStore
from codemonk.registration.flow import RegistrationFlow, RegistrationStep


def _console() -> tuple[Console, StringIO]:
    buf = StringIO()
    return Console(file=buf, width=120, no_color=True), buf


class ScriptedPrompt:
    """Stand-in for rich's Prompt.ask that replays fixed answers."""

    def __init__(self, *answers: str) -> None:
        self.answers = list(answers)
        self.prompts: list[str] = []

    def __call__(self, prompt: str, **kwargs) -> str:
        self.prompts.append(prompt)
        return self.answers.pop(0)


@pytest.fixture
def store(mock_api, credentials, no_wait) -> SessionStore:
    return SessionStore(mock_api, credentials, retry_policy=no_wait)


class TestParser:
    """Parser recognises all subcommands and their arguments."""

    def _parser(self):
        from codemonk.cli import _build_parser

        return _build_parser()

    @pytest.mark.parametrize("command", ["whoami", "logout", "register"])
    def test_simple_commands(self, command) -> None:
        assert self._parser().parse_args([command]).command == command

    def test_login_parses_email(self) -> None:
        args = self._parser().parse_args(["login", "a@b.co"])
        assert args.command == "login"
        assert args.email == "a@b.co"

    def test_login_requires_email(self) -> None:
        with pytest.raises(SystemExit):
            self._parser().parse_args(["login"])

    def test_no_subcommand_fails(self) -> None:
        with pytest.raises(SystemExit):
            self._parser().parse_args([])


class TestCmdWhoami:
    async def test_not_logged_in(self, store) -> None:
        from codemonk.cli import _cmd_whoami

        con, buf = _console()
        code = await _cmd_whoami(store, console=con)

        assert code == 1
        assert "Not logged in" in buf.getvalue()

    async def test_shows_user(self, store, mock_api, credentials) -> None:
        from codemonk.cli import _cmd_whoami

        login = await mock_api.login(MOCK_STUDENT_EMAIL, MOCK_PASSWORD)
        credentials.save(login.token)
        con, buf = _console()

        code = await _cmd_whoami(store, console=con)

        assert code == 0
        output = buf.getvalue()
        assert "Test Student" in output
        assert "NU25MCA001" in output


class TestCmdLogin:
    async def test_success(self, store, credentials) -> None:
        from codemonk.cli import _cmd_login

        con, _ = _console()
        code = await _cmd_login(
            store, MOCK_STUDENT_EMAIL, console=con, ask=ScriptedPrompt(MOCK_PASSWORD)
        )

        assert code == 0
        assert store.is_authenticated
        assert credentials.load() is not None

    async def test_wrong_password(self, store) -> None:
        from codemonk.cli import _cmd_login

        con, buf = _console()
        code = await _cmd_login(
            store, MOCK_STUDENT_EMAIL, console=con, ask=ScriptedPrompt("nope")
        )

        assert code == 1
        assert "Invalid email or password" in buf.getvalue()

    async def test_already_logged_in_skips_prompt(
        self, store, mock_api, credentials
    ) -> None:
        from codemonk.cli import _cmd_login

        login = await mock_api.login(MOCK_STUDENT_EMAIL, MOCK_PASSWORD)
        credentials.save(login.token)
        prompt = ScriptedPrompt()
        con, buf = _console()

        code = await _cmd_login(store, MOCK_STUDENT_EMAIL, console=con, ask=prompt)

        assert code == 0
        assert prompt.prompts == []
        assert "Already logged in" in buf.getvalue()


class TestCmdLogout:
    async def test_logout(self, store, mock_api, credentials) -> None:
        from codemonk.cli import _cmd_logout

        login = await mock_api.login(MOCK_STUDENT_EMAIL, MOCK_PASSWORD)
        credentials.save(login.token)
        con, buf = _console()

        code = await _cmd_logout(store, console=con)

        assert code == 0
        assert credentials.load() is None
        assert "Logged out" in buf.getvalue()


class TestCmdRegister:
    """Interactive registration driven by the flow's step."""

    async def test_happy_path(self, mock_api: MockApiClient, fake_clock) -> None:
        from codemonk.cli import _cmd_register

        flow = RegistrationFlow(mock_api, clock=fake_clock)
        prompt = ScriptedPrompt(
            "New Member",  # name used for the OTP email
            "new@example.com",
            MOCK_OTP_CODE,
            "New Member",
            "NU25MCA050",
            "secret1",
            "secret1",
            "9123456780",
            "",
            "",
        )
        con, buf = _console()

        code = await _cmd_register(flow, console=con, ask=prompt)

        assert code == 0
        assert flow.step is RegistrationStep.SUBMITTED
        assert "codemonk login" in buf.getvalue()
        assert (await mock_api.login("new@example.com", "secret1")).success

    async def test_wrong_code_then_back_then_retry(
        self, mock_api: MockApiClient, fake_clock
    ) -> None:
        from codemonk.cli import _cmd_register

        flow = RegistrationFlow(mock_api, clock=fake_clock)
        prompt = ScriptedPrompt(
            "New Member",
            "new@example.com",
            "12ab",  # rejected locally
            "back",
            "other@example.com",
            MOCK_OTP_CODE,
            "New Member",
            "NU25MCA051",
            "secret1",
            "secret1",
            "9123456780",
            "",
            "",
        )
        con, buf = _console()

        await _cmd_register(flow, console=con, ask=prompt)

        output = buf.getvalue()
        assert "Verification code must be 6 digits" in output
        assert (await mock_api.login("other@example.com", "secret1")).success

    async def test_resend_during_countdown_reports_wait(
        self, mock_api: MockApiClient, fake_clock
    ) -> None:
        from codemonk.cli import _cmd_register

        flow = RegistrationFlow(mock_api, clock=fake_clock)
        prompt = ScriptedPrompt(
            "New Member",
            "new@example.com",
            "resend",
            MOCK_OTP_CODE,
            "New Member",
            "NU25MCA052",
            "secret1",
            "secret1",
            "9123456780",
            "",
            "",
        )
        con, buf = _console()

        await _cmd_register(flow, console=con, ask=prompt)

        assert "Please wait 60 seconds" in buf.getvalue()

    async def test_profile_errors_are_listed(
        self, mock_api: MockApiClient, fake_clock
    ) -> None:
        from codemonk.cli import _cmd_register

        flow = RegistrationFlow(mock_api, clock=fake_clock)
        prompt = ScriptedPrompt(
            "New Member",
            "new@example.com",
            MOCK_OTP_CODE,
            # first attempt: mismatched passwords
            "New Member",
            "NU25MCA053",
            "secret1",
            "secret2",
            "9123456780",
            "",
            "",
            # second attempt
            "New Member",
            "NU25MCA053",
            "secret1",
            "secret1",
            "9123456780",
            "",
            "",
        )
        con, buf = _console()

        await _cmd_register(flow, console=con, ask=prompt)

        output = buf.getvalue()
        assert "Please fix the highlighted fields above" in output
        assert "confirm_password: Passwords do not match" in output
        assert flow.step is RegistrationStep.SUBMITTED


class TestMain:
    def test_whoami_in_mock_mode(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path, clean_settings
    ) -> None:
        from codemonk import cli

        monkeypatch.setenv("DEV__API_MOCK", "true")
        monkeypatch.setenv("SESSION__TOKEN_FILE", str(tmp_path / "tok"))
        monkeypatch.setenv("APP__LOG_DIR", str(tmp_path / "logs"))
        monkeypatch.setattr("codemonk.setup_logging", lambda: tmp_path / "x.log")
        con, buf = _console()
        monkeypatch.setattr(cli, "console", con)

        with pytest.raises(SystemExit) as exc:
            cli.main(["whoami"])

        assert exc.value.code == 1
        assert "Not logged in" in buf.getvalue()
