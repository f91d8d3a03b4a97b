"""Command-line client for the Code Monk backend.

Usage:
    codemonk whoami
    codemonk login <email>
    codemonk logout
    codemonk register
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Callable
from typing import TYPE_CHECKING

from rich.console import Console
from rich.prompt import Prompt

from codemonk.registration.flow import RegistrationStep
from codemonk.registration.validation import ProfileForm

if TYPE_CHECKING:
    from codemonk.auth.models import ActionResult
    from codemonk.auth.session import SessionStore
    from codemonk.registration.flow import RegistrationFlow

console = Console()

Ask = Callable[..., str]

RESEND_COMMAND = "resend"
BACK_COMMAND = "back"


def _build_parser() -> argparse.ArgumentParser:
    """Build argparse parser for the codemonk subcommands."""
    parser = argparse.ArgumentParser(
        prog="codemonk",
        description="Log in to, and register with, the Code Monk club backend.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("whoami", help="Show the logged-in user")

    login_p = sub.add_parser("login", help="Log in with email and password")
    login_p.add_argument("email", help="Account email address")

    sub.add_parser("logout", help="Log out and forget the stored credential")
    sub.add_parser("register", help="Create an account (email verification first)")

    return parser


def _report(con: Console, result: ActionResult) -> None:
    """Print a result, with any per-field errors underneath."""
    if result.success:
        if result.message:
            con.print(f"[green]{result.message}[/]")
        return
    con.print(f"[red]Error:[/] {result.message}")
    for name, message in result.field_errors.items():
        con.print(f"  [dim]{name}:[/] {message}")


async def _cmd_whoami(store: SessionStore, *, console: Console | None = None) -> int:
    """Print the current user, if any."""
    con = console or globals()["console"]
    session = await store.initialize()
    if session.user is None:
        con.print("[yellow]Not logged in.[/]")
        return 1

    user = session.user
    con.print(f"[bold]{user.full_name or user.email}[/] ({user.email})")
    con.print(f"  Role: {user.role}")
    if user.usn:
        con.print(f"  USN: {user.usn}")
    con.print(f"  ID: [dim]{user.id}[/]")
    return 0


async def _cmd_login(
    store: SessionStore,
    email: str,
    *,
    console: Console | None = None,
    ask: Ask = Prompt.ask,
) -> int:
    """Prompt for a password and log in."""
    con = console or globals()["console"]
    session = await store.initialize()
    if session.user is not None and session.user.email == email.lower():
        con.print(f"[yellow]Already logged in as[/] {email}")
        return 0

    password = ask("Password", password=True)
    result = await store.login(email, password)
    _report(con, result)
    return 0 if result.success else 1


async def _cmd_logout(store: SessionStore, *, console: Console | None = None) -> int:
    con = console or globals()["console"]
    await store.initialize()
    await store.logout()
    con.print("[green]Logged out.[/]")
    return 0


def _ask_profile(ask: Ask, full_name: str, previous: ProfileForm | None) -> ProfileForm:
    """Collect the phase-two fields, offering the last answers as defaults."""
    return ProfileForm(
        full_name=ask("Full name", default=full_name),
        usn=ask("USN", default=previous.usn if previous else ""),
        password=ask("Password", password=True),
        confirm_password=ask("Confirm password", password=True),
        phone=ask("Phone", default=previous.phone if previous else ""),
        whatsapp_number=ask(
            "WhatsApp number (optional)",
            default=previous.whatsapp_number if previous else "",
        ),
        section=ask("Section (optional)", default=previous.section if previous else ""),
    )


async def _cmd_register(
    flow: RegistrationFlow,
    *,
    console: Console | None = None,
    ask: Ask = Prompt.ask,
) -> int:
    """Walk through email verification and profile entry interactively."""
    con = console or globals()["console"]
    full_name = ask("Full name")

    while flow.step is not RegistrationStep.SUBMITTED:
        match flow.step:
            case RegistrationStep.COLLECTING_EMAIL:
                email = ask("Email", default=flow.draft.email_candidate or "")
                _report(con, await flow.send_otp(email, name=full_name))
            case RegistrationStep.OTP_SENT:
                answer = ask(
                    f"Verification code ('{RESEND_COMMAND}' for a new code, "
                    f"'{BACK_COMMAND}' to change email)"
                ).strip()
                if answer == RESEND_COMMAND:
                    _report(con, await flow.resend())
                elif answer == BACK_COMMAND:
                    flow.back()
                else:
                    _report(con, await flow.verify(answer))
                    if flow.otp_expired:
                        con.print(f"[dim]Type '{RESEND_COMMAND}' for a new code.[/]")
            case RegistrationStep.EMAIL_VERIFIED:
                form = _ask_profile(ask, full_name, flow.draft.profile)
                full_name = form.full_name
                _report(con, await flow.submit_profile(form))

    con.print("Run [cyan]codemonk login <email>[/] to continue.")
    return 0


def main(argv: list[str] | None = None) -> None:
    """Entry point for the ``codemonk`` command."""
    from codemonk import setup_logging
    from codemonk.auth.factory import (
        create_session_store,
        get_api_client,
        get_credential_store,
    )
    from codemonk.registration import create_registration_flow

    args = _build_parser().parse_args(argv)
    setup_logging()

    async def _run() -> int:
        credentials = get_credential_store()
        client = get_api_client(credentials)
        store = create_session_store(client, credentials)
        try:
            match args.command:
                case "whoami":
                    return await _cmd_whoami(store)
                case "login":
                    return await _cmd_login(store, args.email)
                case "logout":
                    return await _cmd_logout(store)
                case "register":
                    return await _cmd_register(create_registration_flow(client))
            return 2
        finally:
            store.close()
            await client.aclose()

    try:
        exit_code = asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/]")
        exit_code = 130
    sys.exit(exit_code)
