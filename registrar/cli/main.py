"""Typer CLI for the registrar console.

Provides commands: login, logout, whoami, plus the kyc, staff and signers
command groups. Main entrypoint for the registrar command-line interface.
"""

from __future__ import annotations

import typer
from rich.console import Console

from registrar import __version__
from registrar.cli.console import RegistrarConsole, run_with_console
from registrar.cli.kyc_commands import app as kyc_app
from registrar.cli.signer_commands import app as signers_app
from registrar.cli.staff_commands import app as staff_app
from registrar.sdk.errors import CooldownActive, InvalidFormat, InvalidOtp, RegistrarError
from registrar.sdk.models import AdminSession, User

MAX_OTP_ATTEMPTS = 3

app = typer.Typer(
    name="registrar",
    help="Land-deed registry registrar console - KYC review and department onboarding",
    add_completion=False,
    rich_markup_mode="rich"
)
console = Console()

app.add_typer(kyc_app, name="kyc", help="KYC review commands")
app.add_typer(staff_app, name="staff", help="Department user onboarding")
app.add_typer(signers_app, name="signers", help="On-chain signer role grants")


def version_callback(show_version: bool) -> None:
    """Show version and exit."""
    if show_version:
        console.print(f"Registrar console version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True
    )
) -> None:
    """Registrar console CLI."""
    pass


@app.command()
def login(
    wallet: str = typer.Argument(..., help="Admin wallet address")
) -> None:
    """Authenticate an admin wallet with an emailed one-time password."""
    async def _login(registrar: RegistrarConsole) -> AdminSession:
        registrar.gate.connect_wallet(wallet)
        await registrar.gate.request_challenge(wallet)
        console.print(f"📧 OTP sent. Resend available in {registrar.gate.resend_cooldown}s.")
        return await _prompt_for_otp(registrar, wallet)

    try:
        session = run_with_console(_login)
        console.print("✅ Admin session established!")
        console.print(f"Wallet: [bold]{session.wallet_address}[/bold]")
        console.print(f"User: {session.user.name or session.user.email}")
    except (RegistrarError, ValueError) as e:
        console.print(f"❌ Login failed: {e}")
        raise typer.Exit(1)


async def _prompt_for_otp(registrar: RegistrarConsole, wallet: str) -> AdminSession:
    """Prompt until a code verifies; blank input asks for a resend."""
    attempts = 0
    while True:
        code = typer.prompt("Enter 6-digit OTP (blank to resend)", default="", show_default=False, hide_input=True)
        if not code:
            try:
                await registrar.gate.resend_challenge(wallet)
                console.print("📧 OTP resent.")
            except CooldownActive as e:
                console.print(f"[yellow]Resend available in {e.remaining}s[/yellow]")
            continue
        try:
            return await registrar.gate.verify_challenge(wallet, code)
        except (InvalidFormat, InvalidOtp) as e:
            attempts += 1
            if attempts >= MAX_OTP_ATTEMPTS:
                raise
            console.print(f"[red]{e.message}[/red]")


@app.command()
def logout() -> None:
    """Clear the stored admin session."""
    async def _logout(registrar: RegistrarConsole) -> None:
        registrar.gate.disconnect_session()

    try:
        run_with_console(_logout)
        console.print("✅ Logged out")
    except (RegistrarError, ValueError) as e:
        console.print(f"❌ Logout failed: {e}")
        raise typer.Exit(1)


@app.command()
def whoami() -> None:
    """Show the profile bound to the current session."""
    async def _whoami(registrar: RegistrarConsole) -> User:
        registrar.context.require_admin()
        return await registrar.directory.get_profile()

    try:
        user = run_with_console(_whoami)
        console.print(f"Name: [bold]{user.name}[/bold]")
        console.print(f"Email: {user.email}")
        console.print(f"Wallet: {user.wallet_address}")
        console.print(f"Role: {user.role.value}")
    except (RegistrarError, ValueError) as e:
        console.print(f"❌ Error loading profile: {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
