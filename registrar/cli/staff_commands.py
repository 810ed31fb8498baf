"""Department onboarding CLI commands."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from registrar.cli.console import RegistrarConsole, run_with_console
from registrar.sdk.errors import RegistrarError
from registrar.sdk.models import DepartmentRegistration, DepartmentStatistics, User, parse_department_role
from registrar.sdk.onboarding import RECENT_REGISTRATIONS

app = typer.Typer(name="staff", help="Department user onboarding")
console = Console()


@app.command("register")
def register_command(
    name: str = typer.Option(..., "--name", help="Full name"),
    email: str = typer.Option(..., "--email", help="Email address"),
    nic: str = typer.Option(..., "--nic", help="National identity code"),
    wallet: str = typer.Option(..., "--wallet", help="Wallet address"),
    role: str = typer.Option(..., "--role", "-r", help="notary, surveyor or ivsl")
) -> None:
    """Register a notary, surveyor or valuation-institution user."""
    async def _register(
        registrar: RegistrarConsole,
    ) -> tuple[User, DepartmentStatistics | None, RegistrarError | None]:
        registration = DepartmentRegistration(
            name=name, email=email, nic=nic, wallet_address=wallet, role=parse_department_role(role)
        )
        user = await registrar.onboarding.register_department_user(registration)
        try:
            return user, await registrar.onboarding.load_statistics(), None
        except RegistrarError as e:
            return user, None, e

    try:
        user, stats, stats_error = run_with_console(_register)
    except (RegistrarError, ValueError) as e:
        console.print(f"❌ Registration failed: {e}")
        raise typer.Exit(1)

    console.print("✅ User registered successfully!")
    console.print(f"ID: [bold]{user.id}[/bold]")
    console.print(f"Wallet: {user.wallet_address}")
    if stats is None:
        console.print(f"[yellow]Statistics unavailable: {stats_error}[/yellow]")
        return
    console.print(_stats_table(stats))


@app.command("stats")
def stats_command(
    recent: int = typer.Option(RECENT_REGISTRATIONS, "--recent", "-n", help="Recent registrations to show")
) -> None:
    """Show onboarding statistics per department role."""
    async def _stats(registrar: RegistrarConsole) -> DepartmentStatistics:
        return await registrar.onboarding.load_statistics(recent_limit=recent)

    try:
        stats = run_with_console(_stats)
    except (RegistrarError, ValueError) as e:
        console.print(f"[red]Error loading statistics: {e}[/red]")
        raise typer.Exit(1)

    console.print(_stats_table(stats))
    if not stats.recent:
        console.print("No department registrations yet")
        return
    console.print("[bold]Recent registrations[/bold]")
    for user in stats.recent:
        created = user.created_at.date().isoformat() if user.created_at else "-"
        console.print(f"  {created}  {user.name}  ({user.role.value}, {user.kyc_status.value})")


def _stats_table(stats: DepartmentStatistics) -> Table:
    table = Table(title="Department onboarding")
    table.add_column("Role")
    table.add_column("Verified", justify="right")
    table.add_column("Pending", justify="right")
    table.add_column("Compliance", justify="right")
    for role, counts in stats.by_role.items():
        table.add_row(role.value, str(counts.verified), str(counts.pending), f"{counts.compliance_percent}%")
    return table
