"""On-chain signer role CLI commands.

List department users with their registry membership and grant signer roles.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from registrar.cli.config import validate_ledger_config
from registrar.cli.console import RegistrarConsole, run_with_console
from registrar.sdk.errors import RegistrarError
from registrar.sdk.models import RoleMembership, parse_department_role
from registrar.sdk.signers import SignerAction, SignerCandidate

app = typer.Typer(name="signers", help="On-chain signer role grants")
console = Console()

_ACTION_LABELS = {
    SignerAction.ADD: "[green]Add[/green]",
    SignerAction.ALREADY_ADDED: "Already added",
    SignerAction.PROCESSING: "[yellow]Processing...[/yellow]",
    SignerAction.KYC_NOT_VERIFIED: "[red]KYC not verified[/red]",
    SignerAction.NO_WALLET: "[dim]No wallet[/dim]",
    SignerAction.UNKNOWN: "[dim]Unknown[/dim]",
}


@app.command("list")
def list_command(
    role: str = typer.Argument(..., help="notary, surveyor or ivsl")
) -> None:
    """List department users and their signer role status."""
    async def _list(registrar: RegistrarConsole) -> list[tuple[SignerCandidate, SignerAction]]:
        view = registrar.signer_view(parse_department_role(role))
        candidates = await view.load()
        return [
            (c, view.action_for(c.user.wallet_address) if c.user.wallet_address else SignerAction.NO_WALLET)
            for c in candidates
        ]

    try:
        rows = run_with_console(_list)
    except (RegistrarError, ValueError) as e:
        console.print(f"[red]Error loading signer requests: {e}[/red]")
        raise typer.Exit(1)

    if not rows:
        console.print("No users found")
        return
    table = Table(title=f"{role} signer requests")
    table.add_column("Name")
    table.add_column("Wallet")
    table.add_column("KYC")
    table.add_column("Action")
    for candidate, action in rows:
        user = candidate.user
        table.add_row(user.name or "Unknown", user.wallet_address or "", user.kyc_status.value, _ACTION_LABELS[action])
    console.print(table)


@app.command("add")
def add_command(
    role: str = typer.Argument(..., help="notary, surveyor or ivsl"),
    wallet: str = typer.Argument(..., help="Wallet address of the user")
) -> None:
    """Grant a signer role on the registry contract."""
    async def _add(registrar: RegistrarConsole) -> RoleMembership | None:
        validate_ledger_config(registrar.config)
        view = registrar.signer_view(parse_department_role(role))
        await view.load()
        return await view.grant(wallet)

    try:
        membership = run_with_console(_add)
    except (RegistrarError, ValueError) as e:
        console.print(f"❌ Error adding signer: {e}")
        raise typer.Exit(1)

    console.print("✅ Signer added successfully!")
    if membership is None:
        console.print("[yellow]Membership could not be confirmed; reload to check.[/yellow]")
    else:
        console.print(f"Roles: notary={membership.notary} surveyor={membership.surveyor} ivsl={membership.ivsl}")
