"""KYC review CLI commands.

List, approve and reject KYC submissions and show their documents.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from registrar.cli.console import RegistrarConsole, run_with_console
from registrar.sdk.errors import RegistrarError
from registrar.sdk.files import is_previewable
from registrar.sdk.models import KycStatus, ReviewSnapshot, User

app = typer.Typer(name="kyc", help="KYC review commands")
console = Console()

_STATUS_STYLES = {
    KycStatus.PENDING: "yellow",
    KycStatus.VERIFIED: "green",
    KycStatus.REJECTED: "red",
}


@app.command("list")
def list_command(
    status: str = typer.Option("pending", "--status", "-s", help="all, pending, verified or rejected"),
    query: str = typer.Option("", "--query", "-q", help="Match name, email or wallet address")
) -> None:
    """List KYC submissions awaiting review."""
    async def _list(registrar: RegistrarConsole) -> tuple[ReviewSnapshot, list[User]]:
        snapshot = await registrar.kyc.list_submissions()
        return snapshot, registrar.kyc.filter_submissions(query=query, status=status)

    try:
        snapshot, submissions = run_with_console(_list)
    except (RegistrarError, ValueError) as e:
        console.print(f"[red]Error loading KYC requests: {e}[/red]")
        raise typer.Exit(1)

    if snapshot.stale:
        console.print(f"[yellow]Showing cached list: {snapshot.error}[/yellow]")
    if not submissions:
        console.print("No KYC requests found")
        return
    console.print(_submissions_table(submissions))
    console.print(f"{len(submissions)} Requests")


@app.command("approve")
def approve_command(
    user_id: str = typer.Argument(..., help="Submission (user) ID")
) -> None:
    """Verify a pending KYC submission."""
    _decide(user_id, KycStatus.VERIFIED, None)


@app.command("reject")
def reject_command(
    user_id: str = typer.Argument(..., help="Submission (user) ID"),
    reason: str = typer.Option(..., "--reason", "-r", prompt="Rejection reason", help="Why the submission is rejected")
) -> None:
    """Reject a pending KYC submission."""
    _decide(user_id, KycStatus.REJECTED, reason)


def _decide(user_id: str, outcome: KycStatus, reason: str | None) -> None:
    async def _run(registrar: RegistrarConsole) -> User:
        await registrar.kyc.list_submissions()
        return await registrar.kyc.decide(user_id, outcome, reason)

    try:
        user = run_with_console(_run)
    except (RegistrarError, ValueError) as e:
        console.print(f"❌ Failed to {'verify' if outcome is KycStatus.VERIFIED else 'reject'} KYC: {e}")
        raise typer.Exit(1)
    console.print(f"✅ KYC {outcome.value} successfully!")
    console.print(f"User: [bold]{user.name or user.id}[/bold]")


@app.command("docs")
def docs_command(
    user_id: str = typer.Argument(..., help="Submission (user) ID")
) -> None:
    """Show document links for a submission."""
    async def _docs(registrar: RegistrarConsole) -> dict[str, str]:
        await registrar.kyc.list_submissions()
        subject = next((u for u in registrar.kyc.filter_submissions() if u.id == user_id), None)
        if subject is None:
            raise ValueError(f"Unknown submission: {user_id}")
        return await registrar.kyc.resolve_document_urls(registrar.kyc.documents_of(subject))

    try:
        urls = run_with_console(_docs)
    except (RegistrarError, ValueError) as e:
        console.print(f"[red]Error loading documents: {e}[/red]")
        raise typer.Exit(1)

    if not urls:
        console.print("No documents uploaded")
        return
    for kind, url in urls.items():
        marker = " (image)" if is_previewable(url) else ""
        console.print(f"{kind}: {url}{marker}")


def _submissions_table(submissions: list[User]) -> Table:
    table = Table(title="KYC Verification Queue")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Email")
    table.add_column("Wallet")
    table.add_column("Role")
    table.add_column("Status")
    for user in submissions:
        style = _STATUS_STYLES[user.kyc_status]
        table.add_row(
            user.id,
            user.name or "Unknown",
            user.email,
            user.wallet_address or "",
            user.role.value,
            f"[{style}]{user.kyc_status.value}[/{style}]",
        )
    return table
