"""Command-line interface for Tarana."""

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from tarana.credits.service import credit_service
from tarana.diagnostics import CheckOutcome, diagnostics_service
from tarana.errors import ReferralSystemError
from tarana.logging_config import configure_logging, get_logger
from tarana.referral.reconcile import reconciliation_service
from tarana.storage.db import db
from tarana.tiers.catalog import get_all_tiers

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Create Typer app
app = typer.Typer(
    name="tarana",
    help="Tarana - referral tiers and daily credits",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()

OUTCOME_STYLES = {
    CheckOutcome.PASS: "[green]pass[/green]",
    CheckOutcome.FAIL: "[red]fail[/red]",
    CheckOutcome.UNKNOWN: "[yellow]unknown[/yellow]",
}


@app.command("init")
def init_database() -> None:
    """Initialize the database and create tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    db.create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("tiers")
def list_tiers() -> None:
    """Show the tier catalog."""
    table = Table(title="Tiers")
    table.add_column("Name", style="cyan")
    table.add_column("Referrals", justify="right")
    table.add_column("Bonus", justify="right")
    table.add_column("Daily Credits", justify="right", style="green")
    table.add_column("Benefits")

    for tier in get_all_tiers():
        table.add_row(
            tier.name,
            str(tier.referrals_required),
            f"+{tier.daily_credits_bonus}",
            str(tier.total_daily_credits),
            ", ".join(tier.benefits),
        )

    console.print(table)


@app.command("reconcile")
def reconcile_user(
    user_id: Annotated[str, typer.Argument(help="User ID")],
    apply: Annotated[bool, typer.Option("--apply", help="Write the corrected tier")] = False,
) -> None:
    """Compare a user's stored tier with their active referrals."""
    try:
        if apply:
            report = reconciliation_service.repair(user_id)
        else:
            report = reconciliation_service.inspect(user_id)
    except ReferralSystemError as e:
        console.print(f"[bold red]✗[/bold red] {e.message}")
        raise typer.Exit(1)

    counts = report.counts
    console.print(f"\n[bold]User {user_id}[/bold]")
    console.print(
        f"  Referrals: {counts.total} total, {counts.active} active, "
        f"{counts.pending} pending, {counts.other} other"
    )

    if not report.has_issues:
        console.print(f"[bold green]✓[/bold green] {report.message}")
        return

    table = Table(title="Tier drift")
    table.add_column("Field", style="cyan")
    table.add_column("Stored")
    table.add_column("Expected", style="green")
    for change in report.changes:
        table.add_row(change.field, str(change.before), str(change.after))
    console.print(table)

    if report.repaired:
        console.print(f"[bold green]✓[/bold green] Profile updated to {report.expected.current_tier}")
    else:
        console.print("[yellow]Dry run. Re-run with --apply to fix.[/yellow]")


@app.command("refresh-credits")
def refresh_credits(
    force: Annotated[bool, typer.Option("--force", help="Refresh every profile")] = False,
) -> None:
    """Reset daily credit usage for profiles not yet refreshed today."""
    refreshed = credit_service.refresh_daily_credits(force=force)
    console.print(f"[bold green]✓[/bold green] Refreshed {refreshed} profile(s)")


@app.command("diagnose")
def diagnose_user(
    user_id: Annotated[str, typer.Argument(help="User ID")],
) -> None:
    """Run the credit system health checks for a user."""
    report = diagnostics_service.run_diagnostics(user_id)

    table = Table(title=f"Diagnostics for {user_id}")
    table.add_column("Check", style="cyan")
    table.add_column("Outcome")
    table.add_column("Detail")
    for check in report.checks:
        table.add_row(check.name, OUTCOME_STYLES[check.outcome], check.detail)
    console.print(table)

    summary = report.summary
    console.print(
        f"  Passed: {summary.passed}  Failed: {summary.failed}  Unknown: {summary.unknown}"
    )
    console.print(f"  Credit procedure: {report.credit_procedure}")
    console.print(f"  Migration run: {summary.migration_run}")
    console.print(f"  User set up: {summary.user_setup}")
    console.print(f"  Ready to use: {summary.ready_to_use}")

    if summary.failed:
        raise typer.Exit(1)


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
