"""CLI commands for costwatch.

Commands:
- init-db: Create the SQLite schema
- aggregate: Aggregate one day of costs, then detect alerts
- backfill: Aggregate a range of days
- detect-alerts: Run alert detection for one day
- alerts: List alerts
- ack: Acknowledge an alert
- user-add: Register or update a user's name and email
- summary: All-time cost summary
"""

from datetime import date

import typer
from rich.console import Console
from rich.table import Table

from costwatch.config.app_config import load_app_config
from costwatch.core.alert_detection import run_alert_detection
from costwatch.core.alert_workflow import (
    DEFAULT_LIMIT,
    AlertNotFoundError,
    acknowledge_alert,
    list_alerts,
)
from costwatch.core.cost_aggregation import (
    AggregationError,
    backfill_aggregations,
    run_daily_cost_aggregation,
)
from costwatch.core.cost_analytics import cost_summary
from costwatch.core.cost_logger import format_cost
from costwatch.db.database import get_db_path, init_db
from costwatch.db.users_repository import get_user_by_id, upsert_user
from costwatch.logging_config import configure_logging
from costwatch.utils.dates import DateParseError, day_key, parse_day, yesterday

app = typer.Typer(
    name="costwatch",
    help="Cost tracking and anomaly alerts for LLM and transcript usage.",
    no_args_is_help=True,
)

console = Console()

SEVERITY_STYLES = {"HIGH": "red", "MEDIUM": "yellow", "LOW": "dim"}


@app.callback()
def main() -> None:
    """Set up logging and the database before any command."""
    configure_logging(load_app_config().log_level)
    init_db(get_db_path())


def _parse_day_or_exit(value: str | None, option: str) -> date:
    """Parse a YYYY-MM-DD option (yesterday when empty), or exit."""
    if not value:
        return yesterday()
    try:
        return parse_day(value)
    except DateParseError as e:
        console.print(f"[red]✗ {option}: {e}[/red]")
        raise typer.Exit(code=1)


def _detect_alerts(day: date) -> None:
    result = run_alert_detection(day)
    if result.success:
        console.print(f"[green]✓ Alert detection for {day_key(day)}[/green]")
        console.print(f"  [dim]alerts created:[/dim] {result.alerts_created}")
    else:
        console.print(f"[yellow]⚠ Alert detection failed: {result.error}[/yellow]")


@app.command(name="init-db")
def init_db_command() -> None:
    """Create the database schema."""
    console.print(f"[green]✓ Database ready[/green] [dim]{get_db_path()}[/dim]")


@app.command()
def aggregate(
    day: str | None = typer.Option(None, "--date", "-d", help="Day to aggregate (YYYY-MM-DD, default: yesterday)"),
    skip_alerts: bool = typer.Option(False, "--skip-alerts", help="Don't run alert detection"),
    force: bool = typer.Option(False, "--force", "-f", help="Recompute an existing aggregation"),
) -> None:
    """Aggregate one day of costs, then detect alerts."""
    target = _parse_day_or_exit(day, "--date")

    result = run_daily_cost_aggregation(target, force=force)
    if not result.success:
        console.print(f"[red]✗ Aggregation failed: {result.error}[/red]")
        raise typer.Exit(code=1)

    agg = result.aggregation
    if result.skipped:
        console.print(f"[yellow]⚠ {day_key(target)} already aggregated (use --force to recompute)[/yellow]")
    else:
        console.print(f"[green]✓ Aggregated {day_key(target)}[/green]")
    console.print(f"  [dim]total cost:[/dim] {format_cost(agg.daily_total_cost)}")
    console.print(f"  [dim]operations:[/dim] {agg.daily_operations}")
    console.print(f"  [dim]tokens:[/dim]     {agg.daily_total_tokens:,}")
    console.print(f"  [dim]30d avg:[/dim]    {format_cost(agg.moving_average_30d)} ± {agg.std_dev_30d:.6f}")

    if not skip_alerts:
        _detect_alerts(target)


@app.command()
def backfill(
    start: str = typer.Option(..., "--start", help="First day (YYYY-MM-DD)"),
    end: str = typer.Option(..., "--end", help="Last day, inclusive (YYYY-MM-DD)"),
    force: bool = typer.Option(False, "--force", "-f", help="Recompute existing aggregations"),
) -> None:
    """Aggregate every day in a range, oldest first."""
    start_day = _parse_day_or_exit(start, "--start")
    end_day = _parse_day_or_exit(end, "--end")

    try:
        results = backfill_aggregations(start_day, end_day, force=force)
    except AggregationError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    failed = [r for r in results if not r.success]
    skipped = sum(1 for r in results if r.skipped)
    done = len(results) - len(failed) - skipped

    console.print(f"[green]✓ Backfill {day_key(start_day)} → {day_key(end_day)}[/green]")
    console.print(f"  [dim]aggregated:[/dim] {done}")
    console.print(f"  [dim]skipped:[/dim]    {skipped}")
    if failed:
        for r in failed:
            console.print(f"  [red]✗ {day_key(r.date)}: {r.error}[/red]")
        raise typer.Exit(code=1)


@app.command(name="detect-alerts")
def detect_alerts(
    day: str | None = typer.Option(None, "--date", "-d", help="Day to check (YYYY-MM-DD, default: yesterday)"),
) -> None:
    """Run alert detection for one aggregated day."""
    target = _parse_day_or_exit(day, "--date")

    result = run_alert_detection(target)
    if not result.success:
        console.print(f"[red]✗ Alert detection failed: {result.error}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Alert detection for {day_key(target)}[/green]")
    console.print(f"  [dim]alerts created:[/dim] {result.alerts_created}")


@app.command()
def alerts(
    status: str | None = typer.Option(None, "--status", "-s", help="NEW, ACKNOWLEDGED, RESOLVED, ARCHIVED"),
    alert_type: str | None = typer.Option(None, "--type", "-t", help="outlier or user_spike"),
    limit: int = typer.Option(DEFAULT_LIMIT, "--limit", "-n", help="Maximum alerts to show"),
) -> None:
    """List alerts, newest first."""
    records = list_alerts(alert_type, status, limit)
    if not records:
        console.print("[dim]No alerts.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", no_wrap=True)
    table.add_column("Date")
    table.add_column("Type")
    table.add_column("Severity")
    table.add_column("Status")
    table.add_column("Message")

    for alert in records:
        style = SEVERITY_STYLES.get(alert.severity.value, "")
        table.add_row(
            alert.alert_id,
            alert.alert_date or "",
            alert.type.value,
            f"[{style}]{alert.severity.value}[/{style}]" if style else alert.severity.value,
            alert.status.value,
            alert.message,
        )

    console.print(table)
    console.print(f"[dim]{len(records)} alert(s)[/dim]")


@app.command()
def ack(
    alert_id: str = typer.Argument(..., help="Alert ID"),
) -> None:
    """Acknowledge an alert."""
    try:
        alert, changed = acknowledge_alert(alert_id, changed_by="cli")
    except AlertNotFoundError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    if changed:
        console.print(f"[green]✓ Alert {alert.alert_id} acknowledged[/green]")
    else:
        console.print(f"[yellow]⚠ Alert {alert.alert_id} already {alert.status.value}[/yellow]")


@app.command(name="user-add")
def user_add(
    user_id: str = typer.Argument(..., help="User ID"),
    first_name: str = typer.Option("", "--first-name", help="Given name"),
    last_name: str = typer.Option("", "--last-name", help="Family name"),
    email: str = typer.Option("", "--email", "-e", help="Contact email"),
) -> None:
    """Register or update the name and email shown in alerts."""
    existed = get_user_by_id(user_id) is not None
    upsert_user(user_id, first_name.strip(), last_name.strip(), email.strip())
    user = get_user_by_id(user_id)

    verb = "updated" if existed else "added"
    console.print(f"[green]✓ User {user.user_id} {verb}[/green]")
    console.print(f"  [dim]name:[/dim]  {user.full_name or '-'}")
    console.print(f"  [dim]email:[/dim] {user.email or '-'}")


@app.command()
def summary() -> None:
    """Show all-time cost totals per service."""
    data = cost_summary()
    console.print(f"[bold]Total cost:[/bold] {format_cost(data['total_cost'])}")
    for entry in data["by_service"]:
        console.print(f"  [dim]{entry['service']}:[/dim] {format_cost(entry['total_cost'])}")


if __name__ == "__main__":
    app()
