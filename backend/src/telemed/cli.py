"""Command-line interface for referral code administration."""

from datetime import datetime
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from telemed.auth.actor import Actor, Role
from telemed.logging_config import configure_logging, get_logger
from telemed.referral.admin import ReferralCodeService
from telemed.referral.errors import ReferralError
from telemed.referral.service import ReferralPricingEngine
from telemed.storage.db import db

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Create Typer app
app = typer.Typer(
    name="telemed",
    help="Telemed - referral code and commission administration",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()

ActorOption = Annotated[str, typer.Option("--actor", "-a", help="Admin user id recorded on changes")]


def _admin(actor_id: str) -> Actor:
    return Actor(user_id=actor_id, role=Role.ADMIN)


@app.command("init")
def init_database() -> None:
    """Initialize the database and create tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    db.create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("create-code")
def create_code(
    agent_id: Annotated[str, typer.Option("--agent", help="Owning agent id")],
    discount_type: Annotated[str, typer.Option("--type", "-t", help="percentage or fixed")],
    discount_value: Annotated[float, typer.Option("--value", "-v", help="Percent or amount")],
    actor: ActorOption = "cli-admin",
    code: Annotated[str | None, typer.Option("--code", "-c", help="Code string (generated if omitted)")] = None,
    max_usage: Annotated[int | None, typer.Option("--max-usage", help="Usage cap")] = None,
    commission_rate: Annotated[float | None, typer.Option("--commission", help="Percent of the discount")] = None,
    expires: Annotated[datetime | None, typer.Option("--expires", help="Expiration date (UTC)")] = None,
) -> None:
    """Assign a new referral code to an agent."""
    try:
        referral_code = ReferralCodeService(db).create_code(
            _admin(actor),
            agent_id=agent_id,
            discount_type=discount_type,
            discount_value=discount_value,
            code=code,
            max_usage=max_usage,
            commission_rate=commission_rate,
            expiration_date=expires,
        )
    except ReferralError as e:
        console.print(f"[bold red]✗[/bold red] {e.message}")
        raise typer.Exit(1)

    console.print(f"[bold green]✓[/bold green] Code created: [bold]{referral_code.code}[/bold] (ID {referral_code.id})")
    console.print(f"  Agent: {referral_code.agent_id}")
    console.print(f"  Discount: {referral_code.discount_value:g} ({referral_code.discount_type})")
    console.print(f"  Commission: {referral_code.commission_rate:g}% of discount")
    console.print(f"  Max usage: {referral_code.max_usage}")


@app.command("list-codes")
def list_codes(
    actor: ActorOption = "cli-admin",
    agent_id: Annotated[str | None, typer.Option("--agent", help="Filter by agent id")] = None,
    status: Annotated[str, typer.Option("--status", "-s", help="all, active, inactive, expired, exhausted")] = "all",
    limit: Annotated[int, typer.Option("--limit", "-l", help="Page size")] = 50,
) -> None:
    """List referral codes."""
    try:
        data = ReferralCodeService(db).list_codes(
            _admin(actor), agent_id=agent_id, status=status, limit=limit
        )
    except ReferralError as e:
        console.print(f"[bold red]✗[/bold red] {e.message}")
        raise typer.Exit(1)

    if not data["codes"]:
        console.print("[yellow]No referral codes found[/yellow]")
        return

    table = Table(title=f"Referral codes ({data['pagination']['total']})")
    table.add_column("ID", style="cyan")
    table.add_column("Code", style="green")
    table.add_column("Agent")
    table.add_column("Discount", justify="right")
    table.add_column("Usage", justify="right")
    table.add_column("Status")

    for item in data["codes"]:
        suffix = "%" if item["discountType"] == "percentage" else ""
        table.add_row(
            str(item["id"]),
            item["code"],
            item["agentId"],
            f"{item['discountValue']:g}{suffix}",
            f"{item['usageCount']}/{item['maxUsage']}",
            item["status"],
        )

    console.print(table)


@app.command("quote")
def quote(
    code: Annotated[str, typer.Argument(help="Referral code")],
    amount: Annotated[float, typer.Argument(help="Order amount")],
    actor: ActorOption = "cli-admin",
) -> None:
    """Preview the discount a code gives on an order (read-only)."""
    try:
        result = ReferralPricingEngine(db).validate(code, amount, _admin(actor))
    except ReferralError as e:
        console.print(f"[bold red]✗[/bold red] {e.message} ({e.error_code})")
        raise typer.Exit(1)

    pricing = result.pricing
    console.print(f"[bold]Original:[/bold] {pricing.original_amount:.2f}")
    console.print(f"[bold]Discount:[/bold] {pricing.discount:.2f} ({pricing.savings_percentage:g}%)")
    console.print(f"[bold]Final:[/bold] {pricing.final_amount:.2f}")
    console.print(f"[bold]Remaining uses:[/bold] {result.remaining_usage}")


@app.command("deactivate")
def deactivate(
    code_id: Annotated[int, typer.Argument(help="Referral code ID")],
    reason: Annotated[str, typer.Option("--reason", "-r", help="Why the code is withdrawn")],
    actor: ActorOption = "cli-admin",
) -> None:
    """Deactivate a referral code."""
    try:
        referral_code = ReferralCodeService(db).deactivate_code(_admin(actor), code_id, reason)
    except ReferralError as e:
        console.print(f"[bold red]✗[/bold red] {e.message}")
        raise typer.Exit(1)

    console.print(f"[bold green]✓[/bold green] Code {referral_code.code} deactivated")


if __name__ == "__main__":
    app()
