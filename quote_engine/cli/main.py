"""
CLI interface for the quote engine.

Provides command-line access to pricing, the status workflow and the
status ledger.
"""

import sqlite3
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from quote_engine.config.loader import EngineConfig, default_engine_config, load_engine_config
from quote_engine.core.discount import discount_from_fields
from quote_engine.core.errors import ValidationError
from quote_engine.core.expiry import compute_expiry_state
from quote_engine.core.pricing import recompute_line_item, recompute_quote_totals
from quote_engine.core.presentation import format_money
from quote_engine.core.workflow import get_available_actions
from quote_engine.logging_config import setup_logging
from quote_engine.storage.models import LineItem, QuoteStatus
from quote_engine.storage.repository import StatusHistoryRepository

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

_state: Dict[str, EngineConfig] = {}


def _config() -> EngineConfig:
    return _state.get("config") or default_engine_config()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to engine configuration YAML"
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level (DEBUG, INFO, WARNING, ERROR)"
    ),
):
    """Quote Engine CLI."""
    setup_logging(level=log_level)
    if config is not None:
        try:
            _state["config"] = load_engine_config(str(config))
        except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
            console.print(f"[red]Error loading config:[/] {str(e)}")
            sys.exit(EXIT_CODE_FAIL)
    else:
        _state.pop("config", None)
    if ctx.invoked_subcommand is None:
        console.print("Quote Engine - Use --help to see available commands")


@app.command()
def init(
    db: Optional[str] = typer.Option(None, "--db", help="Path to the status ledger database"),
):
    """Initialize the status ledger database."""
    db_path = db or _config().storage.db_path
    try:
        StatusHistoryRepository(db_path).initialize()
        console.print(f"[green]✓[/] Status ledger initialized at {db_path}")
        sys.exit(EXIT_CODE_PASS)
    except sqlite3.Error as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _load_line_items(raw_items: List[Dict]) -> List[LineItem]:
    items = []
    for index, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Line item {index} must be a mapping")
        items.append(LineItem(
            id=str(raw.get("id", index)),
            title=str(raw.get("title", "")),
            sku=str(raw.get("sku", "")),
            quantity=raw.get("quantity", 0),
            unit_price=raw.get("unit_price", 0),
            discount=discount_from_fields(
                raw.get("discount_percentage"),
                raw.get("discount_amount"),
            ),
            tax_rate=raw.get("tax_rate", 0),
        ))
    return items


@app.command()
def price(
    quote_file: Path = typer.Argument(..., help="YAML file with line_items and shipping_total"),
    currency: Optional[str] = typer.Option(
        None,
        "--currency",
        help="Currency code used for display"
    ),
):
    """
    Price a quote from a YAML file.

    The file holds a list of line_items (quantity, unit_price, tax_rate and
    at most one of discount_percentage / discount_amount) and an optional
    shipping_total.
    """
    if not quote_file.exists():
        console.print(f"[red]Error:[/] quote file not found: {quote_file}")
        sys.exit(EXIT_CODE_FAIL)

    config = _config()
    try:
        with open(quote_file, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValidationError("Quote file must contain a mapping")

        code = currency or data.get("currency") or config.currency.default
        if not isinstance(code, str):
            raise ValidationError(f"currency must be a currency code, got {code!r}", field="currency")
        code = code.upper()

        items = [recompute_line_item(item) for item in _load_line_items(data.get("line_items") or [])]
        totals = recompute_quote_totals(items, data.get("shipping_total", 0))
    except (ValidationError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    overrides = config.currency.minor_units

    def money(amount) -> str:
        return format_money(amount, code, overrides)

    table = Table(title="Quote Pricing")
    table.add_column("Item")
    table.add_column("Qty", justify="right")
    table.add_column("Unit Price", justify="right")
    table.add_column("Subtotal", justify="right")
    table.add_column("Discount", justify="right")
    table.add_column("Tax", justify="right")
    table.add_column("Total", justify="right")
    for item in items:
        table.add_row(
            item.title or item.sku or item.id,
            str(item.quantity),
            money(item.unit_price),
            money(item.subtotal),
            money(item.discount_amount),
            money(item.tax_amount),
            money(item.total),
        )
    console.print(table)

    console.print(f"Subtotal: {money(totals.subtotal)}")
    console.print(f"Discount: {money(totals.discount_total)}")
    console.print(f"Tax: {money(totals.tax_total)}")
    console.print(f"Shipping: {money(totals.shipping_total)}")
    console.print(f"[bold]Total: {money(totals.total)}[/bold]")
    sys.exit(EXIT_CODE_PASS)


def _parse_status(value: str) -> QuoteStatus:
    try:
        return QuoteStatus(value.lower())
    except ValueError:
        valid = [status.value for status in QuoteStatus]
        console.print(f"[red]Error:[/] unknown status '{value}'. Valid statuses: {valid}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def actions(
    status: str = typer.Argument(..., help="Current quote status, e.g. sent"),
):
    """List the actions available for a quote in the given status."""
    current = _parse_status(status)
    available = get_available_actions(current)
    if not available:
        console.print(f"No actions available from '{current.value}'. Duplicate the quote instead.")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title=f"Actions from {current.value}")
    table.add_column("Action")
    table.add_column("Label")
    table.add_column("Target")
    table.add_column("Confirm")
    for action in available:
        table.add_row(
            action.id,
            action.label,
            action.target_status.value,
            "yes" if action.requires_confirmation else "no",
        )
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


def _parse_datetime(value: str, option: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        console.print(f"[red]Error:[/] {option} must be an ISO 8601 timestamp, got '{value}'")
        sys.exit(EXIT_CODE_FAIL)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@app.command()
def expiry(
    expires_at: str = typer.Argument(..., help="Quote deadline (ISO 8601)"),
    now: Optional[str] = typer.Option(None, "--now", help="Evaluate at this time (ISO 8601)"),
):
    """Show whether a quote deadline has passed."""
    deadline = _parse_datetime(expires_at, "EXPIRES_AT")
    current = _parse_datetime(now, "--now") if now else datetime.now(timezone.utc)
    state = compute_expiry_state(deadline, current)

    if state.is_expired and state.days_remaining == 0:
        console.print("[red]Expired[/] today")
    elif state.is_expired:
        console.print(f"[red]Expired[/] ({abs(state.days_remaining)} days ago)")
    else:
        console.print(f"[green]Valid[/] - expires in {state.days_remaining} days")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def history(
    quote_id: str = typer.Argument(..., help="Quote id"),
    db: Optional[str] = typer.Option(None, "--db", help="Path to the status ledger database"),
):
    """Show the status history of a quote."""
    db_path = db or _config().storage.db_path
    try:
        records = StatusHistoryRepository(db_path).history(quote_id)
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            console.print("\n[bold yellow]No status ledger found[/]")
            console.print("Run `quote-engine init` to initialize the database\n")
            sys.exit(EXIT_CODE_PASS)
        raise

    if not records:
        console.print(f"No status changes recorded for quote {quote_id}")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title=f"Status history for {quote_id}")
    table.add_column("When")
    table.add_column("From")
    table.add_column("To")
    table.add_column("By")
    table.add_column("Comment")
    for record in records:
        table.add_row(
            record.changed_at.isoformat(),
            record.from_status.value,
            record.to_status.value,
            record.changed_by_name,
            record.comment or "",
        )
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


if __name__ == "__main__":
    app()
