"""CLI entry point for the trade ledger."""

from __future__ import annotations

import asyncio
import json
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeVar

import click

from .core.config import Settings, load_settings
from .core.enums import Direction
from .core.errors import LedgerError
from .ledger.export import TradeExporter
from .ledger.months import is_month_key
from .ledger.query import SORTABLE_FIELDS, filter_trades
from .ledger.tracker import TradeTracker
from .observability.logger import setup_logging
from .storage.factory import build_backend, build_fallback

T = TypeVar("T")


def _money(value: Decimal) -> str:
    if value.is_infinite():
        return "inf"
    return f"{value:,.2f}"


def _check_month(ctx: click.Context, param: click.Parameter, value: str | None) -> str | None:
    if value is not None and not is_month_key(value):
        raise click.BadParameter(f"{value!r} is not a month, expected YYYY-MM")
    return value


def _run(settings: Settings, action: Callable[[TradeTracker], Awaitable[T]]) -> T:
    """Load the ledger, run *action* against it, report notices and errors."""

    async def runner() -> T:
        backend = build_backend(settings)
        tracker = TradeTracker(backend, fallback=build_fallback(settings, backend))
        try:
            await tracker.load()
            return await action(tracker)
        finally:
            close = getattr(backend, "close", None)
            if close is not None:
                await close()
            for notice in tracker.drain_notices():
                click.echo(f"[{notice.level.value}] {notice.message}", err=True)

    try:
        return asyncio.run(runner())
    except LedgerError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option("--config", "config_path", default="configs/ledger.toml", help="Config file path")
@click.option("--data-dir", default=None, help="Local data directory override")
@click.pass_context
def main(ctx: click.Context, config_path: str, data_dir: str | None) -> None:
    """Trading performance ledger."""
    overrides: dict[str, Any] = {}
    if data_dir:
        overrides["storage"] = {"data_dir": data_dir}
    try:
        settings = load_settings(config_path, overrides)
    except LedgerError as exc:
        raise click.ClickException(str(exc)) from exc
    setup_logging(settings.observability.log_level, settings.observability.log_format)
    ctx.obj = settings


# ---------------------------------------------------------------------------
# Trades
# ---------------------------------------------------------------------------

@main.command()
@click.option("--date", "trade_date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Trade date (YYYY-MM-DD, default today)")
@click.option("--pair", required=True, help="Instrument, e.g. BTC")
@click.option("--direction", type=click.Choice([d.value for d in Direction]), default="Long")
@click.option("--balance", required=True, help="Gain/loss before commission")
@click.option("--commission", default="0", help="Fee paid")
@click.option("--notes", default="", help="Free text")
@click.pass_obj
def add(
    settings: Settings,
    trade_date,
    pair: str,
    direction: str,
    balance: str,
    commission: str,
    notes: str,
) -> None:
    """Log a trade."""
    draft = {
        "date": (trade_date.date() if trade_date else date.today()),
        "pair": pair,
        "direction": direction,
        "balance_trade": balance,
        "commission": commission,
        "notes": notes,
    }

    async def action(tracker: TradeTracker):
        return await tracker.add_trade(draft)

    record = _run(settings, action)
    click.echo(f"Added {record.id}  {record.date}  {record.pair}  {_money(record.final_result)}")


@main.command()
@click.argument("trade_id")
@click.option("--date", "trade_date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.option("--pair", default=None)
@click.option("--direction", type=click.Choice([d.value for d in Direction]), default=None)
@click.option("--balance", default=None)
@click.option("--commission", default=None)
@click.option("--notes", default=None)
@click.pass_obj
def update(settings: Settings, trade_id: str, trade_date, pair, direction, balance, commission, notes) -> None:
    """Change fields of a logged trade."""
    changes = {
        "date": trade_date.date() if trade_date else None,
        "pair": pair,
        "direction": direction,
        "balance_trade": balance,
        "commission": commission,
        "notes": notes,
    }
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        raise click.UsageError("Nothing to update.")

    async def action(tracker: TradeTracker):
        return await tracker.update_trade(trade_id, changes)

    record = _run(settings, action)
    click.echo(f"Updated {record.id}  final result {_money(record.final_result)}")


@main.command()
@click.argument("trade_id")
@click.pass_obj
def delete(settings: Settings, trade_id: str) -> None:
    """Delete a logged trade."""

    async def action(tracker: TradeTracker):
        return await tracker.delete_trade(trade_id)

    record = _run(settings, action)
    click.echo(f"Deleted {record.id}")


@main.command("list")
@click.option("--month", default=None, callback=_check_month, help="Month (YYYY-MM); all trades if omitted")
@click.option("--search", default=None, help="Match pair or notes")
@click.option("--direction", type=click.Choice([d.value for d in Direction]), default=None)
@click.option("--sort", "sort_key", type=click.Choice(SORTABLE_FIELDS), default="date")
@click.option("--asc", is_flag=True, help="Oldest / smallest first")
@click.pass_obj
def list_trades(settings: Settings, month, search, direction, sort_key, asc) -> None:
    """List trades."""

    async def action(tracker: TradeTracker):
        trades = tracker.month_trades(month) if month else tracker.trades
        return filter_trades(
            trades, search=search, direction=direction, sort_key=sort_key, descending=not asc
        )

    trades = _run(settings, action)
    if not trades:
        click.echo("No trades found.")
        return

    click.echo(f"\n{'ID':10s} {'Date':10s} {'Pair':10s} {'Dir':5s} {'Balance':>12s} {'Comm':>9s} {'Final':>12s}")
    click.echo("-" * 74)
    for t in trades:
        click.echo(
            f"{t.id[:8]:10s} {t.date.isoformat():10s} {t.pair:10s} {t.direction.value:5s} "
            f"{_money(t.balance_trade):>12s} {_money(t.commission):>9s} {_money(t.final_result):>12s}"
        )
    click.echo(f"\n({len(trades)} trades)")


# ---------------------------------------------------------------------------
# Deposits & settings
# ---------------------------------------------------------------------------

@main.command()
@click.argument("month", callback=_check_month)
@click.argument("amount")
@click.pass_obj
def deposit(settings: Settings, month: str, amount: str) -> None:
    """Set the deposit for MONTH (YYYY-MM)."""

    async def action(tracker: TradeTracker):
        return await tracker.set_deposit(month, amount)

    entry = _run(settings, action)
    click.echo(f"Deposit for {month}: {_money(entry.deposit)}")


@main.command("settings")
@click.option("--initial-balance", default=None, help="Balance at the base month")
@click.option("--base-month", default=None, help="Anchor month (YYYY-MM); empty string clears")
@click.option("--account-capital", default=None)
@click.option("--risk-per-trade", default=None, help="Fraction, e.g. 0.01")
@click.option("--max-daily-risk", default=None, help="Fraction, e.g. 0.03")
@click.option("--leverage", default=None)
@click.option("--max-margin", default=None, help="Fraction, e.g. 0.25")
@click.pass_obj
def settings_cmd(settings: Settings, **options: str | None) -> None:
    """Show or change account settings."""
    field_names = {
        "initial_balance": "initial_account_balance",
        "base_month": "base_month",
        "account_capital": "account_capital",
        "risk_per_trade": "risk_per_trade",
        "max_daily_risk": "max_daily_risk",
        "leverage": "default_leverage",
        "max_margin": "max_margin_percent",
    }
    changes = {field_names[k]: v for k, v in options.items() if v is not None}

    async def action(tracker: TradeTracker):
        if changes:
            await tracker.update_settings(**changes)
        return tracker.settings, tracker.risk_budget()

    account, budget = _run(settings, action)
    click.echo(f"  Initial balance:   {_money(account.initial_account_balance)}")
    click.echo(f"  Base month:        {account.base_month or '(earliest trade month)'}")
    click.echo(f"  Account capital:   {_money(account.account_capital)}")
    click.echo(f"  Risk per trade:    {account.risk_per_trade * 100:.2f}%  = {_money(budget.risk_amount)}")
    click.echo(f"  Max daily risk:    {account.max_daily_risk * 100:.2f}%  = {_money(budget.max_daily_risk_amount)}")
    click.echo(f"  Default leverage:  {account.default_leverage}x")
    click.echo(f"  Max margin:        {account.max_margin_percent * 100:.2f}%  = {_money(budget.max_margin_amount)}")


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

@main.command()
@click.option("--month", default=None, callback=_check_month, help="Month (YYYY-MM), default current month")
@click.option("--all-time", is_flag=True, help="Statistics over every trade")
@click.option("--json", "as_json", is_flag=True, help="Machine-readable output")
@click.pass_obj
def stats(settings: Settings, month: str | None, all_time: bool, as_json: bool) -> None:
    """Show month (or all-time) statistics."""

    async def action(tracker: TradeTracker):
        if all_time:
            return "all time", tracker.all_time_stats()
        key = month or tracker.current_month()
        return key, tracker.month_stats(key)

    label, bundle = _run(settings, action)
    if as_json:
        click.echo(json.dumps({"scope": label, **bundle.to_dict()}, indent=2))
        return

    click.echo(f"\n{'=' * 50}")
    click.echo(f"STATISTICS - {label}")
    click.echo(f"{'=' * 50}")
    click.echo(f"  Starting balance:  {_money(bundle.month_starting_balance)}")
    click.echo(f"  Deposit:           {_money(bundle.month_deposit)}")
    click.echo(f"  Operating capital: {_money(bundle.operating_capital)}")
    click.echo(f"  P&L:               {_money(bundle.month_pnl)} ({bundle.month_pnl_percent:+.2f}%)")
    click.echo(f"  Ending balance:    {_money(bundle.month_ending_balance)}")
    click.echo(f"  Trades:            {bundle.total_trades} "
               f"({bundle.winning_trades}W / {bundle.losing_trades}L / {bundle.breakeven_trades}BE)")
    click.echo(f"  Win rate:          {bundle.win_rate:.1f}%")
    click.echo(f"  Profit factor:     {_money(bundle.profit_factor)}")
    click.echo(f"  Total profit:      {_money(bundle.total_profit)}  avg {_money(bundle.average_win)}")
    click.echo(f"  Total loss:        -{_money(bundle.total_loss)}  avg -{_money(bundle.average_loss)}")
    click.echo(f"  Commissions:       -{_money(bundle.total_commissions)}")
    click.echo(f"  Long / Short:      {bundle.long_trades} ({bundle.long_win_rate:.1f}%) / "
               f"{bundle.short_trades} ({bundle.short_win_rate:.1f}%)")
    if bundle.by_pair:
        click.echo("\n  By pair:")
        for pair, ps in bundle.sorted_pairs():
            click.echo(f"    {pair:10s} {ps.trades:>4d} trades  {ps.wins:>4d} wins  {_money(ps.profit):>12s}")
    click.echo()


@main.command()
@click.option("--start", default=None, callback=_check_month, help="First month (YYYY-MM), default base month")
@click.option("--end", default=None, callback=_check_month, help="Last month (YYYY-MM), default latest month with data")
@click.pass_obj
def balance(settings: Settings, start: str | None, end: str | None) -> None:
    """Show the month-by-month balance timeline."""

    async def action(tracker: TradeTracker):
        return tracker.timeline(start, end)

    rows = _run(settings, action)
    click.echo(f"\n{'Month':8s} {'Start':>12s} {'Deposit':>10s} {'P&L':>12s} {'End':>12s}")
    click.echo("-" * 58)
    for row in rows:
        click.echo(
            f"{row.month:8s} {_money(row.starting_balance):>12s} {_money(row.deposit):>10s} "
            f"{_money(row.pnl):>12s} {_money(row.ending_balance):>12s}"
        )
    click.echo()


@main.command()
@click.pass_obj
def totals(settings: Settings) -> None:
    """Show all-time totals."""

    async def action(tracker: TradeTracker):
        return tracker.total_balance()

    total = _run(settings, action)
    click.echo(f"  Initial capital:   {_money(total.initial_capital)}")
    click.echo(f"  Total deposits:    {_money(total.total_deposits)}")
    click.echo(f"  All-time P&L:      {_money(total.all_time_pnl)}")
    click.echo(f"  Current balance:   {_money(total.current_balance)}")


# ---------------------------------------------------------------------------
# Backup
# ---------------------------------------------------------------------------

@main.command("export")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--csv", "as_csv", is_flag=True, help="Trades only, as CSV")
@click.pass_obj
def export_cmd(settings: Settings, path: Path, as_csv: bool) -> None:
    """Write a JSON backup (or a CSV of trades) to PATH."""

    async def action(tracker: TradeTracker):
        if as_csv:
            return TradeExporter().to_csv(tracker.trades)
        return tracker.export_snapshot()

    text = _run(settings, action)
    path.write_text(text, encoding="utf-8")
    click.echo(f"Exported to {path}")


@main.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def import_cmd(settings: Settings, path: Path) -> None:
    """Replace the ledger with a JSON backup from PATH."""
    raw = path.read_text(encoding="utf-8")

    async def action(tracker: TradeTracker):
        await tracker.import_snapshot(raw)
        return len(tracker.trades)

    count = _run(settings, action)
    click.echo(f"Imported {count} trades from {path}")


if __name__ == "__main__":
    main()
