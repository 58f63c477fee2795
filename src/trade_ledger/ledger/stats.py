"""Statistics for a set of trades, either one month or the whole history.

``compute_stats`` turns a trade list plus the month's opening capital into a
``StatsBundle``: win rate, profit factor, averages, extremes, long/short
split and a per-pair breakdown.

Win/loss classification uses ``balance_trade`` (before commission); money
totals that feed the balance (``net_result``) use ``final_result``.

Edge cases are values, not errors:

* no trades            -> every rate and average is 0, profit factor 0
* wins but no losses   -> profit factor is ``Decimal("Infinity")``
* operating capital 0  -> month P&L percent is 0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable

from trade_ledger.core.enums import Direction
from trade_ledger.core.models import TradeRecord

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
INFINITE_PROFIT_FACTOR = Decimal("Infinity")


@dataclass
class PairStats:
    """Per-instrument accumulator."""

    trades: int = 0
    profit: Decimal = _ZERO
    wins: int = 0

    @property
    def win_rate(self) -> Decimal:
        return win_rate(self.wins, self.trades)


@dataclass(frozen=True)
class StatsBundle:
    """Aggregate statistics for a scoped set of trades."""

    total_trades: int
    winning_trades: int
    losing_trades: int
    breakeven_trades: int
    win_rate: Decimal
    total_profit: Decimal
    total_loss: Decimal
    net_result: Decimal
    total_commissions: Decimal
    average_win: Decimal
    average_loss: Decimal
    profit_factor: Decimal
    largest_win: Decimal
    largest_loss: Decimal
    month_starting_balance: Decimal
    month_deposit: Decimal
    operating_capital: Decimal
    month_ending_balance: Decimal
    month_pnl: Decimal
    month_pnl_percent: Decimal
    long_trades: int
    short_trades: int
    long_win_rate: Decimal
    short_win_rate: Decimal
    by_pair: dict[str, PairStats] = field(default_factory=dict)

    @property
    def has_infinite_profit_factor(self) -> bool:
        return self.profit_factor.is_infinite()

    def sorted_pairs(self) -> list[tuple[str, PairStats]]:
        """Pairs ordered by profit, best first (ties by name)."""
        return sorted(self.by_pair.items(), key=lambda kv: (-kv[1].profit, kv[0]))

    def to_dict(self) -> dict[str, Any]:
        """Export to a flat dictionary for logging / JSON output."""
        out: dict[str, Any] = {}
        for name in self.__dataclass_fields__:
            if name == "by_pair":
                continue
            value = getattr(self, name)
            out[name] = str(value) if isinstance(value, Decimal) else value
        out["by_pair"] = {
            pair: {"trades": ps.trades, "profit": str(ps.profit), "wins": ps.wins}
            for pair, ps in self.sorted_pairs()
        }
        return out


def win_rate(wins: int, total: int) -> Decimal:
    """Percentage of *wins* in *total*; 0 when there is nothing to measure."""
    if total == 0:
        return _ZERO
    return Decimal(wins) / Decimal(total) * _HUNDRED


def profit_factor(total_profit: Decimal, total_loss: Decimal) -> Decimal:
    """Gross profit over gross loss.

    Infinite when there are gains and no losses, 0 when there are neither.
    """
    if total_loss > 0:
        return total_profit / total_loss
    if total_profit > 0:
        return INFINITE_PROFIT_FACTOR
    return _ZERO


def compute_stats(
    trades: Iterable[TradeRecord],
    starting_balance: Decimal = _ZERO,
    month_deposit: Decimal = _ZERO,
) -> StatsBundle:
    """Compute the statistics bundle for *trades*.

    Parameters
    ----------
    trades : Iterable[TradeRecord]
        Trades in scope (usually one month's).  Order does not matter.
    starting_balance : Decimal
        Balance carried into the period.
    month_deposit : Decimal
        Capital deposited during the period.
    """
    trades = list(trades)
    operating_capital = starting_balance + month_deposit

    winners = [t for t in trades if t.balance_trade > 0]
    losers = [t for t in trades if t.balance_trade < 0]

    total_profit = sum((t.balance_trade for t in winners), _ZERO)
    total_loss = abs(sum((t.balance_trade for t in losers), _ZERO))
    total_commissions = sum((t.commission for t in trades), _ZERO)
    net_result = sum((t.final_result for t in trades), _ZERO)

    longs = [t for t in trades if t.direction == Direction.LONG]
    shorts = [t for t in trades if t.direction == Direction.SHORT]

    by_pair: dict[str, PairStats] = {}
    for trade in trades:
        ps = by_pair.setdefault(trade.pair, PairStats())
        ps.trades += 1
        ps.profit += trade.final_result
        if trade.balance_trade > 0:
            ps.wins += 1

    month_pnl_percent = (
        net_result / operating_capital * _HUNDRED if operating_capital > 0 else _ZERO
    )

    return StatsBundle(
        total_trades=len(trades),
        winning_trades=len(winners),
        losing_trades=len(losers),
        breakeven_trades=len(trades) - len(winners) - len(losers),
        win_rate=win_rate(len(winners), len(trades)),
        total_profit=total_profit,
        total_loss=total_loss,
        net_result=net_result,
        total_commissions=total_commissions,
        average_win=total_profit / len(winners) if winners else _ZERO,
        average_loss=total_loss / len(losers) if losers else _ZERO,
        profit_factor=profit_factor(total_profit, total_loss),
        largest_win=max(t.balance_trade for t in winners) if winners else _ZERO,
        largest_loss=min(t.balance_trade for t in losers) if losers else _ZERO,
        month_starting_balance=starting_balance,
        month_deposit=month_deposit,
        operating_capital=operating_capital,
        month_ending_balance=operating_capital + net_result,
        month_pnl=net_result,
        month_pnl_percent=month_pnl_percent,
        long_trades=len(longs),
        short_trades=len(shorts),
        long_win_rate=win_rate(sum(1 for t in longs if t.balance_trade > 0), len(longs)),
        short_win_rate=win_rate(sum(1 for t in shorts if t.balance_trade > 0), len(shorts)),
        by_pair=by_pair,
    )
