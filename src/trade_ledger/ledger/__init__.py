"""Ledger & statistics engine.

Turns logged trades, monthly deposits and account settings into a
month-by-month balance timeline, per-month statistics and all-time totals.

Key components
--------------
TradeStore         Validated, id-keyed collection of trade records
DepositLedger      Deposit per month key (absent = 0)
BalanceResolver    Starting / ending balance for any month, from a base month
compute_stats      Win rate, profit factor, averages, long/short and per-pair
compute_total_balance   Flat all-time sums
TradeTracker       Owner of the in-memory ledger; persistence with fallback
                   (import from ``trade_ledger.ledger.tracker``)

Display helpers
---------------
filter_trades      Search / direction filter / sort
equity_curve       Running balance after each trade
risk_budget        Risk amounts from account settings
TradeExporter      CSV / JSON trade export, monthly summary rows
"""

from .balance import BalanceResolver, MonthBalance
from .equity import EquityPoint, equity_curve
from .export import TradeExporter
from .months import iter_months, month_key_of, next_month, previous_month
from .query import filter_trades
from .risk import RiskBudget, risk_budget
from .snapshot import LedgerSnapshot, dump_snapshot, parse_snapshot
from .stats import PairStats, StatsBundle, compute_stats
from .store import DepositLedger, TradeStore
from .totals import TotalBalance, compute_total_balance

__all__ = [
    "BalanceResolver",
    "MonthBalance",
    "EquityPoint",
    "equity_curve",
    "TradeExporter",
    "iter_months",
    "month_key_of",
    "next_month",
    "previous_month",
    "filter_trades",
    "RiskBudget",
    "risk_budget",
    "LedgerSnapshot",
    "dump_snapshot",
    "parse_snapshot",
    "PairStats",
    "StatsBundle",
    "compute_stats",
    "DepositLedger",
    "TradeStore",
    "TotalBalance",
    "compute_total_balance",
]
