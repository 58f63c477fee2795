"""Risk-sizing figures derived from account settings."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from trade_ledger.core.models import AccountSettings


@dataclass(frozen=True)
class RiskBudget:
    risk_amount: Decimal            # max loss per trade
    max_daily_risk_amount: Decimal  # max loss per day
    max_margin_amount: Decimal      # max margin committed at once
    default_leverage: Decimal


def risk_budget(settings: AccountSettings) -> RiskBudget:
    capital = settings.account_capital
    return RiskBudget(
        risk_amount=capital * settings.risk_per_trade,
        max_daily_risk_amount=capital * settings.max_daily_risk,
        max_margin_amount=capital * settings.max_margin_percent,
        default_leverage=settings.default_leverage,
    )
