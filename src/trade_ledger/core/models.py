"""Core domain models used across the trade ledger.

These are the canonical "truth models" for the system.  Storage backends,
the snapshot format and the CLI all round-trip these same types.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError, computed_field, field_validator
from pydantic.alias_generators import to_camel

from .enums import Direction, TradeOutcome
from .errors import TradeValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def _require_finite(value: Decimal) -> Decimal:
    if not value.is_finite():
        raise ValueError("must be a finite number")
    return value


# ---------------------------------------------------------------------------
# Trades
# ---------------------------------------------------------------------------

class TradeFields(BaseModel):
    """User-supplied fields of a trade, shared by drafts and records."""

    date: dt.date
    pair: str
    direction: Direction
    balance_trade: Decimal  # raw gain/loss before commission
    commission: Decimal = Field(default=Decimal("0"), ge=0)
    notes: str = ""

    @field_validator("pair")
    @classmethod
    def _normalize_pair(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("pair must not be empty")
        return v

    @field_validator("balance_trade", "commission")
    @classmethod
    def _finite_amount(cls, v: Decimal) -> Decimal:
        return _require_finite(v)

    @field_validator("notes", mode="before")
    @classmethod
    def _notes_default(cls, v: Any) -> Any:
        return "" if v is None else v


class TradeDraft(TradeFields):
    """A trade as entered by the user, before the ledger assigns identity.

    Unknown keys (including any caller-supplied ``final_result``) are ignored.
    """


class TradeRecord(TradeFields):
    """A logged trade.

    ``final_result`` is always derived from ``balance_trade - commission``
    and is never read from input.
    """

    model_config = {"frozen": True}

    id: str
    created_at: dt.datetime

    @field_validator("created_at")
    @classmethod
    def _utc_created_at(cls, v: dt.datetime) -> dt.datetime:
        # Naive timestamps are taken as UTC.
        if v.tzinfo is None:
            return v.replace(tzinfo=dt.timezone.utc)
        return v.astimezone(dt.timezone.utc)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def final_result(self) -> Decimal:
        """Net contribution to the account balance after commission."""
        return self.balance_trade - self.commission

    @property
    def outcome(self) -> TradeOutcome:
        if self.balance_trade > 0:
            return TradeOutcome.WIN
        if self.balance_trade < 0:
            return TradeOutcome.LOSS
        return TradeOutcome.BREAKEVEN


# ---------------------------------------------------------------------------
# Deposits
# ---------------------------------------------------------------------------

class MonthlyDeposit(BaseModel):
    """Capital added to the account during one month."""

    model_config = {"frozen": True}

    deposit: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("deposit")
    @classmethod
    def _finite_deposit(cls, v: Decimal) -> Decimal:
        return _require_finite(v)


# ---------------------------------------------------------------------------
# Account settings
# ---------------------------------------------------------------------------

class AccountSettings(BaseModel):
    """Per-account configuration: opening balance, base month, risk sizing.

    Serialised with camelCase keys (``initialAccountBalance``, ``baseMonth``,
    ...) and accepted under either spelling.  Percentages are fractions.
    """

    model_config = {
        "frozen": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    account_capital: Decimal = Field(default=Decimal("170"), ge=0)
    risk_per_trade: Decimal = Field(default=Decimal("0.01"), ge=0, le=1)
    max_daily_risk: Decimal = Field(default=Decimal("0.03"), ge=0, le=1)
    default_leverage: Decimal = Field(default=Decimal("3"), gt=0)
    max_margin_percent: Decimal = Field(default=Decimal("0.25"), ge=0, le=1)
    initial_account_balance: Decimal = Decimal("0")
    base_month: str | None = None

    @field_validator(
        "account_capital",
        "risk_per_trade",
        "max_daily_risk",
        "default_leverage",
        "max_margin_percent",
        "initial_account_balance",
    )
    @classmethod
    def _finite(cls, v: Decimal) -> Decimal:
        return _require_finite(v)

    @field_validator("base_month")
    @classmethod
    def _check_base_month(cls, v: str | None) -> str | None:
        if v in (None, ""):
            return None
        from trade_ledger.ledger.months import validate_month_key

        return validate_month_key(v)

    def with_changes(self, **changes: Any) -> AccountSettings:
        """Return a re-validated copy with *changes* applied."""
        data = self.model_dump()
        data.update(changes)
        return validate_model(AccountSettings, data, "settings")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def validation_messages(exc: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into ``"field: message"`` strings."""
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "value"
        messages.append(f"{loc}: {err['msg']}")
    return messages


def validate_model(model_cls: type[ModelT], data: Any, what: str) -> ModelT:
    """Validate *data* as *model_cls*, raising ``TradeValidationError``."""
    try:
        return model_cls.model_validate(data)
    except ValidationError as exc:
        messages = validation_messages(exc)
        raise TradeValidationError(
            f"Invalid {what}: " + "; ".join(messages), messages
        ) from exc
