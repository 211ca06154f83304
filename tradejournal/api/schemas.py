"""Validated request bodies for the journal API."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tradejournal.journal.journal_models import TradeSide, TradeStatus


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True,
                              extra="ignore", allow_inf_nan=False)


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    local, _, domain = value.partition("@")
    if not local or "." not in domain:
        raise ValueError("Invalid email address")
    return value


Email = Annotated[str, AfterValidator(_normalize_email)]


class RegisterRequest(_Request):
    email: Email
    password: str = Field(min_length=6)
    username: str = Field(min_length=3)
    first_name: str = ""
    last_name: str = ""


class LoginRequest(_Request):
    email: Email
    password: str = Field(min_length=1)


class ProfileUpdateRequest(_Request):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = Field(default=None, min_length=3)
    timezone: Optional[str] = None
    location: Optional[str] = None
    avatar_url: Optional[str] = None


class AccountCreateRequest(_Request):
    account_name: str = Field(min_length=1)
    broker: str = ""


class TradeCreateRequest(_Request):
    symbol: str = Field(min_length=1)
    entry_date: datetime
    entry_price: float = Field(gt=0)
    quantity: float = Field(gt=0)
    side: TradeSide
    account_id: Optional[int] = None
    exit_date: Optional[datetime] = None
    exit_price: Optional[float] = Field(default=None, gt=0)
    status: Optional[TradeStatus] = None
    commission: float = Field(default=0.0, ge=0)
    fees: float = Field(default=0.0, ge=0)
    tags: list[str] = Field(default_factory=list)
    notes: str = ""
    strategy_id: Optional[int] = None


class TradeUpdateRequest(_Request):
    """Partial update: omitted fields keep their stored values."""
    symbol: Optional[str] = Field(default=None, min_length=1)
    entry_date: Optional[datetime] = None
    exit_date: Optional[datetime] = None
    entry_price: Optional[float] = Field(default=None, gt=0)
    exit_price: Optional[float] = Field(default=None, gt=0)
    quantity: Optional[float] = Field(default=None, gt=0)
    side: Optional[TradeSide] = None
    status: Optional[TradeStatus] = None
    commission: Optional[float] = Field(default=None, ge=0)
    fees: Optional[float] = Field(default=None, ge=0)
    tags: Optional[list[str]] = None
    notes: Optional[str] = None


class BulkDeleteRequest(_Request):
    trade_ids: list[int] = Field(default_factory=list)
