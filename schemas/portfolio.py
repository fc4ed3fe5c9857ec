from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.general import Money, OptionalMoney


class HoldingCreate(BaseModel):
    ticker: str
    quantity: Decimal = Field(gt=0)
    avg_buy_price: Decimal = Field(ge=0)

    @field_validator("ticker")
    @classmethod
    def validate_ticker(cls, value: str) -> str:
        ticker = (value or "").strip().upper()
        if not ticker or len(ticker) > 10:
            raise ValueError("ticker must be 1-10 characters")
        return ticker


class HoldingUpdate(BaseModel):
    quantity: Optional[Decimal] = Field(default=None, gt=0)
    avg_buy_price: Optional[Decimal] = Field(default=None, ge=0)


class HoldingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticker: str
    quantity: Decimal
    avg_buy_price: Money


class AssetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ticker: str
    name: str
    asset_type: str
    source: str
    api_ticker: Optional[str] = None
    currency: str
    icon_url: Optional[str] = None
    current_price: OptionalMoney = None
    last_updated: Optional[datetime] = None


class InvestmentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ticker: str
    name: str
    quantity: Decimal
    avg_buy_price: Money
    avg_buy_price_converted: Money
    current_price: Money
    current_price_converted: Money
    total_value: Money
    total_value_converted: Money
    total_cost: Money
    change_pct: Money
    currency: str
    asset_currency: str
    price_status: str
    last_updated: Optional[datetime] = None
    icon_url: Optional[str] = None


class PortfolioOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    items: List[InvestmentSummary]
    total_cost: Money
    total_value: Money
    absolute_change: Money
    currency: str


class RefreshOut(BaseModel):
    updated: int
