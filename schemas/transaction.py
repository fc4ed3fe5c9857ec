from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from schemas.general import Money, OptionalMoney


def _clean_currency(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    code = value.strip().upper()
    if len(code) != 3:
        raise ValueError("currency_code must be a 3-letter ISO code")
    return code


class TransactionCreate(BaseModel):
    amount: Decimal
    description: Optional[str] = None
    category_id: int
    occurred_at: datetime
    currency_code: Optional[str] = None
    exchange_rate: Optional[Decimal] = None  # skip the FX lookup when the caller already knows the rate
    pocket_id: Optional[int] = None

    @field_validator("currency_code")
    @classmethod
    def validate_currency(cls, value: Optional[str]) -> Optional[str]:
        return _clean_currency(value)


class TransactionUpdate(BaseModel):
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    pocket_id: Optional[int] = None
    occurred_at: Optional[datetime] = None
    currency_code: Optional[str] = None
    exchange_rate: Optional[Decimal] = None

    @field_validator("currency_code")
    @classmethod
    def validate_currency(cls, value: Optional[str]) -> Optional[str]:
        return _clean_currency(value)


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    is_income: bool
    icon: str
    exclude_from_analysis: bool = False


class PocketSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    icon: str


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: Money
    description: Optional[str] = None
    category: Optional[CategoryOut] = None
    pocket: Optional[PocketSummary] = None
    transfer_id: Optional[str] = None
    occurred_at: datetime
    created_at: Optional[datetime] = None


class TransactionDetailOut(TransactionOut):
    original_currency: Optional[str] = None
    original_amount: OptionalMoney = None
    exchange_rate: Optional[Decimal] = None
