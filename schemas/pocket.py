from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from schemas.general import Money


def _clean_name(value: str) -> str:
    name = (value or "").strip()
    if not name or len(name) > 50:
        raise ValueError("name must be 1-50 characters")
    return name


class PocketCreate(BaseModel):
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _clean_name(value)


class PocketUpdate(BaseModel):
    # no is_default: the default pocket is fixed at signup
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _clean_name(value)


class PocketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    icon: str
    is_default: bool
    created_at: Optional[datetime] = None
    balance: Optional[Money] = None


class TransferRequest(BaseModel):
    source_pocket_id: int
    destination_pocket_id: int
    amount: Decimal
    description: Optional[str] = None


class TransferOut(BaseModel):
    transfer_id: str
    out_transaction_id: int
    in_transaction_id: int
    amount: Money
    occurred_at: datetime
