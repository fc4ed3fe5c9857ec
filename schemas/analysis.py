from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict

from schemas.general import Money


class CategoryBreakdown(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category_id: int
    name: str
    icon: str
    is_income: bool
    total: Money


class CategoryAnalysisOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    categories: List[CategoryBreakdown]
    total_income: Money
    total_spent: Money
    net_income: Money
    currency: str


class NetWorthOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    cash_balance: Money
    investment_balance: Money
    total_net_worth: Money
    currency: str
