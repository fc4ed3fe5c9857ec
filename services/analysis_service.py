from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.category import Category
from models.transaction import Transaction
from models.user import User
from services.errors import ValidationError
from services.ledger_service import live_cash_balance, live_transactions
from services.portfolio_service import get_portfolio
from utils.common_helpers import ensure_utc, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class CategoryTotal:
    category_id: int
    name: str
    icon: str
    is_income: bool
    total: Decimal


@dataclass
class CategoryAnalysis:
    categories: List[CategoryTotal] = field(default_factory=list)
    total_income: Decimal = ZERO
    total_spent: Decimal = ZERO
    net_income: Decimal = ZERO
    currency: str = "SGD"


@dataclass
class NetWorth:
    cash_balance: Decimal
    investment_balance: Decimal
    total_net_worth: Decimal
    currency: str


def category_analysis(
    db: Session,
    user: User,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> CategoryAnalysis:
    """
    Spending and income per category over an optional date range.

    Reads through `live_transactions`, so tombstones never count, and skips
    categories flagged exclude_from_analysis (the transfer pair): moving
    money between pockets is neither income nor spending.
    """
    start_date, end_date = ensure_utc(start_date), ensure_utc(end_date)
    if start_date and end_date and end_date < start_date:
        raise ValidationError("End date cannot be before start date")

    total = func.sum(Transaction.amount).label("total")
    q = (
        live_transactions(db, user.id)
        .join(Category, Transaction.category_id == Category.id)
        .filter(Category.exclude_from_analysis.is_(False))
    )
    if start_date:
        q = q.filter(Transaction.occurred_at >= start_date)
    if end_date:
        q = q.filter(Transaction.occurred_at <= end_date)

    rows = (
        q.with_entities(Category.id, Category.name, Category.icon, Category.is_income, total)
        .group_by(Category.id, Category.name, Category.icon, Category.is_income)
        .order_by(total.desc(), Category.name.asc())
        .all()
    )

    out = CategoryAnalysis(currency=user.base_currency)
    for cat_id, name, icon, is_income, amount in rows:
        amount = to_decimal(amount)
        out.categories.append(
            CategoryTotal(category_id=cat_id, name=name, icon=icon, is_income=bool(is_income), total=amount)
        )
        if is_income:
            out.total_income += amount
        else:
            out.total_spent += amount

    out.net_income = out.total_income - out.total_spent
    return out


def net_worth(db: Session, user: User, rates: Dict[str, Decimal]) -> NetWorth:
    # both transfer legs are in the cash sum and cancel out
    cash = live_cash_balance(db, user.id)
    investment = get_portfolio(db, user, rates).total_value
    return NetWorth(
        cash_balance=cash,
        investment_balance=investment,
        total_net_worth=cash + investment,
        currency=user.base_currency,
    )
