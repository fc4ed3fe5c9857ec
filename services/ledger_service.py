from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.orm import Query, Session

from models.category import Category
from models.pocket import Pocket
from models.transaction import Transaction
from models.user import User
from schemas.transaction import TransactionCreate, TransactionUpdate
from services.currency_service import NormalizedAmount, ensure_known_currency, normalize_amount
from services.errors import (
    AlreadyDeleted,
    NotDeleted,
    NotFoundError,
    TransferLegImmutable,
    TransferNotRestorable,
    ValidationError,
)
from services.unit_of_work import unit_of_work
from utils.common_helpers import ensure_utc, to_decimal, utc_now

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass
class TransactionPage:
    items: List[Transaction]
    total: int
    page: int
    limit: int
    total_pages: int


# -----------------------
# Read accessors
# -----------------------

def live_transactions(db: Session, user_id: int) -> Query:
    """The only way aggregates read the ledger: tombstoned rows never leak through."""
    return db.query(Transaction).filter(
        Transaction.user_id == user_id,
        Transaction.deleted_at.is_(None),
    )


def signed_amount():
    # income adds to cash, everything else (transfer out included) takes from it
    return case((Category.is_income.is_(True), Transaction.amount), else_=-Transaction.amount)


def live_cash_balance(db: Session, user_id: int, pocket_id: Optional[int] = None):
    stmt = (
        select(func.coalesce(func.sum(signed_amount()), 0))
        .select_from(Transaction)
        .join(Category, Transaction.category_id == Category.id)
        .where(Transaction.user_id == user_id, Transaction.deleted_at.is_(None))
    )
    if pocket_id is not None:
        stmt = stmt.where(Transaction.pocket_id == pocket_id)
    return to_decimal(db.execute(stmt).scalar())


def user_has_transactions(db: Session, user_id: int) -> bool:
    # tombstones count: their stored amounts are in the current base currency too
    return db.query(Transaction.id).filter(Transaction.user_id == user_id).first() is not None


def resolve_pocket(db: Session, user_id: int, pocket_id: int, *, lock: bool = False) -> Pocket:
    q = db.query(Pocket).filter(Pocket.id == pocket_id, Pocket.user_id == user_id)
    if lock:
        q = q.with_for_update()
    pocket = q.first()
    if not pocket:
        raise NotFoundError("Pocket not found")
    return pocket


def get_default_pocket(db: Session, user_id: int) -> Pocket:
    pocket = db.query(Pocket).filter(Pocket.user_id == user_id, Pocket.is_default.is_(True)).first()
    if not pocket:
        raise NotFoundError("Default pocket not found")
    return pocket


def _resolve_user_category(db: Session, category_id: int) -> Category:
    category = db.get(Category, category_id)
    if not category:
        raise NotFoundError("Category not found")
    if category.exclude_from_analysis:
        raise ValidationError("Transfer categories are reserved for pocket transfers")
    return category


def _owned_transaction(db: Session, user_id: int, tx_id: int, *, lock: bool = False) -> Transaction:
    q = db.query(Transaction).filter(Transaction.id == tx_id, Transaction.user_id == user_id)
    if lock:
        q = q.with_for_update(of=Transaction)
    tx = q.first()
    if not tx:
        raise NotFoundError("Transaction not found")
    return tx


def _legs(db: Session, tx: Transaction) -> List[Transaction]:
    if not tx.transfer_id:
        return [tx]
    return (
        db.query(Transaction)
        .filter(Transaction.user_id == tx.user_id, Transaction.transfer_id == tx.transfer_id)
        .with_for_update(of=Transaction)
        .all()
    )


def _clean_description(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


# -----------------------
# Writes
# -----------------------

def add_entry(
    db: Session,
    *,
    user_id: int,
    pocket_id: int,
    category_id: int,
    normalized: NormalizedAmount,
    occurred_at: datetime,
    description: Optional[str] = None,
    transfer_id: Optional[str] = None,
) -> Transaction:
    """Stage one ledger row; the caller's unit of work decides when it commits."""
    tx = Transaction(
        user_id=user_id,
        pocket_id=pocket_id,
        category_id=category_id,
        amount=normalized.amount,
        original_currency=normalized.original_currency,
        original_amount=normalized.original_amount,
        exchange_rate=normalized.exchange_rate,
        description=_clean_description(description),
        transfer_id=transfer_id,
        occurred_at=ensure_utc(occurred_at),
        created_at=utc_now(),
    )
    db.add(tx)
    db.flush()
    return tx


def create_transaction(
    db: Session,
    user: User,
    payload: TransactionCreate,
    *,
    exchange_rate=None,
) -> Transaction:
    if payload.currency_code:
        ensure_known_currency(db, payload.currency_code)
    rate = exchange_rate if exchange_rate is not None else payload.exchange_rate
    normalized = normalize_amount(payload.amount, payload.currency_code, user.base_currency, rate)

    category = _resolve_user_category(db, payload.category_id)
    if payload.pocket_id is not None:
        pocket = resolve_pocket(db, user.id, payload.pocket_id)
    else:
        pocket = get_default_pocket(db, user.id)

    with unit_of_work(db):
        tx = add_entry(
            db,
            user_id=user.id,
            pocket_id=pocket.id,
            category_id=category.id,
            normalized=normalized,
            occurred_at=payload.occurred_at,
            description=payload.description,
        )

    logger.info("transaction_created id=%s converted=%s", tx.id, normalized.original_currency is not None)
    return tx


def update_transaction(
    db: Session,
    user: User,
    tx_id: int,
    payload: TransactionUpdate,
    *,
    exchange_rate=None,
) -> Transaction:
    fields = payload.model_dump(exclude_unset=True)

    with unit_of_work(db):
        tx = _owned_transaction(db, user.id, tx_id, lock=True)
        if tx.deleted_at is not None:
            raise NotFoundError("Transaction not found")
        if tx.is_transfer_leg:
            raise TransferLegImmutable()

        if {"amount", "currency_code", "exchange_rate"} & fields.keys():
            amount = fields.get("amount")
            if amount is None:
                amount = tx.original_amount if tx.original_currency else tx.amount
            currency = fields.get("currency_code") or tx.original_currency or user.base_currency
            ensure_known_currency(db, currency)

            rate = exchange_rate if exchange_rate is not None else fields.get("exchange_rate")
            if rate is None and tx.original_currency and currency == tx.original_currency:
                rate = tx.exchange_rate

            normalized = normalize_amount(amount, currency, user.base_currency, rate)
            tx.amount = normalized.amount
            tx.original_currency = normalized.original_currency
            tx.original_amount = normalized.original_amount
            tx.exchange_rate = normalized.exchange_rate

        if fields.get("category_id") is not None:
            tx.category_id = _resolve_user_category(db, fields["category_id"]).id
        if fields.get("pocket_id") is not None:
            tx.pocket_id = resolve_pocket(db, user.id, fields["pocket_id"]).id
        if "description" in fields:
            tx.description = _clean_description(fields["description"])
        if fields.get("occurred_at") is not None:
            tx.occurred_at = ensure_utc(fields["occurred_at"])

    db.refresh(tx)
    return tx


def soft_delete_transaction(db: Session, user: User, tx_id: int) -> List[Transaction]:
    """Tombstone a transaction; a transfer leg takes its sibling with it."""
    with unit_of_work(db):
        tx = _owned_transaction(db, user.id, tx_id, lock=True)
        if tx.deleted_at is not None:
            raise AlreadyDeleted()
        now = utc_now()
        legs = _legs(db, tx)
        for leg in legs:
            leg.deleted_at = now

    logger.info("transaction_deleted id=%s legs=%d", tx_id, len(legs))
    return legs


def restore_transaction(db: Session, user: User, tx_id: int) -> List[Transaction]:
    with unit_of_work(db):
        tx = _owned_transaction(db, user.id, tx_id, lock=True)
        if tx.deleted_at is None:
            raise NotDeleted()
        legs = _legs(db, tx)
        # a pocket delete may have folded both tombstoned legs into the default pocket
        if len(legs) > 1 and len({leg.pocket_id for leg in legs}) < len(legs):
            raise TransferNotRestorable()
        for leg in legs:
            leg.deleted_at = None

    logger.info("transaction_restored id=%s legs=%d", tx_id, len(legs))
    return legs


# -----------------------
# Queries
# -----------------------

def get_transaction(db: Session, user: User, tx_id: int) -> Transaction:
    tx = live_transactions(db, user.id).filter(Transaction.id == tx_id).first()
    if not tx:
        raise NotFoundError("Transaction not found")
    return tx


def list_transactions(
    db: Session,
    user: User,
    *,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    pocket_id: Optional[int] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> TransactionPage:
    start_date, end_date = ensure_utc(start_date), ensure_utc(end_date)
    if start_date and end_date and end_date < start_date:
        raise ValidationError("End date cannot be before start date")

    limit = max(1, min(limit, MAX_PAGE_SIZE))
    page = max(1, page)

    q = live_transactions(db, user.id)
    if start_date:
        q = q.filter(Transaction.occurred_at >= start_date)
    if end_date:
        q = q.filter(Transaction.occurred_at <= end_date)
    if pocket_id is not None:
        q = q.filter(Transaction.pocket_id == pocket_id)

    total = q.order_by(None).count()
    items = (
        q.order_by(Transaction.occurred_at.desc(), Transaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return TransactionPage(
        items=items,
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


def list_categories(db: Session) -> List[Category]:
    return db.query(Category).order_by(Category.name.asc()).all()
