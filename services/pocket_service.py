from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from config import settings
from models.category import TRANSFER_IN, TRANSFER_OUT, Category
from models.pocket import Pocket
from models.transaction import Transaction
from models.user import User
from schemas.pocket import PocketCreate, PocketUpdate, TransferRequest
from services.currency_service import NormalizedAmount, validate_amount
from services.errors import (
    CannotDeleteDefault,
    InsufficientFunds,
    InternalError,
    PocketInUse,
    SamePocket,
)
from services.ledger_service import (
    add_entry,
    get_default_pocket,
    live_cash_balance,
    resolve_pocket,
    signed_amount,
)
from services.unit_of_work import unit_of_work
from utils.common_helpers import to_decimal, utc_now

logger = logging.getLogger(__name__)


@dataclass
class TransferResult:
    transfer_id: str
    out_leg: Transaction
    in_leg: Transaction


def create_default_pocket(db: Session, user_id: int) -> Pocket:
    """Stage the user's Main pocket; committed by the caller's unit of work (signup)."""
    pocket = Pocket(user_id=user_id, name=settings.DEFAULT_POCKET_NAME, is_default=True)
    db.add(pocket)
    db.flush()
    return pocket


def pocket_balance(db: Session, user_id: int, pocket_id: int) -> Decimal:
    return live_cash_balance(db, user_id, pocket_id)


def _balances(db: Session, user_id: int) -> Dict[int, Decimal]:
    rows = db.execute(
        select(Transaction.pocket_id, func.coalesce(func.sum(signed_amount()), 0))
        .join(Category, Transaction.category_id == Category.id)
        .where(Transaction.user_id == user_id, Transaction.deleted_at.is_(None))
        .group_by(Transaction.pocket_id)
    ).all()
    return {pocket_id: to_decimal(total) for pocket_id, total in rows}


def list_pockets(db: Session, user: User) -> List[Tuple[Pocket, Decimal]]:
    pockets = (
        db.query(Pocket)
        .filter(Pocket.user_id == user.id)
        .order_by(Pocket.is_default.desc(), Pocket.name.asc(), Pocket.id.asc())
        .all()
    )
    balances = _balances(db, user.id)
    return [(p, balances.get(p.id, Decimal("0"))) for p in pockets]


def get_pocket(db: Session, user: User, pocket_id: int) -> Tuple[Pocket, Decimal]:
    pocket = resolve_pocket(db, user.id, pocket_id)
    return pocket, pocket_balance(db, user.id, pocket.id)


def create_pocket(db: Session, user: User, payload: PocketCreate) -> Pocket:
    with unit_of_work(db):
        pocket = Pocket(
            user_id=user.id,
            name=payload.name,
            description=payload.description,
            is_default=False,
        )
        if payload.icon:
            pocket.icon = payload.icon
        db.add(pocket)
        db.flush()
    return pocket


def update_pocket(db: Session, user: User, pocket_id: int, payload: PocketUpdate) -> Pocket:
    fields = payload.model_dump(exclude_unset=True)
    with unit_of_work(db):
        pocket = resolve_pocket(db, user.id, pocket_id, lock=True)
        if fields.get("name") is not None:
            pocket.name = fields["name"]
        if "description" in fields:
            pocket.description = fields["description"]
        if fields.get("icon"):
            pocket.icon = fields["icon"]
    return pocket


def delete_pocket(db: Session, user: User, pocket_id: int) -> None:
    """
    Remove a non-default pocket with no live transactions.

    Tombstoned transactions that still point at the pocket move to the
    default pocket so they stay restorable.
    """
    with unit_of_work(db):
        pocket = resolve_pocket(db, user.id, pocket_id, lock=True)
        if pocket.is_default:
            raise CannotDeleteDefault()

        in_use = (
            db.query(Transaction.id)
            .filter(
                Transaction.user_id == user.id,
                Transaction.pocket_id == pocket.id,
                Transaction.deleted_at.is_(None),
            )
            .first()
        )
        if in_use:
            raise PocketInUse()

        default = get_default_pocket(db, user.id)
        moved = (
            db.query(Transaction)
            .filter(Transaction.user_id == user.id, Transaction.pocket_id == pocket.id)
            .update({Transaction.pocket_id: default.id}, synchronize_session="fetch")
        )
        db.delete(pocket)

    logger.info("pocket_deleted id=%s reassigned_tombstones=%d", pocket_id, moved)


def _transfer_category(db: Session, name: str) -> Category:
    category = db.query(Category).filter(Category.name == name).first()
    if not category:
        raise InternalError(f"Category '{name}' is not seeded")
    return category


def transfer(db: Session, user: User, payload: TransferRequest) -> TransferResult:
    """
    Move money between two of the user's pockets.

    Both legs (Transfer Out on the source, Transfer In on the destination)
    carry the same amount, timestamp, description and transfer_id, and are
    written in one unit of work: either both commit or neither does.
    """
    amount = validate_amount(payload.amount)
    if payload.source_pocket_id == payload.destination_pocket_id:
        raise SamePocket()

    cat_out = _transfer_category(db, TRANSFER_OUT)
    cat_in = _transfer_category(db, TRANSFER_IN)
    transfer_id = str(uuid.uuid4())
    occurred_at = utc_now()
    normalized = NormalizedAmount(amount=amount)

    with unit_of_work(db):
        # lock in id order so two opposite transfers cannot deadlock
        locked = {
            pid: resolve_pocket(db, user.id, pid, lock=True)
            for pid in sorted((payload.source_pocket_id, payload.destination_pocket_id))
        }
        source = locked[payload.source_pocket_id]
        destination = locked[payload.destination_pocket_id]

        if live_cash_balance(db, user.id, source.id) < amount:
            raise InsufficientFunds()

        description = (payload.description or "").strip() or f"Transfer: {source.name} -> {destination.name}"

        out_leg = add_entry(
            db,
            user_id=user.id,
            pocket_id=source.id,
            category_id=cat_out.id,
            normalized=normalized,
            occurred_at=occurred_at,
            description=description,
            transfer_id=transfer_id,
        )
        in_leg = add_entry(
            db,
            user_id=user.id,
            pocket_id=destination.id,
            category_id=cat_in.id,
            normalized=normalized,
            occurred_at=occurred_at,
            description=description,
            transfer_id=transfer_id,
        )

    logger.info("transfer_committed transfer_id=%s", transfer_id)
    return TransferResult(transfer_id=transfer_id, out_leg=out_leg, in_leg=in_leg)
