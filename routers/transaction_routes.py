# routers/transaction_routes.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from models.user import User
from schemas.general import ApiResponse, Page
from schemas.transaction import TransactionCreate, TransactionDetailOut, TransactionOut, TransactionUpdate
from services.auth import get_current_user
from services.currency_service import FxService, ensure_known_currency, get_fx_service, resolve_rate
from services.ledger_service import (
    DEFAULT_PAGE_SIZE,
    create_transaction,
    get_transaction,
    list_transactions,
    restore_transaction,
    soft_delete_transaction,
    update_transaction,
)

router = APIRouter()


@router.post("", response_model=ApiResponse[TransactionDetailOut], status_code=status.HTTP_201_CREATED)
async def create_user_transaction(
    payload: TransactionCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    fx: FxService = Depends(get_fx_service),
):
    if payload.currency_code:
        ensure_known_currency(db, payload.currency_code)
    rate = await resolve_rate(fx, payload.currency_code, user.base_currency, payload.exchange_rate)
    tx = create_transaction(db, user, payload, exchange_rate=rate)
    return ApiResponse(data=TransactionDetailOut.model_validate(tx), message="Transaction created")


@router.get("", response_model=ApiResponse[Page[TransactionOut]])
def get_user_transactions(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    pocket_id: Optional[int] = Query(None),
    page: int = Query(1),
    limit: int = Query(DEFAULT_PAGE_SIZE),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = list_transactions(
        db,
        user,
        start_date=start_date,
        end_date=end_date,
        pocket_id=pocket_id,
        page=page,
        limit=limit,
    )
    items: List[TransactionOut] = [TransactionOut.model_validate(tx) for tx in result.items]
    return ApiResponse(
        data=Page[TransactionOut](
            items=items,
            total=result.total,
            page=result.page,
            limit=result.limit,
            total_pages=result.total_pages,
        )
    )


@router.get("/{transaction_id}", response_model=ApiResponse[TransactionDetailOut])
def get_user_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ApiResponse(data=TransactionDetailOut.model_validate(get_transaction(db, user, transaction_id)))


@router.put("/{transaction_id}", response_model=ApiResponse[TransactionDetailOut])
async def update_user_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    fx: FxService = Depends(get_fx_service),
):
    rate = None
    # only a currency change needs a fresh rate; same-currency edits reuse the stored one
    if payload.currency_code and payload.exchange_rate is None:
        current = get_transaction(db, user, transaction_id)
        if payload.currency_code != (current.original_currency or user.base_currency):
            ensure_known_currency(db, payload.currency_code)
            rate = await resolve_rate(fx, payload.currency_code, user.base_currency)
    tx = update_transaction(db, user, transaction_id, payload, exchange_rate=rate)
    return ApiResponse(data=TransactionDetailOut.model_validate(tx), message="Transaction updated")


@router.delete("/{transaction_id}", response_model=ApiResponse[None])
def delete_user_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    soft_delete_transaction(db, user, transaction_id)
    return ApiResponse(data=None, message="Transaction deleted")


@router.post("/{transaction_id}/restore", response_model=ApiResponse[List[TransactionOut]])
def restore_user_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    legs = restore_transaction(db, user, transaction_id)
    return ApiResponse(data=[TransactionOut.model_validate(tx) for tx in legs], message="Transaction restored")
