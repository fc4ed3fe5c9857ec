from __future__ import annotations

from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from models.pocket import Pocket
from models.user import User
from schemas.general import ApiResponse
from schemas.pocket import PocketCreate, PocketOut, PocketUpdate, TransferOut, TransferRequest
from services.auth import get_current_user
from services.pocket_service import (
    create_pocket,
    delete_pocket,
    get_pocket,
    list_pockets,
    pocket_balance,
    transfer,
    update_pocket,
)

router = APIRouter()


def _pocket_out(pocket: Pocket, balance: Decimal) -> PocketOut:
    out = PocketOut.model_validate(pocket)
    out.balance = balance
    return out


@router.post("/transfer", response_model=ApiResponse[TransferOut], status_code=status.HTTP_201_CREATED)
def transfer_between_pockets(
    payload: TransferRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = transfer(db, user, payload)
    return ApiResponse(
        data=TransferOut(
            transfer_id=result.transfer_id,
            out_transaction_id=result.out_leg.id,
            in_transaction_id=result.in_leg.id,
            amount=result.out_leg.amount,
            occurred_at=result.out_leg.occurred_at,
        ),
        message="Transfer completed",
    )


@router.get("", response_model=ApiResponse[List[PocketOut]])
def get_user_pockets(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ApiResponse(data=[_pocket_out(p, bal) for p, bal in list_pockets(db, user)])


@router.post("", response_model=ApiResponse[PocketOut], status_code=status.HTTP_201_CREATED)
def create_user_pocket(
    payload: PocketCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    pocket = create_pocket(db, user, payload)
    return ApiResponse(data=_pocket_out(pocket, Decimal("0")), message="Pocket created")


@router.get("/{pocket_id}", response_model=ApiResponse[PocketOut])
def get_user_pocket(
    pocket_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    pocket, balance = get_pocket(db, user, pocket_id)
    return ApiResponse(data=_pocket_out(pocket, balance))


@router.put("/{pocket_id}", response_model=ApiResponse[PocketOut])
def update_user_pocket(
    pocket_id: int,
    payload: PocketUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    pocket = update_pocket(db, user, pocket_id, payload)
    return ApiResponse(data=_pocket_out(pocket, pocket_balance(db, user.id, pocket.id)), message="Pocket updated")


@router.delete("/{pocket_id}", response_model=ApiResponse[None])
def delete_user_pocket(
    pocket_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    delete_pocket(db, user, pocket_id)
    return ApiResponse(data=None, message="Pocket deleted")
