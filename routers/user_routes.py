from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models.user import User
from schemas.auth import CurrencyOut, CurrencyUpdate, UserOut
from schemas.general import ApiResponse
from schemas.portfolio import AssetOut
from schemas.transaction import CategoryOut
from services.auth import get_current_user, update_base_currency
from services.currency_service import list_currencies
from services.ledger_service import list_categories
from services.portfolio_service import list_assets

router = APIRouter()


@router.put("/settings/currency", response_model=ApiResponse[UserOut])
def update_currency(
    payload: CurrencyUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    user = update_base_currency(db, user, payload.currency_code)
    return ApiResponse(data=UserOut.model_validate(user), message="Base currency updated")


# reference data is public

@router.get("/currencies", response_model=ApiResponse[List[CurrencyOut]])
def get_currencies(db: Session = Depends(get_db)):
    return ApiResponse(data=[CurrencyOut.model_validate(c) for c in list_currencies(db)])


@router.get("/categories", response_model=ApiResponse[List[CategoryOut]])
def get_categories(db: Session = Depends(get_db)):
    return ApiResponse(data=[CategoryOut.model_validate(c) for c in list_categories(db)])


@router.get("/assets", response_model=ApiResponse[List[AssetOut]])
def get_assets(db: Session = Depends(get_db)):
    return ApiResponse(data=[AssetOut.model_validate(a) for a in list_assets(db)])
