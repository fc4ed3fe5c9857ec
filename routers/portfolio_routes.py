# routers/portfolio_routes.py
from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from models.user import User
from schemas.general import ApiResponse
from schemas.portfolio import (
    HoldingCreate,
    HoldingOut,
    HoldingUpdate,
    InvestmentSummary,
    PortfolioOut,
    RefreshOut,
)
from services.auth import get_current_user
from services.currency_service import FxService, get_fx_service
from services.helpers.portfolio_metrics import PortfolioValuation
from services.portfolio_service import (
    add_holding,
    get_portfolio,
    rates_for_user,
    refresh_asset_price,
    refresh_prices,
    remove_holding,
    update_holding,
)
from services.price_service import PriceService, get_price_service

router = APIRouter()


def _portfolio_out(valuation: PortfolioValuation) -> PortfolioOut:
    return PortfolioOut(
        items=[InvestmentSummary.model_validate(v) for v in valuation.items],
        total_cost=valuation.total_cost,
        total_value=valuation.total_value,
        absolute_change=valuation.absolute_change,
        currency=valuation.currency,
    )


@router.get("", response_model=ApiResponse[PortfolioOut])
async def get_user_portfolio(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    fx: FxService = Depends(get_fx_service),
):
    rates = await rates_for_user(db, user, fx)
    valuation = await asyncio.to_thread(get_portfolio, db, user, rates)
    return ApiResponse(data=_portfolio_out(valuation))


@router.post("", response_model=ApiResponse[HoldingOut], status_code=status.HTTP_201_CREATED)
async def add_user_holding(
    payload: HoldingCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    prices: PriceService = Depends(get_price_service),
):
    holding = add_holding(db, user, payload)
    # a first quote for a never-priced asset; failure just leaves it valued at cost
    if holding.asset.current_price is None:
        await refresh_asset_price(db, prices, holding.ticker)
    return ApiResponse(data=HoldingOut.model_validate(holding), message="Investment added")


@router.post("/refresh", response_model=ApiResponse[RefreshOut])
async def refresh_portfolio_prices(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    prices: PriceService = Depends(get_price_service),
):
    updated = await refresh_prices(db, prices)
    return ApiResponse(data=RefreshOut(updated=updated), message=f"Updated {updated} prices")


@router.put("/{ticker}", response_model=ApiResponse[HoldingOut])
def update_user_holding(
    ticker: str,
    payload: HoldingUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    holding = update_holding(db, user, ticker, payload)
    return ApiResponse(data=HoldingOut.model_validate(holding), message="Investment updated")


@router.delete("/{ticker}", response_model=ApiResponse[None])
def delete_user_holding(
    ticker: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    remove_holding(db, user, ticker)
    return ApiResponse(data=None, message="Investment removed")
