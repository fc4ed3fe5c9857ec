from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from models.user import User
from schemas.analysis import CategoryAnalysisOut, CategoryBreakdown, NetWorthOut
from schemas.general import ApiResponse
from services.analysis_service import category_analysis, net_worth
from services.auth import get_current_user
from services.currency_service import FxService, get_fx_service
from services.portfolio_service import rates_for_user

router = APIRouter()


@router.get("/category", response_model=ApiResponse[CategoryAnalysisOut])
def get_category_analysis(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = category_analysis(db, user, start_date, end_date)
    return ApiResponse(
        data=CategoryAnalysisOut(
            categories=[CategoryBreakdown.model_validate(c) for c in result.categories],
            total_income=result.total_income,
            total_spent=result.total_spent,
            net_income=result.net_income,
            currency=result.currency,
        )
    )


@router.get("/net-worth", response_model=ApiResponse[NetWorthOut])
async def get_net_worth(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    fx: FxService = Depends(get_fx_service),
):
    rates = await rates_for_user(db, user, fx)
    result = await asyncio.to_thread(net_worth, db, user, rates)
    return ApiResponse(data=NetWorthOut.model_validate(result))
