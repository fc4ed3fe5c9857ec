from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import settings
from models.asset import Asset
from models.holding import Holding
from models.user import User
from schemas.portfolio import HoldingCreate, HoldingUpdate
from services.currency_service import FxService, FxServiceError
from services.errors import AlreadyHeld, DatabaseError, InternalError, NotFoundError, UnknownAsset
from services.helpers.portfolio_metrics import PortfolioValuation, build_portfolio
from services.price_service import PriceService, PriceServiceError
from services.unit_of_work import unit_of_work
from utils.common_helpers import quantize_rate, utc_now

logger = logging.getLogger(__name__)


# -----------------------
# Catalog
# -----------------------

def list_assets(db: Session) -> List[Asset]:
    return db.query(Asset).order_by(Asset.name.asc()).all()


def get_asset(db: Session, ticker: str) -> Asset:
    asset = db.get(Asset, (ticker or "").strip().upper())
    if not asset:
        raise UnknownAsset(f"Unknown asset {ticker}")
    return asset


# -----------------------
# Holdings
# -----------------------

def get_all_holdings(db: Session, user_id: int) -> List[Holding]:
    return (
        db.query(Holding)
        .filter(Holding.user_id == user_id)
        .order_by(Holding.ticker.asc())
        .all()
    )


def held_currencies(db: Session, user_id: int) -> Set[str]:
    rows = (
        db.query(Asset.currency)
        .join(Holding, Holding.ticker == Asset.ticker)
        .filter(Holding.user_id == user_id)
        .distinct()
        .all()
    )
    return {(ccy or "USD").upper() for (ccy,) in rows}


def _owned_holding(db: Session, user_id: int, ticker: str, *, lock: bool = False) -> Holding:
    q = db.query(Holding).filter(Holding.user_id == user_id, Holding.ticker == (ticker or "").strip().upper())
    if lock:
        q = q.with_for_update(of=Holding)
    holding = q.first()
    if not holding:
        raise NotFoundError(f"Investment {ticker} not found")
    return holding


def add_holding(db: Session, user: User, payload: HoldingCreate) -> Holding:
    asset = get_asset(db, payload.ticker)

    with unit_of_work(db):
        exists = (
            db.query(Holding.id)
            .filter(Holding.user_id == user.id, Holding.ticker == asset.ticker)
            .first()
        )
        if exists:
            raise AlreadyHeld(f"{asset.ticker} is already in your portfolio")

        holding = Holding(
            user_id=user.id,
            ticker=asset.ticker,
            quantity=payload.quantity,
            avg_buy_price=payload.avg_buy_price,
        )
        db.add(holding)
        try:
            db.flush()
        except IntegrityError:
            # lost a race against a concurrent add of the same ticker
            raise AlreadyHeld(f"{asset.ticker} is already in your portfolio")

    return holding


def update_holding(db: Session, user: User, ticker: str, payload: HoldingUpdate) -> Holding:
    fields = payload.model_dump(exclude_unset=True)
    with unit_of_work(db):
        holding = _owned_holding(db, user.id, ticker, lock=True)
        if fields.get("quantity") is not None:
            holding.quantity = fields["quantity"]
        if fields.get("avg_buy_price") is not None:
            holding.avg_buy_price = fields["avg_buy_price"]
    return holding


def remove_holding(db: Session, user: User, ticker: str) -> None:
    with unit_of_work(db):
        holding = _owned_holding(db, user.id, ticker, lock=True)
        db.delete(holding)


def get_portfolio(db: Session, user: User, rates: Dict[str, Decimal]) -> PortfolioValuation:
    return build_portfolio(get_all_holdings(db, user.id), user.base_currency, rates)


# -----------------------
# Price refresh
# -----------------------

def _store_price(db: Session, ticker: str, price: Decimal) -> bool:
    try:
        with unit_of_work(db):
            db.execute(
                update(Asset)
                .where(Asset.ticker == ticker)
                .values(current_price=quantize_rate(price), last_updated=utc_now())
            )
    except DatabaseError:
        return False
    return True


async def _fetch_one(
    price_service: PriceService,
    ticker: str,
    quote_symbol: str,
    source: str,
    timeout: float,
) -> Tuple[str, Optional[Decimal]]:
    try:
        price = await asyncio.wait_for(price_service.fetch_price(quote_symbol, source), timeout=timeout)
        return ticker, price
    except asyncio.TimeoutError:
        logger.warning("price_refresh_timeout ticker=%s source=%s timeout=%.1fs", ticker, source, timeout)
    except PriceServiceError as e:
        logger.warning("price_refresh_failed ticker=%s source=%s: %s", ticker, source, e)
    except Exception:
        logger.exception("price_refresh_error ticker=%s source=%s", ticker, source)
    return ticker, None


async def refresh_prices(
    db: Session,
    price_service: PriceService,
    *,
    timeout: Optional[float] = None,
) -> int:
    """
    Refresh the catalog price of every ticker held by any user.

    Best effort: each ticker is fetched concurrently under its own timeout
    and written in its own commit. A failed or timed-out ticker keeps its
    previous price and is simply not counted. Returns how many tickers
    were updated.
    """
    timeout = timeout if timeout is not None else settings.PRICE_FETCH_TIMEOUT_SEC
    held = select(Holding.ticker).distinct()
    targets = [
        (a.ticker, a.quote_symbol, a.source)
        for a in db.query(Asset).filter(Asset.ticker.in_(held)).order_by(Asset.ticker.asc()).all()
    ]
    if not targets:
        return 0

    results = await asyncio.gather(
        *(_fetch_one(price_service, t, sym, src, timeout) for t, sym, src in targets)
    )

    updated = 0
    for ticker, price in results:
        if price is None:
            continue
        # blocking writes run in a worker thread, one at a time on this session
        if await asyncio.to_thread(_store_price, db, ticker, price):
            updated += 1

    logger.info("price_refresh_done tickers=%d updated=%d", len(targets), updated)
    return updated


async def refresh_asset_price(
    db: Session,
    price_service: PriceService,
    ticker: str,
    *,
    timeout: Optional[float] = None,
) -> bool:
    """Single-ticker variant used right after a holding is added."""
    asset = get_asset(db, ticker)
    timeout = timeout if timeout is not None else settings.PRICE_FETCH_TIMEOUT_SEC
    _, price = await _fetch_one(price_service, asset.ticker, asset.quote_symbol, asset.source, timeout)
    if price is None:
        return False
    return await asyncio.to_thread(_store_price, db, asset.ticker, price)


async def rates_for_user(db: Session, user: User, fx: FxService) -> Dict[str, Decimal]:
    """Rates from every currency the user's holdings are quoted in into their base currency."""
    currencies = held_currencies(db, user.id) - {user.base_currency.upper()}
    if not currencies:
        return {}
    try:
        return await fx.get_rates(currencies, user.base_currency)
    except FxServiceError as e:
        logger.warning("portfolio_fx_unavailable user_id=%s: %s", user.id, e)
        raise InternalError("Exchange rates are unavailable, try again later")
