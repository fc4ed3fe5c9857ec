# services/helpers/portfolio_metrics.py
"""
Pure valuation helpers for holdings.

No I/O here: rows come in already joined with their asset, exchange
rates come in as a mapping {asset_currency: rate_to_base}. Both the
portfolio view and net worth go through `value_holding`, so the two can
never disagree on what a holding is worth.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

HUNDRED = Decimal("100")
ZERO = Decimal("0")
ONE = Decimal("1")


@dataclass
class HoldingValuation:
    ticker: str
    name: str
    quantity: Decimal
    avg_buy_price: Decimal            # asset currency
    current_price: Decimal            # asset currency
    total_value: Decimal              # asset currency
    total_cost: Decimal               # asset currency
    change_pct: Decimal
    asset_currency: str
    currency: str                     # user's base currency
    exchange_rate: Decimal
    avg_buy_price_converted: Decimal
    current_price_converted: Decimal
    total_value_converted: Decimal
    total_cost_converted: Decimal
    price_status: str                 # "live" | "unavailable"
    last_updated: Optional[object] = None
    icon_url: Optional[str] = None


@dataclass
class PortfolioValuation:
    items: List[HoldingValuation] = field(default_factory=list)
    total_cost: Decimal = ZERO
    total_value: Decimal = ZERO
    absolute_change: Decimal = ZERO
    currency: str = "USD"


def calculate_change_percent(current_price: Decimal, base_price: Decimal) -> Decimal:
    if base_price > ZERO:
        return (current_price - base_price) / base_price * HUNDRED
    return ZERO


def rate_for(asset_currency: str, base_currency: str, rates: Dict[str, Decimal]) -> Decimal:
    if asset_currency.upper() == base_currency.upper():
        return ONE
    rate = rates.get(asset_currency.upper())
    if rate is None:
        raise KeyError(f"missing exchange rate {asset_currency} -> {base_currency}")
    return rate


def value_holding(holding, base_currency: str, rates: Dict[str, Decimal]) -> HoldingValuation:
    """`holding` is a Holding ORM row with its `asset` loaded."""
    asset = holding.asset
    asset_currency = (asset.currency or "USD").upper()
    rate = rate_for(asset_currency, base_currency, rates)

    quantity = holding.quantity
    avg = holding.avg_buy_price

    # never priced yet: value at cost so net worth does not drop to zero
    if asset.current_price is not None:
        price, status = asset.current_price, "live"
    else:
        price, status = avg, "unavailable"

    total_value = quantity * price
    total_cost = quantity * avg

    return HoldingValuation(
        ticker=asset.ticker,
        name=asset.name,
        quantity=quantity,
        avg_buy_price=avg,
        current_price=price,
        total_value=total_value,
        total_cost=total_cost,
        change_pct=calculate_change_percent(price, avg),
        asset_currency=asset_currency,
        currency=base_currency,
        exchange_rate=rate,
        avg_buy_price_converted=avg * rate,
        current_price_converted=price * rate,
        total_value_converted=total_value * rate,
        total_cost_converted=total_cost * rate,
        price_status=status,
        last_updated=asset.last_updated,
        icon_url=asset.icon_url,
    )


def build_portfolio(holdings: Iterable, base_currency: str, rates: Dict[str, Decimal]) -> PortfolioValuation:
    out = PortfolioValuation(currency=base_currency)
    for h in holdings:
        v = value_holding(h, base_currency, rates)
        out.items.append(v)
        out.total_cost += v.total_cost_converted
        out.total_value += v.total_value_converted
    out.absolute_change = out.total_value - out.total_cost
    return out
