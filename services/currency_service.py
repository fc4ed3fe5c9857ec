from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Optional, Tuple

import httpx
from sqlalchemy.orm import Session

from config import settings
from models.currency import Currency
from services.errors import InvalidAmount, UnknownCurrency, ValidationError
from utils.common_helpers import has_excess_precision, quantize_money, quantize_rate, to_decimal

logger = logging.getLogger(__name__)

ONE = Decimal("1")

# Numeric(19,4) money and Numeric(19,8) rate columns
MAX_AMOUNT = Decimal(10) ** 15
MAX_RATE = Decimal(10) ** 11


@dataclass(frozen=True)
class NormalizedAmount:
    amount: Decimal
    original_currency: Optional[str] = None
    original_amount: Optional[Decimal] = None
    exchange_rate: Optional[Decimal] = None


def validate_amount(amount) -> Decimal:
    try:
        value = to_decimal(amount)
    except ValueError:
        raise InvalidAmount("Amount must be a number")
    if not value.is_finite() or value <= 0:
        raise InvalidAmount("Amount must be positive")
    if value >= MAX_AMOUNT:
        raise InvalidAmount(f"Amount must be less than {MAX_AMOUNT:,.0f}")
    try:
        excess = has_excess_precision(value, 4)
    except InvalidOperation:
        raise InvalidAmount("Amount supports at most 4 decimal places")
    if excess:
        raise InvalidAmount("Amount supports at most 4 decimal places")
    return value


def normalize_amount(
    amount,
    currency: Optional[str],
    base_currency: str,
    exchange_rate=None,
) -> NormalizedAmount:
    """
    Convert an input amount into the user's base currency.

    Same currency (or none given) stores the amount untouched and leaves
    the original_* fields empty. A foreign currency needs a rate; the rate
    is quantized to 8 places first so that
    amount == round(original_amount * exchange_rate, 4) holds exactly for
    the stored values.
    """
    value = validate_amount(amount)
    ccy = (currency or base_currency).upper()
    base = base_currency.upper()

    if ccy == base:
        return NormalizedAmount(amount=value)

    if exchange_rate is None:
        raise ValidationError(f"Exchange rate required for {ccy} -> {base}")
    try:
        rate = to_decimal(exchange_rate)
    except ValueError:
        raise ValidationError("Exchange rate must be a number")
    if not rate.is_finite() or rate <= 0 or rate >= MAX_RATE:
        raise ValidationError("Exchange rate must be positive and below 100,000,000,000")
    rate = quantize_rate(rate)
    if rate <= 0:
        raise ValidationError("Exchange rate must be positive")

    converted = quantize_money(value * rate)
    if converted <= 0 or converted >= MAX_AMOUNT:
        raise InvalidAmount("Converted amount is out of range")

    return NormalizedAmount(
        amount=converted,
        original_currency=ccy,
        original_amount=value,
        exchange_rate=rate,
    )


def ensure_known_currency(db: Session, code: Optional[str]) -> str:
    ccy = (code or "").strip().upper()
    if len(ccy) != 3 or db.get(Currency, ccy) is None:
        raise UnknownCurrency(f"Invalid currency code: {code}")
    return ccy


def list_currencies(db: Session) -> list[Currency]:
    return db.query(Currency).order_by(Currency.code.asc()).all()


# ---------- FX ----------

class FxServiceError(Exception):
    """Raised when no exchange rate can be obtained."""


class FxService:
    """Point-in-time exchange rates with a short TTL cache per currency pair."""

    def __init__(
        self,
        base_url: str = settings.FX_API_URL,
        timeout: float = 5.0,
        ttl_sec: int = settings.FX_CACHE_TTL_SEC,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self._ttl = ttl_sec
        self._cache: Dict[Tuple[str, str], Tuple[Decimal, float]] = {}  # (rate, expires_at)

    @asynccontextmanager
    async def _client(self, client: Optional[httpx.AsyncClient] = None):
        if client is not None:
            yield client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as c:
                yield c

    async def get_rate(self, from_ccy: str, to_ccy: str, client: Optional[httpx.AsyncClient] = None) -> Decimal:
        src, dst = from_ccy.upper(), to_ccy.upper()
        if src == dst:
            return ONE

        now = time.time()
        hit = self._cache.get((src, dst))
        if hit and hit[1] > now:
            return hit[0]

        async with self._client(client) as c:
            try:
                r = await c.get(self.base_url, params={"from": src, "to": dst})
                r.raise_for_status()
                data = r.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("FX fetch failed %s->%s: %s", src, dst, type(e).__name__)
                raise FxServiceError(f"No exchange rate for {src} -> {dst}") from e

        raw = (data.get("rates") or {}).get(dst)
        if raw is None:
            raise FxServiceError(f"No exchange rate for {src} -> {dst}")

        rate = quantize_rate(to_decimal(raw))
        if self._ttl:
            self._cache[(src, dst)] = (rate, now + self._ttl)
        return rate

    async def get_rates(self, currencies: Iterable[str], to_ccy: str) -> Dict[str, Decimal]:
        """Rates from each currency into `to_ccy`; used to value holdings in the base currency."""
        out: Dict[str, Decimal] = {}
        for ccy in {c.upper() for c in currencies if c}:
            out[ccy] = await self.get_rate(ccy, to_ccy)
        return out


async def resolve_rate(fx: FxService, currency: Optional[str], base_currency: str, given=None) -> Optional[Decimal]:
    """Rate a router should hand to the ledger: caller-supplied, fetched, or None when no conversion is needed."""
    if given is not None:
        return to_decimal(given)
    if not currency or currency.upper() == base_currency.upper():
        return None
    try:
        return await fx.get_rate(currency, base_currency)
    except FxServiceError as e:
        raise ValidationError(str(e))


_fx_service = FxService()


def get_fx_service() -> FxService:
    # one instance per process so the TTL cache is shared across requests
    return _fx_service
