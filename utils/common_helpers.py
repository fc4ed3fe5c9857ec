from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

MONEY_QUANT = Decimal("0.0001")
RATE_QUANT = Decimal("0.00000001")
DISPLAY_QUANT = Decimal("0.01")


def to_decimal(x: Any) -> Decimal:
    """Coerce DB/driver values to Decimal; None becomes zero. Floats go through str()."""
    if x is None:
        return Decimal("0")
    if isinstance(x, Decimal):
        return x
    if isinstance(x, float):
        return Decimal(str(x))
    try:
        return Decimal(x)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"not a decimal value: {x!r}")


def quantize_money(x: Decimal) -> Decimal:
    return x.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def quantize_rate(x: Decimal) -> Decimal:
    return x.quantize(RATE_QUANT, rounding=ROUND_HALF_UP)


def display_money(x: Optional[Decimal]) -> Optional[str]:
    # "10.50", never "10.5" or a float
    if x is None:
        return None
    return str(to_decimal(x).quantize(DISPLAY_QUANT, rounding=ROUND_HALF_UP))


def has_excess_precision(x: Decimal, places: int = 4) -> bool:
    quant = Decimal(1).scaleb(-places)
    return x != x.quantize(quant, rounding=ROUND_HALF_UP)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

