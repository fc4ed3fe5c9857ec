# models/asset.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from database import Base

SOURCE_YAHOO = "YAHOO"
SOURCE_BINANCE = "BINANCE"
SOURCE_COINGECKO = "COINGECKO"


class Asset(Base):
    """Global asset catalog. One price per ticker, shared by every user."""

    __tablename__ = "assets"

    ticker: Mapped[str] = mapped_column(String(10), primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    asset_type: Mapped[str] = mapped_column(String(20))  # "Stock", "Crypto"

    # which price source to ask, and under which identifier
    source: Mapped[str] = mapped_column(String(50), nullable=False, default=SOURCE_YAHOO)
    api_ticker: Mapped[str | None] = mapped_column(String(50), nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    icon_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    current_price: Mapped[Decimal | None] = mapped_column(Numeric(19, 8), nullable=True)
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def quote_symbol(self) -> str:
        return self.api_ticker or self.ticker
