# models/currency.py
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from database import Base


class Currency(Base):
    __tablename__ = "currencies"

    code: Mapped[str] = mapped_column(String(3), primary_key=True)  # "USD", "SGD", "IDR"
    symbol: Mapped[str | None] = mapped_column(String(5), nullable=True)
    name: Mapped[str | None] = mapped_column(String(50), nullable=True)
