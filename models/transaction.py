# models/transaction.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_user_occurred", "user_id", "occurred_at"),
        Index("ix_transactions_transfer_id", "transfer_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    pocket_id: Mapped[int] = mapped_column(ForeignKey("pockets.id"), index=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"))

    # always in the owner's base currency
    amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # populated only when the input currency differed from the base currency
    original_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    original_amount: Mapped[Decimal | None] = mapped_column(Numeric(19, 4), nullable=True)
    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(19, 8), nullable=True)

    # shared by both legs of a pocket transfer
    transfer_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # tombstone; NULL means live
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    category = relationship("Category", lazy="joined")
    pocket = relationship("Pocket", lazy="joined")

    @property
    def is_transfer_leg(self) -> bool:
        return self.transfer_id is not None
