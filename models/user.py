# models/user.py
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from database import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))

    # Every money figure of this user is normalized into this currency
    base_currency: Mapped[str] = mapped_column(String(3), ForeignKey("currencies.code"), default="SGD")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    pockets = relationship("Pocket", back_populates="owner")
    holdings = relationship("Holding", back_populates="owner")
