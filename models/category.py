# models/category.py
from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column
from database import Base

TRANSFER_OUT = "Transfer Out"
TRANSFER_IN = "Transfer In"


class Category(Base):
    """Global categories, shared by every user and read-only at runtime."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(50), unique=True)
    is_income: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    icon: Mapped[str] = mapped_column(String(50), nullable=False, default="help_outline")

    # Only the transfer pair sets this; keeps internal moves out of spending reports
    exclude_from_analysis: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
