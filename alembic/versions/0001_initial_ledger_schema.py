"""initial ledger schema

Revision ID: 0001_initial_ledger
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from services.reference_data import ASSETS, CATEGORIES, CURRENCIES


revision: str = "0001_initial_ledger"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    currencies = op.create_table(
        "currencies",
        sa.Column("code", sa.String(length=3), primary_key=True),
        sa.Column("symbol", sa.String(length=5), nullable=True),
        sa.Column("name", sa.String(length=50), nullable=True),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=100), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("base_currency", sa.String(length=3), sa.ForeignKey("currencies.code"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    categories = op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=50), nullable=False, unique=True),
        sa.Column("is_income", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("icon", sa.String(length=50), nullable=False, server_default="help_outline"),
        sa.Column("exclude_from_analysis", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_categories_id", "categories", ["id"])

    op.create_table(
        "pockets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(length=50), nullable=False, server_default="account_balance_wallet"),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_pockets_id", "pockets", ["id"])
    op.create_index("ix_pockets_user_id", "pockets", ["user_id"])
    op.create_index(
        "ux_pockets_user_default_true",
        "pockets",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("is_default = true"),
        sqlite_where=sa.text("is_default = 1"),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pocket_id", sa.Integer(), sa.ForeignKey("pockets.id"), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=False),
        sa.Column("amount", sa.Numeric(19, 4), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("original_currency", sa.String(length=3), nullable=True),
        sa.Column("original_amount", sa.Numeric(19, 4), nullable=True),
        sa.Column("exchange_rate", sa.Numeric(19, 8), nullable=True),
        sa.Column("transfer_id", sa.String(length=36), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_transactions_id", "transactions", ["id"])
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])
    op.create_index("ix_transactions_pocket_id", "transactions", ["pocket_id"])
    op.create_index("ix_transactions_user_occurred", "transactions", ["user_id", "occurred_at"])
    op.create_index("ix_transactions_transfer_id", "transactions", ["transfer_id"])

    assets = op.create_table(
        "assets",
        sa.Column("ticker", sa.String(length=10), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("asset_type", sa.String(length=20), nullable=False),
        sa.Column("source", sa.String(length=50), nullable=False, server_default="YAHOO"),
        sa.Column("api_ticker", sa.String(length=50), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("icon_url", sa.Text(), nullable=True),
        sa.Column("current_price", sa.Numeric(19, 8), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "holdings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("ticker", sa.String(length=10), sa.ForeignKey("assets.ticker"), nullable=False),
        sa.Column("quantity", sa.Numeric(19, 8), nullable=False),
        sa.Column("avg_buy_price", sa.Numeric(19, 4), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "ticker", name="uq_holdings_user_ticker"),
    )
    op.create_index("ix_holdings_id", "holdings", ["id"])
    op.create_index("ix_holdings_user_id", "holdings", ["user_id"])
    op.create_index("ix_holdings_ticker", "holdings", ["ticker"])

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("family_id", sa.String(length=36), nullable=False),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("state", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("replaced_by", sa.String(length=64), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_refresh_tokens_id", "refresh_tokens", ["id"])
    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])
    op.create_index("ix_refresh_tokens_family_id", "refresh_tokens", ["family_id"])
    op.create_index("ix_refresh_tokens_token_hash", "refresh_tokens", ["token_hash"], unique=True)

    # ---- reference data ----
    op.bulk_insert(currencies, [{"code": c, "symbol": s, "name": n} for c, s, n in CURRENCIES])
    op.bulk_insert(
        categories,
        [
            {"name": name, "is_income": is_income, "icon": icon, "exclude_from_analysis": excluded}
            for name, is_income, icon, excluded in CATEGORIES
        ],
    )
    op.bulk_insert(
        assets,
        [
            {"ticker": t, "name": n, "asset_type": kind, "source": src, "api_ticker": api, "currency": "USD"}
            for t, n, kind, src, api in ASSETS
        ],
    )


def downgrade() -> None:
    for table in ("refresh_tokens", "holdings", "assets", "transactions", "pockets", "categories", "users", "currencies"):
        op.drop_table(table)
