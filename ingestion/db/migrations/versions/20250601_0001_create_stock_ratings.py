"""Create stock_ratings table"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


revision = "20250601_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "stock_ratings",
        sa.Column("id", sa.String(length=32), primary_key=True, nullable=False),
        sa.Column("ticker", sa.Text(), nullable=False),
        sa.Column("company", sa.Text(), nullable=False),
        sa.Column("brokerage", sa.Text(), nullable=False, server_default=""),
        sa.Column("action", sa.Text(), nullable=False, server_default=""),
        sa.Column("rating_from", sa.Text(), nullable=False, server_default=""),
        sa.Column("rating_to", sa.Text(), nullable=False, server_default=""),
        sa.Column("target_from", sa.Float(), nullable=False, server_default="0"),
        sa.Column("target_to", sa.Float(), nullable=False, server_default="0"),
        sa.Column("recommend_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_stock_ratings_ticker", "stock_ratings", ["ticker"], unique=False)
    op.create_index("ix_stock_ratings_recommend_score", "stock_ratings", ["recommend_score"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_stock_ratings_recommend_score", table_name="stock_ratings")
    op.drop_index("ix_stock_ratings_ticker", table_name="stock_ratings")
    op.drop_table("stock_ratings")
