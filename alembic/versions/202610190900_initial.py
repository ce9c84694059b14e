"""initial ledger tables

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "202610190900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category_id", sa.String(length=36), nullable=True),
        sa.Column("transaction_date", sa.DateTime(), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_transactions_owner_created", "transactions", ["owner_id", "created_at"]
    )
    op.create_index(
        "ix_transactions_owner_category", "transactions", ["owner_id", "category_id"]
    )

    op.create_table(
        "budget_categories",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("budgeted_amount", sa.Float(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_budget_categories_owner", "budget_categories", ["owner_id"])

    op.create_table(
        "categories",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_categories_owner", "categories", ["owner_id"])

    op.create_table(
        "user_preferences",
        sa.Column("owner_id", sa.String(length=64), primary_key=True),
        sa.Column(
            "budget_period", sa.String(length=20), nullable=False, server_default="monthly"
        ),
        sa.Column("fixed_costs_json", sa.Text(), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("user_preferences")
    op.drop_index("ix_categories_owner", table_name="categories")
    op.drop_table("categories")
    op.drop_index("ix_budget_categories_owner", table_name="budget_categories")
    op.drop_table("budget_categories")
    op.drop_index("ix_transactions_owner_category", table_name="transactions")
    op.drop_index("ix_transactions_owner_created", table_name="transactions")
    op.drop_table("transactions")
