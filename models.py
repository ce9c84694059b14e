import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from database import Base
from periods import BudgetPeriod


def _new_id() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # sign carries the direction: positive income, negative expense
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category_id: Mapped[Optional[str]] = mapped_column(String(36))
    transaction_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_transactions_owner_created", "owner_id", "created_at"),
        Index("ix_transactions_owner_category", "owner_id", "category_id"),
    )


class BudgetCategory(Base, TimestampMixin):
    __tablename__ = "budget_categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    budgeted_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    __table_args__ = (Index("ix_budget_categories_owner", "owner_id"),)


class LegacyCategory(Base, TimestampMixin):
    """Pre-budget category table, still read when budget_categories is unusable."""

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (Index("ix_categories_owner", "owner_id"),)


class UserPreference(Base, TimestampMixin):
    __tablename__ = "user_preferences"

    owner_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    budget_period: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BudgetPeriod.monthly.value
    )
    fixed_costs_json: Mapped[Optional[str]] = mapped_column(Text)
