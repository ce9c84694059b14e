from __future__ import annotations

import json
import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import select

from config import get_settings
from database import SessionFactory, session_scope
from models import BudgetCategory, LegacyCategory, Transaction, UserPreference
from periods import BudgetPeriod
from schemas import (
    CategoryBudgetRecord,
    FixedCostItem,
    Preferences,
    TransactionRecord,
)


logger = logging.getLogger(__name__)


class LedgerLoader:
    """Reads one owner's ledger from the store.

    The public ``load_*`` methods never raise: a failing source degrades to
    an empty (or legacy) result so aggregation always gets well-typed input.
    """

    def __init__(self, session_factory: Optional[SessionFactory] = None) -> None:
        self.session_factory = session_factory

    def load_transactions(self, owner_id: str) -> list[TransactionRecord]:
        try:
            with session_scope(self.session_factory) as session:
                rows = session.scalars(
                    select(Transaction)
                    .where(Transaction.owner_id == owner_id)
                    .order_by(Transaction.created_at.desc(), Transaction.id.desc())
                ).all()
                return [TransactionRecord.model_validate(row) for row in rows]
        except Exception as exc:
            logger.warning(
                f"dashboard: failed to load transactions owner={owner_id}: {exc}"
            )
            return []

    def load_category_budgets(self, owner_id: str) -> list[CategoryBudgetRecord]:
        try:
            with session_scope(self.session_factory) as session:
                rows = session.scalars(
                    select(BudgetCategory).where(BudgetCategory.owner_id == owner_id)
                ).all()
                return [CategoryBudgetRecord.model_validate(row) for row in rows]
        except Exception as exc:
            logger.warning(
                f"dashboard: failed to load budget categories owner={owner_id}: {exc}"
            )

        try:
            return self.load_legacy_categories(owner_id)
        except Exception as exc:
            logger.warning(
                f"dashboard: legacy categories also failed owner={owner_id}: {exc}"
            )
            return []

    def load_legacy_categories(self, owner_id: str) -> list[CategoryBudgetRecord]:
        with session_scope(self.session_factory) as session:
            rows = session.scalars(
                select(LegacyCategory).where(LegacyCategory.owner_id == owner_id)
            ).all()
            return [
                CategoryBudgetRecord(
                    id=row.id,
                    owner_id=row.owner_id,
                    name=row.name,
                    budgeted_amount=0,
                    created_at=row.created_at,
                    updated_at=row.updated_at,
                )
                for row in rows
            ]

    def load_preferences(self, owner_id: str) -> Preferences:
        default_period = BudgetPeriod.coerce(get_settings().default_granularity)
        try:
            with session_scope(self.session_factory) as session:
                pref = session.get(UserPreference, owner_id)
                if pref is None:
                    return Preferences(granularity=default_period)
                period = BudgetPeriod.coerce(pref.budget_period)
                raw_costs = pref.fixed_costs_json
        except Exception as exc:
            logger.warning(
                f"dashboard: failed to load preferences owner={owner_id}: {exc}"
            )
            return Preferences(granularity=default_period)

        return Preferences(
            granularity=period, fixed_costs=parse_fixed_costs(raw_costs, owner_id)
        )


def parse_fixed_costs(raw: Optional[str], owner_id: str = "") -> list[FixedCostItem]:
    if not raw:
        return []
    try:
        items = json.loads(raw)
        if not isinstance(items, list):
            raise ValueError("fixed costs must be a list")
        return [FixedCostItem.model_validate(item) for item in items]
    except (ValueError, ValidationError) as exc:
        logger.warning(f"dashboard: ignoring malformed fixed costs owner={owner_id}: {exc}")
        return []
