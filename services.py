from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import BudgetCategory, LegacyCategory, Transaction, UserPreference
from schemas import CategoryBudgetIn, PreferencesIn, TransactionIn, TransactionUpdate


class TransactionService:
    def __init__(self, session: Session, owner_id: str) -> None:
        self.session = session
        self.owner_id = owner_id

    def _get(self, transaction_id: str) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if not txn or txn.owner_id != self.owner_id:
            raise ValueError("Transaction not found")
        return txn

    def list_recent(self, limit: int = 50) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.owner_id == self.owner_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(limit)
        )
        return self.session.scalars(stmt).all()

    def create(self, data: TransactionIn, *, created_at: Optional[datetime] = None) -> Transaction:
        txn = Transaction(
            owner_id=self.owner_id,
            amount=data.amount,
            description=data.description.strip(),
            category_id=data.category_id,
            transaction_date=data.transaction_date,
        )
        if created_at is not None:
            txn.created_at = created_at
            txn.updated_at = created_at
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def update(self, transaction_id: str, data: TransactionUpdate) -> Transaction:
        txn = self._get(transaction_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "description" and value is not None:
                value = value.strip()
            setattr(txn, field, value)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def delete(self, transaction_id: str) -> None:
        txn = self._get(transaction_id)
        self.session.delete(txn)
        self.session.commit()


class CategoryBudgetService:
    def __init__(self, session: Session, owner_id: str) -> None:
        self.session = session
        self.owner_id = owner_id

    def list_all(self) -> list[BudgetCategory]:
        stmt = (
            select(BudgetCategory)
            .where(BudgetCategory.owner_id == self.owner_id)
            .order_by(BudgetCategory.name)
        )
        return self.session.scalars(stmt).all()

    def create(self, data: CategoryBudgetIn) -> BudgetCategory:
        clean_name = data.name.strip()
        existing = self.session.scalar(
            select(BudgetCategory).where(
                BudgetCategory.owner_id == self.owner_id,
                BudgetCategory.name == clean_name,
            )
        )
        if existing:
            raise ValueError(f"Category '{clean_name}' already exists")
        category = BudgetCategory(
            owner_id=self.owner_id,
            name=clean_name,
            budgeted_amount=data.budgeted_amount,
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def set_budget(self, category_id: str, amount: float) -> BudgetCategory:
        category = self.session.get(BudgetCategory, category_id)
        if not category or category.owner_id != self.owner_id:
            raise ValueError("Category not found")
        if amount < 0:
            raise ValueError("Budget amount must not be negative")
        category.budgeted_amount = amount
        self.session.commit()
        self.session.refresh(category)
        return category

    def create_legacy(self, name: str) -> LegacyCategory:
        category = LegacyCategory(owner_id=self.owner_id, name=name.strip())
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category


class PreferenceService:
    def __init__(self, session: Session, owner_id: str) -> None:
        self.session = session
        self.owner_id = owner_id

    def save(self, data: PreferencesIn) -> UserPreference:
        pref = self.session.get(UserPreference, self.owner_id)
        if pref is None:
            pref = UserPreference(owner_id=self.owner_id)
            self.session.add(pref)
        pref.budget_period = data.budget_period.value
        pref.fixed_costs_json = json.dumps(
            [item.model_dump(exclude_none=True) for item in data.fixed_costs]
        )
        self.session.commit()
        self.session.refresh(pref)
        return pref
