from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence, Union

from periods import BudgetPeriod, PeriodRange
from scaling import period_factor, scale_amount
from schemas import (
    CategoryBudgetRecord,
    CategoryBudgetRow,
    DashboardSummary,
    DerivedBudget,
    FixedCostItem,
    SubscriptionItem,
    TransactionRecord,
)
from subscriptions import (
    KeywordSubscriptionClassifier,
    SubscriptionClassifier,
    detect_subscriptions,
)


logger = logging.getLogger(__name__)


# (min count, label), checked top-down; Bi-weekly appears in two bands on purpose
CADENCE_TABLES: dict[BudgetPeriod, tuple[tuple[int, str], ...]] = {
    BudgetPeriod.monthly: (
        (30, "Daily"),
        (15, "Bi-weekly"),
        (8, "Weekly"),
        (4, "Bi-weekly"),
    ),
    BudgetPeriod.quarterly: (
        (90, "Daily"),
        (45, "Bi-weekly"),
        (24, "Weekly"),
        (12, "Bi-weekly"),
    ),
    BudgetPeriod.yearly: (
        (365, "Daily"),
        (180, "Bi-weekly"),
        (52, "Weekly"),
        (24, "Bi-weekly"),
    ),
}

UNKNOWN_CATEGORY = "Unknown"
ERROR_CATEGORY = "Error"


@dataclass(frozen=True)
class RowError:
    budget: DerivedBudget
    reason: str


def transaction_frequency(count: int, granularity: Union[BudgetPeriod, str, None]) -> str:
    for threshold, label in CADENCE_TABLES[BudgetPeriod.coerce(granularity)]:
        if count >= threshold:
            return label
    return "Monthly"


def derive_budgets(
    category_budgets: Optional[Iterable[CategoryBudgetRecord]],
) -> list[DerivedBudget]:
    return [
        DerivedBudget(
            id=cat.id,
            owner_id=cat.owner_id,
            category_id=cat.id,
            amount=cat.budgeted_amount or 0,
            period=BudgetPeriod.monthly,
            created_at=cat.created_at,
            updated_at=cat.updated_at,
        )
        for cat in category_budgets or []
    ]


def _placeholder_category(name: str) -> CategoryBudgetRecord:
    return CategoryBudgetRecord(id="", owner_id="", name=name, budgeted_amount=0)


def category_row(
    budget: DerivedBudget,
    categories: dict[str, CategoryBudgetRecord],
    transactions: Sequence[TransactionRecord],
    period_range: PeriodRange,
) -> Union[CategoryBudgetRow, RowError]:
    try:
        category = categories.get(budget.category_id) or _placeholder_category(
            UNKNOWN_CATEGORY
        )
        spent = sum(
            abs(t.amount)
            for t in transactions
            if t.category_id == budget.category_id
            and t.amount < 0
            and period_range.contains(t.transaction_date)
        )
        amount = budget.amount or 0
        remaining = max(0.0, amount - spent)
        percentage = min(spent / amount * 100, 100.0) if amount > 0 else 0.0
        return CategoryBudgetRow(
            category=category,
            budget=budget,
            spent=spent,
            remaining=remaining,
            percentage=percentage,
        )
    except Exception as exc:
        return RowError(budget=budget, reason=str(exc))


def _error_row(error: RowError) -> CategoryBudgetRow:
    return CategoryBudgetRow(
        category=_placeholder_category(ERROR_CATEGORY),
        budget=error.budget,
        spent=0,
        remaining=error.budget.amount or 0,
        percentage=0,
    )


def fold_rows(
    outcomes: Iterable[Union[CategoryBudgetRow, RowError]],
) -> list[CategoryBudgetRow]:
    rows: list[CategoryBudgetRow] = []
    for outcome in outcomes:
        if isinstance(outcome, RowError):
            logger.warning(
                f"dashboard: category budget row failed budget={outcome.budget.id}: "
                f"{outcome.reason}"
            )
            rows.append(_error_row(outcome))
        else:
            rows.append(outcome)
    return rows


def _subscriptions(
    transactions: Sequence[TransactionRecord],
    classifier: SubscriptionClassifier,
    limit: int,
) -> list[SubscriptionItem]:
    try:
        return detect_subscriptions(transactions, classifier, limit=limit)
    except Exception as exc:
        logger.warning(f"dashboard: subscription detection failed: {exc}")
        return []


def _fixed_costs_total(
    fixed_costs: Optional[Iterable[FixedCostItem]], granularity: BudgetPeriod
) -> float:
    try:
        monthly = sum((item.amount or 0) for item in fixed_costs or [])
        return monthly * period_factor(granularity)
    except Exception as exc:
        logger.warning(f"dashboard: fixed cost total failed: {exc}")
        return 0.0


def aggregate(
    transactions: Optional[Sequence[TransactionRecord]],
    category_budgets: Optional[Sequence[CategoryBudgetRecord]],
    period_range: PeriodRange,
    granularity: Union[BudgetPeriod, str, None],
    fixed_costs_monthly: Optional[Iterable[FixedCostItem]] = None,
    *,
    classifier: Optional[SubscriptionClassifier] = None,
    recent_limit: int = 5,
    subscription_limit: int = 3,
    insight_threshold: float = 75,
    generated_at: Optional[datetime] = None,
) -> DashboardSummary:
    """Derive the full dashboard summary from already loaded records.

    ``transactions`` must be newest first; the recent slice and subscription
    detection rely on that order. Totals are all-time, while net change,
    per-category spending and budget spent only count transactions dated
    inside ``period_range``.
    """
    transactions = list(transactions or [])
    category_budgets = list(category_budgets or [])
    period = BudgetPeriod.coerce(granularity)
    classifier = classifier or KeywordSubscriptionClassifier()

    total_income = sum(t.amount for t in transactions if t.amount > 0)
    total_expenses = sum(abs(t.amount) for t in transactions if t.amount < 0)
    total_balance = total_income - total_expenses

    in_period = [t for t in transactions if period_range.contains(t.transaction_date)]
    period_income = sum(t.amount for t in in_period if t.amount > 0)
    period_expenses = sum(abs(t.amount) for t in in_period if t.amount < 0)

    total_transactions = len(transactions)
    period_transactions = len(in_period)
    average = (
        (total_income + total_expenses) / total_transactions
        if total_transactions > 0
        else 0
    )

    budgets = derive_budgets(category_budgets)
    categories = {cat.id: cat for cat in category_budgets}
    rows = fold_rows(
        category_row(budget, categories, transactions, period_range)
        for budget in budgets
    )

    period_budget_total = sum(
        scale_amount(b.amount or 0, b.period, period) for b in budgets
    )

    return DashboardSummary(
        total_income=total_income,
        total_expenses=total_expenses,
        total_balance=total_balance,
        total_savings=total_balance,
        period_net_change=period_income - period_expenses,
        period_budget_total=period_budget_total,
        # every in-period expense, categorised or not
        period_budget_spent=period_expenses,
        insight_count=sum(1 for row in rows if row.percentage >= insight_threshold),
        subscriptions=_subscriptions(transactions, classifier, subscription_limit),
        fixed_costs_total=_fixed_costs_total(fixed_costs_monthly, period),
        category_budgets=rows,
        recent_transactions=transactions[:recent_limit],
        total_transactions=total_transactions,
        period_transactions=period_transactions,
        period_income=period_income,
        period_expenses=period_expenses,
        average_transaction_amount=average,
        transaction_frequency=transaction_frequency(period_transactions, period),
        granularity=period,
        period_start=period_range.start,
        period_end=period_range.end,
        generated_at=generated_at,
    )
