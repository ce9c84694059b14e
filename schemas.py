from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from periods import BudgetPeriod


class TransactionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    amount: float
    description: str = ""
    category_id: Optional[str] = None
    transaction_date: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CategoryBudgetRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    name: str
    budgeted_amount: float = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DerivedBudget(BaseModel):
    id: str
    owner_id: str
    category_id: str
    amount: float
    period: BudgetPeriod = BudgetPeriod.monthly
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CategoryBudgetRow(BaseModel):
    category: CategoryBudgetRecord
    budget: DerivedBudget
    spent: float
    remaining: float
    percentage: float


class SubscriptionItem(BaseModel):
    id: str
    name: str
    amount: float
    status: Literal["Active", "Recent"] = "Active"
    color: str


class FixedCostItem(BaseModel):
    amount: float = 0
    name: Optional[str] = None
    category_id: Optional[str] = None


class Preferences(BaseModel):
    granularity: BudgetPeriod = BudgetPeriod.monthly
    fixed_costs: list[FixedCostItem] = Field(default_factory=list)


class DashboardSummary(BaseModel):
    total_income: float = 0
    total_expenses: float = 0
    total_balance: float = 0
    total_savings: float = 0
    period_net_change: float = 0
    period_budget_total: float = 0
    period_budget_spent: float = 0
    insight_count: int = 0
    subscriptions: list[SubscriptionItem] = Field(default_factory=list)
    fixed_costs_total: float = 0
    category_budgets: list[CategoryBudgetRow] = Field(default_factory=list)
    recent_transactions: list[TransactionRecord] = Field(default_factory=list)
    total_transactions: int = 0
    period_transactions: int = 0
    period_income: float = 0
    period_expenses: float = 0
    average_transaction_amount: float = 0
    transaction_frequency: str = "Monthly"
    granularity: BudgetPeriod = BudgetPeriod.monthly
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    generated_at: Optional[datetime] = None

    @classmethod
    def empty(
        cls, granularity: BudgetPeriod = BudgetPeriod.monthly
    ) -> "DashboardSummary":
        return cls(granularity=granularity)


class DashboardStatus(BaseModel):
    state: str
    loading: bool
    generation: int
    owner_id: Optional[str] = None
    last_error: Optional[str] = None


class TransactionIn(BaseModel):
    amount: float
    description: str = Field(default="", max_length=500)
    category_id: Optional[str] = None
    transaction_date: datetime


class TransactionUpdate(BaseModel):
    amount: Optional[float] = None
    description: Optional[str] = Field(default=None, max_length=500)
    category_id: Optional[str] = None
    transaction_date: Optional[datetime] = None


class CategoryBudgetIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    budgeted_amount: float = Field(default=0, ge=0)


class PreferencesIn(BaseModel):
    budget_period: BudgetPeriod = BudgetPeriod.monthly
    fixed_costs: list[FixedCostItem] = Field(default_factory=list)
