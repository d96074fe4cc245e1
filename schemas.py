from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models import BudgetPeriodicity, Frequency, TransactionType


class RecurringSeriesIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    type: TransactionType
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    category: str = Field(..., min_length=1, max_length=100)
    frequency: Frequency
    account_id: str = Field(..., min_length=1, max_length=64)
    to_account_id: Optional[str] = Field(default=None, max_length=64)
    start_date: date
    end_date: Optional[date] = None
    due_date: Optional[date] = None
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    month_of_year: Optional[int] = Field(default=None, ge=1, le=12)
    auto_execute: bool = True
    is_paused: bool = False
    pause_until: Optional[date] = None

    @model_validator(mode="after")
    def check_series(self) -> "RecurringSeriesIn":
        if self.type == TransactionType.transfer:
            if not self.to_account_id:
                raise ValueError("Transfers require a destination account")
            if self.to_account_id == self.account_id:
                raise ValueError("Origin and destination accounts must differ")
        if self.due_date is None:
            self.due_date = self.start_date
        if self.due_date < self.start_date:
            raise ValueError("Due date must be on or after start date")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("End date must be on or after start date")
        return self


class TransactionIn(BaseModel):
    account_id: str = Field(..., min_length=1, max_length=64)
    to_account_id: Optional[str] = Field(default=None, max_length=64)
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    type: TransactionType
    category: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=200)
    date: date

    @model_validator(mode="after")
    def check_transfer(self) -> "TransactionIn":
        if self.type == TransactionType.transfer:
            if not self.to_account_id:
                raise ValueError("Transfers require a destination account")
            if self.to_account_id == self.account_id:
                raise ValueError("Origin and destination accounts must differ")
        return self


class TransactionPayload(BaseModel):
    """Transaction the execution engine derives from one series occurrence."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    account_id: str
    to_account_id: Optional[str] = None
    amount: Decimal
    type: TransactionType
    category: str
    description: Optional[str] = None
    date: date
    recurring_series_id: Optional[str] = None
    occurrence_date: Optional[date] = None


class BudgetIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=120)
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    period: BudgetPeriodicity = BudgetPeriodicity.monthly
    categories: list[str] = Field(default_factory=list)


class BudgetPeriodStartIn(BaseModel):
    start_date: date


class BudgetPeriodCloseIn(BaseModel):
    end_date: date


class SeriesOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: TransactionType
    amount: Decimal
    category: str
    frequency: Frequency
    account_id: str
    to_account_id: Optional[str]
    start_date: date
    end_date: Optional[date]
    due_date: date
    day_of_month: Optional[int]
    month_of_year: Optional[int]
    is_active: bool
    auto_execute: bool
    is_paused: bool
    pause_until: Optional[date]
    last_executed_date: Optional[date]
    total_executions: int
    failed_executions: int
    transaction_ids: list[str]


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    account_id: str
    to_account_id: Optional[str]
    amount: Decimal
    type: TransactionType
    category: str
    description: Optional[str]
    date: date
    is_reconciled: bool
    linked_transaction_id: Optional[str]
    residual_amount: Optional[Decimal]
    recurring_series_id: Optional[str]


class ExecutionFailure(BaseModel):
    series_id: str
    series_name: str
    error: str


class ExecutionSummary(BaseModel):
    total_processed: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    total_amount: Decimal = Decimal("0.00")


class ExecutionResult(BaseModel):
    dry_run: bool
    summary: ExecutionSummary
    failed: list[ExecutionFailure] = Field(default_factory=list)
    executed: list[str] = Field(default_factory=list)


class MissedExecution(BaseModel):
    series: SeriesOut
    missed_count: int


class MonthlyImpact(BaseModel):
    income: Decimal
    expenses: Decimal
    net: Decimal


class DashboardView(BaseModel):
    active_series: list[SeriesOut]
    due_today: list[SeriesOut]
    upcoming_series: list[SeriesOut]
    overdue_series: list[SeriesOut]
    monthly_impact: MonthlyImpact


class PeriodTotals(BaseModel):
    total_spent: Decimal
    total_saved: Decimal
    category_spending: dict[str, Decimal]


class BudgetPeriodOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    start_date: date
    end_date: Optional[date]
    is_active: bool
    total_spent: Optional[Decimal]
    total_saved: Optional[Decimal]
    category_spending: Optional[dict[str, Decimal]]


class PauseIn(BaseModel):
    until: Optional[date] = None


class BudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    amount: Decimal
    period: BudgetPeriodicity
    categories: list[str]
