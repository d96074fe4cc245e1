from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


MONEY = Numeric(14, 2, asdecimal=True)


def new_id() -> str:
    return str(uuid4())


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"
    transfer = "transfer"


class Frequency(str, Enum):
    once = "once"
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"
    yearly = "yearly"


class BudgetPeriodicity(str, Enum):
    monthly = "monthly"
    annually = "annually"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class RecurringSeries(Base, TimestampMixin):
    __tablename__ = "recurring_series"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    frequency: Mapped[Frequency] = mapped_column(SAEnum(Frequency), nullable=False)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    to_account_id: Mapped[Optional[str]] = mapped_column(String(64))
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    day_of_month: Mapped[Optional[int]] = mapped_column(Integer)
    month_of_year: Mapped[Optional[int]] = mapped_column(Integer)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    auto_execute: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_paused: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    pause_until: Mapped[Optional[date]] = mapped_column(Date)
    last_executed_date: Mapped[Optional[date]] = mapped_column(Date)
    total_executions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_executions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    transaction_ids: Mapped[list[str]] = mapped_column(
        JSON, default=list, nullable=False
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_series_amount_positive"),
        CheckConstraint("due_date >= start_date", name="ck_series_due_after_start"),
        CheckConstraint(
            "day_of_month BETWEEN 1 AND 31", name="ck_series_day_of_month"
        ),
        CheckConstraint(
            "month_of_year BETWEEN 1 AND 12", name="ck_series_month_of_year"
        ),
        Index("ix_series_user_active_due", "user_id", "is_active", "due_date"),
    )


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    to_account_id: Mapped[Optional[str]] = mapped_column(String(64))
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    is_reconciled: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    linked_transaction_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("transactions.id")
    )
    residual_amount: Mapped[Optional[Decimal]] = mapped_column(MONEY)
    recurring_series_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("recurring_series.id")
    )
    occurrence_date: Mapped[Optional[date]] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "recurring_series_id",
            "occurrence_date",
            name="uq_txn_series_occurrence",
        ),
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_linked", "linked_transaction_id"),
        CheckConstraint("amount >= 0", name="ck_transactions_amount_positive"),
    )


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    description: Mapped[str] = mapped_column(String(120), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    period: Mapped[BudgetPeriodicity] = mapped_column(
        SAEnum(BudgetPeriodicity), nullable=False, default=BudgetPeriodicity.monthly
    )
    categories: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_budget_amount_positive"),
    )


class BudgetPeriod(Base, TimestampMixin):
    __tablename__ = "budget_periods"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    total_spent: Mapped[Optional[Decimal]] = mapped_column(MONEY)
    total_saved: Mapped[Optional[Decimal]] = mapped_column(MONEY)
    category_spending: Mapped[Optional[dict[str, str]]] = mapped_column(JSON)

    __table_args__ = (
        Index("ix_budget_period_user_active", "user_id", "is_active"),
    )
