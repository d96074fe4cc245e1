from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from classifier import (
    as_today,
    classify,
    dashboard,
    is_paused,
    missed_view,
    monthly_impact,
)
from execution import ExecutionEngine, ExecutionMode
from models import (
    Budget,
    BudgetPeriod,
    RecurringSeries,
    Transaction,
    TransactionType,
)
from periods import Period, compute_period_totals
from reconciliation import (
    ReconciliationLinker,
    effective_amount,
    has_available_amount,
    is_parent,
    remaining_amount,
)
from recurrence import Clock, local_now, round_money
from schemas import (
    BudgetIn,
    DashboardView,
    ExecutionResult,
    MissedExecution,
    RecurringSeriesIn,
    SeriesOut,
    TransactionIn,
    TransactionOut,
)
from store import SqlRecordStore, TransactionFilters, sql_store_factory


logger = logging.getLogger(__name__)


def get_current_user_id() -> int:
    return 1


class RecurringSeriesService:
    def __init__(
        self,
        session: Session,
        user_id: Optional[int] = None,
        clock: Optional[Clock] = None,
        session_factory: Optional[sessionmaker] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.clock = clock or local_now
        self.session_factory = session_factory
        self.store = SqlRecordStore(session, self.user_id)

    def get(self, series_id: str) -> RecurringSeries:
        series = self.store.get_series(series_id)
        if series is None:
            raise ValueError("Series not found")
        return series

    def list(self, include_inactive: bool = True) -> list[RecurringSeries]:
        stmt = select(RecurringSeries).where(RecurringSeries.user_id == self.user_id)
        if not include_inactive:
            stmt = stmt.where(RecurringSeries.is_active.is_(True))
        stmt = stmt.order_by(RecurringSeries.due_date, RecurringSeries.created_at)
        return list(self.session.scalars(stmt).all())

    def create(self, data: RecurringSeriesIn) -> RecurringSeries:
        series = RecurringSeries(
            user_id=self.user_id,
            name=data.name.strip(),
            type=data.type,
            amount=data.amount,
            category=data.category.strip(),
            frequency=data.frequency,
            account_id=data.account_id,
            to_account_id=data.to_account_id,
            start_date=data.start_date,
            end_date=data.end_date,
            due_date=data.due_date,
            day_of_month=data.day_of_month,
            month_of_year=data.month_of_year,
            auto_execute=data.auto_execute,
            is_paused=data.is_paused,
            pause_until=data.pause_until,
            transaction_ids=[],
        )
        self.session.add(series)
        self.session.commit()
        self.session.refresh(series)
        return series

    def update(self, series_id: str, data: RecurringSeriesIn) -> RecurringSeries:
        series = self.get(series_id)
        for field, value in data.model_dump().items():
            setattr(series, field, value)
        self.session.commit()
        self.session.refresh(series)
        return series

    def pause(self, series_id: str, until: Optional[date] = None) -> RecurringSeries:
        series = self.get(series_id)
        series.is_paused = True
        series.pause_until = until
        self.session.commit()
        return series

    def resume(self, series_id: str) -> RecurringSeries:
        series = self.get(series_id)
        series.is_paused = False
        series.pause_until = None
        self.session.commit()
        return series

    def deactivate(self, series_id: str) -> RecurringSeries:
        series = self.get(series_id)
        series.is_active = False
        self.session.commit()
        return series

    def dashboard(self, lookahead_days: Optional[int] = None) -> DashboardView:
        series = self.store.find_active_series()
        return dashboard(series, self.clock(), lookahead_days=lookahead_days)

    def missed_executions(self) -> list[MissedExecution]:
        return missed_view(self.store.find_active_series(), self.clock())

    def statistics(self) -> dict[str, object]:
        today = as_today(self.clock())
        series = [
            s for s in self.store.find_active_series() if not is_paused(s, today)
        ]
        impact = monthly_impact(series, today)
        buckets = classify(series, today)
        total_amount = sum((Decimal(s.amount) for s in series), Decimal("0"))
        return {
            "total_active_series": len(series),
            "total_expense_series": sum(
                1 for s in series if s.type == TransactionType.expense
            ),
            "total_income_series": sum(
                1 for s in series if s.type == TransactionType.income
            ),
            "total_monthly_impact": round_money(impact.net),
            "average_amount": round_money(total_amount / len(series))
            if series
            else Decimal("0.00"),
            "next_due_series": [
                SeriesOut.model_validate(s)
                for s in sorted(series, key=lambda s: s.due_date)[:3]
            ],
            "overdue_count": len(buckets.overdue),
            "upcoming_count": len(buckets.upcoming),
        }

    def reconciliation(self, series_id: str) -> dict[str, object]:
        series = self.get(series_id)
        transactions = self.store.find_transactions(
            TransactionFilters(recurring_series_id=series.id)
        )
        total_paid = sum((Decimal(t.amount) for t in transactions), Decimal("0"))
        expected_total = Decimal(series.amount) * series.total_executions
        actual = len(transactions)
        return {
            "series": SeriesOut.model_validate(series),
            "transactions": [
                TransactionOut.model_validate(t) for t in transactions
            ],
            "summary": {
                "expected_executions": series.total_executions,
                "actual_executions": actual,
                "missed_payments": series.total_executions - actual,
                "total_paid": round_money(total_paid),
                "expected_total": round_money(expected_total),
                "difference": round_money(total_paid - expected_total),
                "success_rate": (actual / series.total_executions * 100)
                if series.total_executions > 0
                else 0.0,
            },
        }

    def run(
        self,
        dry_run: bool = True,
        max_days_overdue: Optional[int] = None,
        timeout: Optional[float] = None,
        workers: Optional[int] = None,
        force: bool = False,
    ) -> ExecutionResult:
        store_factory = None
        if self.session_factory is not None:
            store_factory = sql_store_factory(self.session_factory, self.user_id)
        engine = ExecutionEngine(
            self.store,
            clock=self.clock,
            store_factory=store_factory,
            workers=workers,
        )
        mode = ExecutionMode.dry_run if dry_run else ExecutionMode.execute
        result = engine.run(
            mode, max_days_overdue=max_days_overdue, timeout=timeout, force=force
        )
        if mode == ExecutionMode.execute:
            self.session.commit()
        return result


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.store = SqlRecordStore(session, self.user_id)

    def create(self, data: TransactionIn) -> Transaction:
        txn = Transaction(
            user_id=self.user_id,
            account_id=data.account_id,
            to_account_id=data.to_account_id,
            amount=data.amount,
            type=data.type,
            category=data.category.strip(),
            description=data.description,
            date=data.date,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def get(self, transaction_id: str) -> Transaction:
        txn = self.store.get_transaction(transaction_id)
        if txn is None:
            raise ValueError("Transaction not found")
        return txn

    def list(self, period: Optional[Period] = None) -> list[Transaction]:
        filters = TransactionFilters()
        if period is not None:
            filters.date_from = period.start
            filters.date_before = period.end
        return self.store.find_transactions(filters)

    def link(self, transaction_id: str, other_id: str) -> tuple[Transaction, Transaction]:
        a = self.get(transaction_id)
        b = self.get(other_id)
        try:
            ReconciliationLinker(self.store).link(a, b)
        except Exception:
            self.session.rollback()
            raise
        self.session.commit()
        return a, b

    def unlink(self, transaction_id: str) -> None:
        try:
            ReconciliationLinker(self.store).unlink(transaction_id)
        except Exception:
            self.session.rollback()
            raise
        self.session.commit()

    def counterpart(self, txn: Transaction) -> Optional[Transaction]:
        if not txn.linked_transaction_id:
            return None
        return self.store.get_transaction(txn.linked_transaction_id)

    def effective_amount(self, transaction_id: str) -> Decimal:
        txn = self.get(transaction_id)
        return effective_amount(txn, self.counterpart(txn))

    def is_primary(self, transaction_id: str) -> bool:
        txn = self.get(transaction_id)
        other = self.counterpart(txn)
        if other is None:
            return False
        return is_parent(txn, other)

    def remaining_amount(self, transaction_id: str) -> Decimal:
        txn = self.get(transaction_id)
        return remaining_amount(txn, self.counterpart(txn))

    def has_available_amount(self, transaction_id: str) -> bool:
        txn = self.get(transaction_id)
        return has_available_amount(txn, self.counterpart(txn))


class BudgetService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[Budget]:
        stmt = select(Budget).where(Budget.user_id == self.user_id).order_by(Budget.id)
        return list(self.session.scalars(stmt).all())

    def create(self, data: BudgetIn) -> Budget:
        categories = sorted({c.strip() for c in data.categories if c.strip()})
        budget = Budget(
            user_id=self.user_id,
            description=data.description.strip(),
            amount=data.amount,
            period=data.period,
            categories=categories,
        )
        self.session.add(budget)
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def delete(self, budget_id: int) -> None:
        budget = self.session.get(Budget, budget_id)
        if not budget or budget.user_id != self.user_id:
            raise ValueError("Budget not found")
        self.session.delete(budget)
        self.session.commit()


class BudgetPeriodService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.store = SqlRecordStore(session, self.user_id)

    def list_periods(self) -> list[BudgetPeriod]:
        stmt = (
            select(BudgetPeriod)
            .where(BudgetPeriod.user_id == self.user_id)
            .order_by(BudgetPeriod.start_date, BudgetPeriod.id)
        )
        return list(self.session.scalars(stmt).all())

    def active_period(self) -> Optional[BudgetPeriod]:
        stmt = select(BudgetPeriod).where(
            BudgetPeriod.user_id == self.user_id,
            BudgetPeriod.is_active.is_(True),
        )
        return self.session.scalars(stmt).first()

    def get(self, period_id: int) -> BudgetPeriod:
        period = self.session.get(BudgetPeriod, period_id)
        if not period or period.user_id != self.user_id:
            raise ValueError("Budget period not found")
        return period

    def _open(self, start: date) -> BudgetPeriod:
        day_before = start - timedelta(days=1)
        for current in self.list_periods():
            if current.is_active:
                current.is_active = False
                if current.end_date is None:
                    current.end_date = max(day_before, current.start_date)
        period = BudgetPeriod(user_id=self.user_id, start_date=start, is_active=True)
        self.session.add(period)
        self.session.flush()
        return period

    def start_period(self, start: date) -> BudgetPeriod:
        period = self._open(start)
        self.session.commit()
        return period

    def close_period(self, period_id: int, end_date: date) -> BudgetPeriod:
        period = self.get(period_id)
        if not period.is_active:
            raise ValueError("Budget period is already closed")
        window = Period.closing(period.start_date, end_date)
        transactions = self.store.find_transactions(
            TransactionFilters(date_from=window.start, date_before=window.end)
        )
        budgets = BudgetService(self.session, self.user_id).list_all()
        totals = compute_period_totals(
            transactions, budgets, window.start, window.end, owner=self.user_id
        )

        period.end_date = end_date
        period.is_active = False
        period.total_spent = totals.total_spent
        period.total_saved = totals.total_saved
        period.category_spending = {
            category: str(amount)
            for category, amount in totals.category_spending.items()
        }
        self.session.flush()

        next_period = self._open(end_date + timedelta(days=1))
        self.session.commit()
        logger.info(
            f"budget_period_closed: user_id={self.user_id} period={period.id} "
            f"spent={totals.total_spent} next_period={next_period.id}"
        )
        return period
