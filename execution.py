"""Batch execution of due recurring series.

Each run selects the series due today or overdue within a policy window.
Series with ``auto_execute`` off are only picked up when the run is forced.
Selected series are processed independently: a failing series becomes an
entry in ``ExecutionResult.failed`` and never stops the rest of the batch.
Outcomes are collected as tagged results first and only then folded into the
summary.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from classifier import as_today, due_candidates, is_paused
from config import get_settings
from errors import StoreError, ValidationError
from models import Frequency, RecurringSeries, TransactionType
from recurrence import Clock, advance_due_date, local_now, parse_frequency
from schemas import (
    ExecutionFailure,
    ExecutionResult,
    ExecutionSummary,
    TransactionPayload,
)
from store import RecordStore, SeriesFilters, StoreFactory


logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Cancelled: batch deadline exceeded"


class ExecutionMode(str, Enum):
    dry_run = "dry_run"
    execute = "execute"


class OutcomeStatus(str, Enum):
    succeeded = "succeeded"
    failed = "failed"


@dataclass(frozen=True)
class SeriesOutcome:
    series_id: str
    series_name: str
    status: OutcomeStatus
    amount: Decimal = Decimal("0")
    transaction_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failure(
        cls, series_id: str, series_name: str, error: str
    ) -> "SeriesOutcome":
        return cls(series_id, series_name, OutcomeStatus.failed, error=error)


def signed_amount(kind: TransactionType, amount: Decimal) -> Decimal:
    """Expenses count negative; income and transfers count positive."""
    amount = Decimal(amount)
    if TransactionType(kind) == TransactionType.expense:
        return -amount
    return amount


def validate_series(series: RecurringSeries, today: date) -> None:
    if series.amount is None or Decimal(series.amount) <= 0:
        raise ValidationError(f"Series {series.name} has a non-positive amount")
    parse_frequency(series.frequency)
    if series.type == TransactionType.transfer:
        if not series.to_account_id:
            raise ValidationError(
                f"Transfer series {series.name} has no destination account"
            )
        if series.to_account_id == series.account_id:
            raise ValidationError(
                f"Transfer series {series.name} moves money to its own account"
            )
    if series.due_date < series.start_date:
        raise ValidationError(f"Series {series.name} is due before it starts")
    if not series.is_active or is_paused(series, today):
        raise ValidationError(f"Series {series.name} is not active or is paused")


def build_payload(series: RecurringSeries) -> TransactionPayload:
    return TransactionPayload(
        user_id=series.user_id,
        account_id=series.account_id,
        to_account_id=(
            series.to_account_id if series.type == TransactionType.transfer else None
        ),
        amount=Decimal(series.amount),
        type=series.type,
        category=series.category,
        description=series.name,
        date=series.due_date,
        recurring_series_id=series.id,
        occurrence_date=series.due_date,
    )


def series_patch(
    series: RecurringSeries, transaction_id: str, today: date
) -> dict[str, object]:
    next_due = advance_due_date(
        series.frequency,
        series.due_date,
        day_of_month=series.day_of_month,
        month_of_year=series.month_of_year,
    )
    patch: dict[str, object] = {
        "due_date": next_due,
        "total_executions": series.total_executions + 1,
        "transaction_ids": [*(series.transaction_ids or []), transaction_id],
        "last_executed_date": today,
    }
    finished = parse_frequency(series.frequency) == Frequency.once or (
        series.end_date is not None and next_due > series.end_date
    )
    if finished:
        patch["is_active"] = False
    return patch


def summarize(outcomes: list[SeriesOutcome], dry_run: bool) -> ExecutionResult:
    summary = ExecutionSummary(total_processed=len(outcomes))
    failed: list[ExecutionFailure] = []
    executed: list[str] = []
    for outcome in outcomes:
        if outcome.status == OutcomeStatus.succeeded:
            summary.successful_executions += 1
            summary.total_amount += outcome.amount
            if outcome.transaction_id:
                executed.append(outcome.transaction_id)
        else:
            summary.failed_executions += 1
            failed.append(
                ExecutionFailure(
                    series_id=outcome.series_id,
                    series_name=outcome.series_name,
                    error=outcome.error or "Unknown error",
                )
            )
    return ExecutionResult(
        dry_run=dry_run, summary=summary, failed=failed, executed=executed
    )


class ExecutionEngine:
    """Runs every due series in the store's owner scope.

    ``store`` supplies the snapshot. With ``workers > 1`` and a
    ``store_factory``, execute-mode writes go through one store per task on a
    thread pool; otherwise everything runs on ``store`` in due-date order.
    Callers must not run overlapping scopes concurrently.
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Optional[Clock] = None,
        store_factory: Optional[StoreFactory] = None,
        workers: Optional[int] = None,
    ) -> None:
        self.store = store
        self.clock = clock or local_now
        self.store_factory = store_factory
        self.workers = workers or get_settings().execution_workers

    def run(
        self,
        mode: ExecutionMode = ExecutionMode.dry_run,
        max_days_overdue: Optional[int] = None,
        timeout: Optional[float] = None,
        force: bool = False,
    ) -> ExecutionResult:
        mode = ExecutionMode(mode)
        today = as_today(self.clock())
        snapshot = self.store.find_active_series(
            SeriesFilters(due_on_or_before=today)
        )
        candidates = due_candidates(snapshot, today, max_days_overdue)
        if not force:
            candidates = [s for s in candidates if s.auto_execute]
        deadline = time.monotonic() + timeout if timeout is not None else None

        parallel = (
            mode == ExecutionMode.execute
            and self.workers > 1
            and self.store_factory is not None
            and len(candidates) > 1
        )
        if parallel:
            outcomes = self._run_parallel(candidates, today, timeout)
        else:
            outcomes = []
            for series in candidates:
                if deadline is not None and time.monotonic() > deadline:
                    outcomes.append(
                        SeriesOutcome.failure(
                            series.id, series.name, CANCELLED_MESSAGE
                        )
                    )
                    continue
                outcomes.append(self._process(self.store, series, mode, today))

        result = summarize(outcomes, dry_run=mode == ExecutionMode.dry_run)
        logger.info(
            f"execution_run: mode={mode.value} user_id={self.store.user_id} "
            f"force={force} "
            f"processed={result.summary.total_processed} "
            f"succeeded={result.summary.successful_executions} "
            f"failed={result.summary.failed_executions}"
        )
        return result

    def _process(
        self,
        store: RecordStore,
        series: RecurringSeries,
        mode: ExecutionMode,
        today: date,
    ) -> SeriesOutcome:
        series_id, series_name = series.id, series.name
        try:
            validate_series(series, today)
            payload = build_payload(series)
            if mode == ExecutionMode.dry_run:
                logger.debug(f"execution_dry_run: series={series_id}")
                return SeriesOutcome(
                    series_id,
                    series_name,
                    OutcomeStatus.succeeded,
                    amount=signed_amount(payload.type, payload.amount),
                )
            with store.unit_of_work():
                txn = store.create_transaction(payload)
                store.update_series(series_id, series_patch(series, txn.id, today))
            return SeriesOutcome(
                series_id,
                series_name,
                OutcomeStatus.succeeded,
                amount=signed_amount(payload.type, payload.amount),
                transaction_id=txn.id,
            )
        except (ValueError, StoreError) as exc:
            logger.warning(f"execution_failed: series={series_id} error={exc}")
            if mode == ExecutionMode.execute:
                self._record_failure(store, series_id)
            return SeriesOutcome.failure(series_id, series_name, str(exc))

    def _record_failure(self, store: RecordStore, series_id: str) -> None:
        try:
            series = store.get_series(series_id)
            if series is not None:
                store.update_series(
                    series_id, {"failed_executions": series.failed_executions + 1}
                )
        except StoreError as exc:
            logger.error(
                f"execution_failure_count_not_saved: series={series_id} error={exc}"
            )

    def _process_isolated(
        self, series_id: str, series_name: str, today: date
    ) -> SeriesOutcome:
        with self.store_factory() as store:
            series = store.get_series(series_id)
            if series is None:
                return SeriesOutcome.failure(
                    series_id, series_name, f"Series {series_id} not found"
                )
            return self._process(store, series, ExecutionMode.execute, today)

    def _run_parallel(
        self,
        candidates: list[RecurringSeries],
        today: date,
        timeout: Optional[float],
    ) -> list[SeriesOutcome]:
        jobs = [(s.id, s.name) for s in candidates]
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            futures = [
                pool.submit(self._process_isolated, series_id, name, today)
                for series_id, name in jobs
            ]
            _done, pending = wait(futures, timeout=timeout)
            for future in pending:
                future.cancel()
            outcomes = []
            for (series_id, name), future in zip(jobs, futures):
                if future.cancelled():
                    outcomes.append(
                        SeriesOutcome.failure(series_id, name, CANCELLED_MESSAGE)
                    )
                    continue
                # result() blocks until the task finishes: the join barrier
                try:
                    outcomes.append(future.result())
                except StoreError as exc:
                    outcomes.append(SeriesOutcome.failure(series_id, name, str(exc)))
        return outcomes
