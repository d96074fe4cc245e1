from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import (
    Any,
    Callable,
    ContextManager,
    Iterator,
    Mapping,
    Optional,
    Protocol,
    Sequence,
)

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from errors import StoreError
from models import RecurringSeries, Transaction, TransactionType, new_id
from schemas import TransactionPayload


SERIES_PATCH_FIELDS = frozenset(
    {
        "due_date",
        "total_executions",
        "failed_executions",
        "transaction_ids",
        "last_executed_date",
        "is_active",
        "is_paused",
        "pause_until",
        "end_date",
    }
)

TRANSACTION_PATCH_FIELDS = frozenset(
    {"is_reconciled", "linked_transaction_id", "residual_amount"}
)


@dataclass
class SeriesFilters:
    due_on_or_before: Optional[date] = None
    include_paused: bool = True


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    date_from: Optional[date] = None
    date_before: Optional[date] = None
    linked_to: Optional[str] = None
    recurring_series_id: Optional[str] = None
    is_reconciled: Optional[bool] = None


class RecordStore(Protocol):
    user_id: int

    def unit_of_work(self) -> ContextManager[None]:
        """Group the writes for one series occurrence.

        Stores without multi-record transactions may yield without any
        guarantee; callers never rely on it for correctness.
        """
        ...

    def find_active_series(
        self, filters: Optional[SeriesFilters] = None
    ) -> Sequence[RecurringSeries]: ...

    def find_transactions(
        self, filters: Optional[TransactionFilters] = None
    ) -> Sequence[Transaction]: ...

    def get_series(self, series_id: str) -> Optional[RecurringSeries]: ...

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]: ...

    def create_transaction(self, payload: TransactionPayload) -> Transaction: ...

    def update_series(
        self, series_id: str, patch: Mapping[str, Any]
    ) -> RecurringSeries: ...

    def update_transaction(
        self, transaction_id: str, patch: Mapping[str, Any]
    ) -> Transaction: ...


class SqlRecordStore:
    """Record store over a SQLAlchemy session, scoped to one owner.

    Writes are flushed, not committed: the caller owns the unit of work.
    Database failures surface as ``StoreError``.
    """

    def __init__(self, session: Session, user_id: int = 1) -> None:
        self.session = session
        self.user_id = user_id

    @contextmanager
    def unit_of_work(self) -> Iterator[None]:
        try:
            with self.session.begin_nested():
                yield
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to persist occurrence: {exc}") from exc

    def find_active_series(
        self, filters: Optional[SeriesFilters] = None
    ) -> list[RecurringSeries]:
        filters = filters or SeriesFilters()
        stmt = select(RecurringSeries).where(
            RecurringSeries.user_id == self.user_id,
            RecurringSeries.is_active.is_(True),
        )
        if filters.due_on_or_before is not None:
            stmt = stmt.where(RecurringSeries.due_date <= filters.due_on_or_before)
        if not filters.include_paused:
            stmt = stmt.where(RecurringSeries.is_paused.is_(False))
        stmt = stmt.order_by(RecurringSeries.due_date, RecurringSeries.created_at)
        try:
            return list(self.session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load series: {exc}") from exc

    def find_transactions(
        self, filters: Optional[TransactionFilters] = None
    ) -> list[Transaction]:
        filters = filters or TransactionFilters()
        stmt = select(Transaction).where(Transaction.user_id == self.user_id)
        if filters.type is not None:
            stmt = stmt.where(Transaction.type == filters.type)
        if filters.date_from is not None:
            stmt = stmt.where(Transaction.date >= filters.date_from)
        if filters.date_before is not None:
            stmt = stmt.where(Transaction.date < filters.date_before)
        if filters.linked_to is not None:
            stmt = stmt.where(Transaction.linked_transaction_id == filters.linked_to)
        if filters.recurring_series_id is not None:
            stmt = stmt.where(
                Transaction.recurring_series_id == filters.recurring_series_id
            )
        if filters.is_reconciled is not None:
            stmt = stmt.where(Transaction.is_reconciled.is_(filters.is_reconciled))
        stmt = stmt.order_by(Transaction.date, Transaction.created_at)
        try:
            return list(self.session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load transactions: {exc}") from exc

    def get_series(self, series_id: str) -> Optional[RecurringSeries]:
        try:
            series = self.session.get(RecurringSeries, series_id)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load series {series_id}: {exc}") from exc
        if not series or series.user_id != self.user_id:
            return None
        return series

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        try:
            txn = self.session.get(Transaction, transaction_id)
        except SQLAlchemyError as exc:
            raise StoreError(
                f"Failed to load transaction {transaction_id}: {exc}"
            ) from exc
        if not txn or txn.user_id != self.user_id:
            return None
        return txn

    def create_transaction(self, payload: TransactionPayload) -> Transaction:
        if payload.recurring_series_id and payload.occurrence_date:
            exists_stmt = (
                select(Transaction.id)
                .where(
                    Transaction.user_id == payload.user_id,
                    Transaction.recurring_series_id == payload.recurring_series_id,
                    Transaction.occurrence_date == payload.occurrence_date,
                )
                .limit(1)
            )
            try:
                existing = self.session.execute(exists_stmt).scalar_one_or_none()
            except SQLAlchemyError as exc:
                raise StoreError(f"Failed to check occurrence: {exc}") from exc
            if existing:
                raise StoreError(
                    f"Occurrence {payload.occurrence_date} of series "
                    f"{payload.recurring_series_id} was already posted"
                )

        txn = Transaction(id=new_id(), **payload.model_dump())
        try:
            with self.session.begin_nested():
                self.session.add(txn)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to create transaction: {exc}") from exc
        return txn

    def update_series(
        self, series_id: str, patch: Mapping[str, Any]
    ) -> RecurringSeries:
        unknown = set(patch) - SERIES_PATCH_FIELDS
        if unknown:
            raise StoreError(f"Series fields are not patchable: {sorted(unknown)}")
        series = self.get_series(series_id)
        if series is None:
            raise StoreError(f"Series {series_id} not found")
        try:
            with self.session.begin_nested():
                for field, value in patch.items():
                    setattr(series, field, value)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to update series {series_id}: {exc}") from exc
        return series

    def update_transaction(
        self, transaction_id: str, patch: Mapping[str, Any]
    ) -> Transaction:
        unknown = set(patch) - TRANSACTION_PATCH_FIELDS
        if unknown:
            raise StoreError(
                f"Transaction fields are not patchable: {sorted(unknown)}"
            )
        txn = self.get_transaction(transaction_id)
        if txn is None:
            raise StoreError(f"Transaction {transaction_id} not found")
        try:
            with self.session.begin_nested():
                for field, value in patch.items():
                    setattr(txn, field, value)
        except SQLAlchemyError as exc:
            raise StoreError(
                f"Failed to update transaction {transaction_id}: {exc}"
            ) from exc
        return txn


StoreFactory = Callable[[], ContextManager[RecordStore]]


def sql_store_factory(session_factory, user_id: int = 1) -> StoreFactory:
    """Build a factory of committed-on-exit stores, one session each."""
    from database import session_scope

    @contextmanager
    def scope() -> Iterator[SqlRecordStore]:
        try:
            with session_scope(session_factory) as session:
                yield SqlRecordStore(session, user_id)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to commit: {exc}") from exc

    return scope
