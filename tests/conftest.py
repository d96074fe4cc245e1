from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from database import Base, build_engine
from models import Frequency, RecurringSeries, Transaction, TransactionType, new_id


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine, expire_on_commit=False) as session:
        yield session


def build_series(**overrides) -> RecurringSeries:
    values = dict(
        id=new_id(),
        user_id=1,
        name="Gym",
        type=TransactionType.expense,
        amount=Decimal("50.00"),
        category="Health",
        frequency=Frequency.weekly,
        account_id="checking",
        to_account_id=None,
        start_date=date(2024, 1, 1),
        end_date=None,
        due_date=date(2024, 3, 8),
        day_of_month=None,
        month_of_year=None,
        is_active=True,
        auto_execute=True,
        is_paused=False,
        pause_until=None,
        last_executed_date=None,
        total_executions=0,
        failed_executions=0,
        transaction_ids=[],
        created_at=datetime(2024, 1, 1, 9, 0),
        updated_at=datetime(2024, 1, 1, 9, 0),
    )
    values.update(overrides)
    return RecurringSeries(**values)


def build_transaction(**overrides) -> Transaction:
    values = dict(
        id=new_id(),
        user_id=1,
        account_id="checking",
        to_account_id=None,
        amount=Decimal("100.00"),
        type=TransactionType.expense,
        category="Groceries",
        description=None,
        date=date(2024, 3, 1),
        is_reconciled=False,
        linked_transaction_id=None,
        residual_amount=None,
        recurring_series_id=None,
        occurrence_date=None,
        created_at=datetime(2024, 3, 1, 12, 0),
    )
    values.update(overrides)
    return Transaction(**values)


@pytest.fixture
def make_series():
    return build_series


@pytest.fixture
def make_transaction():
    return build_transaction
