from sqlalchemy import select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, build_engine
from models import RecurringSeries, Transaction
from recurrence import local_today
from scheduler import SchedulerManager


def test_run_job_posts_due_series(make_series):
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    today = local_today()
    with factory() as session:
        session.add(make_series(start_date=today, due_date=today))
        session.commit()

    manager = SchedulerManager(session_factory=factory, worker_factory=factory)
    manager._run_job("test")

    with factory() as session:
        series = session.scalars(select(RecurringSeries)).one()
        txn = session.scalars(select(Transaction)).one()
        assert series.total_executions == 1
        assert series.transaction_ids == [txn.id]
        assert txn.occurrence_date == today
    assert manager.scheduler.running is False
    engine.dispose()
