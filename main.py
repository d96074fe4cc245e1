from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal, WorkerSessionLocal
from errors import ReconciliationError
from periods import Period
from scheduler import SchedulerManager
from schemas import (
    BudgetIn,
    BudgetOut,
    BudgetPeriodCloseIn,
    BudgetPeriodOut,
    BudgetPeriodStartIn,
    DashboardView,
    ExecutionResult,
    MissedExecution,
    PauseIn,
    RecurringSeriesIn,
    SeriesOut,
    TransactionIn,
    TransactionOut,
)
from services import (
    BudgetPeriodService,
    BudgetService,
    RecurringSeriesService,
    TransactionService,
)


app = FastAPI(title="Household Ledger")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    if get_settings().scheduler_enabled:
        scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def http_error(exc: ValueError) -> HTTPException:
    if isinstance(exc, ReconciliationError):
        return HTTPException(
            status_code=409, detail={"code": exc.code, "message": str(exc)}
        )
    if "not found" in str(exc).lower():
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def series_service(db: Session) -> RecurringSeriesService:
    factory = WorkerSessionLocal if get_settings().execution_workers > 1 else None
    return RecurringSeriesService(db, session_factory=factory)


@app.get("/api/recurring", response_model=list[SeriesOut])
def api_list_series(include_inactive: bool = True, db: Session = Depends(get_db)):
    return RecurringSeriesService(db).list(include_inactive=include_inactive)


@app.post("/api/recurring", response_model=SeriesOut, status_code=201)
def api_create_series(data: RecurringSeriesIn, db: Session = Depends(get_db)):
    try:
        return RecurringSeriesService(db).create(data)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/api/recurring/dashboard", response_model=DashboardView)
def api_dashboard(lookahead_days: Optional[int] = None, db: Session = Depends(get_db)):
    return RecurringSeriesService(db).dashboard(lookahead_days=lookahead_days)


@app.get("/api/recurring/missed", response_model=list[MissedExecution])
def api_missed(db: Session = Depends(get_db)):
    return RecurringSeriesService(db).missed_executions()


@app.get("/api/recurring/stats")
def api_stats(db: Session = Depends(get_db)):
    return RecurringSeriesService(db).statistics()


@app.post("/api/recurring/execute", response_model=ExecutionResult)
def api_execute(
    dry_run: bool = True,
    max_days_overdue: Optional[int] = None,
    force: bool = False,
    db: Session = Depends(get_db),
):
    if max_days_overdue is not None and max_days_overdue < 0:
        raise HTTPException(status_code=400, detail="max_days_overdue must be >= 0")
    return series_service(db).run(
        dry_run=dry_run, max_days_overdue=max_days_overdue, force=force
    )


@app.get("/api/recurring/{series_id}", response_model=SeriesOut)
def api_get_series(series_id: str, db: Session = Depends(get_db)):
    try:
        return RecurringSeriesService(db).get(series_id)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.put("/api/recurring/{series_id}", response_model=SeriesOut)
def api_update_series(
    series_id: str, data: RecurringSeriesIn, db: Session = Depends(get_db)
):
    try:
        return RecurringSeriesService(db).update(series_id, data)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.post("/api/recurring/{series_id}/pause", response_model=SeriesOut)
def api_pause_series(series_id: str, data: PauseIn, db: Session = Depends(get_db)):
    try:
        return RecurringSeriesService(db).pause(series_id, until=data.until)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.post("/api/recurring/{series_id}/resume", response_model=SeriesOut)
def api_resume_series(series_id: str, db: Session = Depends(get_db)):
    try:
        return RecurringSeriesService(db).resume(series_id)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.delete("/api/recurring/{series_id}", response_model=SeriesOut)
def api_deactivate_series(series_id: str, db: Session = Depends(get_db)):
    try:
        return RecurringSeriesService(db).deactivate(series_id)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/api/recurring/{series_id}/reconciliation")
def api_series_reconciliation(series_id: str, db: Session = Depends(get_db)):
    try:
        return RecurringSeriesService(db).reconciliation(series_id)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/api/transactions", response_model=list[TransactionOut])
def api_list_transactions(
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
):
    period = None
    try:
        if start and end:
            period = Period.closing(start, end)
        return TransactionService(db).list(period)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.post("/api/transactions", response_model=TransactionOut, status_code=201)
def api_create_transaction(data: TransactionIn, db: Session = Depends(get_db)):
    try:
        return TransactionService(db).create(data)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/api/transactions/{transaction_id}")
def api_get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    service = TransactionService(db)
    try:
        txn = service.get(transaction_id)
        return {
            "transaction": TransactionOut.model_validate(txn),
            "effective_amount": service.effective_amount(transaction_id),
            "is_primary": service.is_primary(transaction_id),
            "remaining_amount": service.remaining_amount(transaction_id),
            "has_available_amount": service.has_available_amount(transaction_id),
        }
    except ValueError as exc:
        raise http_error(exc) from exc


@app.post(
    "/api/transactions/{transaction_id}/link/{other_id}",
    response_model=list[TransactionOut],
)
def api_link_transactions(
    transaction_id: str, other_id: str, db: Session = Depends(get_db)
):
    try:
        return list(TransactionService(db).link(transaction_id, other_id))
    except ValueError as exc:
        raise http_error(exc) from exc


@app.delete("/api/transactions/{transaction_id}/link", status_code=204)
def api_unlink_transaction(transaction_id: str, db: Session = Depends(get_db)):
    try:
        TransactionService(db).unlink(transaction_id)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/api/budgets", response_model=list[BudgetOut])
def api_list_budgets(db: Session = Depends(get_db)):
    return BudgetService(db).list_all()


@app.post("/api/budgets", response_model=BudgetOut, status_code=201)
def api_create_budget(data: BudgetIn, db: Session = Depends(get_db)):
    try:
        return BudgetService(db).create(data)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/api/budget-periods", response_model=list[BudgetPeriodOut])
def api_list_periods(db: Session = Depends(get_db)):
    return BudgetPeriodService(db).list_periods()


@app.get("/api/budget-periods/active", response_model=Optional[BudgetPeriodOut])
def api_active_period(db: Session = Depends(get_db)):
    return BudgetPeriodService(db).active_period()


@app.post("/api/budget-periods", response_model=BudgetPeriodOut, status_code=201)
def api_start_period(data: BudgetPeriodStartIn, db: Session = Depends(get_db)):
    return BudgetPeriodService(db).start_period(data.start_date)


@app.post("/api/budget-periods/{period_id}/close", response_model=BudgetPeriodOut)
def api_close_period(
    period_id: int, data: BudgetPeriodCloseIn, db: Session = Depends(get_db)
):
    try:
        return BudgetPeriodService(db).close_period(period_id, data.end_date)
    except ValueError as exc:
        raise http_error(exc) from exc
