import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        lookahead_days: int,
        max_days_overdue: int,
        execution_workers: int,
        store_timeout_secs: float,
        scheduler_enabled: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.lookahead_days = lookahead_days
        self.max_days_overdue = max_days_overdue
        self.execution_workers = execution_workers
        self.store_timeout_secs = store_timeout_secs
        self.scheduler_enabled = scheduler_enabled


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "ledger.db"
    database_url = os.getenv("LEDGER_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("LEDGER_TIMEZONE", "Europe/Rome")
    lookahead_days = int(os.getenv("LEDGER_LOOKAHEAD_DAYS", "7"))
    max_days_overdue = int(os.getenv("LEDGER_MAX_DAYS_OVERDUE", "7"))
    execution_workers = max(1, int(os.getenv("LEDGER_EXECUTION_WORKERS", "1")))
    store_timeout_secs = float(os.getenv("LEDGER_STORE_TIMEOUT_SECS", "5"))
    scheduler_enabled = _env_flag("LEDGER_SCHEDULER_ENABLED", "true")
    return Settings(
        database_url=database_url,
        timezone=timezone,
        lookahead_days=lookahead_days,
        max_days_overdue=max_days_overdue,
        execution_workers=execution_workers,
        store_timeout_secs=store_timeout_secs,
        scheduler_enabled=scheduler_enabled,
    )
