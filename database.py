from contextlib import contextmanager
from functools import partial
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import get_settings


def build_engine(
    database_url: Optional[str] = None, immediate: bool = False, **kwargs
) -> Engine:
    """Create an engine; ``immediate`` makes SQLite take the write lock at BEGIN."""
    settings = get_settings()
    url = database_url or settings.database_url
    connect_args: dict[str, object] = {}
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        # Workers in the execution pool each open their own session.
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = settings.store_timeout_secs

    eng = create_engine(url, connect_args=connect_args, **kwargs)
    if is_sqlite:
        event.listen(eng, "connect", _enable_sqlite_pragmas)
        statement = "BEGIN IMMEDIATE" if immediate else "BEGIN"
        event.listen(eng, "begin", partial(_emit_sqlite_begin, statement))
    return eng


def _enable_sqlite_pragmas(dbapi_conn, _record):
    # Let SQLAlchemy drive BEGIN so SAVEPOINTs nest correctly under pysqlite.
    dbapi_conn.isolation_level = None
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def _emit_sqlite_begin(statement, conn):
    conn.exec_driver_sql(statement)


engine = build_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

# Execution workers write concurrently; they queue on the busy timeout
# instead of failing on a stale read snapshot.
worker_engine = build_engine(immediate=True)
WorkerSessionLocal = sessionmaker(
    bind=worker_engine, autoflush=False, expire_on_commit=False
)


class Base(DeclarativeBase):
    pass


@contextmanager
def session_scope(factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    session: Session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
