"""
core/db.py -- Engine construction shared by the SQLAlchemy Core stores.

Usage:
    engine = make_engine("sqlite:///todoapi.db", metadata)
"""

from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import SingletonThreadPool


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL (Write-Ahead Logging) allows readers to proceed without blocking
    during writes. Set per-connection because SQLite PRAGMAs are not
    inherited by new connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def is_memory_url(db_url: str) -> bool:
    """True for SQLite URLs whose database lives only in process memory."""
    return db_url.startswith("sqlite") and (
        db_url in ("sqlite://", "sqlite:///") or ":memory:" in db_url or "mode=memory" in db_url
    )


def make_engine(db_url: str, metadata: MetaData) -> Engine:
    """Create an engine for db_url and create metadata's tables on it."""
    kwargs: dict = {}
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    if is_memory_url(db_url):
        # One connection per thread keeps an in-memory database alive for the
        # engine's lifetime.
        kwargs["poolclass"] = SingletonThreadPool
    engine = create_engine(db_url, connect_args=connect_args, **kwargs)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    metadata.create_all(engine)
    return engine
