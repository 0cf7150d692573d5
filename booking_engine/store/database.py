"""
Database engine and session factory.
"""
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from booking_engine.config import settings

Base = declarative_base()


def _serialize_sqlite_writers(engine: Engine) -> None:
    """Start every SQLite transaction with BEGIN IMMEDIATE.

    pysqlite defers BEGIN until the first write, so two transactions that
    both read before writing deadlock on lock upgrade. Taking the write
    lock up front makes concurrent writers queue on the busy timeout.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    url = url or settings.database.url
    echo = settings.database.echo if echo is None else echo

    if not url.startswith("sqlite"):
        return create_engine(
            url,
            echo=echo,
            pool_size=8,
            max_overflow=10,
            pool_pre_ping=True,
            pool_recycle=300,
            pool_timeout=30,
        )

    kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection, otherwise every checkout sees an empty database
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, echo=echo, **kwargs)
    _serialize_sqlite_writers(engine)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables (no-op for tables that already exist)."""
    from booking_engine.store import models  # noqa: F401  registers tables on Base

    Base.metadata.create_all(engine)
