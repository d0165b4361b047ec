from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from zlib import crc32

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .core.config import settings

# Server-side keepalives for pooled Postgres connections.
_PG_KEEPALIVES = {
    "keepalives": 1,
    "keepalives_idle": 120,
    "keepalives_interval": 30,
    "keepalives_count": 5,
}


def _sqlite_pragmas(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _sqlite_options(url: URL) -> dict[str, object]:
    if url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return {"connect_args": {"check_same_thread": False}}


def _server_options(url: URL) -> dict[str, object]:
    connect_args: dict[str, object] = {}
    if url.get_backend_name() == "postgresql":
        connect_args.update(_PG_KEEPALIVES)
        if url.get_driver_name() == "psycopg":
            # pgbouncer in transaction mode cannot PREPARE.
            connect_args["prepare_threshold"] = None
    return {"pool_recycle": 300, "connect_args": connect_args}


def _create_engine(url: str) -> Engine:
    parsed = make_url(url)
    is_sqlite = parsed.get_backend_name() == "sqlite"
    options = _sqlite_options(parsed) if is_sqlite else _server_options(parsed)

    engine = create_engine(url, echo=settings.debug, pool_pre_ping=True, **options)
    if is_sqlite:
        event.listen(engine, "connect", _sqlite_pragmas)
    return engine


def _create_session_factory(engine: Engine) -> sessionmaker[Session]:
    # Rows stay readable after the commit that precedes a gateway call.
    return sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)


engine = _create_engine(settings.resolved_database_url)
SessionLocal = _create_session_factory(engine)
Base = declarative_base()


def lock_show(session: Session, show_id: str) -> None:
    """Serialise writers for one show until the current transaction ends.

    Postgres takes a transaction-scoped advisory lock keyed by the show id.
    SQLite serialises writers per database; touching the show row acquires
    the write lock before any entry is read.
    """

    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        session.execute(
            text("SELECT pg_advisory_xact_lock(:key)"),
            {"key": crc32(show_id.encode("utf-8"))},
        )
    elif dialect == "sqlite":
        session.execute(text("UPDATE shows SET id = id WHERE id = :show_id"), {"show_id": show_id})


@contextmanager
def session_scope() -> Session:
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def init_db() -> None:
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
