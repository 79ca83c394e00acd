"""Database engine construction for the on-device ledger."""

from pathlib import Path

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def _is_memory_database(database_url: str) -> bool:
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def create_ledger_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create the SQLAlchemy engine for the ledger.

    SQLite files get their parent directory created, WAL journaling (so
    readers see committed rows while a write is in progress) and foreign
    keys. In-memory databases share one connection across threads.
    """
    url = make_url(database_url)
    is_sqlite = url.get_backend_name() == "sqlite"
    kwargs = {}

    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
        if _is_memory_database(database_url):
            kwargs["poolclass"] = StaticPool
        else:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(database_url, echo=echo, **kwargs)

    if is_sqlite:
        memory = _is_memory_database(database_url)

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if not memory:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )
