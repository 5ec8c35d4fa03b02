"""Document store adapter: one SQLAlchemy engine per process, one session per request.

Route handlers never open sessions themselves; they receive one through the
`get_db` dependency, which tests replace with a session on an in-memory
database.
"""
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from . import config

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_store_engine(url: str, **kwargs) -> Engine:
    """Build an engine for `url`; SQLite engines get FK enforcement and cross-thread use."""
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        # FastAPI runs sync handlers on a thread pool
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    store = create_engine(url, future=True, **kwargs)

    if is_sqlite:
        # payment_lines cascade with their payment only when SQLite enforces FKs
        @event.listens_for(store, "connect")
        def enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    logger.debug("store engine created for %s", store.url.render_as_string(hide_password=True))
    return store


engine = create_store_engine(config.settings().database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def get_db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
