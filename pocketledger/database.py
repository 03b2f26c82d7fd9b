import logging

from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import NullPool, StaticPool
from sqlmodel import SQLModel, create_engine, Session

from .config import settings


logger = logging.getLogger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create the engine for ``database_url``.

    File-backed SQLite gets one connection per checkout and WAL mode so the
    reloader and request threads do not hold write locks on each other.
    In-memory SQLite shares a single connection, otherwise every checkout
    would see an empty database.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    if _is_memory_sqlite(database_url):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    sqlite_engine = create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": 60},
        poolclass=NullPool,
    )
    try:
        with sqlite_engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL;")
            conn.exec_driver_sql("PRAGMA busy_timeout=60000;")
    except OperationalError:
        logger.warning("Could not enable WAL mode for %s; continuing without it", database_url)
    return sqlite_engine


engine = build_engine(settings.database_url, echo=settings.sql_echo)


def get_session():
    with Session(engine) as session:
        yield session


def init_db(bind: Engine = None):
    """Create any missing tables. Existing tables are left untouched."""
    from .models import user, category, expense  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
