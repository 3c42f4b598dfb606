from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from lab_inventory.core.config import get_settings
from lab_inventory.models.base import Base

settings = get_settings()


def build_engine(database_url: str, *, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.

    SQLite connections are shared with FastAPI's threadpool, so the
    same-thread check is disabled for that dialect.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    return create_engine(
        database_url,
        future=True,
        pool_pre_ping=True,
        echo=echo,
        connect_args=connect_args,
    )


# Main SQLAlchemy engine
engine = build_engine(str(settings.database_url), echo=settings.database_echo)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)


def init_db(bind: Engine | None = None) -> None:
    """
    Create all inventory tables that do not exist yet.

    Production schemas are managed by alembic; this is for local runs
    (settings.database_auto_create) and tests.
    """
    from lab_inventory.models import inventory  # noqa: F401  (register models)

    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a DB session.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
