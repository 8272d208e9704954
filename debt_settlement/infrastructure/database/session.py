"""Database engine and session factory for the settlement store"""

from typing import Any, Dict, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from debt_settlement.config import settings


def make_engine(database_url: str) -> Engine:
    """
    Engine for the given URL.

    Server databases get a bounded pool that pings and recycles connections.
    SQLite (local runs, tests) is opened for use across the API's worker threads.
    """
    options: Dict[str, Any] = {"pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    else:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=3600,
        )
    return create_engine(database_url, **options)


engine = make_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    """Request-scoped session; the endpoint decides commit or rollback"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
