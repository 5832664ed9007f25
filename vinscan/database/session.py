"""
VinScan — Database Session

SQLAlchemy engine, session factory, and declarative base for the
inventory store. SQLite by default; any SQLAlchemy URL works.
"""

from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from vinscan.config import get_settings

settings = get_settings()


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        # API handlers run in a threadpool
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


def build_engine(url: str, **overrides: Any) -> Engine:
    return create_engine(url, **{**_engine_options(url), **overrides})


engine = build_engine(settings.database_url)

SessionLocal: sessionmaker[Session] = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""
    pass


def get_db():
    """FastAPI dependency — yields a DB session and closes it when done."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
