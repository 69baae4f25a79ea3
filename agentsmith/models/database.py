"""
Database configuration and session management for Agent Smith.
SQLite by default; any SQLAlchemy URL works through DATABASE_URL.
"""

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from agentsmith.core.config import settings
from agentsmith.models.entities.base import Base


def build_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)
    return create_engine(url, echo=echo, pool_pre_ping=True, pool_recycle=3600)


engine = build_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)


@contextmanager
def get_db_context(session_factory=None):
    """Context manager for database sessions in non-request contexts."""
    db = (session_factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine = None) -> None:
    """Create all tables."""
    # Entities must be imported so they register on Base.metadata
    import agentsmith.models.entities  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
