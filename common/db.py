"""
Database connection and session management for the audit trail
"""
from contextlib import contextmanager
from typing import Generator, Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .config import config


def create_db_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """Create an engine for the audit database.

    In-memory SQLite shares one connection across threads so that the tables
    created at startup stay visible to request threads.
    """
    url = url or config.database.url
    echo = config.app.debug if echo is None else echo

    if url == "sqlite://" or (url.startswith("sqlite") and ":memory:" in url):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )

    return create_engine(url, pool_pre_ping=True, pool_recycle=3600, echo=echo)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the engine"""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """Context manager for database sessions"""
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine: Engine) -> None:
    """Initialize database tables"""
    from storage.schema import Base
    Base.metadata.create_all(bind=engine)


def check_db_connection(engine: Engine) -> bool:
    """Check if database connection is working"""
    try:
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
        return True
    except Exception:
        return False
