"""
Database Configuration
"""
from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from fastapi import Request
from typing import Generator, Iterator
import logging
import time

from ledgerpost.core.config import Settings
from ledgerpost.core.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)

# Base model
Base = declarative_base()


def _connect_args(settings: Settings) -> dict:
    """Driver options that bound how long a transaction may wait on the store"""
    db_url = settings.database_url
    timeout = settings.TRANSACTION_TIMEOUT_SECONDS
    if db_url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": timeout}
    if db_url.startswith("postgresql"):
        timeout_ms = int(timeout * 1000)
        return {
            "options": f"-c statement_timeout={timeout_ms} "
                       f"-c idle_in_transaction_session_timeout={timeout_ms}"
        }
    return {}


class Database:
    """Engine and session factory, built once from settings and shared by the app"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = create_engine(
            settings.database_url,
            connect_args=_connect_args(settings),
            echo=settings.DEBUG,
            pool_pre_ping=True,
        )
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()

    def init_db(self):
        """Initialize database tables"""
        # Import models to register them with Base
        import ledgerpost.models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)

    def dispose(self):
        self.engine.dispose()


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.
    Ensures the session is closed after use.
    """
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session, timeout_seconds: float = None) -> Iterator[Session]:
    """
    Unit of work: commit everything staged inside the block or nothing.

    Store errors are rolled back and re-raised as PersistenceFailure. Domain errors are
    rolled back and re-raised unchanged. A block that runs past timeout_seconds is rolled
    back instead of committed.
    """
    started = time.monotonic()
    try:
        yield db
        if timeout_seconds is not None and time.monotonic() - started > timeout_seconds:
            raise PersistenceFailure(f"Transaction exceeded {timeout_seconds}s and was rolled back")
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Transaction rolled back after database error", exc_info=True)
        raise PersistenceFailure("Database error, transaction rolled back") from exc
    except Exception:
        db.rollback()
        raise
