"""Database session management with connection pooling and transaction retry"""

import logging
from typing import Callable, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import sessionmaker, Session
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_fixed

from rental_engine.config import settings
from rental_engine.domain.exceptions import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,  # Verify connections before using
    pool_size=10,
    max_overflow=10,
    pool_recycle=3600,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

# SQLSTATE serialization_failure / deadlock_detected
_TRANSIENT_PGCODES = {"40001", "40P01"}


def get_session_factory() -> sessionmaker:
    """Dependency injection for the session factory used by services"""
    return SessionLocal


def is_transient(exc: BaseException) -> bool:
    """True for store-level conflicts that are safe to retry"""
    if not isinstance(exc, DBAPIError):
        return False
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode in _TRANSIENT_PGCODES:
        return True
    return isinstance(exc, OperationalError) and "database is locked" in str(exc.orig)


def run_in_transaction(session_factory: sessionmaker, work: Callable[[Session], T]) -> T:
    """
    Run `work` inside one transaction, retrying transient store conflicts.

    Business exceptions raised by `work` roll the transaction back and
    propagate unchanged. Serialization failures are retried
    `settings.db_retry_attempts` times and then surface as ConflictError.
    """
    try:
        for attempt in Retrying(
            stop=stop_after_attempt(settings.db_retry_attempts),
            wait=wait_fixed(settings.db_retry_wait_seconds),
            retry=retry_if_exception(is_transient),
            reraise=True,
        ):
            with attempt:
                with session_factory() as session:
                    with session.begin():
                        return work(session)
    except DBAPIError as e:
        if is_transient(e):
            logger.warning(f"Transaction gave up after {settings.db_retry_attempts} attempts: {e.orig}")
            raise ConflictError("Concurrent update detected, please retry") from e
        raise
