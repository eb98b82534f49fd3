"""
EVDMS Database Configuration
SQLAlchemy setup, session handling and the transaction runner
"""
from sqlalchemy import create_engine, MetaData, text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Callable, Generator, Iterable, TypeVar
import logging
import time

from .config import settings
from .exceptions import ConcurrentUpdateError

logger = logging.getLogger("evdms.database")

T = TypeVar("T")


def _engine_options() -> dict:
    """Pool options only apply to server databases"""
    if settings.is_sqlite:
        return {"connect_args": {"check_same_thread": False}, "echo": settings.DEBUG}
    return {
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_pre_ping": True,
        "echo": settings.DEBUG,
    }


engine = create_engine(settings.DATABASE_URL, **_engine_options())

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Metadata with naming convention for constraints
Base = declarative_base(metadata=MetaData(naming_convention={
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}))


def get_db() -> Generator[Session, None, None]:
    """
    Dependency function to get database session

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind=None):
    """
    Initialize database tables

    This function creates all tables defined in models
    """
    # Import all models to ensure they are registered with Base
    from evdms import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables created successfully")


def check_db_connection() -> bool:
    """
    Check if database connection is working

    Returns:
        True if connection is successful, False otherwise
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


def _violated_unique_key(exc: Exception, unique_keys: Iterable[str]):
    """Name from ``unique_keys`` that a unique violation mentions, if any"""
    if not isinstance(exc, IntegrityError):
        return None
    detail = str(exc.orig)
    return next((key for key in unique_keys if key in detail), None)


def _is_retryable(exc: Exception) -> bool:
    """Serialization failures and deadlocks surface as OperationalError"""
    if isinstance(exc, OperationalError):
        return True
    if isinstance(exc, DBAPIError):
        code = getattr(exc.orig, "pgcode", None)
        # 40001 serialization_failure, 40P01 deadlock_detected
        return code in ("40001", "40P01")
    return False


def run_in_transaction(db: Session, work: Callable[[], T], retry_unique_keys: Iterable[str] = ()) -> T:
    """
    Run ``work`` as one all-or-nothing unit on ``db``.

    The session is committed when ``work`` returns and rolled back on any
    exception. Conflicts reported by the database are retried with fresh
    reads up to ``TRANSACTION_MAX_RETRIES`` times with exponential backoff;
    application errors are re-raised immediately.

    ``retry_unique_keys`` names unique constraints (or ``table.column`` as
    SQLite reports them) whose violation means a concurrent writer took a
    generated key first. Those are retried too, and raise
    ConcurrentUpdateError once retries run out.
    """
    attempt = 0
    while True:
        try:
            result = work()
            db.commit()
            return result
        except Exception as exc:
            db.rollback()
            unique_key = _violated_unique_key(exc, retry_unique_keys)
            if unique_key is None and not _is_retryable(exc):
                raise
            if attempt >= settings.TRANSACTION_MAX_RETRIES:
                if unique_key is not None:
                    raise ConcurrentUpdateError(
                        f"Could not allocate a unique {unique_key} after {attempt + 1} attempts; retry the request",
                        key=unique_key,
                        attempts=attempt + 1,
                    ) from exc
                raise
            attempt += 1
            delay = settings.TRANSACTION_RETRY_BACKOFF_SECONDS * (2 ** (attempt - 1))
            logger.warning(
                f"Transaction conflict, retrying ({attempt}/{settings.TRANSACTION_MAX_RETRIES}) "
                f"in {delay:.3f}s: {exc}"
            )
            time.sleep(delay)
