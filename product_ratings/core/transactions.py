# product_ratings/core/transactions.py

import logging
import random
import time
from contextlib import contextmanager
from functools import wraps
from typing import Callable, Iterator, Set, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from .config import get_settings
from .exceptions import APIError, TransactionFailureError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Database error codes that indicate retry-able conditions
RETRY_ERROR_CODES: Set[str] = {
    # PostgreSQL
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available
    # SQLite (for testing)
    "database is locked",
    "database table is locked",
}


def is_retryable_error(error: Exception) -> bool:
    """
    Check if a database error is retryable

    Args:
        error: The exception to check

    Returns:
        True if the error indicates a transient condition that may succeed on retry
    """
    if isinstance(error, (OperationalError, DBAPIError)):
        error_str = str(error).lower()
        if any(code in error_str for code in ["deadlock", "serialization", "lock"]):
            return True

        orig = getattr(error, "orig", None)
        if orig is not None and getattr(orig, "pgcode", None):
            return orig.pgcode in RETRY_ERROR_CODES
        if orig is not None and getattr(orig, "args", None):
            error_code = str(orig.args[0])
            return any(code in error_code for code in RETRY_ERROR_CODES)

    return False


@contextmanager
def atomic(db: Session, operation: str = "transaction") -> Iterator[Session]:
    """
    Run a block of work as one all-or-nothing transaction.

    Domain errors roll back and propagate unchanged. Store failures roll back
    and surface as ``TransactionFailureError``. Interruptions (including
    cancellation) also roll back before re-raising, so no partial write is
    ever committed.

    Example:
        with atomic(db, "create_review"):
            store.insert(...)
            ledger.upsert_add(...)
    """
    try:
        yield db
        db.commit()
    except APIError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        retryable = is_retryable_error(exc)
        logger.error(f"{operation} rolled back after store failure (retryable={retryable}): {exc}")
        raise TransactionFailureError(
            detail=f"{operation} failed and was rolled back",
            retryable=retryable,
        ) from exc
    except BaseException:
        db.rollback()
        logger.warning(f"{operation} interrupted, rolled back")
        raise


def retry_on_transaction_failure(
    func: Callable[..., T],
    *args,
    max_retries: int = None,
    initial_delay: float = None,
    max_delay: float = None,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    **kwargs,
) -> T:
    """
    Retry a callable when it fails with a retryable TransactionFailureError

    Retrying is safe because a failed transaction never leaves partial state.

    Args:
        func: The callable to retry
        *args: Positional arguments for the callable
        max_retries: Maximum number of retry attempts (defaults to settings)
        initial_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        backoff_factor: Multiplier for exponential backoff
        jitter: Add random jitter to prevent thundering herd
        **kwargs: Keyword arguments for the callable

    Returns:
        The result of the callable

    Raises:
        The last TransactionFailureError if all retries fail
    """
    settings = get_settings()
    if max_retries is None:
        max_retries = settings.transaction_max_retries
    if initial_delay is None:
        initial_delay = settings.transaction_retry_initial_delay
    if max_delay is None:
        max_delay = settings.transaction_retry_max_delay

    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            return func(*args, **kwargs)
        except TransactionFailureError as e:
            if not e.retryable or attempt == max_retries:
                raise

            actual_delay = min(delay, max_delay)
            if jitter:
                # Add random jitter (0-25% of delay)
                actual_delay *= 1 + random.random() * 0.25

            logger.warning(
                f"Transaction failure on attempt {attempt + 1}/{max_retries + 1}. "
                f"Retrying in {actual_delay:.2f}s. Error: {e.detail}"
            )

            time.sleep(actual_delay)
            delay *= backoff_factor


def with_transaction_retry(max_retries: int = None, **retry_kwargs):
    """
    Decorator form of ``retry_on_transaction_failure``

    Example:
        @with_transaction_retry(max_retries=5)
        def submit(...):
            ...
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            return retry_on_transaction_failure(
                func, *args, max_retries=max_retries, **retry_kwargs, **kwargs
            )

        return wrapper

    return decorator
