"""Translation of driver errors into birdwatcher's error types."""
from contextlib import contextmanager
from typing import Iterator
import psycopg
from psycopg_pool import PoolClosed, PoolTimeout
import structlog

from ..result import ConnectionLostError, StoreError

logger = structlog.get_logger()

# admin_shutdown, crash_shutdown, cannot_connect_now
SHUTDOWN_SQLSTATES = frozenset({"57P01", "57P02", "57P03"})


def is_connection_lost(error: psycopg.Error) -> bool:
    """
    Tell a dead connection apart from a failed statement.

    Statement timeouts (57014), resource errors (class 53) and lock
    errors (class 55) are OperationalErrors too, but the connection
    survives them.
    """
    if isinstance(error, (PoolTimeout, PoolClosed)):
        return True

    sqlstate = error.sqlstate
    if sqlstate is None:
        # client-side failures, e.g. "server closed the connection unexpectedly"
        return isinstance(error, psycopg.OperationalError)

    return sqlstate.startswith("08") or sqlstate in SHUTDOWN_SQLSTATES


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """
    Re-raise psycopg errors as StoreError / ConnectionLostError.

    Args:
        operation: Short name of the failing operation, used in logs
    """
    try:
        yield
    except psycopg.Error as e:
        if is_connection_lost(e):
            logger.error("database_connection_lost", operation=operation, error=str(e))
            raise ConnectionLostError(f"{operation}: {e}") from e
        logger.debug("database_statement_failed", operation=operation, sqlstate=e.sqlstate, error=str(e))
        raise StoreError(f"{operation}: {e}") from e
