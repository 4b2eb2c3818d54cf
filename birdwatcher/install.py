"""
Sample store lifecycle.

install() drops whatever table is there and creates it fresh. Previously
recorded samples are lost; that is how a monitoring session is reset.
"""
from typing import Callable
import structlog

from .result import Result, StoreError

logger = structlog.get_logger()


def install(store, emit: Callable[[str], None] = print) -> Result:
    """
    (Re)create the sample store table.

    A failed drop is logged and ignored, the table may not exist yet.
    A failed create is fatal.

    Args:
        store: SampleStore (or anything with drop() and create())
        emit: Sink for operator-facing messages

    Returns:
        SUCCESS once the table exists, FATAL if it could not be created
    """
    emit(f"installing table {store.table_name}")

    try:
        store.drop()
    except StoreError as e:
        logger.warning("store_drop_failed", table=store.table_name, error=str(e))

    try:
        store.create()
    except StoreError as e:
        logger.error("store_create_failed", table=store.table_name, error=str(e))
        return Result.fatal(f"couldn't install table {store.table_name}: {e}")

    emit("ready to scan!")
    return Result.success()
