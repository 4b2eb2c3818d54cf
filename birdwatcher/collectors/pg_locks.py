"""
Lock source collector.

Reads currently granted locks of one mode from pg_locks, joined with
pg_class for the relation name and pg_stat_activity for the holder's
session, and turns each into a LockSample.
"""
from psycopg_pool import ConnectionPool
import structlog

from ..database.errors import translate_errors
from ..models import LockSample

logger = structlog.get_logger()

# clock_timestamp() rather than now(): the scan instant must not be frozen
# at the start of the surrounding transaction.
LOCKS_QUERY = """
    SELECT
        l.mode,
        l.pid,
        a.datname,
        c.relname,
        a.usename,
        a.application_name,
        a.query_start,
        a.query,
        clock_timestamp() AS scanned_at
    FROM pg_catalog.pg_locks l
    JOIN pg_catalog.pg_class c ON l.relation = c.oid
    JOIN pg_catalog.pg_stat_activity a ON l.pid = a.pid
    WHERE l.granted = true AND l.mode = %s
"""


def _sample_from_row(row: tuple) -> LockSample:
    mode, pid, db, relation, username, application, started_at, query, scanned_at = row
    return LockSample(
        mode=mode,
        pid=pid,
        db=db,
        relation=relation,
        username=username,
        application=application,
        started_at=started_at,
        age=scanned_at - started_at if started_at is not None else None,
        query=query,
    )


class PgLockSource:
    """Snapshot of granted locks in one lock mode."""

    def __init__(self, pool: ConnectionPool, mode: str = "AccessExclusiveLock"):
        self.pool = pool
        self.mode = mode

    def snapshot(self) -> list[LockSample]:
        """
        Return one LockSample per currently granted lock of self.mode.

        Ages are measured against the server clock at query time.

        Raises:
            StoreError: If the query fails
            ConnectionLostError: If the connection is gone
        """
        with translate_errors("lock_snapshot"):
            with self.pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(LOCKS_QUERY, (self.mode,))
                    rows = cur.fetchall()

        samples = [_sample_from_row(row) for row in rows]

        if samples:
            logger.debug(
                "exclusive_locks_detected",
                count=len(samples),
                pids=sorted({s.pid for s in samples})
            )

        return samples
