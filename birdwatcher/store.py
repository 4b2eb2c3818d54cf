"""
Sample store: the durable table of raw lock observations.

Append-only while scanning, read in full when reporting. The table is
only ever dropped and recreated as a whole by install.
"""
from typing import Iterable, Union
from psycopg import sql
from psycopg_pool import ConnectionPool
import structlog

from .database.errors import translate_errors
from .models import LockSample

logger = structlog.get_logger()

COLUMNS = (
    "mode",
    "pid",
    "db",
    "relation",
    "username",
    "application",
    "started_at",
    "age",
    "query",
)

DROP_TABLE = sql.SQL("DROP TABLE IF EXISTS {table}")

CREATE_TABLE = sql.SQL("""
    CREATE TABLE IF NOT EXISTS {table} (
        mode TEXT,
        pid INTEGER,
        db TEXT,
        relation TEXT,
        username TEXT,
        application TEXT,
        started_at TIMESTAMP WITH TIME ZONE,
        age INTERVAL,
        query TEXT
    )
""")

INSERT_SAMPLE = sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values})")

SELECT_ALL = sql.SQL("SELECT {columns} FROM {table} ORDER BY ctid")


def _row_from_sample(sample: LockSample) -> tuple:
    return tuple(getattr(sample, column) for column in COLUMNS)


class SampleStore:
    """
    PostgreSQL-backed sample store.

    Every method borrows the pool's connection for one statement (or one
    batch) and commits on return; there is no transaction spanning calls.
    """

    def __init__(self, pool: ConnectionPool, table_name: str = "locktracking"):
        self.pool = pool
        self.table_name = table_name
        self._table = sql.Identifier(table_name)

    def _compose(self, statement: sql.SQL) -> sql.Composed:
        return statement.format(
            table=self._table,
            columns=sql.SQL(", ").join(sql.Identifier(c) for c in COLUMNS),
            values=sql.SQL(", ").join(sql.Placeholder() for _ in COLUMNS),
        )

    def execute(self, statement: Union[sql.Composable, str]) -> None:
        """
        Run one DDL statement against the store.

        Raises:
            StoreError: If the statement fails
            ConnectionLostError: If the connection is gone
        """
        if isinstance(statement, sql.SQL):
            statement = self._compose(statement)
        with translate_errors("store_execute"):
            with self.pool.connection() as conn:
                conn.execute(statement)

    def drop(self) -> None:
        self.execute(DROP_TABLE)
        logger.info("store_dropped", table=self.table_name)

    def create(self) -> None:
        self.execute(CREATE_TABLE)
        logger.info("store_created", table=self.table_name)

    def append(self, samples: Iterable[LockSample]) -> int:
        """
        Append samples in one batch.

        Args:
            samples: Observations from one scan tick

        Raises:
            StoreError: If the insert fails
            ConnectionLostError: If the connection is gone

        Returns:
            Number of rows written
        """
        rows = [_row_from_sample(sample) for sample in samples]
        if not rows:
            return 0

        with translate_errors("store_append"):
            with self.pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.executemany(self._compose(INSERT_SAMPLE), rows)

        return len(rows)

    def query_all(self) -> list[LockSample]:
        """
        Read every sample in insertion order.

        Raises:
            StoreError: If the query fails
            ConnectionLostError: If the connection is gone
        """
        with translate_errors("store_query_all"):
            with self.pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(self._compose(SELECT_ALL))
                    rows = cur.fetchall()

        return [LockSample(*row) for row in rows]
