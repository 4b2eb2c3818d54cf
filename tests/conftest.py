from datetime import datetime, timedelta, timezone

import pytest
import structlog

from birdwatcher.models import LockSample
from birdwatcher.result import ConnectionLostError, StoreError


T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_sample(pid=101, age_ms=50, started_at=T0, relation="orders", query="ALTER TABLE orders ADD COLUMN note text", **overrides):
    fields = dict(
        mode="AccessExclusiveLock",
        pid=pid,
        db="shop",
        relation=relation,
        username="deploy",
        application="psql",
        started_at=started_at,
        age=timedelta(milliseconds=age_ms),
        query=query,
    )
    fields.update(overrides)
    return LockSample(**fields)


class FakeCursor:
    def __init__(self, pool):
        self.pool = pool
        self._result = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        self.pool.check()
        self.pool.executed.append((query, params))
        self._result = list(self.pool.rows)

    def executemany(self, query, rows):
        self.pool.check()
        rows = list(rows)
        self.pool.executed.append((query, rows))
        self.pool.rows.extend(rows)

    def fetchone(self):
        return self._result[0] if self._result else None

    def fetchall(self):
        return list(self._result)


class FakeConnection:
    def __init__(self, pool):
        self.pool = pool

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def cursor(self):
        return FakeCursor(self.pool)

    def execute(self, query, params=None):
        self.pool.check()
        self.pool.executed.append((query, params))


class FakePool:
    """Stands in for psycopg_pool.ConnectionPool; rows play the role of the table."""

    def __init__(self, rows=None, error=None, fail_on=None):
        self.rows = list(rows or [])
        self.error = error
        # statement indexes that raise error; None means every statement
        self.fail_on = fail_on
        self.calls = 0
        self.executed = []

    def check(self):
        call = self.calls
        self.calls += 1
        if self.error is not None and (self.fail_on is None or call in self.fail_on):
            raise self.error

    def connection(self):
        return FakeConnection(self)


class InMemorySampleStore:
    """Sample store keeping rows in a list, with injectable failures."""

    def __init__(self, table_name="locktracking"):
        self.table_name = table_name
        self.exists = False
        self.rows = []
        self.appends = []
        self.drop_error = None
        self.create_error = None
        self.query_error = None

    def drop(self):
        if self.drop_error is not None:
            raise self.drop_error
        self.exists = False
        self.rows = []

    def create(self):
        if self.create_error is not None:
            raise self.create_error
        self.exists = True

    def append(self, samples):
        samples = list(samples)
        self.appends.append(samples)
        self.rows.extend(samples)
        return len(samples)

    def query_all(self):
        if self.query_error is not None:
            raise self.query_error
        if not self.exists:
            raise StoreError(f'relation "{self.table_name}" does not exist')
        return list(self.rows)


class ScriptedLockSource:
    """Returns a prepared snapshot per tick; the last one repeats."""

    def __init__(self, snapshots):
        self.snapshots = list(snapshots)
        self.calls = 0

    def snapshot(self):
        index = min(self.calls, len(self.snapshots) - 1)
        self.calls += 1
        result = self.snapshots[index]
        if isinstance(result, Exception):
            raise result
        return result


def snapshots_for_counts(counts):
    return [[make_sample(pid=100 + i) for i in range(n)] for n in counts]


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def store():
    s = InMemorySampleStore()
    s.create()
    return s


@pytest.fixture
def connection_lost():
    return ConnectionLostError("server closed the connection unexpectedly")
