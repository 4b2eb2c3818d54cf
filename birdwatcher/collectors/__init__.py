"""Lock state collectors for PostgreSQL."""
from .pg_locks import PgLockSource

__all__ = [
    'PgLockSource',
]
