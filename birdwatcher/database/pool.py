"""
PostgreSQL connection pool for birdwatcher.

install, scan and report are single-actor invocations, so the pool
holds exactly one connection. It still buys us:
- Statement timeout on all queries (5s default)
- Connection acquisition timeout
- Verified connectivity before any command runs
- Graceful pool shutdown
"""
from typing import Any, Optional
from urllib.parse import urlsplit, urlunsplit
import psycopg
from psycopg.conninfo import conninfo_to_dict, make_conninfo
from psycopg_pool import ConnectionPool
import structlog

from ..config import Config
from ..result import ConnectionLostError

logger = structlog.get_logger()

APPLICATION_NAME = "birdwatcher"

# Module-level pool instance
_pool: Optional[ConnectionPool] = None


def describe_connection(conninfo: str) -> dict[str, Any]:
    """
    Split a connection string into loggable parts, password removed.

    Args:
        conninfo: URL or key/value libpq connection string

    Returns:
        Dict of connection parameters without the password
    """
    try:
        params = conninfo_to_dict(conninfo)
    except psycopg.Error:
        return {"conninfo": "<unparseable>"}
    params.pop("password", None)
    return params


def mask_password(conninfo: str) -> str:
    """
    Return the connection string with its password replaced by ****.

    URLs stay URLs; key/value strings are rebuilt by libpq rules.
    """
    parts = urlsplit(conninfo)
    if parts.scheme:
        if parts.password is None:
            return conninfo
        userinfo, _, hostinfo = parts.netloc.rpartition("@")
        user = userinfo.split(":", 1)[0]
        return urlunsplit(parts._replace(netloc=f"{user}:****@{hostinfo}"))

    try:
        params = conninfo_to_dict(conninfo)
    except psycopg.Error:
        return "<unparseable>"
    if "password" not in params:
        return conninfo
    params["password"] = "****"
    return make_conninfo("", **params)


def create_pool(config: Config) -> ConnectionPool:
    """
    Create the connection pool and wait until it holds a live connection.

    Args:
        config: birdwatcher configuration

    Raises:
        ConnectionLostError: If no connection could be established
            within connection_timeout_s

    Returns:
        ConnectionPool instance
    """
    global _pool

    # Safety: statement_timeout prevents hung queries
    # Safety: application_name identifies our connections in pg_stat_activity
    connection_kwargs: dict[str, Any] = {
        "options": f"-c statement_timeout={config.statement_timeout_ms}",
        "application_name": APPLICATION_NAME,
    }
    if config.tls:
        connection_kwargs["sslmode"] = "require"

    logger.info(
        "creating_connection_pool",
        tls=config.tls,
        statement_timeout_ms=config.statement_timeout_ms,
        **describe_connection(config.connection)
    )

    try:
        pool = ConnectionPool(
            conninfo=config.connection,
            min_size=1,
            max_size=1,
            timeout=float(config.connection_timeout_s),
            kwargs=connection_kwargs,
            open=True
        )
    except psycopg.Error as e:
        logger.error("connection_pool_create_failed", error=str(e))
        raise ConnectionLostError(str(e)) from e

    # Test connection
    try:
        pool.wait(timeout=float(config.connection_timeout_s))
        with pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                result = cur.fetchone()
                if result and result[0] == 1:
                    logger.info("connection_pool_verified", status="healthy")
    except psycopg.Error as e:
        logger.error("connection_pool_test_failed", error=str(e))
        pool.close()
        raise ConnectionLostError(str(e)) from e

    _pool = pool
    return _pool


def close_pool() -> None:
    """
    Close the connection pool gracefully.

    Should be called when the command finishes, whatever its outcome.
    """
    global _pool
    if _pool is not None:
        logger.info("closing_connection_pool")
        _pool.close()
        _pool = None
