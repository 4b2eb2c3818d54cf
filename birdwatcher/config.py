"""
Configuration loader for birdwatcher.

Supports INI file and environment variable overrides.
Command-line flags are applied on top by the dispatcher.
"""
import os
import configparser
from dataclasses import dataclass
from typing import Optional
import structlog

logger = structlog.get_logger()

LOG_FORMATS = ("console", "json")


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """birdwatcher configuration with safe defaults."""

    # Database connection
    connection: str = "postgres://postgres@localhost:5432"
    tls: bool = False
    statement_timeout_ms: int = 5000
    connection_timeout_s: int = 10

    # Sample store
    table_name: str = "locktracking"

    # Scanning
    lock_mode: str = "AccessExclusiveLock"
    interval_ms: int = 100
    heartbeat_ticks: int = 0  # 0 disables the still-scanning heartbeat

    # Logging
    log_level: str = "info"
    log_format: str = "console"


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from INI file and environment variables.

    Priority:
    1. Environment variables (highest)
    2. INI file
    3. Defaults (lowest)

    Environment variable format: BIRDWATCHER_<SETTING_NAME>
    Example: BIRDWATCHER_CONNECTION, BIRDWATCHER_INTERVAL_MS
    """
    config = Config()

    # Load from INI file if provided
    if config_path and os.path.exists(config_path):
        parser = configparser.ConfigParser()
        parser.read(config_path)

        if parser.has_section('database'):
            config.connection = parser.get('database', 'connection', fallback=config.connection)
            config.tls = parser.getboolean('database', 'tls', fallback=config.tls)
            config.statement_timeout_ms = parser.getint('database', 'statement_timeout_ms', fallback=config.statement_timeout_ms)
            config.connection_timeout_s = parser.getint('database', 'connection_timeout_s', fallback=config.connection_timeout_s)

        if parser.has_section('store'):
            config.table_name = parser.get('store', 'table', fallback=config.table_name)

        if parser.has_section('scan'):
            config.lock_mode = parser.get('scan', 'lock_mode', fallback=config.lock_mode)
            config.interval_ms = parser.getint('scan', 'interval_ms', fallback=config.interval_ms)
            config.heartbeat_ticks = parser.getint('scan', 'heartbeat_ticks', fallback=config.heartbeat_ticks)

        if parser.has_section('logging'):
            config.log_level = parser.get('logging', 'level', fallback=config.log_level)
            config.log_format = parser.get('logging', 'format', fallback=config.log_format)

        logger.info("config_loaded_from_file", path=config_path)

    # Override with environment variables (highest priority)
    env_mappings = {
        'BIRDWATCHER_CONNECTION': ('connection', str),
        'BIRDWATCHER_TLS': ('tls', _to_bool),
        'BIRDWATCHER_STATEMENT_TIMEOUT_MS': ('statement_timeout_ms', int),
        'BIRDWATCHER_CONNECTION_TIMEOUT_S': ('connection_timeout_s', int),
        'BIRDWATCHER_TABLE': ('table_name', str),
        'BIRDWATCHER_LOCK_MODE': ('lock_mode', str),
        'BIRDWATCHER_INTERVAL_MS': ('interval_ms', int),
        'BIRDWATCHER_HEARTBEAT_TICKS': ('heartbeat_ticks', int),
        'BIRDWATCHER_LOG_LEVEL': ('log_level', str),
        'BIRDWATCHER_LOG_FORMAT': ('log_format', str),
    }

    for env_var, (attr, type_fn) in env_mappings.items():
        value = os.environ.get(env_var)
        if value is not None:
            setattr(config, attr, type_fn(value))
            logger.debug("config_override_from_env", var=env_var)

    return enforce_limits(config)


def enforce_limits(config: Config) -> Config:
    """Clamp settings that would hammer the database or break logging."""
    if config.interval_ms < 1:
        logger.warning("interval_increased", requested=config.interval_ms, minimum=1)
        config.interval_ms = 1

    # Enforce statement timeout minimum of 1 second
    if config.statement_timeout_ms < 1000:
        logger.warning("statement_timeout_increased", requested=config.statement_timeout_ms, minimum=1000)
        config.statement_timeout_ms = 1000

    if config.heartbeat_ticks < 0:
        config.heartbeat_ticks = 0

    if config.log_format not in LOG_FORMATS:
        logger.warning("log_format_unknown", requested=config.log_format, fallback="console")
        config.log_format = "console"

    return config
