"""
birdwatcher command line.

Usage:
  birdwatcher install [-c <connection>] [--tls]
  birdwatcher scan [-i <interval>] [--reset] [-c <connection>] [--tls]
  birdwatcher report [-c <connection>] [--tls]
  birdwatcher (-h | --help)
  birdwatcher --version

This is the only place that turns a Result into an exit code.
"""
import argparse
import functools
import logging
import os
import sys
from typing import Optional, Sequence
import structlog

from . import __version__
from .collectors import PgLockSource
from .config import Config, enforce_limits, load_config
from .database import close_pool, create_pool, mask_password
from .install import install
from .reporter import report
from .result import ConnectionLostError, Result, Status
from .scanner import Scanner
from .store import SampleStore

logger = structlog.get_logger()

emit = functools.partial(print, flush=True)


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-c", "--connection",
        help="The connection string [default: postgres://postgres@localhost:5432].",
    )
    common.add_argument(
        "--tls", action="store_true", default=None,
        help="Enable TLS for database connection.",
    )
    common.add_argument("--config", help="Path to an INI configuration file.")
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")

    parser = argparse.ArgumentParser(
        prog="birdwatcher",
        description="Sample long-held exclusive locks and report lock episodes.",
    )
    parser.add_argument("--version", action="version", version=f"birdwatcher {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("install", parents=[common], help="(Re)create the sample table.")

    scan = subparsers.add_parser("scan", parents=[common], help="Sample locks until stopped.")
    scan.add_argument(
        "-i", "--interval", type=int,
        help="Scan interval in ms [default: 100].",
    )
    scan.add_argument("--reset", action="store_true", help="Reset the sample table before scanning.")

    subparsers.add_parser("report", parents=[common], help="Print distinct lock episodes.")

    return parser


def apply_args(config: Config, args: argparse.Namespace) -> Config:
    """Command-line flags override file and environment settings."""
    if args.connection:
        config.connection = args.connection
    if args.tls:
        config.tls = True
    if getattr(args, "interval", None) is not None:
        config.interval_ms = args.interval
    if args.verbose:
        config.log_level = "debug"
    return enforce_limits(config)


def configure_logging(level: str = "info", log_format: str = "console") -> None:
    """Structured diagnostics on stderr; stdout is left to operator output."""
    processors = [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if log_format == "json":
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        # main() reconfigures once the config file has been read
        cache_logger_on_first_use=False
    )


def run_command(command: str, config: Config, pool, args: argparse.Namespace) -> Result:
    store = SampleStore(pool, config.table_name)

    if command == "install":
        return install(store, emit=emit)

    if command == "scan":
        if args.reset:
            result = install(store, emit=emit)
            if result.status is Status.FATAL:
                return result
        scanner = Scanner(
            PgLockSource(pool, config.lock_mode),
            store,
            interval_ms=config.interval_ms,
            heartbeat_ticks=config.heartbeat_ticks,
            emit=emit,
        )
        return scanner.run()

    if command == "report":
        return report(store, emit=emit)

    raise ValueError(f"unknown command: {command}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Parse arguments, run one command, return the process exit code.

    Args:
        argv: Arguments without the program name (defaults to sys.argv[1:])
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help(sys.stderr)
        return 2

    configure_logging("debug" if args.verbose else "info")

    config = load_config(args.config or os.environ.get("BIRDWATCHER_CONFIG_PATH"))
    config = apply_args(config, args)
    configure_logging(config.log_level, config.log_format)

    logger.debug("arguments_parsed", **{k: v for k, v in vars(args).items() if k != "connection"})

    emit(f"connecting to database {mask_password(config.connection)}")

    try:
        try:
            pool = create_pool(config)
        except ConnectionLostError as e:
            print(f"oops, there was a problem connecting to the database: {e}", file=sys.stderr)
            return 1
        result = run_command(args.command, config, pool, args)
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")
        result = Result.success()
    finally:
        close_pool()

    if result.status is Status.FATAL:
        print(f"oops, {result.message}", file=sys.stderr)
        return 1

    return 0
