"""
Lock detector.

Every interval, take a snapshot of the lock source and append one sample
per held lock to the store. The operator only sees a count line when it
differs from the previous tick (or on the first tick); every tick writes
regardless.

The loop state lives in ScanState and is threaded through scan_tick(),
so a single tick can be exercised on its own.
"""
import time
from dataclasses import dataclass
from typing import Callable, Optional
import structlog

from .result import ConnectionLostError, Result, Status, StoreError

logger = structlog.get_logger()


@dataclass(frozen=True)
class ScanState:
    """State carried from one tick to the next."""

    tick: int = 0
    previous_found: Optional[int] = None


@dataclass(frozen=True)
class TickOutcome:
    result: Result
    state: ScanState
    emitted: bool = False


def scan_tick(
    source,
    store,
    state: ScanState,
    emit: Callable[[str], None] = print,
    heartbeat_ticks: int = 0
) -> TickOutcome:
    """
    Run one scan tick.

    Args:
        source: Lock source with snapshot()
        store: Sample store with append()
        state: State left by the previous tick
        emit: Sink for the operator-facing count line
        heartbeat_ticks: Log a still_scanning event every N quiet ticks (0 = never)

    Returns:
        TickOutcome with the next state. A failed snapshot or append is
        RECOVERABLE and counts as zero locks found; a lost connection is
        FATAL and leaves the state untouched.
    """
    try:
        found = store.append(source.snapshot())
        result = Result.success(count=found)
    except ConnectionLostError as e:
        return TickOutcome(Result.fatal(f"lost connection while scanning: {e}"), state)
    except StoreError as e:
        logger.error("scan_tick_failed", tick=state.tick, error=str(e))
        found = 0
        result = Result.recoverable(f"couldn't scan locks: {e}")

    emitted = state.tick == 0 or found != state.previous_found
    if emitted:
        emit(f"{found} lock(s) found")
    elif heartbeat_ticks and state.tick % heartbeat_ticks == 0:
        logger.info("still_scanning", tick=state.tick, found=found)

    return TickOutcome(result, ScanState(tick=state.tick + 1, previous_found=found), emitted)


class Scanner:
    """
    Interval loop around scan_tick().

    Ticks never overlap: snapshot, append and sleep run strictly in
    sequence. The loop only ends on a lost connection, after max_ticks,
    or when the process is interrupted.
    """

    def __init__(
        self,
        source,
        store,
        interval_ms: int = 100,
        heartbeat_ticks: int = 0,
        emit: Callable[[str], None] = print,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.source = source
        self.store = store
        self.interval_ms = interval_ms
        self.heartbeat_ticks = heartbeat_ticks
        self.emit = emit
        self.sleep = sleep
        self.state = ScanState()

    def run(self, max_ticks: Optional[int] = None) -> Result:
        """
        Scan until the connection is lost (or max_ticks ticks have run).

        Returns:
            FATAL on connection loss, otherwise SUCCESS with the tick count
        """
        self.emit("scanning for locks...")
        logger.info(
            "scan_loop_starting",
            interval_ms=self.interval_ms,
            heartbeat_ticks=self.heartbeat_ticks
        )

        while max_ticks is None or self.state.tick < max_ticks:
            tick_start = time.monotonic()

            outcome = scan_tick(
                self.source,
                self.store,
                self.state,
                emit=self.emit,
                heartbeat_ticks=self.heartbeat_ticks
            )
            if outcome.result.status is Status.FATAL:
                logger.error("scan_loop_terminated", tick=self.state.tick, error=outcome.result.message)
                return outcome.result

            self.state = outcome.state
            logger.debug(
                "scan_tick_complete",
                tick=self.state.tick,
                found=outcome.result.count,
                elapsed_ms=round((time.monotonic() - tick_start) * 1000, 2)
            )

            self.sleep(self.interval_ms / 1000.0)

        logger.info("scan_loop_stopped", ticks=self.state.tick)
        return Result.success(count=self.state.tick)
