"""
Lock episode report.

Successive ticks observe the same still-held lock many times. Samples
sharing (pid, db, relation, started_at, query) are one episode, and the
episode lasted as long as the largest age any of its samples saw. The
number of samples only reflects the scan interval.
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional
import structlog

from .models import LockEpisode, LockSample
from .result import Result, StoreError

logger = structlog.get_logger()

NO_LOCKS_MESSAGE = "no locks detected 🎉"

# NULL started_at sorts after every real timestamp
_LATEST = datetime.max.replace(tzinfo=timezone.utc)


def _max_age(current, candidate):
    if current is None:
        return candidate
    if candidate is None:
        return current
    return max(current, candidate)


def _order_key(episode: LockEpisode) -> tuple:
    started_at = episode.started_at
    if started_at is not None and started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)
    return (
        started_at is None,
        started_at or _LATEST,
        episode.pid,
        episode.db or "",
        episode.relation or "",
    )


def aggregate_episodes(samples: Iterable[LockSample]) -> list[LockEpisode]:
    """
    Collapse samples into distinct lock episodes, oldest first.

    Args:
        samples: Raw samples in any order

    Returns:
        One LockEpisode per identity tuple, with duration = max(age)
    """
    durations: dict[tuple, Optional[timedelta]] = {}
    counts: dict[tuple, int] = {}

    for sample in samples:
        key = sample.episode_key
        if key in durations:
            durations[key] = _max_age(durations[key], sample.age)
            counts[key] += 1
        else:
            durations[key] = sample.age
            counts[key] = 1

    episodes = []
    for key, duration in durations.items():
        pid, db, relation, started_at, query = key
        episodes.append(LockEpisode(
            pid=pid,
            db=db,
            relation=relation,
            started_at=started_at,
            query=query,
            duration=duration,
            samples=counts[key],
        ))

    return sorted(episodes, key=_order_key)


def format_episode(index: int, episode: LockEpisode) -> str:
    return "🔒{}\t{}\t{}\t{}\t{}\t{}\t{}".format(
        index,
        episode.pid,
        episode.db,
        episode.relation,
        episode.started_at,
        episode.query,
        episode.duration,
    )


def report(store, emit: Callable[[str], None] = print) -> Result:
    """
    Print one line per lock episode found in the store.

    A failed read is fatal: there is no partial report.

    Returns:
        SUCCESS with the number of episodes, or FATAL
    """
    try:
        samples = store.query_all()
    except StoreError as e:
        logger.error("report_query_failed", error=str(e))
        return Result.fatal(f"couldn't read lock samples: {e}")

    if not samples:
        emit(NO_LOCKS_MESSAGE)
        return Result.success(NO_LOCKS_MESSAGE)

    episodes = aggregate_episodes(samples)
    logger.info("report_built", samples=len(samples), episodes=len(episodes))

    for index, episode in enumerate(episodes):
        emit(format_episode(index, episode))

    return Result.success(count=len(episodes))
