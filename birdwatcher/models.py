"""Lock sample and lock episode value types."""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional


@dataclass(frozen=True)
class LockSample:
    """One observation of a held lock, taken at a scan tick."""

    mode: str
    pid: int
    db: Optional[str]
    relation: Optional[str]
    username: Optional[str]
    application: Optional[str]
    started_at: Optional[datetime]
    age: Optional[timedelta]
    query: Optional[str]

    @property
    def episode_key(self) -> tuple:
        """Identity of the lock episode this sample observes."""
        return (self.pid, self.db, self.relation, self.started_at, self.query)


@dataclass(frozen=True)
class LockEpisode:
    """A distinct lock-holding episode reconstructed from its samples."""

    pid: int
    db: Optional[str]
    relation: Optional[str]
    started_at: Optional[datetime]
    query: Optional[str]
    duration: Optional[timedelta]
    samples: int = 1
