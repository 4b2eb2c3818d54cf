"""
Typed outcomes returned by install, scan and report.

Only the command dispatcher turns a Result into a process exit code.
"""
from dataclasses import dataclass
from enum import Enum


class Status(Enum):
    SUCCESS = "success"
    RECOVERABLE = "recoverable"
    FATAL = "fatal"


@dataclass(frozen=True)
class Result:
    status: Status
    message: str = ""
    count: int = 0

    @classmethod
    def success(cls, message: str = "", count: int = 0) -> "Result":
        return cls(Status.SUCCESS, message, count)

    @classmethod
    def recoverable(cls, message: str) -> "Result":
        return cls(Status.RECOVERABLE, message)

    @classmethod
    def fatal(cls, message: str) -> "Result":
        return cls(Status.FATAL, message)


class StoreError(Exception):
    """A statement against the sample store or lock source failed."""


class ConnectionLostError(StoreError):
    """The database connection is gone; the caller must not keep looping."""
