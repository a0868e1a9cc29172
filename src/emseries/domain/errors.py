"""Exception hierarchy for emseries.

Everything the engine raises derives from SeriesError, so callers can
catch one type. The truncated-tail condition is a warning:
the open succeeds with the records that were fully written.
"""
from __future__ import annotations


class SeriesError(Exception):
    """Base class for every error raised by emseries."""


class SeriesIOError(SeriesError):
    """An underlying read, write, sync or rename failed.

    The original OSError is chained as __cause__.
    """


class CorruptionError(SeriesError):
    """A unit other than the last one in the log could not be decoded."""

    def __init__(self, path: str, line_number: int, detail: str) -> None:
        super().__init__(f"{path}:{line_number}: corrupt record ({detail})")
        self.path = path
        self.line_number = line_number
        self.detail = detail


class InvalidCriteria(SeriesError, TypeError):
    """A criteria tree was built from something that is not a Criteria."""


class InvalidRecord(SeriesError, ValueError):
    """A record handed to put() does not satisfy the record contract."""


class SeriesClosedError(SeriesError):
    """Operation attempted on a series that has been closed."""


class TruncatedTailWarning(UserWarning):
    """The last unit of the log was incomplete and has been discarded."""
