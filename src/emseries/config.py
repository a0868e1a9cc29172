"""Configuration for an open series.

Settings come from keyword arguments or, via SeriesConfig.from_env(),
from environment variables. There are no config files.

Invariants:
    - Defaults are the durable settings; turning fsync off is opt-in
    - A config is immutable once a series has been opened with it
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

log = logging.getLogger(__name__)

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name}={raw!r} is not a boolean")


@dataclass(frozen=True)
class SeriesConfig:
    """Per-series settings.

    Attributes:
        fsync: Force every append and compaction to stable storage
            before returning. Only tests and throwaway data should
            disable this.
        compact_on_remove: Rewrite the log on every remove(). When
            False, remove() appends one tombstone per removed record
            and compaction only happens through compact().
        compact_suffix: Suffix for the temporary file a compaction
            writes before renaming it over the log.
    """

    fsync: bool = True
    compact_on_remove: bool = True
    compact_suffix: str = ".compact"

    def __post_init__(self) -> None:
        if not self.compact_suffix or os.sep in self.compact_suffix:
            raise ValueError(f"invalid compact_suffix {self.compact_suffix!r}")

    @classmethod
    def from_env(cls) -> SeriesConfig:
        """Load configuration from environment variables."""
        config = cls(
            fsync=_env_bool("EMSERIES_FSYNC", True),
            compact_on_remove=_env_bool("EMSERIES_COMPACT_ON_REMOVE", True),
            compact_suffix=os.getenv("EMSERIES_COMPACT_SUFFIX", ".compact"),
        )
        if not config.fsync:
            log.warning("EMSERIES_FSYNC is off: appends are not durable")
        return config
