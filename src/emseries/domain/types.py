"""Shared type aliases used across the package."""
from __future__ import annotations

from datetime import datetime
from typing import TypeAlias

SequenceId: TypeAlias = int
Tag: TypeAlias = str
Timestamp: TypeAlias = datetime  # always timezone-aware once inside the engine
