"""Storage: the append-only log file and the Series built on top of it.

LogFile knows bytes, fsync and rename; Series knows the index, the
criteria and the locking. Callers normally only touch Series.
"""
from emseries.store.codec import (
    DecodeError,
    decode_envelope,
    decode_unit,
    encode_deletions,
    encode_envelope,
)
from emseries.store.log_file import LogFile, Recovery
from emseries.store.series import Series, open_series

__all__ = [
    "DecodeError",
    "decode_envelope",
    "decode_unit",
    "encode_deletions",
    "encode_envelope",
    "LogFile",
    "Recovery",
    "Series",
    "open_series",
]
