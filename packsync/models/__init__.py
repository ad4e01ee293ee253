"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application: configuration, remote descriptors, the
persisted manifest, and run statistics.
"""

from .config import OptionalMode, Side, SyncConfig
from .descriptors import (
    IndexDescriptor,
    IndexEntry,
    ModDescriptor,
    PackDescriptor,
    decode_index,
    decode_mod,
    decode_pack,
)
from .manifest import CacheRecord, HashValue, ManifestState
from .stats import ManualDownload, SyncStats

__all__ = [
    "CacheRecord",
    "HashValue",
    "IndexDescriptor",
    "IndexEntry",
    "ManifestState",
    "ManualDownload",
    "ModDescriptor",
    "OptionalMode",
    "PackDescriptor",
    "Side",
    "SyncConfig",
    "SyncStats",
    "decode_index",
    "decode_mod",
    "decode_pack",
]
