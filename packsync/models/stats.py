"""
Dataclasses for tracking synchronization run statistics.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ManualDownload:
    """An item the user has to download by hand."""

    name: str
    url: str
    destination: str


@dataclass
class SyncStats:
    """Tracks what happened to each index entry during a run."""

    files_downloaded: int = 0
    files_unchanged: int = 0
    files_preserved: int = 0
    files_excluded: int = 0
    files_removed: int = 0
    files_failed: int = 0
    bytes_downloaded: int = 0
    manual_downloads: list[ManualDownload] = field(default_factory=list)
