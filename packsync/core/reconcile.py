"""
Reconciles the records produced by a run with the manifest of the previous run.
"""

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path

from packsync.exceptions import ConfigError
from packsync.models.manifest import CacheRecord, ManifestState
from packsync.utils.path import resolve_destination

log = logging.getLogger(__name__)


def remove_file_quietly(path: Path) -> bool:
    """
    Deletes ``path`` if it exists. Failures are logged and never raised.

    Returns:
        True if a file was removed.
    """
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        log.warning(f"[yellow]Could not remove '{path}':[/] {e}")
        return False
    return True


def merge_records(
    previous: ManifestState, produced: Iterable[tuple[str, CacheRecord]]
) -> dict[str, CacheRecord]:
    """
    Orders this run's records for persistence.

    Paths already present in the previous manifest keep their position; paths
    new to this run follow in the order they were produced (index order).
    """
    produced = dict(produced)
    merged: dict[str, CacheRecord] = {}
    for path in previous.cached_files:
        if path in produced:
            merged[path] = produced.pop(path)
    merged.update(produced)
    return merged


def remove_orphans(
    previous: ManifestState, current_paths: Mapping[str, CacheRecord], install_root: Path
) -> list[str]:
    """
    Deletes local files recorded by the previous run that this run no longer produced.

    Returns:
        The relative paths that were removed from disk.
    """
    removed = []
    for path, record in previous.cached_files.items():
        if path in current_paths:
            continue
        location = record.cached_location or path
        # Manifests written by other installers key metafile items by metafile path.
        if location in current_paths:
            continue
        try:
            target = resolve_destination(install_root, location)
        except ConfigError as e:
            log.warning(f"[yellow]Not removing stale entry '{location}':[/] {e}")
            continue
        if remove_file_quietly(target):
            log.info(f"  [red]✗ Removed:[/] {location}")
            removed.append(location)
    return removed


def remove_deselected(
    deselected: Iterable[str], current_paths: Mapping[str, CacheRecord], install_root: Path
) -> list[str]:
    """
    Deletes files left behind by items that no longer apply to this installation.

    A destination that an included entry produced during this run is kept, so a
    client and a server variant sharing one filename never delete each other.
    """
    removed = []
    for location in dict.fromkeys(deselected):
        if location in current_paths:
            continue
        if remove_file_quietly(resolve_destination(install_root, location)):
            log.info(f"  [red]✗ Removed (not selected):[/] {location}")
            removed.append(location)
    return removed
