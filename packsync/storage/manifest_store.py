"""
Reads and atomically replaces the manifest recorded by the previous run.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from packsync.models.manifest import ManifestState

log = logging.getLogger(__name__)


class ManifestStore:
    """
    Persists a ManifestState as JSON.

    Loading never fails: a missing or unreadable manifest yields an empty state,
    which makes the next run behave like a fresh install. Saving writes a
    temporary file next to the manifest and renames it into place, so readers
    only ever observe the previous or the new manifest.
    """

    def __init__(self, manifest_path: Path):
        self.manifest_path = manifest_path

    def load(self) -> ManifestState:
        """Returns the previously persisted state, or an empty one."""
        if not self.manifest_path.is_file():
            log.debug(f"No previous manifest at '{self.manifest_path}'.")
            return ManifestState()

        try:
            with open(self.manifest_path, encoding="utf-8") as f:
                data = json.load(f)
            return ManifestState.model_validate(data)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            log.warning(
                f"[yellow]Ignoring unreadable manifest '{self.manifest_path}':[/] {e}"
            )
            return ManifestState()

    def save(self, state: ManifestState) -> None:
        """
        Atomically replaces the manifest with ``state``.

        Raises:
            OSError: If the temporary file cannot be written or moved into place.
        """
        directory = self.manifest_path.parent
        directory.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=directory,
            prefix=f".{self.manifest_path.name}.",
            suffix=".tmp",
            delete=False,
        ) as temp_file:
            temp_path = Path(temp_file.name)
            try:
                temp_file.write(state.to_json())
                temp_file.flush()
                os.fsync(temp_file.fileno())
            except OSError:
                temp_file.close()
                temp_path.unlink(missing_ok=True)
                raise

        try:
            os.replace(temp_path, self.manifest_path)
        finally:
            temp_path.unlink(missing_ok=True)
        log.debug(
            f"Wrote manifest with {len(state.cached_files)} entries to "
            f"'{self.manifest_path}'."
        )
