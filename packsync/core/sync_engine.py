"""
The main orchestrator: resolves the pack and index descriptors, fans index
entries out to a fixed pool of workers, reconciles the results with the
previous run, and persists the new manifest.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from rich.markup import escape

from packsync.api.resolver import ExternalResolver
from packsync.cli.progress_manager import ProgressManager
from packsync.exceptions import ConfigError, IntegrityError
from packsync.models.config import SyncConfig
from packsync.models.descriptors import (
    DEFAULT_INDEX_HASH_FORMAT,
    IndexDescriptor,
    IndexEntry,
    decode_index,
    decode_pack,
)
from packsync.models.manifest import CacheRecord, HashValue, ManifestState
from packsync.models.stats import SyncStats
from packsync.storage.manifest_store import ManifestStore
from packsync.transport.fetcher import Fetcher
from packsync.utils.hashing import fingerprint, fingerprints_equal, normalize_format
from packsync.utils.path import create_dir, join_uri

from .entry_processor import Deselected, EntryContext, EntryProcessor
from .reconcile import merge_records, remove_deselected, remove_orphans

log = logging.getLogger(__name__)

PACK_HASH_FORMAT = "sha256"

EntryOutcome = CacheRecord | Deselected | Exception


@dataclass
class ResolvedIndex:
    """The verified descriptors a run works from."""

    location: str
    descriptor: IndexDescriptor
    pack_hash: HashValue
    index_hash: HashValue | None


@dataclass
class SyncResult:
    """What a completed run produced."""

    state: ManifestState
    stats: SyncStats
    removed: list[str] = field(default_factory=list)
    duration_s: float = 0.0


class SyncEngine:
    """Orchestrates one synchronization run."""

    def __init__(
        self,
        config: SyncConfig,
        fetcher: Fetcher | None = None,
        resolver: ExternalResolver | None = None,
        store: ManifestStore | None = None,
        progress_manager: ProgressManager | None = None,
    ):
        self.config = config
        self.fetcher = fetcher or Fetcher(
            max_attempts=config.max_attempts,
            timeout=config.request_timeout,
            max_workers=config.max_workers,
        )
        self.resolver = resolver
        self.store = store or ManifestStore(config.manifest_path)
        self.progress_manager = progress_manager
        self.stats = SyncStats()
        self.processor = EntryProcessor(self.stats)

    async def run(self) -> SyncResult:
        """
        Executes the run.

        Raises:
            ConfigError, DecodeError, FetchError, IntegrityError: When the pack or
            index cannot be resolved; nothing is downloaded or written.
            PacksyncError, OSError: The error of the first failing entry (in index
            order); no manifest is written and no stale files are removed.
        """
        start_time = time.monotonic()
        previous = await asyncio.to_thread(self.store.load)
        resolved = await self.resolve_index()

        await asyncio.to_thread(create_dir, self.config.pack_folder)
        context = EntryContext(
            pack_folder=self.config.pack_folder,
            index_uri=resolved.location,
            default_hash_format=resolved.descriptor.hash_format,
            side=self.config.side,
            optional_mode=self.config.optional_mode,
            fetcher=self.fetcher,
            resolver=self.resolver,
            trust_preserved_without_verify=self.config.trust_preserved_without_verify,
        )

        entries = resolved.descriptor.files
        log.info(f"Synchronizing {len(entries)} index entries...")
        if self.progress_manager:
            self.progress_manager.initialize_session(total_entries=len(entries))

        outcomes = await self._process_entries(entries, context)
        produced, deselected = self._collect(entries, outcomes)

        merged = merge_records(previous, produced)
        await asyncio.to_thread(
            remove_deselected, deselected, merged, self.config.pack_folder
        )
        removed = await asyncio.to_thread(
            remove_orphans, previous, merged, self.config.pack_folder
        )
        self.stats.files_removed = len(removed)

        state = ManifestState(
            pack_file_hash=resolved.pack_hash,
            index_file_hash=resolved.index_hash,
            cached_files=merged,
            cached_side=self.config.side,
        )
        await asyncio.to_thread(self.store.save, state)
        log.info(f"Manifest written to [dim]{self.store.manifest_path}[/dim]")

        return SyncResult(
            state=state,
            stats=self.stats,
            removed=removed,
            duration_s=time.monotonic() - start_time,
        )

    async def resolve_index(self) -> ResolvedIndex:
        """Fetches the pack descriptor, then fetches and verifies its index."""
        pack_uri = self.config.pack_uri
        log.debug(f"Fetching pack file {pack_uri}")
        pack_bytes = await self.fetcher.fetch_with_retry(pack_uri)
        pack_hash = HashValue(
            type=PACK_HASH_FORMAT, value=fingerprint(PACK_HASH_FORMAT, pack_bytes)
        )
        pack = decode_pack(pack_bytes)
        if pack.index is None:
            raise ConfigError(f"Pack file '{pack_uri}' is missing its [index] section.")
        if pack.name:
            log.info(f"[bold cyan]▶ Pack:[/] {escape(pack.name)}")

        index_location = join_uri(pack_uri, pack.index.file)
        log.debug(f"Fetching index file {index_location}")
        index_bytes = await self.fetcher.fetch_with_retry(index_location)

        index_hash = None
        if pack.index.hash:
            index_format = normalize_format(
                pack.index.hash_format or DEFAULT_INDEX_HASH_FORMAT
            )
            actual = fingerprint(index_format, index_bytes)
            if not fingerprints_equal(index_format, pack.index.hash, actual):
                raise IntegrityError(
                    pack.index.file, index_format, pack.index.hash, actual
                )
            index_hash = HashValue(type=index_format, value=actual)

        return ResolvedIndex(
            location=index_location,
            descriptor=decode_index(index_bytes),
            pack_hash=pack_hash,
            index_hash=index_hash,
        )

    async def _process_entries(
        self, entries: list[IndexEntry], context: EntryContext
    ) -> dict[int, EntryOutcome]:
        """Feeds every entry through a fixed pool of workers."""
        queue: asyncio.Queue[tuple[int, IndexEntry]] = asyncio.Queue()
        for position, entry in enumerate(entries):
            queue.put_nowait((position, entry))

        outcomes: dict[int, EntryOutcome] = {}
        outcomes_lock = asyncio.Lock()

        async def worker() -> None:
            while True:
                try:
                    position, entry = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    outcome: EntryOutcome = await self.processor.process(
                        entry, context
                    )
                except Exception as e:
                    outcome = e
                async with outcomes_lock:
                    outcomes[position] = outcome
                if self.progress_manager:
                    self.progress_manager.entry_finished(
                        entry.file, success=not isinstance(outcome, Exception)
                    )
                queue.task_done()

        worker_count = min(self.config.max_workers, len(entries))
        await asyncio.gather(*(worker() for _ in range(worker_count)))
        return outcomes

    def _collect(
        self, entries: list[IndexEntry], outcomes: dict[int, EntryOutcome]
    ) -> tuple[list[tuple[str, CacheRecord]], list[str]]:
        """
        Puts outcomes back into index order and fails the run on any entry error.

        Returns:
            The produced records keyed by destination, and the destinations of
            deselected items.
        """
        failures: list[tuple[IndexEntry, Exception]] = []
        produced: dict[str, CacheRecord] = {}
        deselected: list[str] = []

        for position, entry in enumerate(entries):
            outcome = outcomes[position]
            if isinstance(outcome, Exception):
                failures.append((entry, outcome))
            elif isinstance(outcome, Deselected):
                deselected.append(outcome.destination)
            else:
                key = outcome.cached_location
                if key in produced:
                    log.warning(
                        f"[yellow]'{entry.file}' targets '{key}', which an earlier "
                        "entry already provides; ignoring it.[/yellow]"
                    )
                    continue
                produced[key] = outcome

        if failures:
            self.stats.files_failed = len(failures)
            for entry, error in failures:
                log.error(
                    f"  [red]✗ Failed:[/] {escape(entry.file)} ({escape(str(error))})",
                    exc_info=error if log.isEnabledFor(logging.DEBUG) else None,
                )
            raise failures[0][1]

        return list(produced.items()), deselected
