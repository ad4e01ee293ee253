"""
Handles the processing of a single index entry, from inclusion checks to a
verified file on disk and the manifest record describing it.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path

import aiofiles
from rich.markup import escape

from packsync.api.resolver import ExternalResolver, ManualUrl
from packsync.exceptions import ConfigError, IntegrityError
from packsync.models.config import OptionalMode, Side
from packsync.models.descriptors import (
    DownloadMode,
    IndexEntry,
    ModDescriptor,
    ModOption,
    decode_mod,
)
from packsync.models.manifest import CacheRecord, HashValue
from packsync.models.stats import ManualDownload, SyncStats
from packsync.transport.fetcher import Fetcher
from packsync.utils.hashing import (
    fingerprint,
    fingerprint_file,
    fingerprints_equal,
    local_copy_matches,
    normalize_fingerprint,
    normalize_format,
)
from packsync.utils.path import (
    create_dir,
    join_uri,
    resolve_destination,
    with_content_prefix,
)

log = logging.getLogger(__name__)

CONTENT_DIR = "mods"


def side_included(install_side: Side, item_side: Side) -> bool:
    """Items for the other side are skipped; ``both`` on either side always applies."""
    if Side.BOTH in (install_side, item_side):
        return True
    return install_side == item_side


def option_included(mode: OptionalMode, option: ModOption) -> bool:
    if mode is OptionalMode.ALL:
        return True
    if mode is OptionalMode.NONE:
        return not option.optional
    return not option.optional or option.default


@dataclass(frozen=True)
class Deselected:
    """An item that does not apply to this installation, and where it would live."""

    destination: str


@dataclass(frozen=True)
class EntryContext:
    """Run-wide inputs shared by every entry."""

    pack_folder: Path
    index_uri: str
    default_hash_format: str
    side: Side
    optional_mode: OptionalMode
    fetcher: Fetcher
    resolver: ExternalResolver | None = None
    trust_preserved_without_verify: bool = True


class EntryProcessor:
    """
    Resolves one index entry into a verified local file and its CacheRecord.
    """

    def __init__(self, stats: SyncStats):
        self.stats = stats

    async def process(
        self, entry: IndexEntry, context: EntryContext
    ) -> CacheRecord | Deselected:
        """
        Processes a single entry.

        Returns:
            The record to persist, or Deselected when the item does not apply to
            this installation (side or optional selection). Nothing is deleted
            here; the run removes a deselected destination only if no other
            entry produced it.

        Raises:
            ConfigError, DecodeError, FetchError, IntegrityError, ExternalApiError,
            OSError: The entry failed; no other entry is affected.
        """
        if entry.metafile:
            return await self._process_metafile(entry, context)
        return await self._process_file(entry, context)

    async def _process_file(
        self, entry: IndexEntry, ctx: EntryContext
    ) -> CacheRecord:
        hash_format = normalize_format(
            entry.effective_hash_format(ctx.default_hash_format)
        )
        dest_rel = entry.alias or entry.file
        destination = resolve_destination(ctx.pack_folder, dest_rel)

        if entry.preserve and destination.is_file():
            value = await self._check_preserved(entry, destination, hash_format, ctx)
            self.stats.files_preserved += 1
            return CacheRecord(
                hash=HashValue(type=hash_format, value=value),
                cached_location=dest_rel,
            )

        if await local_copy_matches(hash_format, entry.hash, destination):
            log.debug(f"Unchanged: {dest_rel}")
            self.stats.files_unchanged += 1
            value = normalize_fingerprint(hash_format, entry.hash)
        else:
            location = join_uri(ctx.index_uri, entry.file)
            value = await self._place_content(
                location, destination, hash_format, entry.hash, entry.file, ctx
            )

        return CacheRecord(
            hash=HashValue(type=hash_format, value=value), cached_location=dest_rel
        )

    async def _check_preserved(
        self, entry: IndexEntry, destination: Path, hash_format: str, ctx: EntryContext
    ) -> str:
        """Returns the fingerprint to record for a file the user owns."""
        declared = normalize_fingerprint(hash_format, entry.hash)
        if ctx.trust_preserved_without_verify:
            log.debug(f"Preserved without verification: {entry.file}")
            return declared

        actual = await fingerprint_file(hash_format, destination)
        if actual != declared:
            log.warning(
                f"[yellow]Preserved file '{entry.alias or entry.file}' differs from "
                f"the pack ({hash_format} {actual} != {declared}); keeping it.[/yellow]"
            )
        return actual

    async def _process_metafile(
        self, entry: IndexEntry, ctx: EntryContext
    ) -> CacheRecord | Deselected:
        meta_format = normalize_format(
            entry.effective_hash_format(ctx.default_hash_format)
        )
        meta_location = join_uri(ctx.index_uri, entry.file)
        meta_bytes = await ctx.fetcher.fetch_with_retry(meta_location)

        meta_hash = fingerprint(meta_format, meta_bytes)
        if not fingerprints_equal(meta_format, entry.hash, meta_hash):
            raise IntegrityError(entry.file, meta_format, entry.hash, meta_hash)
        mod = decode_mod(meta_bytes, source=f"Metafile '{entry.file}'")

        dest_rel = with_content_prefix(entry.alias or mod.filename, CONTENT_DIR)
        destination = resolve_destination(ctx.pack_folder, dest_rel)

        if not (
            side_included(ctx.side, mod.side)
            and option_included(ctx.optional_mode, mod.option)
        ):
            log.debug(f"Skipping '{escape(mod.name)}' (side={mod.side.value}).")
            self.stats.files_excluded += 1
            return Deselected(dest_rel)

        meta_record_hash = HashValue(type=meta_format, value=meta_hash)
        option_echo = (
            {"is_optional": True, "option_value": True} if mod.option.optional else {}
        )
        content_format = normalize_format(mod.download.hash_format)

        if await local_copy_matches(content_format, mod.download.hash, destination):
            log.debug(f"Unchanged: {dest_rel}")
            self.stats.files_unchanged += 1
            content_hash = normalize_fingerprint(content_format, mod.download.hash)
        else:
            location = await self._content_location(mod, meta_location, entry, ctx)
            if isinstance(location, ManualUrl):
                log.warning(
                    f"[yellow]⚠ '{escape(mod.name)}' must be downloaded manually from "
                    f"{escape(location.url)} and placed at '{escape(dest_rel)}'.[/yellow]"
                )
                self.stats.manual_downloads.append(
                    ManualDownload(name=mod.name, url=location.url, destination=dest_rel)
                )
                return CacheRecord(
                    hash=meta_record_hash, cached_location=dest_rel, **option_echo
                )
            content_hash = await self._place_content(
                location,
                destination,
                content_format,
                mod.download.hash,
                f"{entry.file} ({mod.name})",
                ctx,
            )

        return CacheRecord(
            hash=meta_record_hash,
            linked_file_hash=HashValue(type=content_format, value=content_hash),
            cached_location=dest_rel,
            **option_echo,
        )

    async def _content_location(
        self,
        mod: ModDescriptor,
        meta_location: str,
        entry: IndexEntry,
        ctx: EntryContext,
    ) -> str | ManualUrl:
        """Works out where the content of a metafile item is downloaded from."""
        if mod.download.mode is DownloadMode.CURSEFORGE:
            curseforge = mod.update.curseforge
            if curseforge is None:
                raise ConfigError(
                    f"Metafile '{entry.file}' uses CurseForge resolution but has no "
                    "[update.curseforge] section."
                )
            if ctx.resolver is None:
                raise ConfigError(
                    f"Metafile '{entry.file}' needs CurseForge resolution, but no "
                    "resolver is configured."
                )
            resolution = await ctx.resolver.resolve(
                curseforge.project_id, curseforge.file_id
            )
            if isinstance(resolution, ManualUrl):
                return resolution
            return resolution.url

        if not mod.download.url:
            raise ConfigError(f"Metafile '{entry.file}' has no download.url.")
        return join_uri(meta_location, mod.download.url)

    async def _place_content(
        self,
        location: str,
        destination: Path,
        hash_format: str,
        expected: str,
        subject: str,
        ctx: EntryContext,
    ) -> str:
        """Downloads, verifies and writes content; returns its fingerprint."""
        data = await ctx.fetcher.fetch_with_retry(location)
        actual = fingerprint(hash_format, data)
        if not fingerprints_equal(hash_format, expected, actual):
            raise IntegrityError(subject, hash_format, expected, actual)

        await self._write_file(destination, data)
        self.stats.files_downloaded += 1
        self.stats.bytes_downloaded += len(data)
        log.info(f"  [green]✓ Downloaded:[/] {escape(subject)}")
        return actual

    @staticmethod
    async def _write_file(destination: Path, data: bytes) -> None:
        """Writes next to the destination first so a failed write never truncates it."""
        await asyncio.to_thread(create_dir, destination.parent)
        temp_path = destination.with_name(f".{destination.name}.part")
        try:
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(data)
            await asyncio.to_thread(os.replace, temp_path, destination)
        finally:
            if temp_path.exists():
                try:
                    os.remove(temp_path)
                except OSError:
                    pass
