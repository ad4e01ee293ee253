"""End-to-end tests for a synchronization run against a local pack."""

from __future__ import annotations

import asyncio
import hashlib
import json
from pathlib import Path

import pytest
from rich.console import Console

from packsync.cli.progress_manager import ProgressManager
from packsync.core.sync_engine import SyncEngine
from packsync.exceptions import ConfigError, IntegrityError
from packsync.models.config import OptionalMode, Side, SyncConfig
from packsync.transport.fetcher import Fetcher


def _config(pack_path: Path, install_dir: Path, **overrides) -> SyncConfig:
    return SyncConfig(
        pack_uri=str(pack_path),
        pack_folder=install_dir,
        curseforge_api_key="unused",
        **overrides,
    )


async def _run(pack_path: Path, install_dir: Path, fetcher: Fetcher, **overrides):
    engine = SyncEngine(_config(pack_path, install_dir, **overrides), fetcher=fetcher)
    return await engine.run()


def _manifest(install_dir: Path) -> dict:
    return json.loads((install_dir / "packwiz.json").read_text(encoding="utf-8"))


@pytest.mark.asyncio
async def test_fresh_install(pack, install_dir, fast_fetcher) -> None:
    pack.add_file("config/a.txt", b"alpha")
    meta = pack.add_mod("mods/sodium.pw.toml", "sodium.jar", b"jar")
    pack_path = pack.write()

    result = await _run(pack_path, install_dir, fast_fetcher)

    assert (install_dir / "config" / "a.txt").read_bytes() == b"alpha"
    assert (install_dir / "mods" / "sodium.jar").read_bytes() == b"jar"
    assert result.stats.files_downloaded == 2

    manifest = _manifest(install_dir)
    assert manifest["packFileHash"] == {
        "type": "sha256",
        "value": hashlib.sha256(pack_path.read_bytes()).hexdigest(),
    }
    assert manifest["indexFileHash"]["value"] == hashlib.sha256(
        (pack.root / "index.toml").read_bytes()
    ).hexdigest()
    assert manifest["cachedSide"] == "client"
    assert list(manifest["cachedFiles"]) == ["config/a.txt", "mods/sodium.jar"]
    assert manifest["cachedFiles"]["mods/sodium.jar"]["hash"]["value"] == (
        hashlib.sha256(meta).hexdigest()
    )


@pytest.mark.asyncio
async def test_second_run_is_idempotent(pack, install_dir, fast_fetcher) -> None:
    pack.add_file("config/a.txt", b"alpha")
    pack.add_file("config/b.txt", b"beta")
    pack.add_mod("mods/sodium.pw.toml", "sodium.jar", b"jar")
    pack_path = pack.write()

    await _run(pack_path, install_dir, fast_fetcher)
    first = (install_dir / "packwiz.json").read_bytes()

    result = await _run(pack_path, install_dir, fast_fetcher)

    assert result.stats.files_downloaded == 0
    assert result.stats.files_unchanged == 3
    assert result.removed == []
    assert (install_dir / "packwiz.json").read_bytes() == first


@pytest.mark.asyncio
async def test_removed_entries_are_deleted(pack, install_dir, fast_fetcher) -> None:
    for name in ("a", "b", "c"):
        pack.add_file(f"config/{name}.txt", name.encode())
    await _run(pack.write(), install_dir, fast_fetcher)

    pack.remove_entry("config/a.txt")
    pack.add_file("config/d.txt", b"d")
    result = await _run(pack.write(), install_dir, fast_fetcher)

    assert not (install_dir / "config" / "a.txt").exists()
    assert (install_dir / "config" / "d.txt").read_bytes() == b"d"
    assert result.removed == ["config/a.txt"]
    assert result.stats.files_removed == 1
    assert list(_manifest(install_dir)["cachedFiles"]) == [
        "config/b.txt",
        "config/c.txt",
        "config/d.txt",
    ]


@pytest.mark.asyncio
async def test_failed_entry_aborts_persistence(pack, install_dir, fast_fetcher) -> None:
    pack.add_file("config/old.txt", b"old")
    await _run(pack.write(), install_dir, fast_fetcher)
    before = (install_dir / "packwiz.json").read_bytes()

    pack.remove_entry("config/old.txt")
    pack.add_file("config/good.txt", b"good")
    pack.add_file("config/bad.txt", b"bad", declared_hash="0" * 64)

    with pytest.raises(IntegrityError, match="config/bad.txt"):
        await _run(pack.write(), install_dir, fast_fetcher)

    assert (install_dir / "packwiz.json").read_bytes() == before
    assert (install_dir / "config" / "old.txt").exists()
    assert not (install_dir / "config" / "bad.txt").exists()


@pytest.mark.asyncio
async def test_first_failure_in_index_order_is_raised(
    pack, install_dir, fast_fetcher
) -> None:
    pack.add_file("config/first.txt", b"1", declared_hash="0" * 64)
    pack.add_file("config/second.txt", b"2", declared_hash="0" * 64)

    with pytest.raises(IntegrityError, match="config/first.txt"):
        await _run(pack.write(), install_dir, fast_fetcher, max_workers=2)

    assert not (install_dir / "packwiz.json").exists()


@pytest.mark.asyncio
async def test_pack_without_index_section(pack, install_dir, fast_fetcher) -> None:
    pack_path = pack.root / "pack.toml"
    pack_path.write_text('name = "Broken"\n', encoding="utf-8")

    with pytest.raises(ConfigError, match="index"):
        await _run(pack_path, install_dir, fast_fetcher)
    assert not (install_dir / "packwiz.json").exists()


@pytest.mark.asyncio
async def test_index_hash_mismatch(pack, install_dir, fast_fetcher) -> None:
    pack.add_file("config/a.txt", b"alpha")
    pack_path = pack.write(index_hash="1" * 64)

    with pytest.raises(IntegrityError, match="index.toml"):
        await _run(pack_path, install_dir, fast_fetcher)
    assert not (install_dir / "config" / "a.txt").exists()


@pytest.mark.asyncio
async def test_index_without_declared_hash(pack, install_dir, fast_fetcher) -> None:
    pack.add_file("config/a.txt", b"alpha")
    result = await _run(pack.write(declare_index_hash=False), install_dir, fast_fetcher)

    assert result.state.index_file_hash is None
    assert "indexFileHash" not in _manifest(install_dir)


@pytest.mark.asyncio
async def test_deselected_optional_item_is_removed(
    pack, install_dir, fast_fetcher
) -> None:
    pack.add_mod("mods/extra.pw.toml", "extra.jar", b"extra", optional=True)
    pack_path = pack.write()

    await _run(pack_path, install_dir, fast_fetcher, optional_mode=OptionalMode.ALL)
    assert (install_dir / "mods" / "extra.jar").exists()
    assert _manifest(install_dir)["cachedFiles"]["mods/extra.jar"]["isOptional"] is True

    result = await _run(
        pack_path, install_dir, fast_fetcher, optional_mode=OptionalMode.NONE
    )

    assert not (install_dir / "mods" / "extra.jar").exists()
    assert result.stats.files_excluded == 1
    assert _manifest(install_dir)["cachedFiles"] == {}


@pytest.mark.asyncio
async def test_server_install_skips_client_items(pack, install_dir, fast_fetcher) -> None:
    pack.add_mod("mods/shaders.pw.toml", "shaders.jar", b"s", side="client")
    pack.add_mod("mods/lib.pw.toml", "lib.jar", b"l", side="both")

    result = await _run(pack.write(), install_dir, fast_fetcher, side=Side.SERVER)

    assert not (install_dir / "mods" / "shaders.jar").exists()
    assert (install_dir / "mods" / "lib.jar").exists()
    assert list(result.state.cached_files) == ["mods/lib.jar"]
    assert _manifest(install_dir)["cachedSide"] == "server"


@pytest.mark.asyncio
async def test_duplicate_destination_keeps_first_entry(
    pack, install_dir, fast_fetcher
) -> None:
    pack.add_file("config/a.txt", b"same")
    pack.add_file("other/a.txt", b"same", alias="config/a.txt")

    result = await _run(pack.write(), install_dir, fast_fetcher, max_workers=1)

    assert list(result.state.cached_files) == ["config/a.txt"]


@pytest.mark.asyncio
async def test_legacy_metafile_keys_do_not_delete_content(
    pack, install_dir, fast_fetcher
) -> None:
    pack.add_mod("mods/sodium.pw.toml", "sodium.jar", b"jar")
    pack_path = pack.write()
    (install_dir / "packwiz.json").write_text(
        json.dumps(
            {
                "packFileHash": "00",
                "cachedFiles": {
                    "mods/sodium.pw.toml": {
                        "hash": {"type": "sha256", "value": "00"},
                        "cachedLocation": "mods/sodium.jar",
                    }
                },
            }
        ),
        encoding="utf-8",
    )

    result = await _run(pack_path, install_dir, fast_fetcher)

    assert result.removed == []
    assert (install_dir / "mods" / "sodium.jar").read_bytes() == b"jar"
    assert list(_manifest(install_dir)["cachedFiles"]) == ["mods/sodium.jar"]


@pytest.mark.asyncio
async def test_empty_index(pack, install_dir, fast_fetcher) -> None:
    result = await _run(pack.write(), install_dir, fast_fetcher)

    assert result.state.cached_files == {}
    assert _manifest(install_dir)["cachedFiles"] == {}


@pytest.mark.asyncio
async def test_progress_counts_entries(pack, install_dir, fast_fetcher) -> None:
    pack.add_file("config/a.txt", b"a")
    pack.add_file("config/b.txt", b"b", declared_hash="0" * 64)
    progress = ProgressManager(Console(quiet=True), enabled=False)
    engine = SyncEngine(
        _config(pack.write(), install_dir), fetcher=fast_fetcher, progress_manager=progress
    )

    with pytest.raises(IntegrityError):
        await engine.run()

    assert progress.get_statistics() == {"total": 2, "completed": 1, "failed": 1}


@pytest.mark.asyncio
@pytest.mark.parametrize("max_workers", [1, 8])
async def test_side_variants_sharing_a_filename(
    pack, install_dir, fast_fetcher, max_workers
) -> None:
    pack.add_mod("mods/foo-client.pw.toml", "foo.jar", b"client build", side="client")
    pack.add_mod("mods/foo-server.pw.toml", "foo.jar", b"client build", side="server")
    pack_path = pack.write()

    result = await _run(pack_path, install_dir, fast_fetcher, max_workers=max_workers)

    assert list(result.state.cached_files) == ["mods/foo.jar"]
    assert (install_dir / "mods" / "foo.jar").read_bytes() == b"client build"
    assert result.stats.files_excluded == 1

    again = await _run(pack_path, install_dir, fast_fetcher, max_workers=max_workers)

    assert again.stats.files_downloaded == 0
    assert (install_dir / "mods" / "foo.jar").exists()


@pytest.mark.asyncio
async def test_worker_count_bounds_concurrent_fetches(pack, install_dir) -> None:
    class ConcurrencyTrackingFetcher(Fetcher):
        def __init__(self):
            super().__init__(max_attempts=1, base_delay=0)
            self.in_flight = 0
            self.peak = 0

        async def fetch(self, location: str) -> bytes:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            try:
                await asyncio.sleep(0)
            finally:
                self.in_flight -= 1
            return await super().fetch(location)

    for number in range(12):
        pack.add_file(f"config/{number}.txt", str(number).encode())
    fetcher = ConcurrencyTrackingFetcher()

    result = await _run(pack.write(), install_dir, fetcher, max_workers=3)

    assert result.stats.files_downloaded == 12
    assert fetcher.peak == 3
