"""Shared test fixtures for packsync."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from packsync.transport.fetcher import Fetcher


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _toml_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'


class PackBuilder:
    """Writes a packwiz-style pack (pack.toml, index.toml, metafiles) to disk."""

    def __init__(self, root: Path, name: str = "Test Pack"):
        self.root = root
        self.name = name
        self.root.mkdir(parents=True, exist_ok=True)
        self.entries: list[dict] = []

    def add_file(
        self,
        rel: str,
        content: bytes,
        *,
        alias: str | None = None,
        preserve: bool = False,
        declared_hash: str | None = None,
        hash_format: str | None = None,
    ) -> str:
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        entry = {"file": rel, "hash": declared_hash or sha256(content)}
        if hash_format:
            entry["hash-format"] = hash_format
            if declared_hash is None:
                entry["hash"] = hashlib.new(hash_format, content).hexdigest()
        if alias:
            entry["alias"] = alias
        if preserve:
            entry["preserve"] = True
        self.entries.append(entry)
        return entry["hash"]

    def add_mod(
        self,
        meta_rel: str,
        filename: str,
        content: bytes,
        *,
        side: str = "both",
        optional: bool | None = None,
        default: bool = False,
        mode: str | None = None,
        url: str | None = "default",
        project_id: int | None = None,
        file_id: int | None = None,
        declared_hash: str | None = None,
        alias: str | None = None,
    ) -> bytes:
        """Adds a metafile entry; its content is stored under ``content/``."""
        content_path = self.root / "content" / filename
        content_path.parent.mkdir(parents=True, exist_ok=True)
        content_path.write_bytes(content)

        if url == "default":
            depth = meta_rel.count("/")
            url = "../" * depth + f"content/{filename}"

        lines = [
            f"name = {_toml_value(filename.rsplit('.', 1)[0])}",
            f"filename = {_toml_value(filename)}",
            f"side = {_toml_value(side)}",
            "",
            "[download]",
        ]
        if url is not None:
            lines.append(f"url = {_toml_value(url)}")
        lines.append('hash-format = "sha256"')
        lines.append(f"hash = {_toml_value(declared_hash or sha256(content))}")
        if mode is not None:
            lines.append(f"mode = {_toml_value(mode)}")
        if optional is not None:
            lines += [
                "",
                "[option]",
                f"optional = {_toml_value(optional)}",
                f"default = {_toml_value(default)}",
                'description = "An optional item"',
            ]
        if project_id is not None:
            lines += [
                "",
                "[update.curseforge]",
                f"project-id = {project_id}",
                f"file-id = {file_id}",
            ]
        meta_bytes = ("\n".join(lines) + "\n").encode("utf-8")

        meta_path = self.root / meta_rel
        meta_path.parent.mkdir(parents=True, exist_ok=True)
        meta_path.write_bytes(meta_bytes)

        entry = {"file": meta_rel, "hash": sha256(meta_bytes), "metafile": True}
        if alias:
            entry["alias"] = alias
        self.entries.append(entry)
        return meta_bytes

    def remove_entry(self, rel: str) -> None:
        self.entries = [e for e in self.entries if e["file"] != rel]

    def write(self, *, declare_index_hash: bool = True, index_hash: str | None = None) -> Path:
        lines = ['hash-format = "sha256"', ""]
        for entry in self.entries:
            lines.append("[[files]]")
            for key, value in entry.items():
                lines.append(f"{key} = {_toml_value(value)}")
            lines.append("")
        index_bytes = "\n".join(lines).encode("utf-8")
        (self.root / "index.toml").write_bytes(index_bytes)

        pack_lines = [
            f"name = {_toml_value(self.name)}",
            'pack-format = "packwiz:1.1.0"',
            "",
            "[index]",
            'file = "index.toml"',
        ]
        if declare_index_hash:
            pack_lines.append('hash-format = "sha256"')
            pack_lines.append(f"hash = {_toml_value(index_hash or sha256(index_bytes))}")
        pack_lines += ["", "[versions]", 'minecraft = "1.20.1"', ""]
        pack_path = self.root / "pack.toml"
        pack_path.write_text("\n".join(pack_lines), encoding="utf-8")
        return pack_path


@pytest.fixture
def pack(tmp_path: Path) -> PackBuilder:
    """Provide an empty pack rooted in a temporary directory."""
    return PackBuilder(tmp_path / "remote")


@pytest.fixture
def install_dir(tmp_path: Path) -> Path:
    """Provide the folder a pack is installed into."""
    path = tmp_path / "instance"
    path.mkdir()
    return path


@pytest.fixture
def fast_fetcher() -> Fetcher:
    """A fetcher that does not sleep between attempts."""
    return Fetcher(max_attempts=3, base_delay=0)
