"""
Pydantic models for the remote pack, index and item descriptors, and the
decoders that turn fetched TOML bytes into them.

Field names follow the packwiz file formats exactly; unknown fields are ignored.
"""

import tomllib
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from packsync.exceptions import DecodeError

from .config import Side

DEFAULT_INDEX_HASH_FORMAT = "sha256"


class _Descriptor(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class IndexLocation(_Descriptor):
    file: str
    hash_format: str | None = Field(None, alias="hash-format")
    hash: str | None = None


class PackDescriptor(_Descriptor):
    """The root ``pack.toml`` document."""

    name: str | None = None
    pack_format: Any = Field(None, alias="pack-format")
    index: IndexLocation | None = None
    versions: dict[str, Any] = Field(default_factory=dict)


class IndexEntry(_Descriptor):
    """One line item of the index."""

    file: str
    hash_format: str | None = Field(None, alias="hash-format")
    hash: str
    alias: str | None = None
    metafile: bool = False
    preserve: bool = False

    def effective_hash_format(self, default: str) -> str:
        return self.hash_format or default


class IndexDescriptor(_Descriptor):
    """The ``index.toml`` document."""

    hash_format: str = Field(alias="hash-format")
    files: list[IndexEntry] = Field(default_factory=list)


class DownloadMode(str, Enum):
    URL = "url"
    CURSEFORGE = "metadata:curseforge"


class ModDownload(_Descriptor):
    url: str | None = None
    hash_format: str = Field(alias="hash-format")
    hash: str
    mode: DownloadMode = DownloadMode.URL

    @field_validator("mode", mode="before")
    @classmethod
    def empty_mode_is_url(cls, v: Any) -> Any:
        return DownloadMode.URL if v in ("", None) else v


class ModOption(_Descriptor):
    optional: bool = False
    default: bool = False
    description: str = ""


class CurseForgeUpdate(_Descriptor):
    project_id: int = Field(alias="project-id")
    file_id: int = Field(alias="file-id")


class ModUpdate(_Descriptor):
    curseforge: CurseForgeUpdate | None = None


class ModDescriptor(_Descriptor):
    """A per-item metafile (``*.pw.toml``)."""

    name: str
    filename: str
    side: Side = Side.CLIENT
    download: ModDownload
    option: ModOption = Field(default_factory=ModOption)
    update: ModUpdate = Field(default_factory=ModUpdate)


ModelT = TypeVar("ModelT", bound=BaseModel)


def _decode(data: bytes, model: type[ModelT], what: str) -> ModelT:
    try:
        document = tomllib.loads(data.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise DecodeError(f"{what} is not valid UTF-8: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise DecodeError(f"{what} is not valid TOML: {e}") from e

    try:
        return model.model_validate(document)
    except ValidationError as e:
        raise DecodeError(f"{what} is malformed:\n{e}") from e


def decode_pack(data: bytes) -> PackDescriptor:
    return _decode(data, PackDescriptor, "Pack file")


def decode_index(data: bytes) -> IndexDescriptor:
    return _decode(data, IndexDescriptor, "Index file")


def decode_mod(data: bytes, source: str = "Metafile") -> ModDescriptor:
    return _decode(data, ModDescriptor, source)
