"""
Pydantic models for the persisted synchronization manifest (``packwiz.json``).

The JSON shape is::

    {"packFileHash": {"type": ..., "value": ...},
     "indexFileHash": {"type": ..., "value": ...},
     "cachedFiles": {"<path>": {"hash": {...}, "linkedFileHash": {...},
                                "cachedLocation": "<path>",
                                "isOptional": true, "optionValue": true}},
     "cachedSide": "client"}

Older manifests stored the pack and index hashes as bare strings; those are
upgraded to ``{"type": "sha256", "value": ...}`` on load.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .config import Side

LEGACY_HASH_FORMAT = "sha256"


class _ManifestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class HashValue(_ManifestModel):
    type: str
    value: str

    @model_validator(mode="before")
    @classmethod
    def upgrade_bare_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"type": LEGACY_HASH_FORMAT, "value": data}
        return data


class CacheRecord(_ManifestModel):
    """What was placed at one destination path during a run."""

    hash: HashValue
    linked_file_hash: HashValue | None = Field(None, alias="linkedFileHash")
    cached_location: str = Field(alias="cachedLocation")
    is_optional: bool | None = Field(None, alias="isOptional")
    option_value: bool | None = Field(None, alias="optionValue")


class ManifestState(_ManifestModel):
    """The record of the last successful run."""

    pack_file_hash: HashValue | None = Field(None, alias="packFileHash")
    index_file_hash: HashValue | None = Field(None, alias="indexFileHash")
    cached_files: dict[str, CacheRecord] = Field(
        default_factory=dict, alias="cachedFiles"
    )
    cached_side: Side | None = Field(None, alias="cachedSide")

    def to_json(self) -> str:
        """Compact JSON followed by a trailing newline."""
        payload = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        return json.dumps(payload, separators=(",", ":")) + "\n"
