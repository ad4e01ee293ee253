"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from enum import Enum
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Side(str, Enum):
    """Installation role an item applies to."""

    CLIENT = "client"
    SERVER = "server"
    BOTH = "both"


class OptionalMode(str, Enum):
    """How optional items are selected."""

    DEFAULT = "default"
    ALL = "all"
    NONE = "none"


DEFAULT_META_FILE = "packwiz.json"


class SyncConfig(BaseModel):
    """A validated configuration model for a synchronization run."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Source and target
    pack_uri: str
    side: Side = Side.CLIENT
    pack_folder: Path = Field(default_factory=Path.cwd)
    multimc_folder: Path | None = None
    meta_file: str = DEFAULT_META_FILE

    # Selection
    optional_mode: OptionalMode = OptionalMode.DEFAULT
    prompt_timeout: int = 10
    trust_preserved_without_verify: bool = True

    # Network
    max_workers: int = 8
    max_attempts: int = 3
    request_timeout: float = 30.0
    curseforge_api_key: str = Field("", repr=False)

    @field_validator("pack_uri")
    @classmethod
    def validate_pack_uri(cls, v: str) -> str:
        if not v:
            raise ValueError("A pack location (URI or path) is required.")
        return v

    @field_validator("meta_file")
    @classmethod
    def validate_meta_file(cls, v: str) -> str:
        """The manifest lives inside the pack folder."""
        if not v:
            raise ValueError("Manifest file name cannot be empty.")
        posix = PurePosixPath(v.replace("\\", "/"))
        if posix.is_absolute() or ".." in posix.parts:
            raise ValueError(
                "Manifest file must be relative to the pack folder and cannot "
                "contain '..'."
            )
        return v

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable number of workers."""
        if v < 1 or v > 32:
            raise ValueError("Max workers must be between 1 and 32.")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Max attempts must be at least 1.")
        return v

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Request timeout must be positive.")
        return v

    @property
    def manifest_path(self) -> Path:
        return self.pack_folder / self.meta_file

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns the keys that may be set in the INI file."""
        return {
            "side",
            "optional_mode",
            "meta_file",
            "max_workers",
            "max_attempts",
            "request_timeout",
            "trust_preserved_without_verify",
            "curseforge_api_key",
        }
