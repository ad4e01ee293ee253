"""
Utilities for joining pack locations and handling install-root relative paths.
"""

import os
from pathlib import Path, PurePosixPath
from urllib.parse import urljoin, urlparse
from urllib.request import url2pathname

from pathvalidate import ValidationError, validate_filepath

from packsync.exceptions import ConfigError

ABSOLUTE_PREFIXES = ("http://", "https://", "file:")
HTTP_SCHEMES = ("http", "https")


def is_absolute_reference(reference: str) -> bool:
    """True for references that are used verbatim regardless of their base."""
    return reference.startswith(ABSOLUTE_PREFIXES)


def file_url_to_path(location: str) -> Path:
    """Converts a ``file:`` URL into a local filesystem path."""
    parsed = urlparse(location)
    return Path(url2pathname(parsed.path))


def _containing_dir(base: Path, base_text: str) -> Path:
    # A base that names a directory is used as-is; anything else is treated as a file.
    if base.is_dir() or base_text.endswith(("/", os.sep)):
        return base
    return base.parent


def join_uri(base: str, reference: str) -> str:
    """
    Resolves ``reference`` against ``base`` into an absolute location.

    Absolute references (http, https or file URLs) are returned unchanged. An
    http(s) base uses standard relative-URL resolution. A ``file:`` URL or bare
    path base resolves relative to its containing directory, or to the base
    itself when it names a directory.
    """
    if is_absolute_reference(reference):
        return reference

    parsed = urlparse(base)
    if parsed.scheme in HTTP_SCHEMES:
        return urljoin(base, reference)

    if parsed.scheme == "file":
        base_path = file_url_to_path(base)
        joined = _containing_dir(base_path, parsed.path) / reference
        return Path(os.path.normpath(joined)).as_uri()

    base_path = Path(base)
    return str(_containing_dir(base_path, base) / reference)


def with_content_prefix(relative_path: str, content_dir: str = "mods") -> str:
    """Places bare filenames inside the conventional content subdirectory."""
    if "/" in relative_path:
        return relative_path
    return f"{content_dir}/{relative_path}"


def resolve_destination(install_root: Path, relative_path: str) -> Path:
    """
    Maps an install-root relative path from a descriptor onto the local filesystem.

    Raises:
        ConfigError: If the path is empty, absolute, escapes the install root, or
        contains characters that are invalid in a file path.
    """
    if not relative_path or not relative_path.strip():
        raise ConfigError("Destination path is empty.")

    posix = PurePosixPath(relative_path.replace("\\", "/"))
    if posix.is_absolute() or Path(relative_path).is_absolute():
        raise ConfigError(f"Destination path '{relative_path}' must be relative.")
    if ".." in posix.parts:
        raise ConfigError(
            f"Destination path '{relative_path}' escapes the install folder."
        )

    try:
        validate_filepath(str(posix), platform="auto")
    except ValidationError as e:
        raise ConfigError(f"Invalid destination path '{relative_path}': {e}") from e

    return install_root.joinpath(*posix.parts)


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)
