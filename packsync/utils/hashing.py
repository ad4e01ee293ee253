"""
Content fingerprints under the hash formats a pack may declare.

All formats except ``murmur2`` are rendered as lowercase hex digests. ``murmur2``
is the 32-bit MurmurHash2 (seed 0) over the raw bytes, rendered as the unsigned
decimal string of the result.
"""

import hashlib
import logging
from pathlib import Path

import aiofiles

from packsync.exceptions import ConfigError

log = logging.getLogger(__name__)

MURMUR2 = "murmur2"

_HASHLIB_FORMATS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
    "md5": hashlib.md5,
}

SUPPORTED_FORMATS = frozenset(_HASHLIB_FORMATS) | {MURMUR2}

_M_32 = 0x5BD1E995
_R_32 = 24
_MASK_32 = 0xFFFFFFFF


def murmur2_hash(data: bytes) -> int:
    """Computes the 32-bit MurmurHash2 of ``data`` with a seed of 0."""
    length = len(data)
    h = length & _MASK_32

    i = 0
    while i + 4 <= length:
        k = int.from_bytes(data[i : i + 4], "little")
        k = (k * _M_32) & _MASK_32
        k ^= k >> _R_32
        k = (k * _M_32) & _MASK_32
        h = (h * _M_32) & _MASK_32
        h ^= k
        i += 4

    left = length - i
    if left:
        if left >= 3:
            h ^= data[i + 2] << 16
        if left >= 2:
            h ^= data[i + 1] << 8
        h ^= data[i]
        h = (h * _M_32) & _MASK_32

    h ^= h >> 13
    h = (h * _M_32) & _MASK_32
    h ^= h >> 15
    return h


def normalize_format(hash_format: str) -> str:
    """Lowercases a format name and ensures it is supported."""
    name = hash_format.strip().lower()
    if name not in SUPPORTED_FORMATS:
        raise ConfigError(
            f"Unsupported hash format '{hash_format}'. "
            f"Expected one of: {', '.join(sorted(SUPPORTED_FORMATS))}."
        )
    return name


def fingerprint(hash_format: str, data: bytes) -> str:
    """
    Computes the fingerprint of ``data`` under the named format.

    Args:
        hash_format: One of sha1, sha256, sha512, md5 or murmur2 (case-insensitive).
        data: The raw bytes to hash.

    Returns:
        A lowercase hex digest, or the unsigned decimal string for murmur2.

    Raises:
        ConfigError: If the format name is not supported.
    """
    name = normalize_format(hash_format)
    if name == MURMUR2:
        return str(murmur2_hash(data))
    return _HASHLIB_FORMATS[name](data).hexdigest()


def normalize_fingerprint(hash_format: str, value: str) -> str:
    """Renders a declared fingerprint the way ``fingerprint`` would produce it."""
    if normalize_format(hash_format) == MURMUR2:
        return value.strip()
    return value.strip().lower()


def fingerprints_equal(hash_format: str, expected: str, actual: str) -> bool:
    """Compares hex fingerprints case-insensitively and murmur2 ones literally."""
    return normalize_fingerprint(hash_format, expected) == normalize_fingerprint(
        hash_format, actual
    )


async def fingerprint_file(hash_format: str, path: Path) -> str:
    """Reads a local file without blocking the event loop and fingerprints it."""
    async with aiofiles.open(path, "rb") as f:
        data = await f.read()
    return fingerprint(hash_format, data)


async def local_copy_matches(hash_format: str, expected: str, path: Path) -> bool:
    """
    Returns True when ``path`` exists and its fingerprint equals ``expected``.

    Unreadable files count as a mismatch so that they are fetched again.
    """
    if not path.is_file():
        return False
    try:
        actual = await fingerprint_file(hash_format, path)
    except OSError as e:
        log.debug(f"Could not hash local copy '{path}': {e}")
        return False
    return fingerprints_equal(hash_format, expected, actual)
