"""
Utility Layer.

Hashing, location joining, destination path checks and display formatting.
"""

from .hashing import fingerprint, fingerprints_equal, murmur2_hash
from .path import join_uri, resolve_destination

__all__ = [
    "fingerprint",
    "fingerprints_equal",
    "join_uri",
    "murmur2_hash",
    "resolve_destination",
]
