"""
External API Layer.

This package talks to the CurseForge API to resolve items that are not
downloadable from a URL declared in the pack itself.
"""

from .client import CurseForgeClient
from .resolver import DirectUrl, ExternalResolver, ManualUrl

__all__ = ["CurseForgeClient", "DirectUrl", "ExternalResolver", "ManualUrl"]
