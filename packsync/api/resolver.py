"""
Resolves CurseForge project/file identifier pairs into download locations.
"""

import logging
from dataclasses import dataclass

from .client import CurseForgeClient

log = logging.getLogger(__name__)

FALLBACK_PROJECT_URL = "https://www.curseforge.com/projects/{project_id}/files/{file_id}"


@dataclass(frozen=True)
class DirectUrl:
    """A URL the file can be downloaded from without user interaction."""

    url: str


@dataclass(frozen=True)
class ManualUrl:
    """A human-facing page where the file has to be downloaded by hand."""

    url: str


class ExternalResolver:
    """Looks up items whose download location is held by the CurseForge API."""

    def __init__(self, client: CurseForgeClient):
        self.client = client

    async def resolve(self, project_id: int, file_id: int) -> DirectUrl | ManualUrl:
        """
        Returns the direct download URL for a file, or a manual download page when
        the project author has disabled third-party downloads.

        Raises:
            ExternalApiError: If either lookup fails.
        """
        files = await self.client.fetch_files([file_id])
        download_url = files[0].get("downloadUrl") if files else None
        if isinstance(download_url, str) and download_url:
            return DirectUrl(download_url)

        log.debug(
            f"No direct download for file {file_id} of project {project_id}; "
            "looking up the project page."
        )
        projects = await self.client.fetch_mods([project_id])
        website_url = ""
        if projects:
            links = projects[0].get("links")
            if isinstance(links, dict) and isinstance(links.get("websiteUrl"), str):
                website_url = links["websiteUrl"].strip()

        if website_url:
            return ManualUrl(f"{website_url.rstrip('/')}/files/{file_id}")
        return ManualUrl(
            FALLBACK_PROJECT_URL.format(project_id=project_id, file_id=file_id)
        )
