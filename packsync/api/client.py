"""
Async client for the CurseForge v1 lookup endpoints used to resolve pack items.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp

from packsync import __version__
from packsync.exceptions import ExternalApiError

log = logging.getLogger(__name__)


class CurseForgeClient:
    """
    Minimal async client for the CurseForge JSON API.

    Both lookups are batch POST requests authenticated with an ``X-API-Key``
    header. Any non-2xx response is raised as an ExternalApiError.
    """

    BASE_URL = "https://api.curseforge.com/v1/"

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        max_workers: int = 8,
        timeout: float = 30.0,
    ):
        """
        Initializes the API client.

        Args:
            api_key: The key sent in the ``X-API-Key`` header.
            base_url: Overrides the API root (used by tests and mirrors).
            max_workers: The number of concurrent workers, used to tune the connection pool.
            timeout: Overall timeout in seconds for a single request.
        """
        self.api_key = api_key
        self.base_url = base_url or self.BASE_URL
        if not self.base_url.endswith("/"):
            self.base_url += "/"
        self.max_workers = max_workers
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.max_workers,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={
                    "User-Agent": f"packsync/{__version__}",
                    "Accept": "application/json",
                    "X-API-Key": self.api_key,
                },
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def api_call(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POSTs ``payload`` as JSON to ``endpoint`` and returns the decoded body.

        Raises:
            ExternalApiError: On transport failure, a non-2xx status, or a body
            that is not a JSON object.
        """
        await self._initialize_session()
        url = self.base_url + endpoint
        start_time = time.monotonic()

        try:
            async with self._session.post(url, json=payload) as r:
                body = await r.text()
                duration_ms = (time.monotonic() - start_time) * 1000
                log.debug(f"POST {endpoint} -> {r.status} in {duration_ms:.0f} ms")

                if not 200 <= r.status < 300:
                    raise ExternalApiError(
                        f"CurseForge API error {r.status} for '{endpoint}': "
                        f"{body[:200]}",
                        status=r.status,
                        body=body,
                    )
                try:
                    data = await r.json(content_type=None)
                except ValueError as e:
                    raise ExternalApiError(
                        f"CurseForge API returned invalid JSON for '{endpoint}'.",
                        status=r.status,
                        body=body,
                    ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ExternalApiError(
                f"CurseForge API request to '{endpoint}' failed: {e!r}"
            ) from e

        if not isinstance(data, dict):
            raise ExternalApiError(
                f"CurseForge API returned an unexpected body for '{endpoint}'.",
                status=r.status,
                body=body,
            )
        return data

    async def fetch_files(self, file_ids: List[int]) -> List[Dict[str, Any]]:
        response = await self.api_call("mods/files", {"fileIds": file_ids})
        return self._data_objects(response, "mods/files")

    async def fetch_mods(self, project_ids: List[int]) -> List[Dict[str, Any]]:
        response = await self.api_call("mods", {"modIds": project_ids})
        return self._data_objects(response, "mods")

    @staticmethod
    def _data_objects(response: Dict[str, Any], endpoint: str) -> List[Dict[str, Any]]:
        """Returns the `data` list, which must hold JSON objects only."""
        data = response.get("data")
        if data is None:
            return []
        if not isinstance(data, list) or not all(isinstance(d, dict) for d in data):
            raise ExternalApiError(
                f"CurseForge API returned malformed 'data' for '{endpoint}'.",
                body=str(data)[:200],
            )
        return data
