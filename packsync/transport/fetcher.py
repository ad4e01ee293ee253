"""
Fetches raw bytes from http(s) URLs, ``file:`` URLs and bare filesystem paths,
with bounded retries and exponential backoff.
"""

import asyncio
import logging
from pathlib import Path
from urllib.parse import urlparse

import aiofiles
import aiohttp

from packsync import __version__
from packsync.exceptions import FetchError
from packsync.utils.path import HTTP_SCHEMES, file_url_to_path

log = logging.getLogger(__name__)

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()

RETRYABLE_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


async def get_connection_pool(max_workers: int = 8) -> aiohttp.ClientSession:
    """
    Gets or creates a shared aiohttp ClientSession for all pack fetches.

    This function ensures that only one connection pool is created for the
    lifetime of a run.

    Args:
        max_workers: Maximum concurrent entries (should match config.max_workers).
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=max_workers * 2,
            limit_per_host=max_workers,
            ttl_dns_cache=600,
            keepalive_timeout=30,
            enable_cleanup_closed=True,
        )
        _connection_pool = aiohttp.ClientSession(
            connector=connector,
            headers={
                "User-Agent": f"packsync/{__version__}",
                "Accept-Encoding": "gzip, deflate, br",
            },
        )
        log.debug(f"Created fetch pool with limit_per_host={max_workers}")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            log.debug("Shared fetch connection pool closed.")
        _connection_pool = None


class Fetcher:
    """Reads pack locations, retrying transient failures with exponential backoff."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 8.0,
        timeout: float = 30.0,
        max_workers: int = 8,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.max_workers = max_workers

    async def fetch(self, location: str) -> bytes:
        """
        Performs a single fetch of ``location``.

        Raises:
            FetchError: For URL schemes that cannot be fetched.
            aiohttp.ClientError, asyncio.TimeoutError, OSError: On transport failure.
        """
        scheme = urlparse(location).scheme
        if scheme in HTTP_SCHEMES:
            return await self._fetch_http(location)
        if scheme == "file":
            return await self._read_file(file_url_to_path(location))
        # Single-letter schemes are Windows drive letters, not URLs.
        if len(scheme) > 1:
            raise FetchError(f"Unsupported URL scheme '{scheme}' in {location}", location)
        return await self._read_file(Path(location))

    async def _fetch_http(self, url: str) -> bytes:
        session = await get_connection_pool(self.max_workers)
        async with session.get(url, allow_redirects=True, timeout=self.timeout) as r:
            r.raise_for_status()
            return await r.read()

    @staticmethod
    async def _read_file(path: Path) -> bytes:
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    async def fetch_with_retry(
        self, location: str, max_attempts: int | None = None
    ) -> bytes:
        """
        Fetches ``location``, retrying up to ``max_attempts`` times.

        The delay before each retry starts at ``base_delay`` and doubles up to
        ``max_delay``.

        Raises:
            FetchError: When every attempt failed, chained to the last error.
        """
        attempts = max_attempts or self.max_attempts
        delay = self.base_delay
        last_exception: BaseException | None = None

        for attempt in range(1, attempts + 1):
            try:
                return await self.fetch(location)
            except RETRYABLE_ERRORS as e:
                last_exception = e
                log.debug(
                    f"Fetch attempt {attempt}/{attempts} for '{location}' failed: "
                    f"{e!r}"
                )
                if attempt < attempts:
                    await asyncio.sleep(delay)
                    delay = min(delay * 2, self.max_delay)

        raise FetchError(
            f"Failed to fetch '{location}' after {attempts} attempt(s): "
            f"{last_exception!r}",
            location,
        ) from last_exception
