"""
Handles the low-level downloading of model assets over HTTP, with
skip-if-present idempotency and per-host bearer authentication.
"""

import asyncio
import contextlib
import logging
from pathlib import Path

import aiofiles
import aiohttp
from rich.markup import escape

from sd_provision.cli.progress_manager import ProgressManager
from sd_provision.models.config import Credentials
from sd_provision.models.manifest import DownloadTask
from sd_provision.models.results import AssetResult, AssetStatus
from sd_provision.web.auth import auth_headers, classify_host

log = logging.getLogger(__name__)

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool() -> aiohttp.ClientSession:
    """
    Gets or creates a shared aiohttp ClientSession for downloads.

    This function ensures that only one connection pool is created for the
    lifetime of the application run. Transfers have no overall timeout: model
    weights can take hours and a transfer runs until the server or the network
    ends it.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=4,
            ttl_dns_cache=600,  # 10 minutes
            keepalive_timeout=30,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=None, sock_read=None)
        _connection_pool = aiohttp.ClientSession(connector=connector, timeout=timeout)
        log.debug("Created download connection pool.")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared downloader connection pool closed.")


class AssetDownloader:
    """Downloads one asset per call, skipping destinations that already exist."""

    CHUNK_SIZE = 1048576  # 1 MB

    def __init__(
        self,
        credentials: Credentials,
        omit_empty_auth: bool = False,
        session: aiohttp.ClientSession | None = None,
        progress_manager: ProgressManager | None = None,
    ):
        self.credentials = credentials
        self.omit_empty_auth = omit_empty_auth
        self.progress_manager = progress_manager
        self._session = session
        self._path_locks: dict[Path, asyncio.Lock] = {}

    def _lock_for(self, destination: Path) -> asyncio.Lock:
        # Two tasks targeting one path must not both pass the existence check
        key = destination.absolute()
        if key not in self._path_locks:
            self._path_locks[key] = asyncio.Lock()
        return self._path_locks[key]

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None:
            return self._session
        return await get_connection_pool()

    async def download_url(self, url: str, destination: Path) -> AssetResult:
        """Convenience wrapper around `download` for a bare URL and path."""
        return await self.download(DownloadTask(url=url, destination=Path(destination)))

    async def download(self, task: DownloadTask) -> AssetResult:
        """
        Downloads `task.url` into `task.destination`.

        Returns:
            An AssetResult: SKIPPED when the destination already exists,
            SUCCEEDED after a complete transfer, FAILED otherwise. Transfer
            errors never propagate to the caller.
        """
        async with self._lock_for(task.destination):
            return await self._download(task)

    async def _download(self, task: DownloadTask) -> AssetResult:
        name = escape(task.name)
        if await asyncio.to_thread(task.destination.is_file):
            log.info(f"File {name} already exists, skipping download.")
            if self.progress_manager:
                self.progress_manager.increment_skipped()
            return AssetResult(task.url, task.destination, AssetStatus.SKIPPED)

        headers = auth_headers(task.url, self.credentials, omit_empty=self.omit_empty_auth)
        log.debug(
            f"Host kind for {escape(task.url)}: {classify_host(task.url).value}, "
            f"auth header {'attached' if headers else 'not attached'}."
        )
        log.info(
            f"Downloading {name} from {escape(task.url)} to "
            f"{escape(str(task.destination))}..."
        )

        task_id = None
        if self.progress_manager:
            task_id = self.progress_manager.add_asset_task(task.name)

        try:
            bytes_written = await self._transfer(task, headers, task_id)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
            await self._remove_partial(task.destination)
            log.error(f"[red]Failed to download {name}.[/red]")
            log.debug(f"Transfer error for {escape(task.url)}: {e!r}")
            if self.progress_manager:
                self.progress_manager.remove_task(task_id, success=False)
            return AssetResult(
                task.url,
                task.destination,
                AssetStatus.FAILED,
                error=str(e) or type(e).__name__,
            )
        except BaseException:
            # Cancelled mid-stream, e.g. by Ctrl-C
            with contextlib.suppress(OSError):
                task.destination.unlink(missing_ok=True)
            raise

        log.info(f"[green]Downloaded {name} successfully.[/green]")
        if self.progress_manager:
            self.progress_manager.remove_task(task_id, success=True)
        return AssetResult(
            task.url, task.destination, AssetStatus.SUCCEEDED, bytes_written=bytes_written
        )

    async def _transfer(self, task: DownloadTask, headers: dict[str, str], task_id) -> int:
        """Streams the response body into the destination file."""
        session = await self._get_session()
        async with session.get(task.url, headers=headers, allow_redirects=True) as response:
            response.raise_for_status()

            total_size = int(response.headers.get("Content-Length", 0) or 0)
            if self.progress_manager and task_id is not None:
                self.progress_manager.update_task_total(task_id, total=total_size)

            bytes_downloaded = 0
            async with aiofiles.open(task.destination, "wb") as f:
                async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                    await f.write(chunk)
                    bytes_downloaded += len(chunk)
                    if self.progress_manager and task_id is not None:
                        self.progress_manager.update_task_progress(
                            task_id, completed=bytes_downloaded
                        )
            return bytes_downloaded

    @staticmethod
    async def _remove_partial(destination: Path) -> None:
        """Removes a partially written file so the next run does not skip it."""
        try:
            await asyncio.to_thread(destination.unlink, missing_ok=True)
        except OSError as e:
            log.warning(f"Could not remove partial file {escape(str(destination))}: {e}")
