"""
Fetches the provisioning manifest and keeps a verbatim local copy of it.
"""

import asyncio
import json
import logging
import shutil
from pathlib import Path
from typing import Any

import aiofiles
import aiohttp
from rich.markup import escape

from sd_provision.exceptions import ManifestUnavailableError

log = logging.getLogger(__name__)


class ManifestFetcher:
    """
    Retrieves the JSON manifest from a URL (or a local file) and persists it.

    The local copy is overwritten on every fetch; there is no caching and no
    retry.
    """

    def __init__(self, session: aiohttp.ClientSession | None = None, timeout: float = 60):
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout, connect=15)

    async def fetch(self, source: str, destination: Path) -> Path:
        """
        Retrieves `source` and writes it verbatim to `destination`.

        Raises:
            ManifestUnavailableError: If the document cannot be retrieved.
        """
        destination = Path(destination)
        if not source:
            log.warning("[yellow]Load Config environment variable is not set.[/yellow]")

        if source and await asyncio.to_thread(Path(source).expanduser().is_file):
            return await self._copy_local(Path(source).expanduser(), destination)

        log.info(f"Fetching manifest from {escape(source) or '(empty URL)'}...")
        try:
            if self._session is not None:
                body = await self._get(self._session, source)
            else:
                async with aiohttp.ClientSession(timeout=self._timeout) as session:
                    body = await self._get(session, source)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ManifestUnavailableError(
                f"Failed to fetch manifest from '{source}': {str(e) or type(e).__name__}"
            ) from e

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(destination, "wb") as f:
                await f.write(body)
        except OSError as e:
            raise ManifestUnavailableError(
                f"Could not write manifest copy to '{destination}': {e}"
            ) from e

        log.debug(f"Manifest saved to {destination} ({len(body)} bytes).")
        return destination

    @staticmethod
    async def _get(session: aiohttp.ClientSession, url: str) -> bytes:
        async with session.get(url, allow_redirects=True) as response:
            response.raise_for_status()
            return await response.read()

    @staticmethod
    async def _copy_local(source: Path, destination: Path) -> Path:
        log.info(f"Reading manifest from local file: [dim]{escape(str(source))}[/dim]")
        if source.resolve() == destination.resolve():
            return destination
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copyfile, source, destination)
        except OSError as e:
            raise ManifestUnavailableError(
                f"Could not copy manifest from '{source}': {e}"
            ) from e
        return destination

    @staticmethod
    def load(path: Path) -> dict[str, Any]:
        """
        Reads and parses the local manifest copy.

        Raises:
            ManifestUnavailableError: If the file is missing or is not a JSON object.
        """
        path = Path(path)
        if not path.is_file():
            raise ManifestUnavailableError(f"Config file not found: {path}")
        try:
            with open(path, encoding="utf-8") as f:
                manifest = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ManifestUnavailableError(f"Could not parse manifest '{path}': {e}") from e

        if not isinstance(manifest, dict):
            raise ManifestUnavailableError(
                f"Manifest '{path}' must be a JSON object, "
                f"got {type(manifest).__name__}."
            )
        return manifest

    async def fetch_and_load(self, source: str, destination: Path) -> dict[str, Any]:
        path = await self.fetch(source, destination)
        return await asyncio.to_thread(self.load, path)
