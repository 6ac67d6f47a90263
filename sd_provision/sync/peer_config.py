"""
Peer-sync (Syncthing) configuration templating.

A standalone utility, separate from the download pipeline: it fetches a
config template, substitutes the `$DEV1`/`$DEV2` device placeholders and
installs the result.
"""

import asyncio
import logging
import shutil
from pathlib import Path

import aiofiles
import aiohttp
from rich.markup import escape

from sd_provision.exceptions import PeerSyncError
from sd_provision.models.config import ProvisionConfig

log = logging.getLogger(__name__)


def render_template(text: str, dev1: str, dev2: str) -> str:
    """Replaces every literal `$DEV1` and `$DEV2` in `text`."""
    return text.replace("$DEV1", dev1).replace("$DEV2", dev2)


class PeerConfigWriter:
    """Downloads, renders and installs the peer-sync configuration file."""

    TEMPLATE_NAME = "config.xml"
    RENDERED_NAME = "config_env.xml"

    def __init__(
        self, config: ProvisionConfig, session: aiohttp.ClientSession | None = None
    ):
        self.config = config
        self._session = session

    async def _fetch_template(self, url: str) -> str:
        if self._session is not None:
            return await self._get(self._session, url)
        timeout = aiohttp.ClientTimeout(total=60, connect=15)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            return await self._get(session, url)

    @staticmethod
    async def _get(session: aiohttp.ClientSession, url: str) -> str:
        async with session.get(url, allow_redirects=True) as response:
            response.raise_for_status()
            return await response.text()

    async def setup(self) -> Path:
        """
        Renders the template into the working directory and copies it to the
        configured target.

        Returns:
            The installed configuration path.

        Raises:
            PeerSyncError: If any step fails.
        """
        url = self.config.syncthing_config_url
        if not url:
            log.warning(
                "[yellow]Syncthing Config environment variable is not set.[/yellow]"
            )
        for name, value in (("DEV1", self.config.dev1), ("DEV2", self.config.dev2)):
            if not value:
                log.warning(f"[yellow]{name} environment variable is not set.[/yellow]")

        work_dir = self.config.work_path
        template_path = work_dir / self.TEMPLATE_NAME
        rendered_path = work_dir / self.RENDERED_NAME
        target = Path(self.config.syncthing_target).expanduser()

        try:
            template = await self._fetch_template(url)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise PeerSyncError(
                f"Failed to fetch Syncthing config from '{url}': {str(e) or type(e).__name__}"
            ) from e

        rendered = render_template(template, self.config.dev1, self.config.dev2)
        try:
            work_dir.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(template_path, "w", encoding="utf-8") as f:
                await f.write(template)
            async with aiofiles.open(rendered_path, "w", encoding="utf-8") as f:
                await f.write(rendered)
            target.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copyfile, rendered_path, target)
        except OSError as e:
            raise PeerSyncError(f"Could not install Syncthing config: {e}") from e

        log.info(
            f"[green]✓ Syncthing config installed to {escape(str(target))}.[/green]"
        )
        return target
