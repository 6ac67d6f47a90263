"""
Installs system packages through apt-get, once per run.
"""

import asyncio
import logging

from sd_provision.exceptions import PackageInstallError
from sd_provision.models.results import InstallResult

log = logging.getLogger(__name__)

_STDERR_TAIL = 2000


class PackageInstaller:
    """Runs `apt-get update` followed by `apt-get install -y <packages>`."""

    def __init__(self, packages: list[str], use_sudo: bool = True):
        self.packages = list(packages)
        self.use_sudo = use_sudo

    def _command(self, *args: str) -> list[str]:
        cmd = ["apt-get", *args]
        return ["sudo", *cmd] if self.use_sudo else cmd

    def commands(self) -> list[list[str]]:
        """The commands `install` will run, in order."""
        return [
            self._command("update"),
            self._command("install", "-y", *self.packages),
        ]

    async def _run(self, cmd: list[str]) -> tuple[int, str]:
        log.debug(f"Running: {' '.join(cmd)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise PackageInstallError(f"Could not run '{cmd[0]}': {e}") from e
        _, stderr = await proc.communicate()
        return proc.returncode, stderr.decode("utf-8", errors="replace")[-_STDERR_TAIL:]

    async def install(self) -> InstallResult:
        """
        Installs the configured packages.

        Returns:
            An InstallResult; failures are reported in it rather than raised.
        """
        if not self.packages:
            log.info("No APT packages configured, skipping installation.")
            return InstallResult(packages=[], ok=True, skipped=True)

        log.info(f"Installing APT packages: {' '.join(self.packages)}")
        for cmd in self.commands():
            try:
                returncode, stderr = await self._run(cmd)
            except PackageInstallError as e:
                log.error(f"[red]✗ {e}[/red]")
                return InstallResult(packages=self.packages, ok=False, error=str(e))

            if returncode != 0:
                log.error(
                    f"[red]✗ '{' '.join(cmd[:3])}' exited with code {returncode}.[/red]"
                )
                if stderr.strip():
                    log.debug(stderr.strip())
                return InstallResult(
                    packages=self.packages,
                    ok=False,
                    returncode=returncode,
                    error=stderr.strip() or f"exit code {returncode}",
                )

        log.info("[green]✓ APT packages installed.[/green]")
        return InstallResult(packages=self.packages, ok=True, returncode=0)
