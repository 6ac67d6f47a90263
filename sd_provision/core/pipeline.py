"""
The main orchestrator: prepares the directory layout, fetches the manifest and
drives every category through extraction and download, strictly in order.
"""

import asyncio
import logging
import time
from pathlib import Path

from rich.markup import escape

from sd_provision.cli.progress_manager import ProgressManager
from sd_provision.exceptions import DirectoryCreateError, ManifestUnavailableError
from sd_provision.media.downloader import AssetDownloader
from sd_provision.models.config import CategoryBinding, ProvisionConfig
from sd_provision.models.results import CategoryResult, RunSummary
from sd_provision.utils.manifest_validator import validate_manifest_schema
from sd_provision.utils.path import create_dir
from sd_provision.web.manifest_fetcher import ManifestFetcher

from .extractor import build_tasks, extract_category

log = logging.getLogger(__name__)


class ProvisionPipeline:
    """Orchestrates a complete provisioning run for one configuration."""

    def __init__(
        self,
        config: ProvisionConfig,
        downloader: AssetDownloader | None = None,
        fetcher: ManifestFetcher | None = None,
        progress_manager: ProgressManager | None = None,
    ):
        self.config = config
        self.progress_manager = progress_manager
        self.fetcher = fetcher or ManifestFetcher()
        self.downloader = downloader or AssetDownloader(
            config.credentials,
            omit_empty_auth=config.omit_empty_auth,
            progress_manager=progress_manager,
        )

    async def run(self, bindings: list[CategoryBinding] | None = None) -> RunSummary:
        """
        Runs the download phase.

        Configuration gaps and per-asset failures are logged and recorded in
        the summary. An unavailable manifest ends the run early with
        `manifest_error` set, since no category can be extracted without it.
        """
        bindings = bindings if bindings is not None else self.config.category_bindings()
        summary = RunSummary()
        start_time = time.monotonic()

        self._report_missing_settings()
        dir_errors = await self._prepare_directories(bindings)

        try:
            manifest = await self.fetcher.fetch_and_load(
                self.config.manifest_url, self.config.manifest_path
            )
        except ManifestUnavailableError as e:
            log.error(f"[bold red]Manifest unavailable:[/bold red] {escape(str(e))}")
            summary.manifest_error = str(e)
            summary.duration_s = time.monotonic() - start_time
            return summary

        is_valid, problems = validate_manifest_schema(manifest)
        if not is_valid:
            for problem in problems:
                log.warning(f"[yellow]Manifest: {escape(problem)}[/yellow]")

        if self.progress_manager:
            self.progress_manager.initialize_session()

        for binding in bindings:
            result = await self._process_category(
                manifest, binding, dir_errors.get(binding.name)
            )
            summary.categories.append(result)

        summary.duration_s = time.monotonic() - start_time
        log.info(
            f"Provisioning finished: {summary.downloaded} downloaded, "
            f"{summary.skipped} skipped, {summary.failed} failed."
        )
        return summary

    def _report_missing_settings(self) -> None:
        for missing in self.config.missing_settings():
            # The fetcher reports the manifest source itself when it is used
            if missing.setting == "LOAD_CONFIG":
                continue
            log.warning(f"[yellow]{missing}[/yellow]")

    async def _prepare_directories(
        self, bindings: list[CategoryBinding]
    ) -> dict[str, DirectoryCreateError]:
        """
        Creates the legacy and category directories up front. Failures are
        returned per category and retried when that category is processed.
        """
        if self.config.create_legacy_dirs:
            for directory in self.config.legacy_directories():
                try:
                    await asyncio.to_thread(create_dir, directory)
                except OSError as e:
                    log.warning(
                        f"[yellow]Could not create directory "
                        f"{escape(str(directory))}: {e}[/yellow]"
                    )

        errors = {}
        for binding in bindings:
            try:
                await self._ensure_directory(binding.directory)
            except DirectoryCreateError as e:
                log.warning(f"[yellow]{escape(str(e))}[/yellow]")
                errors[binding.name] = e
        return errors

    @staticmethod
    async def _ensure_directory(directory: Path) -> None:
        try:
            await asyncio.to_thread(create_dir, directory)
        except OSError as e:
            raise DirectoryCreateError(
                f"Could not create directory '{directory}': {e}"
            ) from e

    async def _process_category(
        self,
        manifest: dict,
        binding: CategoryBinding,
        earlier_error: DirectoryCreateError | None,
    ) -> CategoryResult:
        result = CategoryResult(name=binding.name, directory=binding.directory)
        log.info(f"Downloading {escape(binding.name)}...")

        entries = extract_category(manifest, binding.name)
        if self.progress_manager:
            self.progress_manager.set_category(binding.name, len(entries))

        # The directory is declared even when the category has no entries
        if earlier_error is not None or not binding.directory.is_dir():
            try:
                await self._ensure_directory(binding.directory)
            except DirectoryCreateError as e:
                log.error(f"[red]✗ {escape(str(e))} Skipping {escape(binding.name)}.[/red]")
                result.error = str(e)
                return result

        if not entries:
            log.debug(f"No entries for category '{binding.name}'.")
            return result

        for task in build_tasks(entries, binding.directory):
            result.assets.append(await self.downloader.download(task))

        log.debug(
            f"Category '{binding.name}': {result.succeeded} downloaded, "
            f"{result.skipped} skipped, {result.failed} failed."
        )
        return result
