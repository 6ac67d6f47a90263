"""
Extracts the ordered asset entries declared under one manifest category.
"""

import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from rich.markup import escape

from sd_provision.models.manifest import AssetEntry, DownloadTask

log = logging.getLogger(__name__)


def extract_category(manifest: dict[str, Any], category: str) -> list[AssetEntry]:
    """
    Returns the entries under `category` in manifest order.

    A missing category yields no entries. Elements that are not valid
    `{url, filename?}` records, or whose filename cannot be resolved, are
    skipped with a warning.
    """
    raw_entries = manifest.get(category)
    if raw_entries is None:
        return []
    if not isinstance(raw_entries, list):
        log.warning(
            f"[yellow]Category '{escape(category)}' is not a list, ignoring it.[/yellow]"
        )
        return []

    entries = []
    for index, raw in enumerate(raw_entries):
        if not isinstance(raw, dict):
            log.warning(
                f"[yellow]Skipping {escape(category)}[{index}]: "
                "expected an object with a 'url'.[/yellow]"
            )
            continue
        try:
            entry = AssetEntry(url=raw.get("url") or "", filename=raw.get("filename"))
        except ValidationError as e:
            log.warning(
                f"[yellow]Skipping invalid entry {escape(category)}[{index}]: "
                f"{escape(_first_error(e))}[/yellow]"
            )
            continue
        entries.append(entry)
    return entries


def build_tasks(entries: list[AssetEntry], directory: Path) -> list[DownloadTask]:
    """
    Pairs each entry with its destination path inside `directory`.

    Entries that resolve to an already claimed path are kept, so the later one
    is skipped as existing at download time, but the collision is logged.
    """
    tasks = []
    claimed: dict[Path, str] = {}
    for entry in entries:
        destination = Path(directory) / entry.effective_filename
        if destination in claimed:
            log.warning(
                f"[yellow]{escape(entry.url)} and {escape(claimed[destination])} both "
                f"resolve to {escape(str(destination))}; only the first is "
                "downloaded. Set 'filename' to tell them apart.[/yellow]"
            )
        else:
            claimed[destination] = entry.url
        tasks.append(DownloadTask(url=entry.url, destination=destination))
    return tasks


def _first_error(error: Exception) -> str:
    if isinstance(error, ValidationError):
        details = error.errors()
        if details:
            return str(details[0].get("msg", error))
    return str(error)
