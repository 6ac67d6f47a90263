"""
Utilities for handling file paths and URL parsing.
"""

from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlsplit

from pathvalidate import sanitize_filename


def is_url(value: str) -> bool:
    """True for absolute URLs with a scheme and a host."""
    parts = urlsplit(value)
    return bool(parts.scheme and parts.netloc)


def is_http_url(value: str) -> bool:
    parts = urlsplit(value)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def resolve_filename(url: str, filename: str | None = None) -> str:
    """
    Resolves the local filename for an asset.

    An explicit filename wins over the URL. Either way only the final path
    segment is kept, so manifests that put a full path or URL in the filename
    field still land inside the category directory. For URLs the query string
    and fragment are not part of the segment.

    Raises:
        ValueError: If no usable filename can be derived.
    """
    source = filename.strip() if filename and filename.strip() else url
    path = unquote(urlsplit(source).path) if is_url(source) else source
    name = PurePosixPath(path.replace("\\", "/")).name
    if name in ("", ".", ".."):
        raise ValueError(f"Cannot derive a filename from '{source}'.")
    name = sanitize_filename(name, platform="auto")
    if not name:
        raise ValueError(f"Cannot derive a filename from '{source}'.")
    return name


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)
