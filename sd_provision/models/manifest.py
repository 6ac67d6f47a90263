"""
Data models for manifest entries and the download tasks derived from them.
"""

from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, field_validator, model_validator

from sd_provision.utils.path import is_http_url, resolve_filename


class AssetEntry(BaseModel):
    """One `{url, filename?}` record from a manifest category."""

    url: str
    filename: str | None = None

    class Config:
        """Pydantic model configuration."""

        str_strip_whitespace = True
        frozen = True

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v:
            raise ValueError("Asset URL cannot be empty.")
        if not is_http_url(v):
            raise ValueError(f"Asset URL must be an http(s) URL, got '{v}'.")
        return v

    @model_validator(mode="after")
    def validate_filename(self) -> "AssetEntry":
        """Rejects entries that cannot be mapped to a local file."""
        resolve_filename(self.url, self.filename)
        return self

    @property
    def effective_filename(self) -> str:
        return resolve_filename(self.url, self.filename)


@dataclass(frozen=True)
class DownloadTask:
    """A single asset to fetch into a single destination path."""

    url: str
    destination: Path

    @property
    def name(self) -> str:
        return self.destination.name
