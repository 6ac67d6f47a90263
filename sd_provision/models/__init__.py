"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application: configuration, manifest
entries and run results.
"""

from .config import CategoryBinding, Credentials, ProvisionConfig
from .manifest import AssetEntry, DownloadTask
from .results import (
    AssetResult,
    AssetStatus,
    CategoryResult,
    ExitCode,
    InstallResult,
    RunSummary,
)

__all__ = [
    "AssetEntry",
    "AssetResult",
    "AssetStatus",
    "CategoryBinding",
    "CategoryResult",
    "Credentials",
    "DownloadTask",
    "ExitCode",
    "InstallResult",
    "ProvisionConfig",
    "RunSummary",
]
