"""
Result types for a provisioning run: per asset, per category, and overall.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path


class ExitCode(IntEnum):
    """Process exit codes for the `run` command."""

    OK = 0
    ERROR = 1
    MANIFEST_UNAVAILABLE = 2
    ASSETS_FAILED = 3
    PACKAGES_FAILED = 4


class AssetStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class AssetResult:
    """Outcome of one download task."""

    url: str
    destination: Path
    status: AssetStatus
    bytes_written: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not AssetStatus.FAILED


@dataclass
class CategoryResult:
    """Outcome of one manifest category."""

    name: str
    directory: Path
    assets: list[AssetResult] = field(default_factory=list)
    error: str | None = None

    def _count(self, status: AssetStatus) -> int:
        return sum(1 for a in self.assets if a.status is status)

    @property
    def succeeded(self) -> int:
        return self._count(AssetStatus.SUCCEEDED)

    @property
    def skipped(self) -> int:
        return self._count(AssetStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(AssetStatus.FAILED)

    @property
    def ok(self) -> bool:
        return self.error is None and self.failed == 0


@dataclass
class InstallResult:
    """Outcome of the system package installation step."""

    packages: list[str]
    ok: bool
    skipped: bool = False
    returncode: int | None = None
    error: str | None = None


@dataclass
class RunSummary:
    """Aggregated outcome of a provisioning run."""

    categories: list[CategoryResult] = field(default_factory=list)
    manifest_error: str | None = None
    packages: InstallResult | None = None
    duration_s: float = 0.0

    @property
    def assets(self) -> list[AssetResult]:
        return [a for c in self.categories for a in c.assets]

    @property
    def downloaded(self) -> int:
        return sum(c.succeeded for c in self.categories)

    @property
    def skipped(self) -> int:
        return sum(c.skipped for c in self.categories)

    @property
    def failed(self) -> int:
        return sum(c.failed for c in self.categories)

    @property
    def bytes_written(self) -> int:
        return sum(a.bytes_written for a in self.assets)

    @property
    def exit_code(self) -> ExitCode:
        if self.manifest_error is not None:
            return ExitCode.MANIFEST_UNAVAILABLE
        if any(not c.ok for c in self.categories):
            return ExitCode.ASSETS_FAILED
        if self.packages is not None and not self.packages.ok:
            return ExitCode.PACKAGES_FAILED
        return ExitCode.OK
