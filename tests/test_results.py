"""Run summary aggregation and exit codes."""

from pathlib import Path

from sd_provision.models.results import (
    AssetResult,
    AssetStatus,
    CategoryResult,
    ExitCode,
    InstallResult,
    RunSummary,
)


def _asset(status: AssetStatus, size: int = 0) -> AssetResult:
    return AssetResult("https://h/f", Path("/tmp/f"), status, bytes_written=size)


def test_totals():
    summary = RunSummary(
        categories=[
            CategoryResult(
                "unet_models",
                Path("/u"),
                [_asset(AssetStatus.SUCCEEDED, 10), _asset(AssetStatus.SKIPPED)],
            ),
            CategoryResult("vae_models", Path("/v"), [_asset(AssetStatus.SUCCEEDED, 5)]),
        ]
    )
    assert (summary.downloaded, summary.skipped, summary.failed) == (2, 1, 0)
    assert summary.bytes_written == 15
    assert summary.exit_code is ExitCode.OK


def test_failed_asset_or_directory_means_assets_failed():
    failed_asset = RunSummary(
        categories=[CategoryResult("lora_models", Path("/l"), [_asset(AssetStatus.FAILED)])]
    )
    failed_dir = RunSummary(
        categories=[CategoryResult("clip_models", Path("/c"), error="permission denied")]
    )
    assert failed_asset.exit_code is ExitCode.ASSETS_FAILED
    assert failed_dir.exit_code is ExitCode.ASSETS_FAILED


def test_exit_code_precedence():
    bad_packages = InstallResult(packages=["git"], ok=False, returncode=100)
    failed = [CategoryResult("lora_models", Path("/l"), [_asset(AssetStatus.FAILED)])]

    assert RunSummary(packages=bad_packages).exit_code is ExitCode.PACKAGES_FAILED
    assert (
        RunSummary(categories=failed, packages=bad_packages).exit_code
        is ExitCode.ASSETS_FAILED
    )
    assert (
        RunSummary(categories=failed, manifest_error="gone", packages=bad_packages).exit_code
        is ExitCode.MANIFEST_UNAVAILABLE
    )


def test_skipped_packages_are_fine():
    summary = RunSummary(packages=InstallResult(packages=[], ok=True, skipped=True))
    assert summary.exit_code is ExitCode.OK
