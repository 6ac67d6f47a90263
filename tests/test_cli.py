"""End-to-end command-line behaviour, fully offline."""

import json
import logging
import re
from pathlib import Path

import pytest
from typer.testing import CliRunner

from sd_provision import __version__
from sd_provision.cli.app import app
from sd_provision.storage.config_manager import ENV_VARS

runner = CliRunner()

HF_URL = "https://huggingface.co/org/repo/resolve/main/unet.safetensors"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for var in ENV_VARS.values():
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def layout(tmp_path: Path):
    workspace = tmp_path / "workspace"
    work_dir = tmp_path / "work"
    manifest = tmp_path / "manifest.json"
    manifest.write_text(json.dumps({"unet_models": [{"url": HF_URL}]}))
    return {
        "config": tmp_path / "absent.ini",
        "workspace": workspace,
        "work_dir": work_dir,
        "manifest": manifest,
        "models": workspace / "storage" / "stable_diffusion" / "models",
    }


def _run_args(layout, manifest: Path) -> list[str]:
    return [
        "--config",
        str(layout["config"]),
        "run",
        "--skip-packages",
        "--quiet",
        "--manifest-url",
        str(manifest),
        "--workspace",
        str(layout["workspace"]),
        "--work-dir",
        str(layout["work_dir"]),
    ]


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_run_with_everything_present(layout):
    existing = layout["models"] / "unet" / "unet.safetensors"
    existing.parent.mkdir(parents=True)
    existing.write_bytes(b"already here")

    result = runner.invoke(app, _run_args(layout, layout["manifest"]))

    assert result.exit_code == 0, result.output
    assert existing.read_bytes() == b"already here"
    for subdir in ("models", "unet", "vae", "lora", "clip", "controlnet", "checkpoints"):
        assert (layout["models"] / subdir).is_dir()
        assert (layout["work_dir"] / subdir).is_dir()
    assert (layout["work_dir"] / "config.json").read_text() == layout["manifest"].read_text()

    log_lines = (layout["work_dir"] / "provisioning.log").read_text().splitlines()
    assert all(re.match(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} - ", line) for line in log_lines)
    messages = [line.split(" - ", 1)[1] for line in log_lines]
    assert "HF_TOKEN environment variable is not set." in messages
    assert "Downloading unet_models..." in messages
    assert "File unet.safetensors already exists, skipping download." in messages


def test_run_with_missing_manifest(layout, tmp_path: Path):
    result = runner.invoke(app, _run_args(layout, tmp_path / "nowhere" / "manifest.json"))

    assert result.exit_code == 2
    assert not any((layout["models"] / "unet").iterdir())


def test_run_rejects_invalid_manifest_scheme(layout):
    args = _run_args(layout, layout["manifest"])
    args[args.index(str(layout["manifest"]))] = "ftp://example.com/config.json"

    result = runner.invoke(app, args)

    assert result.exit_code == 1


def test_validate_reports_missing_settings(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("LOAD_CONFIG", "https://example.com/config.json")
    monkeypatch.setenv("HF_TOKEN", "hf_abcdefghijkl")

    result = runner.invoke(app, ["--config", str(tmp_path / "absent.ini"), "validate"])

    assert result.exit_code == 0
    assert "https://example.com/config.json" in result.stdout
    assert "hf_abcdefghijkl" not in result.stdout
    assert "CIVITAI_TOKEN environment variable is not set." in result.stdout


def test_validate_exports_schema(tmp_path: Path):
    schema = tmp_path / "schema.json"
    result = runner.invoke(
        app,
        ["--config", str(tmp_path / "absent.ini"), "validate", "--export-schema", str(schema)],
    )
    assert result.exit_code == 0
    assert "unet_models" in json.loads(schema.read_text())["properties"]


def test_init_writes_config(tmp_path: Path):
    config_file = tmp_path / "sd" / "config.ini"

    result = runner.invoke(
        app,
        [
            "--config",
            str(config_file),
            "init",
            "--manifest-url",
            "https://example.com/config.json",
            "--packages",
            "git, wget",
        ],
    )

    assert result.exit_code == 0
    text = config_file.read_text()
    assert "manifest_url = https://example.com/config.json" in text
    assert "packages = git,wget" in text


def test_init_refuses_to_overwrite_without_confirmation(tmp_path: Path):
    config_file = tmp_path / "config.ini"
    config_file.write_text("[DEFAULT]\nworkspace = /keep\n")

    result = runner.invoke(app, ["--config", str(config_file), "init"], input="n\n")

    assert result.exit_code != 0
    assert "workspace = /keep" in config_file.read_text()


@pytest.mark.parametrize(
    "flags, level",
    [([], logging.INFO), (["-v"], logging.INFO), (["-vv"], logging.DEBUG)],
)
def test_verbosity_flags(tmp_path: Path, flags, level):
    logger = logging.getLogger("sd_provision")
    previous = logger.level
    try:
        result = runner.invoke(
            app, [*flags, "--config", str(tmp_path / "absent.ini"), "validate"]
        )
        assert result.exit_code == 0
        assert logger.level == level
    finally:
        logger.setLevel(previous)


def test_help_documents_verbosity():
    result = runner.invoke(app, ["--help"])
    assert "-vv" in result.stdout
