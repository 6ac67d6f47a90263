"""Configuration layering and validation."""

from pathlib import Path

import pytest

from sd_provision.exceptions import ConfigurationError
from sd_provision.models.config import DEFAULT_WORKSPACE, ProvisionConfig
from sd_provision.storage.config_manager import ConfigManager


def _manager(tmp_path: Path) -> ConfigManager:
    return ConfigManager(tmp_path / "config.ini")


def test_environment_values_are_read(tmp_path: Path):
    env = {
        "LOAD_CONFIG": "https://example.com/config.json",
        "WORKSPACE": "/data/ws",
        "HF_TOKEN": "hf",
        "CIVITAI_TOKEN": "civ",
        "APT_PACKAGES": "git, wget aria2",
    }
    config = _manager(tmp_path).load_config(environ=env)

    assert config.manifest_url == "https://example.com/config.json"
    assert config.workspace == "/data/ws"
    assert config.credentials.hf_token == "hf"
    assert config.credentials.civitai_token == "civ"
    assert config.packages == ["git", "wget", "aria2"]
    assert config.missing_settings() == []


def test_missing_values_are_warnings_not_errors(tmp_path: Path):
    config = _manager(tmp_path).load_config(environ={})

    assert config.workspace == DEFAULT_WORKSPACE
    assert [m.setting for m in config.missing_settings()] == [
        "LOAD_CONFIG",
        "WORKSPACE",
        "HF_TOKEN",
        "CIVITAI_TOKEN",
    ]


def test_cli_overrides_environment_and_file(tmp_path: Path):
    manager = _manager(tmp_path)
    manager.save_new_config({"workspace": "/from/file", "manifest_url": "https://file/c.json"})

    config = manager.load_config(
        cli_options={"workspace": "/from/cli", "manifest_url": None},
        environ={"WORKSPACE": "/from/env", "LOAD_CONFIG": "https://env/c.json"},
    )

    assert config.workspace == "/from/cli"
    assert config.manifest_url == "https://env/c.json"


def test_file_values_apply_without_environment(tmp_path: Path):
    manager = _manager(tmp_path)
    manager.save_new_config(
        {"workspace": "/srv/ws", "packages": ["git", "curl"], "use_sudo": False}
    )

    config = manager.load_config(environ={})

    assert config.workspace == "/srv/ws"
    assert config.packages == ["git", "curl"]
    assert config.use_sudo is False
    assert "WORKSPACE" not in [m.setting for m in config.missing_settings()]


def test_old_config_file_is_migrated(tmp_path: Path):
    path = tmp_path / "config.ini"
    path.write_text("[DEFAULT]\nworkspace = /old\n")

    config = ConfigManager(path).load_config(environ={})

    assert config.workspace == "/old"
    assert "omit_empty_auth" in path.read_text()


def test_environment_booleans(tmp_path: Path):
    config = _manager(tmp_path).load_config(
        environ={"PROVISION_USE_SUDO": "false", "PROVISION_OMIT_EMPTY_AUTH": "1"}
    )
    assert config.use_sudo is False
    assert config.omit_empty_auth is True


def test_unsupported_manifest_scheme_is_rejected(tmp_path: Path):
    with pytest.raises(ConfigurationError):
        _manager(tmp_path).load_config(environ={"LOAD_CONFIG": "ftp://host/config.json"})


def test_corrupt_config_file_is_rejected(tmp_path: Path):
    path = tmp_path / "config.ini"
    path.write_text("this is not ini")
    with pytest.raises(ConfigurationError):
        ConfigManager(path).load_config(environ={})


def test_category_bindings_follow_workspace():
    config = ProvisionConfig(workspace="/ws")
    bindings = config.category_bindings()

    assert [b.name for b in bindings] == [
        "esrgan_models",
        "unet_models",
        "vae_models",
        "lora_models",
        "clip_models",
        "controlnet_models",
        "checkpoint_models",
    ]
    assert bindings[0].directory == Path("/ws/storage/stable_diffusion/models/models")
    assert bindings[-1].directory == Path("/ws/storage/stable_diffusion/models/checkpoints")


def test_paths_relative_to_work_dir(tmp_path: Path):
    config = ProvisionConfig(work_dir=str(tmp_path))
    assert config.manifest_path == tmp_path / "config.json"
    assert config.log_path == tmp_path / "provisioning.log"
    assert ProvisionConfig(work_dir=str(tmp_path), log_file="/var/log/p.log").log_path == Path(
        "/var/log/p.log"
    )


def test_duplicate_packages_are_collapsed():
    assert ProvisionConfig(packages="git,git, wget").packages == ["git", "wget"]


def test_config_repr_hides_tokens():
    assert "secret-token" not in repr(ProvisionConfig(hf_token="secret-token"))
