"""
Pydantic model for application configuration.
Provides robust validation for all settings, plus the static category layout.
"""

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_validator, model_validator

from sd_provision.exceptions import ConfigMissingError

# Manifest category -> subdirectory under the models root, in download order
CATEGORY_SUBDIRS = {
    "esrgan_models": "models",
    "unet_models": "unet",
    "vae_models": "vae",
    "lora_models": "lora",
    "clip_models": "clip",
    "controlnet_models": "controlnet",
    "checkpoint_models": "checkpoints",
}

# Created relative to the working directory before any category is processed
LEGACY_DIRS = ("models", "clip", "lora", "vae", "unet", "controlnet", "checkpoints")

MODELS_SUBPATH = Path("storage") / "stable_diffusion" / "models"

DEFAULT_WORKSPACE = "/workspace"
DEFAULT_SYNCTHING_TARGET = "/workspace/home/user/.local/state/syncthing/config.xml"


@dataclass(frozen=True)
class Credentials:
    """Bearer tokens presented to the hosts that require them."""

    hf_token: str = ""
    civitai_token: str = ""

    def __repr__(self) -> str:
        return (
            f"Credentials(hf_token={'set' if self.hf_token else 'unset'}, "
            f"civitai_token={'set' if self.civitai_token else 'unset'})"
        )


@dataclass(frozen=True)
class CategoryBinding:
    """A manifest category bound to its destination directory."""

    name: str
    directory: Path


def category_directory(workspace: str | Path, subdir: str) -> Path:
    """Builds `<workspace>/storage/stable_diffusion/models/<subdir>`."""
    return Path(workspace) / MODELS_SUBPATH / subdir


class ProvisionConfig(BaseModel):
    """A validated configuration model for the application."""

    # Manifest & layout
    manifest_url: str = ""
    workspace: str = DEFAULT_WORKSPACE
    work_dir: str = "."
    manifest_filename: str = "config.json"
    log_file: str = "provisioning.log"
    create_legacy_dirs: bool = True

    # Credentials
    hf_token: str = Field(default="", repr=False)
    civitai_token: str = Field(default="", repr=False)
    omit_empty_auth: bool = False

    # System packages
    packages: list[str] = Field(default_factory=list)
    use_sudo: bool = True

    # Peer-sync utility
    syncthing_config_url: str = ""
    dev1: str = ""
    dev2: str = ""
    syncthing_target: str = DEFAULT_SYNCTHING_TARGET

    # Internal fields not loaded from INI file
    config_path: str = Field(default="", repr=False)
    unset_from_env: list[str] = Field(default_factory=list, repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("workspace")
    @classmethod
    def validate_workspace(cls, v: str) -> str:
        """Falls back to the default workspace when blank."""
        return v or DEFAULT_WORKSPACE

    @field_validator("manifest_url")
    @classmethod
    def validate_manifest_url(cls, v: str) -> str:
        """Accepts http(s) URLs and local paths only."""
        if not v:
            return v
        scheme = urlsplit(v).scheme.lower()
        # Single letters are Windows drive letters
        if scheme and len(scheme) > 1 and scheme not in ("http", "https"):
            raise ValueError(
                f"Manifest source must be an http(s) URL or a local path, got '{v}'."
            )
        return v

    @field_validator("packages", mode="before")
    @classmethod
    def split_packages(cls, v):
        """Accepts a comma/whitespace separated string or a list."""
        if v is None:
            return []
        if isinstance(v, str):
            v = v.replace(",", " ").split()
        return list(dict.fromkeys(p.strip() for p in v if p and p.strip()))

    @field_validator("manifest_filename", "log_file")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("File names cannot be empty.")
        return v

    @model_validator(mode="after")
    def validate_layout(self) -> "ProvisionConfig":
        """The manifest copy must not clobber the log file."""
        if self.manifest_path == self.log_path:
            raise ValueError("The manifest copy and the log file must differ.")
        return self

    @property
    def credentials(self) -> Credentials:
        return Credentials(hf_token=self.hf_token, civitai_token=self.civitai_token)

    @property
    def work_path(self) -> Path:
        return Path(self.work_dir).expanduser()

    @property
    def manifest_path(self) -> Path:
        return self.work_path / self.manifest_filename

    @property
    def log_path(self) -> Path:
        path = Path(self.log_file).expanduser()
        return path if path.is_absolute() else self.work_path / path

    @property
    def models_root(self) -> Path:
        return Path(self.workspace) / MODELS_SUBPATH

    def category_bindings(self) -> list[CategoryBinding]:
        """Returns the fixed category bindings in download order."""
        return [
            CategoryBinding(name, category_directory(self.workspace, subdir))
            for name, subdir in CATEGORY_SUBDIRS.items()
        ]

    def legacy_directories(self) -> list[Path]:
        return [self.work_path / name for name in LEGACY_DIRS]

    def missing_settings(self) -> list[ConfigMissingError]:
        """
        Lists the expected settings that are unset. None of them stop a run:
        missing tokens degrade to unauthenticated downloads and a missing
        manifest source makes the fetch fail.
        """
        missing = []
        if not self.manifest_url:
            missing.append(
                ConfigMissingError(
                    "LOAD_CONFIG", "Load Config environment variable is not set."
                )
            )
        if "WORKSPACE" in self.unset_from_env:
            missing.append(
                ConfigMissingError(
                    "WORKSPACE",
                    "WORKSPACE environment variable is not set, "
                    f"using '{self.workspace}'.",
                )
            )
        if not self.hf_token:
            missing.append(
                ConfigMissingError("HF_TOKEN", "HF_TOKEN environment variable is not set.")
            )
        if not self.civitai_token:
            missing.append(
                ConfigMissingError(
                    "CIVITAI_TOKEN", "CIVITAI_TOKEN environment variable is not set."
                )
            )
        return missing

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "unset_from_env"}
        return {key for key in cls.model_fields if key not in internal_fields}
