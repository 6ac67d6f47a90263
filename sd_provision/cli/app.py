"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from sd_provision import __version__
from sd_provision.core.pipeline import ProvisionPipeline
from sd_provision.exceptions import ProvisionError
from sd_provision.media.downloader import close_connection_pool
from sd_provision.models.config import ProvisionConfig
from sd_provision.models.results import ExitCode
from sd_provision.storage.config_manager import DEFAULT_CONFIG_FILE, ConfigManager
from sd_provision.sync.peer_config import PeerConfigWriter
from sd_provision.system.packages import PackageInstaller
from sd_provision.utils.log_file import attach_log_file
from sd_provision.utils.manifest_validator import export_schema

from .formatters import print_config, print_summary_panel, print_validation_table
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("sd_provision")

app = typer.Typer(
    name="sd-provision",
    help=(
        "Provision a Stable Diffusion workstation: install system packages and"
        " download model assets listed in a JSON manifest."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

_state: dict = {"config_file": DEFAULT_CONFIG_FILE, "log_file": None}


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Pass -vv for debug output; a single -v keeps the default INFO level.",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    config_file: Path = typer.Option(
        DEFAULT_CONFIG_FILE,
        "--config",
        "-c",
        help="Path to an optional INI configuration file.",
    ),
    log_file: Path | None = typer.Option(
        None,
        "--log-file",
        help="Provisioning log file (default: provisioning.log in the working dir).",
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the configuration file and exit."
    ),
):
    """Stable Diffusion provisioning CLI"""
    if version:
        console.print(f"[bold]sd-provision[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("sd_provision").setLevel(log_level)

    _state["config_file"] = config_file
    _state["log_file"] = log_file

    if show_config:
        config_manager = ConfigManager(config_file)
        print_config(config_file, config_manager.get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _load_config(cli_options: dict | None = None) -> ProvisionConfig:
    """Loads the configuration and starts appending to the provisioning log."""
    options = dict(cli_options or {})
    if _state["log_file"] is not None:
        options["log_file"] = str(_state["log_file"])
    try:
        config = ConfigManager(_state["config_file"]).load_config(options)
    except ProvisionError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=ExitCode.ERROR) from e
    attach_log_file(config.log_path)
    return config


@app.command(name="run")
def run_command(
    manifest_url: str | None = typer.Option(
        None,
        "--manifest-url",
        "-m",
        help="URL or local path of the JSON manifest (overrides LOAD_CONFIG).",
    ),
    workspace: str | None = typer.Option(
        None,
        "--workspace",
        "-w",
        help="Workspace root holding storage/stable_diffusion/models (overrides WORKSPACE).",
    ),
    work_dir: str | None = typer.Option(
        None,
        "--work-dir",
        help="Directory for the manifest copy, the log and the legacy folders.",
    ),
    skip_packages: bool = typer.Option(
        False, "--skip-packages", help="Do not install APT packages before downloading."
    ),
    omit_empty_auth: bool | None = typer.Option(
        None,
        "--omit-empty-auth/--send-empty-auth",
        help="Drop the Authorization header when the matching token is empty.",
    ),
    no_legacy_dirs: bool = typer.Option(
        False,
        "--no-legacy-dirs",
        help="Do not create the legacy model folders in the working directory.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Disable the live progress display."
    ),
):
    """Install packages, then download every asset listed in the manifest."""
    cli_options = {
        "manifest_url": manifest_url,
        "workspace": workspace,
        "work_dir": work_dir,
        "omit_empty_auth": omit_empty_auth,
    }
    if no_legacy_dirs:
        cli_options["create_legacy_dirs"] = False
    config = _load_config(cli_options)

    async def _run_async():
        install_result = None
        if not skip_packages:
            installer = PackageInstaller(config.packages, use_sudo=config.use_sudo)
            install_result = await installer.install()

        console.print("[bold cyan]🧩 Starting provisioning session...[/bold cyan]")
        interactive = sys.stdout.isatty() and not quiet
        try:
            async with ProgressManager(
                console=console, quiet=not interactive
            ) as progress_manager:
                pipeline = ProvisionPipeline(config, progress_manager=progress_manager)
                summary = await pipeline.run()
        finally:
            await close_connection_pool()

        summary.packages = install_result
        return summary

    summary = asyncio.run(_run_async())
    print_summary_panel(summary)
    if summary.exit_code is not ExitCode.OK:
        raise typer.Exit(code=int(summary.exit_code))


@app.command()
def install():
    """Install the configured APT packages only."""
    config = _load_config()
    installer = PackageInstaller(config.packages, use_sudo=config.use_sudo)
    result = asyncio.run(installer.install())
    if not result.ok:
        raise typer.Exit(code=int(ExitCode.PACKAGES_FAILED))


@app.command()
def validate(
    export_schema_to: Path | None = typer.Option(
        None,
        "--export-schema",
        help="Also write the manifest JSON schema to this path.",
    ),
):
    """Validate the current configuration."""
    try:
        config = ConfigManager(_state["config_file"]).load_config()
    except ProvisionError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
    print_validation_table(config, config.missing_settings())

    if export_schema_to is not None:
        export_schema(export_schema_to)
        console.print(f"[green]✓ Manifest schema written to '{export_schema_to}'.[/green]")


@app.command()
def init(
    manifest_url: str = typer.Option("", "--manifest-url", "-m", help="Manifest URL."),
    workspace: str = typer.Option("", "--workspace", "-w", help="Workspace root."),
    packages: str = typer.Option(
        "", "--packages", "-p", help="Comma separated APT packages."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration file."
    ),
):
    """Write an INI configuration file with the given settings."""
    config_file = _state["config_file"]
    if (
        config_file.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        key: value
        for key, value in {
            "manifest_url": manifest_url,
            "workspace": workspace,
            "packages": [p.strip() for p in packages.split(",") if p.strip()],
        }.items()
        if value
    }
    try:
        ConfigManager(config_file).save_new_config(settings)
    except ProvisionError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"\n[bold green]✓ Configuration saved to '{config_file}'[/bold green]")
    console.print("Tokens are read from HF_TOKEN and CIVITAI_TOKEN at run time.")


@app.command(name="sync-config")
def sync_config(
    target: str | None = typer.Option(
        None, "--target", help="Where to install the rendered Syncthing config."
    ),
):
    """Render the Syncthing config template and install it (standalone utility)."""
    config = _load_config({"syncthing_target": target})
    try:
        installed = asyncio.run(PeerConfigWriter(config).setup())
    except ProvisionError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Syncthing config installed at '{installed}'.[/green]")
