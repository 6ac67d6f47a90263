"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sd_provision.exceptions import ConfigMissingError
from sd_provision.models.config import ProvisionConfig
from sd_provision.models.results import ExitCode, RunSummary
from sd_provision.utils.formatting import format_duration, format_size, mask_secret

SECRET_KEYS = ("hf_token", "civitai_token", "dev1", "dev2")


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Check the values in your configuration file or environment.",
            "• Run `sd-provision validate` to see the effective settings.",
        ],
        "ManifestUnavailableError": [
            "• Verify that LOAD_CONFIG points to a reachable JSON document.",
            "• Check your internet connection.",
            "• Make sure the manifest is a JSON object keyed by category.",
        ],
        "PeerSyncError": [
            "• Verify that SYNCTHING_CONFIG points to a reachable template.",
            "• Check that the target directory is writable.",
        ],
        "PackageInstallError": [
            "• Make sure apt-get (and sudo, unless disabled) is available.",
            "• Set PROVISION_USE_SUDO=false when running as root without sudo.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• The remote host might be temporarily unavailable.",
            "• Please try again in a few minutes.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration, hiding sensitive data."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if key in SECRET_KEYS:
            value = mask_secret(str(value))
        elif isinstance(value, list):
            value = ", ".join(value)
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip() or "[dim](empty)[/dim]",
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: ProvisionConfig, missing: list[ConfigMissingError]):
    """Displays a summary of the effective settings and what is missing."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Manifest Source:", config.manifest_url or "[red](unset)[/red]")
    table.add_row("Models Root:", str(config.models_root))
    table.add_row("Working Dir:", str(config.work_path))
    table.add_row("Log File:", str(config.log_path))
    table.add_row("HF Token:", mask_secret(config.hf_token))
    table.add_row("CivitAI Token:", mask_secret(config.civitai_token))
    table.add_row(
        "Empty Token Header:",
        "✗ Omitted" if config.omit_empty_auth else "✓ Sent",
    )
    table.add_row(
        "APT Packages:", ", ".join(config.packages) or "[dim](none)[/dim]"
    )
    table.add_row("Use sudo:", "✓ Enabled" if config.use_sudo else "✗ Disabled")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )
    for item in missing:
        console.print(f"[yellow]⚠️  {item}[/yellow]")


def print_summary_panel(summary: RunSummary):
    """Displays the per-category results and totals of a provisioning run."""
    console = Console()

    if summary.manifest_error is not None:
        console.print()
        console.print(
            Panel(
                Text(summary.manifest_error),
                title="[bold red]✗ Manifest Unavailable[/bold red]",
                border_style="red",
                expand=False,
            )
        )
        return

    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("Category", style="cyan")
    table.add_column("Directory", style="dim")
    table.add_column("Downloaded", justify="right", style="green")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Failed", justify="right", style="red")

    for category in summary.categories:
        failed = str(category.failed)
        if category.error:
            failed = "[bold red]dir error[/bold red]"
        table.add_row(
            category.name,
            str(category.directory),
            str(category.succeeded),
            str(category.skipped),
            failed,
        )

    totals = Table(show_header=False, box=None, padding=(0, 2))
    totals.add_column(style="bold cyan", justify="right", width=16)
    totals.add_column(style="white", justify="left")
    totals.add_row("✓ Downloaded:", f"[bold green]{summary.downloaded}[/bold green]")
    if summary.skipped:
        totals.add_row("○ Skipped:", f"[yellow]{summary.skipped} (exists)[/yellow]")
    if summary.failed:
        totals.add_row("✗ Failed:", f"[bold red]{summary.failed}[/bold red]")
    if summary.packages is not None and not summary.packages.skipped:
        status = "[green]✓ ok[/green]" if summary.packages.ok else "[red]✗ failed[/red]"
        totals.add_row("APT Packages:", status)
    totals.add_row("Total Size:", f"[cyan]{format_size(summary.bytes_written)}[/cyan]")
    totals.add_row(
        "Time Elapsed:", f"[blue]{format_duration(summary.duration_s)}[/blue]"
    )

    failed_assets = [a for a in summary.assets if not a.ok]
    content = Table.grid(padding=(1, 0))
    content.add_row(table)
    content.add_row(totals)
    if failed_assets:
        failures = Text()
        for asset in failed_assets:
            failures.append(f"✗ {asset.destination.name}", style="red")
            failures.append(f"  {asset.url}\n    {asset.error}\n", style="dim")
        content.add_row(failures)

    if summary.exit_code is ExitCode.OK:
        title = "🧩 [bold]Provisioning Complete![/bold]"
        border_color = "green"
    else:
        title = "⚠ [bold]Provisioning Finished With Errors[/bold]"
        border_color = "yellow"

    console.print()
    console.print(
        Panel(
            content,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
        )
    )
