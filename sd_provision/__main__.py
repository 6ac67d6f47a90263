"""
Main entry point for the sd-provision application.
This module handles top-level setup, exception handling, and CLI invocation.
"""

import asyncio
import logging
import sys

import typer
from rich.console import Console

from sd_provision.cli.app import app
from sd_provision.cli.formatters import format_error_with_suggestions
from sd_provision.exceptions import ProvisionError


def main() -> None:
    """Main entry point function."""
    log = logging.getLogger("sd_provision")
    console = Console()

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]⚠️  Provisioning cancelled by user.[/yellow]")
        sys.exit(130)
    except ProvisionError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
