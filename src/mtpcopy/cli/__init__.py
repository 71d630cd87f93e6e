"""Command-line interface for mtpcopy.

This module provides the main CLI entry point and assembles all commands.

Commands:
- configure: Set the designated device, source folder and destination
- run: Wait for the device and copy new files
- devices: List connected USB devices
- ledger: Inspect and maintain the transfer ledger (list, import, forget)
- history: Show past transfer passes
"""

from __future__ import annotations

import click

from mtpcopy.cli.config import (
    get_config_dir,
    get_config_file,
    load_config,
    load_transfer_config,
    save_config,
)
from mtpcopy.cli.configure import configure
from mtpcopy.cli.devices import devices
from mtpcopy.cli.ledger import history, ledger
from mtpcopy.cli.run import run


@click.group()
@click.version_option(package_name="mtpcopy")
def cli() -> None:
    """mtpcopy - Copy new files from an Android device, each file only once."""


# Setup
cli.add_command(configure)
cli.add_command(devices)

# Transfer
cli.add_command(run)

# Bookkeeping
cli.add_command(ledger)
cli.add_command(history)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "get_config_dir",
    "get_config_file",
    "load_config",
    "load_transfer_config",
    "save_config",
]
