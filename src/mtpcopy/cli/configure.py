"""Configure command for the mtpcopy CLI.

Commands:
- configure: Write the device, source and destination settings
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from mtpcopy.cli.config import get_config_file, get_default_ledger_path, load_config, save_config
from mtpcopy.core.config import COPIERS, TransferConfig
from mtpcopy.core.types import IdentityPolicy


@click.command()
@click.option(
    "--device",
    "device_match",
    prompt="Device to match (USB ID like 04e8:6860, or part of its name)",
    help="USB ID (vvvv:pppp) or case-insensitive part of the lsusb description.",
)
@click.option(
    "--destination",
    prompt="Destination folder",
    type=click.Path(file_okay=False, path_type=Path),
    help="Host folder that receives new files.",
)
@click.option("--source-path", default=None, help="Folder on the device, e.g. Phone/DCIM/Camera.")
@click.option("--mount-template", default=None, help="Template of the device mount root.")
@click.option("--ledger", "ledger_path", default=None, type=click.Path(dir_okay=False, path_type=Path),
              help="Ledger database file.")
@click.option("--recursive/--flat", default=None, help="Descend into subfolders of the source folder.")
@click.option("--identity", "identity_policy", default=None,
              type=click.Choice([p.value for p in IdentityPolicy]),
              help="What makes a file 'the same file'.")
@click.option("--copier", default=None, type=click.Choice(COPIERS), help="Copy mechanism.")
@click.option("--poll-interval", default=None, type=float, help="Seconds between device polls.")
@click.option("--ignore", "ignore_patterns", multiple=True, help="Extra pattern of files to skip.")
@click.option("--notify/--no-notify", default=None, help="Desktop notification after each pass.")
def configure(
    device_match: str,
    destination: Path,
    source_path: str | None,
    mount_template: str | None,
    ledger_path: Path | None,
    recursive: bool | None,
    identity_policy: str | None,
    copier: str | None,
    poll_interval: float | None,
    ignore_patterns: tuple[str, ...],
    notify: bool | None,
) -> None:
    """Configure the designated device and the destination folder.

    Options not given keep their current value (or the default).
    """
    config = load_config()
    config["device_match"] = device_match
    config["destination"] = str(destination.expanduser().resolve())

    updates = {
        "source_path": source_path,
        "mount_template": mount_template,
        "ledger_path": str(ledger_path.expanduser().resolve()) if ledger_path else None,
        "recursive": recursive,
        "identity_policy": identity_policy,
        "copier": copier,
        "poll_interval": poll_interval,
        "ignore_patterns": list(ignore_patterns) if ignore_patterns else None,
        "notify": notify,
    }
    config.update({k: v for k, v in updates.items() if v is not None})

    try:
        transfer_config = TransferConfig.from_dict(config)
    except (TypeError, ValueError) as e:
        click.echo(f"Error: Invalid configuration: {e}", err=True)
        sys.exit(1)

    save_config(transfer_config.to_dict())

    click.echo(f"Configuration saved to {get_config_file()}")
    click.echo(f"  Device:      {transfer_config.device_match}")
    click.echo(f"  Source:      {transfer_config.source_path}")
    click.echo(f"  Destination: {transfer_config.destination}")
    click.echo(f"  Ledger:      {transfer_config.ledger_path or get_default_ledger_path()}")
    click.echo(f"  Identity:    {transfer_config.identity_policy.value}")
