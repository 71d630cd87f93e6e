"""Ledger commands for the mtpcopy CLI.

Commands:
- ledger list: Show transferred files
- ledger import: Import a plain-text list of transferred files
- ledger forget: Allow one file to be copied again
- history: Show past transfer passes
"""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

import click

from mtpcopy.agent.ledger import Ledger
from mtpcopy.agent.transfer import CorruptLedger
from mtpcopy.cli.config import load_transfer_config, open_ledger
from mtpcopy.core.config import TransferConfig


def _format_time(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def _load_config_quietly() -> TransferConfig | None:
    try:
        return load_transfer_config()
    except (TypeError, ValueError):
        return None


def _open_ledger_or_exit() -> Ledger:
    config = _load_config_quietly()
    try:
        return open_ledger(config)
    except CorruptLedger as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
def ledger() -> None:
    """Inspect and maintain the transfer ledger."""


@ledger.command("list")
@click.option("--limit", "-n", default=50, show_default=True, help="Number of records to show.")
def list_records(limit: int) -> None:
    """Show transferred files, most recent first."""
    with _open_ledger_or_exit() as db:
        total = db.count()
        if total == 0:
            click.echo("No files transferred yet.")
            return
        for record in db.records(limit=limit):
            click.echo(f"{_format_time(record.transferred_at)}  {record.identity}")
        if total > limit:
            click.echo(f"... {total - limit} more ({total} total)")


@ledger.command("import")
@click.argument("list_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--destination",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Folder the listed paths were copied to (defaults to the configured destination).",
)
def import_list(list_file: Path, destination: Path | None) -> None:
    """Import a list of already transferred files, one host path per line.

    Imported files are never copied again. Imported identities are
    path-only, so they only match under the 'path' identity policy.
    """
    from mtpcopy.core.types import IdentityPolicy

    config = _load_config_quietly()
    if destination is None:
        if config is None:
            click.echo("Error: Not configured; pass --destination.", err=True)
            sys.exit(1)
        destination = config.destination
    if config is not None and config.identity_policy != IdentityPolicy.PATH:
        click.echo(
            f"Warning: identity policy is {config.identity_policy.value!r}; "
            "imported path-only records will not match device files.",
            err=True,
        )

    with _open_ledger_or_exit() as db:
        with open(list_file, encoding="utf-8") as f:
            added = db.import_paths(f, destination)
        click.echo(f"Imported {added} new records ({db.count()} total).")


@ledger.command("forget")
@click.argument("identity")
@click.confirmation_option(prompt="The file will be copied again on the next pass. Continue?")
def forget(identity: str) -> None:
    """Remove IDENTITY from the ledger so it is copied again."""
    with _open_ledger_or_exit() as db:
        if db.forget(identity):
            click.echo(f"Forgot {identity}")
        else:
            click.echo(f"Error: {identity} is not in the ledger.", err=True)
            sys.exit(1)


@click.command()
@click.option("--limit", "-n", default=20, show_default=True, help="Number of passes to show.")
def history(limit: int) -> None:
    """Show past transfer passes."""
    with _open_ledger_or_exit() as db:
        passes = db.passes(limit=limit)
        if not passes:
            click.echo("No transfer passes recorded yet.")
            return
        for p in passes:
            line = (
                f"{_format_time(p.finished_at)}  transferred files: {p.transferred}"
                f"  failed: {p.failed}  ({p.device})"
            )
            if p.aborted:
                line += click.style(f"  aborted: {p.aborted}", fg="red")
            click.echo(line)
