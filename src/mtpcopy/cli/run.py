"""Run command for the mtpcopy CLI.

Commands:
- run: Wait for the device and copy new files, once or continuously
"""

from __future__ import annotations

import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from mtpcopy.cli.config import load_transfer_config, open_ledger
from mtpcopy.cli.log import setup_logging

if TYPE_CHECKING:
    from mtpcopy.agent.watch import WatchLoop


@click.command()
@click.option("--once", is_flag=True, help="Run a single pass if the device is ready, then exit.")
@click.option("--verbose", "-v", is_flag=True, help="Log debug messages.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write the log to this file.",
)
@click.option("--no-notify", is_flag=True, help="Disable desktop notifications.")
def run(once: bool, verbose: bool, log_file: Path | None, no_notify: bool) -> None:
    """Wait for the device and copy new files from it.

    Every file is copied at most once, even if its copy is later deleted
    from the destination folder. Without --once, runs until interrupted.
    """
    from mtpcopy.agent.device import DeviceLocator, MountWatcher
    from mtpcopy.agent.notifications import notify_pass
    from mtpcopy.agent.transfer import CorruptLedger, make_copier
    from mtpcopy.agent.watch import WatchLoop

    setup_logging(verbose=verbose, log_file=log_file)

    try:
        config = load_transfer_config()
    except (TypeError, ValueError) as e:
        click.echo(f"Error: Invalid configuration: {e}", err=True)
        sys.exit(1)

    if config is None:
        click.echo("Error: Not configured. Run 'mtpcopy configure' first.", err=True)
        sys.exit(1)

    # A ledger that cannot be trusted must not drive any transfer
    try:
        ledger = open_ledger(config)
    except CorruptLedger as e:
        click.echo(f"Error: {e}", err=True)
        click.echo(
            "Refusing to start: transfer history cannot be trusted. "
            "Repair or move the ledger file and try again.",
            err=True,
        )
        sys.exit(1)

    locator = DeviceLocator(config)
    loop = WatchLoop(
        config,
        locator,
        ledger,
        make_copier(config),
        notifier=notify_pass if config.notify and not no_notify else None,
    )

    try:
        if once:
            result = loop.run_once()
            if result is None:
                click.echo("Device not available.")
                sys.exit(2)
            click.echo(
                f"Transferred {len(result.transferred)} new files, "
                f"{len(result.failed)} failed"
            )
            if not result.completed:
                click.echo(f"Pass aborted: {result.aborted}", err=True)
                sys.exit(1)
            return

        _install_stop_handlers(loop)
        watcher = MountWatcher(config.mount_parent, loop.wakeup)
        watcher.start()
        click.echo(f"Watching for {config.device_match!r}... (Ctrl+C to stop)")
        try:
            loop.run()
        finally:
            watcher.stop()
    finally:
        ledger.close()


def _install_stop_handlers(loop: WatchLoop) -> None:
    """Stop the loop at the next pass boundary on SIGINT/SIGTERM.

    A second Ctrl+C interrupts immediately.
    """

    def _on_signal(signum: int, frame: object) -> None:
        click.echo("\nStopping after the current step... (Ctrl+C again to force)")
        signal.signal(signal.SIGINT, signal.default_int_handler)
        loop.stop()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)
