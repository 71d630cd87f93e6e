"""Devices command for the mtpcopy CLI.

Commands:
- devices: List connected USB devices and show which one would be used
"""

from __future__ import annotations

import click

from mtpcopy.cli.config import load_transfer_config


@click.command()
def devices() -> None:
    """List connected USB devices.

    Devices matching the configured criterion are marked with '*', along
    with whether their files are accessible.
    """
    from mtpcopy.agent.device import DeviceLocator, DeviceMatcher, list_usb_devices

    try:
        config = load_transfer_config()
    except (TypeError, ValueError) as e:
        click.echo(f"Warning: ignoring invalid configuration: {e}", err=True)
        config = None

    usb_devices = list_usb_devices()
    if not usb_devices:
        click.echo("No USB devices found (is lsusb installed?)")
        return

    matcher = DeviceMatcher(config.device_match) if config else None
    locator = DeviceLocator(config, usb_lister=lambda: usb_devices) if config else None

    for device in usb_devices:
        if matcher is None or locator is None or not matcher.matches(device):
            click.echo(f"  {device.descriptor}")
            continue
        handle = locator.handle_for(device)
        status = "ready" if locator.is_ready(handle) else "files not accessible"
        click.echo(f"* {device.descriptor} [{status}]")
        click.echo(f"    {handle.source_root}")

    if matcher is not None and not matcher.select(usb_devices):
        click.echo(f"\nNo device matches {matcher.criterion!r}.")
