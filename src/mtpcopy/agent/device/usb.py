"""USB device enumeration through lsusb.

This module provides:
- UsbDevice: One line of lsusb output
- parse_lsusb: Parse lsusb output into UsbDevice records
- list_usb_devices: Run lsusb and parse its output
- DeviceMatcher: Decides whether a device is the designated one
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)

LSUSB_TIMEOUT = 10.0  # seconds

# Bus 003 Device 026: ID 04e8:6860 Samsung Electronics Co., Ltd Galaxy (MTP)
_LSUSB_LINE = re.compile(
    r"^Bus\s+(?P<bus>\d{3})\s+Device\s+(?P<device>\d{3}):\s+"
    r"ID\s+(?P<vendor>[0-9a-fA-F]{4}):(?P<product>[0-9a-fA-F]{4})\s*(?P<description>.*)$"
)
_USB_ID = re.compile(r"^[0-9a-fA-F]{4}:[0-9a-fA-F]{4}$")


@dataclass(frozen=True)
class UsbDevice:
    """A connected USB device as reported by lsusb.

    Attributes:
        bus: Three-digit bus number.
        device: Three-digit device number on that bus.
        vendor_id: Four-digit hex vendor ID, lowercase.
        product_id: Four-digit hex product ID, lowercase.
        description: Manufacturer and product text.
    """

    bus: str
    device: str
    vendor_id: str
    product_id: str
    description: str

    @property
    def usb_id(self) -> str:
        """vendor:product ID."""
        return f"{self.vendor_id}:{self.product_id}"

    @property
    def descriptor(self) -> str:
        """Human readable identification used in logs."""
        return f"Bus {self.bus} Device {self.device}: ID {self.usb_id} {self.description}".rstrip()


def parse_lsusb(output: str) -> list[UsbDevice]:
    """Parse lsusb output, keeping enumeration order.

    Lines that do not look like device lines are skipped.
    """
    devices = []
    for line in output.splitlines():
        match = _LSUSB_LINE.match(line.strip())
        if match is None:
            continue
        devices.append(
            UsbDevice(
                bus=match["bus"],
                device=match["device"],
                vendor_id=match["vendor"].lower(),
                product_id=match["product"].lower(),
                description=match["description"].strip(),
            )
        )
    return devices


def list_usb_devices(timeout: float = LSUSB_TIMEOUT) -> list[UsbDevice]:
    """List connected USB devices.

    Returns:
        Devices in lsusb order; empty if lsusb fails.
    """
    try:
        result = subprocess.run(
            ["lsusb"],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning("Failed to list USB devices: %s", e)
        return []

    if result.returncode != 0:
        logger.warning(
            "lsusb exited with status %d: %s",
            result.returncode,
            (result.stderr or "").strip(),
        )
        return []

    return parse_lsusb(result.stdout)


class DeviceMatcher:
    """Matches USB devices against the configured criterion.

    A criterion of the form "vvvv:pppp" matches the USB ID exactly. Any
    other criterion matches as a case-insensitive substring of the
    description.
    """

    def __init__(self, criterion: str) -> None:
        self._criterion = criterion.strip()
        self._by_id = bool(_USB_ID.match(self._criterion))

    @property
    def criterion(self) -> str:
        return self._criterion

    def matches(self, device: UsbDevice) -> bool:
        if self._by_id:
            return device.usb_id == self._criterion.lower()
        return self._criterion.lower() in device.description.lower()

    def select(self, devices: list[UsbDevice]) -> list[UsbDevice]:
        """Matching devices in deterministic (bus, device) order."""
        return sorted(
            (d for d in devices if self.matches(d)),
            key=lambda d: (d.bus, d.device),
        )
