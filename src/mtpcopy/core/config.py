"""Configuration classes for mtpcopy.

This module defines the transfer configuration consumed by the device
locator, the executor and the watch loop.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from mtpcopy.core.types import IdentityPolicy

# gvfs exposes MTP devices under the user's runtime dir, keyed by USB bus and device number
DEFAULT_MOUNT_TEMPLATE = "/run/user/{uid}/gvfs/mtp:host=%5Busb%3A{bus}%2C{device}%5D"
DEFAULT_SOURCE_PATH = "Phone/DCIM/Camera"

COPIERS = ("gio", "shutil")


@dataclass
class TransferConfig:
    """Configuration for one designated device and its destination.

    Attributes:
        device_match: USB ID ("04e8:6860") or description substring ("Samsung").
        destination: Host directory that receives copied files.
        source_path: Directory on the device, relative to its mount root.
        mount_template: Template of the device mount root.
        ledger_path: SQLite ledger file (None lets the CLI pick a default).
        poll_interval: Initial seconds between device polls.
        max_poll_interval: Upper bound for the polling backoff.
        disconnect_poll_interval: Seconds between "still connected" checks.
        recursive: Descend into subdirectories of source_path.
        identity_policy: How file identities are derived.
        copier: "gio" (external gio copy) or "shutil" (in-process copy).
        copy_timeout: Seconds before a single copy is abandoned.
        ignore_patterns: Extra patterns of device files never transferred.
        notify: Send desktop notifications after passes.
    """

    device_match: str
    destination: Path
    source_path: str = DEFAULT_SOURCE_PATH
    mount_template: str = DEFAULT_MOUNT_TEMPLATE
    ledger_path: Path | None = None
    poll_interval: float = 5.0
    max_poll_interval: float = 30.0
    disconnect_poll_interval: float = 5.0
    recursive: bool = False
    identity_policy: IdentityPolicy = IdentityPolicy.PATH
    copier: str = "gio"
    copy_timeout: float = 600.0
    ignore_patterns: list[str] = field(default_factory=list)
    notify: bool = True

    def __post_init__(self) -> None:
        """Normalize and validate values."""
        self.device_match = self.device_match.strip()
        if not self.device_match:
            raise ValueError("device_match must not be empty")

        self.destination = Path(self.destination).expanduser()
        if self.ledger_path is not None:
            self.ledger_path = Path(self.ledger_path).expanduser()

        self.source_path = self.source_path.strip("/")
        self.identity_policy = IdentityPolicy(self.identity_policy)

        if self.copier not in COPIERS:
            raise ValueError(f"copier must be one of {', '.join(COPIERS)}, got {self.copier!r}")

        for name in ("poll_interval", "disconnect_poll_interval", "copy_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        self.max_poll_interval = max(self.max_poll_interval, self.poll_interval)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransferConfig:
        """Build a config from a JSON-compatible dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        data = asdict(self)
        data["destination"] = str(self.destination)
        data["ledger_path"] = str(self.ledger_path) if self.ledger_path else None
        data["identity_policy"] = self.identity_policy.value
        return data

    def mount_root(self, bus: str, device: str, vendor_id: str = "", product_id: str = "") -> Path:
        """Get the mount root for a USB device.

        Args:
            bus: Three-digit USB bus number, as printed by lsusb.
            device: Three-digit USB device number.
            vendor_id: Four-digit hex vendor ID.
            product_id: Four-digit hex product ID.

        Returns:
            Path where the device filesystem is expected to appear.
        """
        return Path(
            self.mount_template.format(
                uid=os.getuid(),
                bus=bus,
                device=device,
                vendor_id=vendor_id,
                product_id=product_id,
            )
        )

    @property
    def mount_parent(self) -> Path:
        """Directory where device mounts appear and disappear."""
        return self.mount_root("000", "000", "0000", "0000").parent
