"""Locating the designated device and listing its files.

This module provides:
- DeviceHandle: The connected, authorized device
- DeviceLocator: Polls for the designated device
- DeviceListing: Lazy, restartable listing of the device source directory

A device is "ready" only once its filesystem is mounted: a phone that is
plugged in but has not been unlocked and switched to file transfer shows
up in lsusb without a mount, and is simply polled again later.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

from mtpcopy.agent.device.usb import DeviceMatcher, UsbDevice, list_usb_devices
from mtpcopy.agent.transfer.ignore import IgnorePatterns
from mtpcopy.agent.transfer.types import AmbiguousDevice, DeviceFileInfo, DeviceUnreachable
from mtpcopy.core.config import TransferConfig

logger = logging.getLogger(__name__)


def display_name(name: str) -> str:
    """Text form of a directory entry name.

    Bytes that are not valid UTF-8 reach Python as lone surrogates, which
    cannot be stored in the ledger. They are spelled out as \\xNN escapes
    instead, so the identity stays stable across passes.
    """
    return name.encode("utf-8", "surrogateescape").decode("utf-8", "backslashreplace")


@dataclass(frozen=True)
class DeviceHandle:
    """The currently connected, authorized device.

    Attributes:
        usb: The lsusb entry the handle was created from.
        mount_root: Root of the device filesystem on the host.
        source_root: Directory whose files are transferred.
    """

    usb: UsbDevice
    mount_root: Path
    source_root: Path

    @property
    def descriptor(self) -> str:
        return self.usb.descriptor


class DeviceListing:
    """Files under a device directory.

    Iterating scans the device again, so the same listing object can be
    re-enumerated on every pass. Entries are yielded in name order,
    depth-first when recursive.
    """

    def __init__(
        self,
        handle: DeviceHandle,
        ignore: IgnorePatterns | None = None,
        recursive: bool = False,
    ) -> None:
        self._handle = handle
        self._ignore = ignore or IgnorePatterns()
        self._recursive = recursive

    @property
    def handle(self) -> DeviceHandle:
        return self._handle

    def __iter__(self) -> Iterator[DeviceFileInfo]:
        root = self._handle.source_root
        if not root.is_dir():
            raise DeviceUnreachable(self._handle.descriptor, f"{root} is gone")
        yield from self._scan(root, "")

    def _scan(self, directory: Path, prefix: str) -> Iterator[DeviceFileInfo]:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            raise DeviceUnreachable(self._handle.descriptor, f"cannot list {directory}: {e}") from e

        for entry in entries:
            rel_path = f"{prefix}{display_name(entry.name)}"
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = not is_dir and entry.is_file(follow_symlinks=False)
            except OSError as e:
                raise DeviceUnreachable(self._handle.descriptor, f"cannot stat {rel_path}: {e}") from e

            if self._ignore.should_ignore(rel_path):
                logger.debug("Ignoring %s", rel_path)
                continue

            if is_dir:
                if self._recursive:
                    yield from self._scan(Path(entry.path), f"{rel_path}/")
                continue

            if not is_file:
                continue

            try:
                stat = entry.stat(follow_symlinks=False)
            except FileNotFoundError:
                # Removed on the device between listing and stat
                logger.debug("%s vanished during listing", rel_path)
                continue
            except OSError as e:
                raise DeviceUnreachable(self._handle.descriptor, f"cannot stat {rel_path}: {e}") from e

            yield DeviceFileInfo(
                path=rel_path,
                source=Path(entry.path),
                size=stat.st_size,
                mtime=stat.st_mtime,
            )


class DeviceLocator:
    """Polls for the designated device.

    Usage:
        locator = DeviceLocator(config)
        handle = locator.poll()
        if handle:
            for file in locator.list_files(handle):
                ...
    """

    def __init__(
        self,
        config: TransferConfig,
        usb_lister: Callable[[], list[UsbDevice]] = list_usb_devices,
        ignore: IgnorePatterns | None = None,
    ) -> None:
        """Initialize the locator.

        Args:
            config: Transfer configuration (match criterion, mount paths).
            usb_lister: Returns connected USB devices in enumeration order.
            ignore: Patterns of device files to skip.
        """
        self._config = config
        self._usb_lister = usb_lister
        self._matcher = DeviceMatcher(config.device_match)
        self._ignore = ignore or IgnorePatterns(config.ignore_patterns)

        # Last reported situations, so repeated polls do not repeat logs
        self._last_ambiguity: AmbiguousDevice | None = None
        self._reported: set[str] = set()

    @property
    def last_ambiguity(self) -> AmbiguousDevice | None:
        """Ambiguity seen on the most recent poll, if any."""
        return self._last_ambiguity

    def handle_for(self, device: UsbDevice) -> DeviceHandle:
        """Build the handle a device would have once mounted."""
        mount_root = self._config.mount_root(
            device.bus, device.device, device.vendor_id, device.product_id
        )
        source_root = mount_root / self._config.source_path if self._config.source_path else mount_root
        return DeviceHandle(usb=device, mount_root=mount_root, source_root=source_root)

    def is_ready(self, handle: DeviceHandle) -> bool:
        """Check if the device exposes the source directory."""
        try:
            return handle.source_root.is_dir()
        except OSError:
            return False

    def is_present(self, handle: DeviceHandle) -> bool:
        """Check if a previously located device is still connected."""
        return self.is_ready(handle)

    def poll(self) -> DeviceHandle | None:
        """Check once for the designated device.

        Returns:
            A handle if a matching device is connected and its filesystem is
            exposed; None if it is absent or not yet authorized.
        """
        candidates = self._matcher.select(self._usb_lister())
        if not candidates:
            self._last_ambiguity = None
            self._reported.clear()
            logger.debug("No device matching %r connected", self._matcher.criterion)
            return None

        handles = [self.handle_for(device) for device in candidates]
        ready = [h for h in handles if self.is_ready(h)]
        chosen = ready[0] if ready else handles[0]

        if len(candidates) > 1:
            ambiguity = AmbiguousDevice(
                self._matcher.criterion,
                [d.descriptor for d in candidates],
                chosen.descriptor,
            )
            key = "ambiguous:" + "|".join(ambiguity.candidates)
            self._report(key, logging.WARNING, str(ambiguity))
            self._last_ambiguity = ambiguity
        else:
            self._last_ambiguity = None

        if not ready:
            if chosen.mount_root.exists():
                self._report(
                    f"nosource:{chosen.descriptor}",
                    logging.WARNING,
                    f"Device mounted at {chosen.mount_root} but {self._config.source_path!r} "
                    "was not found on it",
                )
            else:
                self._report(
                    f"unauthorized:{chosen.descriptor}",
                    logging.INFO,
                    f"Device connected ({chosen.descriptor}), but file access is not "
                    "permitted on the device yet",
                )
            return None

        logger.debug("Device ready: %s, source dir %s", chosen.descriptor, chosen.source_root)
        self._reported.clear()
        return chosen

    def list_files(self, handle: DeviceHandle) -> DeviceListing:
        """List files under the configured source directory of a device."""
        return DeviceListing(handle, ignore=self._ignore, recursive=self._config.recursive)

    def _report(self, key: str, level: int, message: str) -> None:
        """Log a situation once until it changes; repeats go to debug."""
        if key in self._reported:
            logger.debug(message)
            return
        self._reported.add(key)
        logger.log(level, message)
