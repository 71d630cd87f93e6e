"""Shared fixtures: a temporary device mount, a ledger and a fake copier."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from mtpcopy.agent.device.usb import UsbDevice
from mtpcopy.agent.ledger import Ledger
from mtpcopy.agent.transfer.types import TransferError
from mtpcopy.core.config import TransferConfig


class FakeCopier:
    """Copier that copies with shutil and can be told to fail for some names."""

    def __init__(self) -> None:
        self.calls: list[tuple[Path, Path]] = []
        self.fail_on: set[str] = set()

    def copy(self, source: Path, destination: Path) -> None:
        self.calls.append((source, destination))
        if source.name in self.fail_on:
            raise TransferError(source, destination, "gio exited with status 1")
        shutil.copyfile(source, destination)


@pytest.fixture(autouse=True)
def reset_mtpcopy_logger() -> Iterator[None]:
    """Undo CLI logging setup so caplog sees agent records in every test."""
    yield
    logger = logging.getLogger("mtpcopy")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def samsung() -> UsbDevice:
    """A Samsung phone in MTP mode."""
    return UsbDevice(
        bus="003",
        device="026",
        vendor_id="04e8",
        product_id="6860",
        description="Samsung Electronics Co., Ltd Galaxy (MTP)",
    )


@pytest.fixture
def config(tmp_path: Path) -> TransferConfig:
    """Config whose device mounts live under tmp_path, with fast polling."""
    return TransferConfig(
        device_match="Samsung",
        destination=tmp_path / "dest",
        mount_template=str(tmp_path / "gvfs" / "mtp:host=%5Busb%3A{bus}%2C{device}%5D"),
        ledger_path=tmp_path / "ledger.db",
        poll_interval=0.01,
        max_poll_interval=0.05,
        disconnect_poll_interval=0.01,
        copier="shutil",
    )


@pytest.fixture
def ledger(config: TransferConfig) -> Iterator[Ledger]:
    """An empty ledger."""
    assert config.ledger_path is not None
    db = Ledger.load(config.ledger_path)
    yield db
    db.close()


@pytest.fixture
def copier() -> FakeCopier:
    """A copier that records calls."""
    return FakeCopier()


@pytest.fixture
def mount_device(config: TransferConfig) -> Callable[..., Path]:
    """Create the mounted source directory of a device, with files.

    Returns the source directory.
    """

    def _mount(device: UsbDevice, files: dict[str, bytes] | None = None) -> Path:
        root = config.mount_root(device.bus, device.device) / config.source_path
        root.mkdir(parents=True, exist_ok=True)
        for name, content in (files or {}).items():
            path = root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        return root

    return _mount
