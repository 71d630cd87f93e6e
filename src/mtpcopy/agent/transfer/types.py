"""Shared types and dataclasses for transfer operations.

This module provides:
- MtpCopyError and its subclasses: the error taxonomy
- DeviceFileInfo: One file listed on the device
- TransferTask: One planned copy
- TransferOutcome: Result of executing a task
- PassResult: Result of a full reconciliation-and-transfer pass
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path


class MtpCopyError(Exception):
    """Base exception for mtpcopy errors."""


class DeviceUnreachable(MtpCopyError):
    """The device vanished mid-operation.

    Recoverable: the current pass is aborted and the loop waits for the
    device again.
    """

    def __init__(self, descriptor: str, reason: str = "device disconnected") -> None:
        self.descriptor = descriptor
        self.reason = reason
        super().__init__(f"Device unreachable ({descriptor}): {reason}")


class TransferError(MtpCopyError):
    """Copying a single file failed.

    The file is not recorded and stays eligible for the next pass.
    """

    def __init__(self, source: Path | str, destination: Path | str, reason: str) -> None:
        self.source = str(source)
        self.destination = str(destination)
        self.reason = reason
        super().__init__(f"Failed to copy {source} -> {destination}: {reason}")


class CorruptLedger(MtpCopyError):
    """The ledger cannot be read or written.

    Fatal for the current pass, and for process start when raised on load.
    """


class AmbiguousDevice(MtpCopyError):
    """More than one connected device matches the configured criterion.

    Never raised to callers; logged while a deterministic choice is made.
    """

    def __init__(self, criterion: str, candidates: list[str], chosen: str) -> None:
        self.criterion = criterion
        self.candidates = candidates
        self.chosen = chosen
        super().__init__(
            f"{len(candidates)} devices match {criterion!r}: "
            f"{'; '.join(candidates)}. Using {chosen}"
        )


@dataclass(frozen=True)
class DeviceFileInfo:
    """Metadata about a file listed on the device.

    Attributes:
        path: Path relative to the source root, with forward slashes.
        source: Absolute path of the file on the device mount.
        size: File size in bytes, if the mount reports it.
        mtime: Modification time, if the mount reports it.
    """

    path: str
    source: Path
    size: int | None = None
    mtime: float | None = None


@dataclass(frozen=True)
class TransferTask:
    """A single planned copy, created per pass and never persisted."""

    identity: str
    source: Path
    destination: Path
    file: DeviceFileInfo


@dataclass
class TransferOutcome:
    """Result of executing one task."""

    task: TransferTask
    success: bool
    destination: Path | None = None
    error: str | None = None


@dataclass
class PassResult:
    """Result of one reconciliation-and-transfer pass.

    Attributes:
        device: Descriptor of the device the pass ran against.
        planned: Number of tasks the reconciler produced.
        transferred: Identities copied and recorded.
        failed: Identities whose copy failed.
        aborted: Reason the pass stopped early, if it did.
        device_lost: The pass stopped because the device disappeared.
        started_at: Pass start timestamp.
        finished_at: Pass end timestamp (0 while running).
    """

    device: str
    planned: int = 0
    transferred: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    aborted: str | None = None
    device_lost: bool = False
    started_at: float = field(default_factory=time.time)
    finished_at: float = 0.0

    @property
    def completed(self) -> bool:
        """Check if the pass ran through all planned tasks."""
        return self.aborted is None

    def finish(self) -> None:
        """Stamp the end time."""
        self.finished_at = time.time()
