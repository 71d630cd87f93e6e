"""Reconciliation of a device listing against the ledger.

The reconciler decides which device files need copying. It performs no
I/O besides the read-only ledger lookup, so it can be tested without a
device or a filesystem.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import Protocol

from mtpcopy.agent.transfer.types import DeviceFileInfo, TransferTask
from mtpcopy.core.types import IdentityPolicy

logger = logging.getLogger(__name__)


class LedgerView(Protocol):
    """Read-only view of the ledger used for planning."""

    def contains(self, identity: str) -> bool:
        ...


def compute_identity(
    file: DeviceFileInfo,
    policy: IdentityPolicy = IdentityPolicy.PATH,
) -> str:
    """Compute the identity of a device file.

    Format: "<path>", "<path>|size=<n>" or "<path>|size=<n>|mtime=<s>".
    Attributes the mount does not report are left out, so the identity
    degrades to the path alone.

    Args:
        file: The device file.
        policy: Which attributes to include.

    Returns:
        Identity string.
    """
    identity = file.path
    if policy == IdentityPolicy.PATH:
        return identity

    if file.size is not None:
        identity += f"|size={file.size}"
    # Whole seconds: MTP mounts do not report sub-second times consistently
    if policy == IdentityPolicy.PATH_SIZE_MTIME and file.mtime is not None:
        identity += f"|mtime={int(file.mtime)}"
    return identity


class Reconciler:
    """Plans transfer tasks from a device listing.

    Usage:
        reconciler = Reconciler(Path("~/Pictures/phone"))
        tasks = reconciler.plan(ledger, locator.list_files(handle))
    """

    def __init__(
        self,
        destination_root: Path,
        policy: IdentityPolicy = IdentityPolicy.PATH,
    ) -> None:
        self._destination_root = Path(destination_root)
        self._policy = IdentityPolicy(policy)

    @property
    def policy(self) -> IdentityPolicy:
        """Identity policy in use."""
        return self._policy

    def destination_for(self, file: DeviceFileInfo) -> Path:
        """Host path a device file is copied to, mirroring its relative path."""
        return self._destination_root.joinpath(*PurePosixPath(file.path).parts)

    def plan(
        self,
        ledger: LedgerView,
        device_files: Iterable[DeviceFileInfo],
    ) -> list[TransferTask]:
        """Compute the tasks for one pass.

        A task is produced iff the file's identity is not in the ledger.
        Tasks keep the enumeration order of device_files.

        Args:
            ledger: Ledger to consult.
            device_files: Files listed on the device.

        Returns:
            Ordered list of TransferTask.
        """
        tasks: list[TransferTask] = []
        seen: set[str] = set()
        known = 0

        for file in device_files:
            identity = compute_identity(file, self._policy)
            if identity in seen:
                continue
            seen.add(identity)

            if ledger.contains(identity):
                known += 1
                continue

            tasks.append(
                TransferTask(
                    identity=identity,
                    source=file.source,
                    destination=self.destination_for(file),
                    file=file,
                )
            )

        logger.debug(
            "Planned %d transfers (%d already in ledger)",
            len(tasks),
            known,
        )
        return tasks
