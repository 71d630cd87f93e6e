"""Transfer execution: copy planned files and record them.

This module provides:
- Copier: Protocol for the external copy mechanism
- GioCopier: Copies through `gio copy` (gvfs MTP mounts)
- ShutilCopier: In-process copy for FUSE mounts (jmtpfs, simple-mtpfs)
- TransferExecutor: Runs tasks sequentially and writes back to the ledger

Ordering invariant:
    The ledger is written only after the copier reports success. A crash
    between the two leaves a copied but unrecorded file, which is copied
    again next pass; the reverse never happens.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from mtpcopy.agent.transfer.types import (
    CorruptLedger,
    DeviceUnreachable,
    PassResult,
    TransferError,
    TransferOutcome,
    TransferTask,
)

if TYPE_CHECKING:
    from mtpcopy.agent.ledger import Ledger
    from mtpcopy.core.config import TransferConfig

logger = logging.getLogger(__name__)

DEFAULT_GIO_COMMAND = ("gio", "copy", "--preserve")
PROGRESS_LOG_EVERY = 10


class Copier(Protocol):
    """Protocol for copy mechanisms.

    copy() returns once the copy has finished and raises TransferError on
    any failure.
    """

    def copy(self, source: Path, destination: Path) -> None:
        ...


class GioCopier:
    """Copies files with the `gio copy` command line tool.

    The call blocks until gio exits or the timeout elapses. A non-zero exit
    status, a timeout or a missing binary are reported as TransferError.
    """

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_GIO_COMMAND,
        timeout: float = 600.0,
    ) -> None:
        self._command = list(command)
        self._timeout = timeout

    def copy(self, source: Path, destination: Path) -> None:
        args = [*self._command, str(source), str(destination)]
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
                # Own session: Ctrl+C in the terminal must not kill a copy in flight
                start_new_session=True,
            )
        except subprocess.TimeoutExpired as e:
            raise TransferError(source, destination, f"timed out after {self._timeout:.0f}s") from e
        except OSError as e:
            raise TransferError(source, destination, f"cannot run {self._command[0]}: {e}") from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise TransferError(
                source,
                destination,
                f"{self._command[0]} exited with status {result.returncode}"
                + (f": {stderr}" if stderr else ""),
            )


class ShutilCopier:
    """Copies files in-process, for devices mounted as a regular filesystem.

    Data goes to a hidden temporary name first and is renamed into place,
    so a failed copy never leaves a truncated file under the final name.

    A read from a stalled FUSE mount can block forever, so the copy runs in
    a worker thread and is abandoned once the timeout elapses. The worker
    itself cannot be interrupted; it is a daemon thread and ends with the
    mount or the process.
    """

    def __init__(self, timeout: float = 600.0) -> None:
        self._timeout = timeout

    def copy(self, source: Path, destination: Path) -> None:
        partial = destination.with_name(f".{destination.name}.partial")
        errors: list[OSError] = []

        def _copy() -> None:
            try:
                shutil.copy2(source, partial)
            except OSError as e:
                errors.append(e)

        worker = threading.Thread(target=_copy, name=f"copy-{source.name}", daemon=True)
        worker.start()
        worker.join(self._timeout)

        if worker.is_alive():
            logger.warning("Copy of %s still blocked after %.0fs, abandoning it", source, self._timeout)
            self._discard(partial)
            raise TransferError(source, destination, f"timed out after {self._timeout:.0f}s")

        try:
            if errors:
                raise errors[0]
            os.replace(partial, destination)
        except OSError as e:
            self._discard(partial)
            raise TransferError(source, destination, str(e)) from e

    @staticmethod
    def _discard(partial: Path) -> None:
        try:
            partial.unlink(missing_ok=True)
        except OSError as e:
            logger.debug("Cannot remove %s: %s", partial, e)


def make_copier(config: TransferConfig) -> Copier:
    """Build the copier selected by the configuration."""
    if config.copier == "shutil":
        return ShutilCopier(timeout=config.copy_timeout)
    return GioCopier(timeout=config.copy_timeout)


def unique_destination(destination: Path) -> Path:
    """Return destination, or "name (n).ext" if a file is already there.

    Existing host files are never overwritten.
    """
    if not destination.exists():
        return destination

    stem = destination.stem
    suffix = destination.suffix
    n = 1
    while True:
        candidate = destination.with_name(f"{stem} ({n}){suffix}")
        if not candidate.exists():
            return candidate
        n += 1


class TransferExecutor:
    """Executes transfer tasks one at a time.

    Usage:
        executor = TransferExecutor(ledger, GioCopier(), device="Bus 003 ...")
        result = executor.run(tasks)
    """

    def __init__(
        self,
        ledger: Ledger,
        copier: Copier,
        device: str = "",
        device_check: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            ledger: Ledger to record successful copies in.
            copier: Copy mechanism.
            device: Descriptor of the device, for log context.
            device_check: Returns False once the device is gone; consulted
                after a failed copy to tell a dead device from a bad file.
        """
        self._ledger = ledger
        self._copier = copier
        self._device = device
        self._device_check = device_check

    def execute(self, task: TransferTask) -> TransferOutcome:
        """Copy one file and record it on success.

        Args:
            task: The task to execute.

        Returns:
            TransferOutcome; success is False when the copy failed.

        Raises:
            CorruptLedger: If the copy succeeded but could not be recorded.
        """
        try:
            task.destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            error = TransferError(task.source, task.destination, f"cannot create directory: {e}")
            logger.warning("%s [%s]", error, self._device)
            return TransferOutcome(task=task, success=False, error=str(error))

        destination = unique_destination(task.destination)
        if destination != task.destination:
            logger.info(
                "%s exists on host but is not in the ledger; copying to %s",
                task.destination,
                destination.name,
            )

        try:
            self._copier.copy(task.source, destination)
        except TransferError as e:
            logger.warning("Transfer of %s failed [%s]: %s", task.identity, self._device, e.reason)
            return TransferOutcome(task=task, success=False, destination=destination, error=e.reason)

        self._ledger.record(
            task.identity,
            path=task.file.path,
            size=task.file.size,
            mtime=task.file.mtime,
            device=self._device,
            destination=str(destination),
        )
        logger.debug("Transferred %s -> %s", task.identity, destination)
        return TransferOutcome(task=task, success=True, destination=destination)

    def run(self, tasks: Sequence[TransferTask], result: PassResult | None = None) -> PassResult:
        """Execute tasks sequentially, in order.

        Copy failures are collected and the pass continues. A ledger failure
        stops the pass. A failed copy on a device that is gone raises.

        Args:
            tasks: Tasks from the reconciler.
            result: Result to fill in (a new one is created if None).

        Returns:
            PassResult with transferred and failed identities.

        Raises:
            DeviceUnreachable: If the device disappeared during the pass.
        """
        if result is None:
            result = PassResult(device=self._device, planned=len(tasks))

        for task in tasks:
            try:
                outcome = self.execute(task)
            except CorruptLedger as e:
                logger.error(
                    "Copied %s but could not record it [%s]: %s. Stopping this pass.",
                    task.identity,
                    self._device,
                    e,
                )
                result.aborted = f"ledger error: {e}"
                break

            if outcome.success:
                result.transferred.append(task.identity)
                if len(result.transferred) % PROGRESS_LOG_EVERY == 0:
                    logger.info("%d files transferred", len(result.transferred))
                continue

            result.failed.append(task.identity)
            if self._device_check is not None and not self._device_check():
                raise DeviceUnreachable(self._device, f"lost while copying {task.identity}")

        return result
