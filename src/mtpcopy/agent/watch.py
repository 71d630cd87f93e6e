"""Watch loop: wait for the device, transfer once, wait for removal.

States:
    WAITING_FOR_DEVICE -> DEVICE_READY -> TRANSFERRING -> WAITING_FOR_DISCONNECT
                                                       -> WAITING_FOR_DEVICE (device lost)
    WAITING_FOR_DISCONNECT -> WAITING_FOR_DEVICE

All state transitions are validated. The loop has no terminal state; it
runs until stop() is called, and stops only between steps, so a pass is
never interrupted halfway.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

from mtpcopy.agent.transfer.executor import TransferExecutor
from mtpcopy.agent.transfer.reconciler import Reconciler
from mtpcopy.agent.transfer.retry import PollBackoff
from mtpcopy.agent.transfer.types import CorruptLedger, DeviceUnreachable, MtpCopyError, PassResult
from mtpcopy.core.types import WatchState

if TYPE_CHECKING:
    from mtpcopy.agent.device.locator import DeviceHandle, DeviceLocator
    from mtpcopy.agent.ledger import Ledger
    from mtpcopy.agent.transfer.executor import Copier
    from mtpcopy.core.config import TransferConfig

logger = logging.getLogger(__name__)


# Valid state transitions
VALID_TRANSITIONS: dict[WatchState, set[WatchState]] = {
    WatchState.WAITING_FOR_DEVICE: {WatchState.DEVICE_READY},
    WatchState.DEVICE_READY: {WatchState.TRANSFERRING},
    WatchState.TRANSFERRING: {
        WatchState.WAITING_FOR_DISCONNECT,
        WatchState.WAITING_FOR_DEVICE,
    },
    WatchState.WAITING_FOR_DISCONNECT: {WatchState.WAITING_FOR_DEVICE},
}


class InvalidTransitionError(MtpCopyError):
    """Raised when attempting invalid state transition."""


class PassInProgressError(MtpCopyError):
    """Raised when a pass is started while another one is running."""


class WatchLoop:
    """Drives detection, reconciliation and transfer for one device.

    The ledger, locator and copier are passed in; the loop owns no global
    state, so each piece can be replaced by a fake in tests.

    Usage:
        loop = WatchLoop(config, locator, ledger, GioCopier())
        loop.run()          # blocks until loop.stop()
    """

    def __init__(
        self,
        config: TransferConfig,
        locator: DeviceLocator,
        ledger: Ledger,
        copier: Copier,
        reconciler: Reconciler | None = None,
        notifier: Callable[[PassResult], object] | None = None,
    ) -> None:
        """Initialize the watch loop.

        Args:
            config: Transfer configuration.
            locator: Finds the device and lists its files.
            ledger: Copy-once ledger.
            copier: Copy mechanism.
            reconciler: Task planner (built from config if None).
            notifier: Called with every finished pass.
        """
        self._config = config
        self._locator = locator
        self._ledger = ledger
        self._copier = copier
        self._reconciler = reconciler or Reconciler(
            config.destination,
            config.identity_policy,
        )
        self._notifier = notifier

        self._state = WatchState.WAITING_FOR_DEVICE
        self._handle: DeviceHandle | None = None
        self._last_result: PassResult | None = None
        self._backoff = PollBackoff(
            initial=config.poll_interval,
            maximum=config.max_poll_interval,
        )

        self._pass_lock = threading.Lock()
        self._stop_event = threading.Event()
        # Set to cut a wait short (mount watcher, stop())
        self._wakeup = threading.Event()

    @property
    def state(self) -> WatchState:
        """Get current loop state."""
        return self._state

    @property
    def handle(self) -> DeviceHandle | None:
        """Handle of the device being served, if any."""
        return self._handle

    @property
    def last_result(self) -> PassResult | None:
        """Result of the most recent pass."""
        return self._last_result

    @property
    def wakeup(self) -> threading.Event:
        """Event that ends the current wait early when set."""
        return self._wakeup

    def _transition(self, new_state: WatchState) -> None:
        """Transition to a new state with validation."""
        if new_state not in VALID_TRANSITIONS[self._state]:
            raise InvalidTransitionError(
                f"Cannot transition from {self._state.name} to {new_state.name}"
            )
        logger.debug("State %s -> %s", self._state.name, new_state.name)
        self._state = new_state

    def _wait(self, seconds: float) -> None:
        if self._wakeup.wait(seconds):
            self._wakeup.clear()

    def _require_handle(self) -> DeviceHandle:
        if self._handle is None:
            raise InvalidTransitionError(f"No device handle in state {self._state.name}")
        return self._handle

    # === Steps ===

    def poll_once(self) -> bool:
        """Poll for the device once while waiting for it.

        Returns:
            True if the device was found (state is now DEVICE_READY).
        """
        if self._state != WatchState.WAITING_FOR_DEVICE:
            return False

        handle = self._locator.poll()
        if handle is None:
            return False

        logger.info("Device connected: %s", handle.descriptor)
        self._backoff.reset()
        self._handle = handle
        self._transition(WatchState.DEVICE_READY)
        return True

    def step(self) -> WatchState:
        """Perform the action of the current state.

        Waiting states poll once and sleep when nothing changed.

        Returns:
            The state after the step.
        """
        if self._state == WatchState.WAITING_FOR_DEVICE:
            if not self.poll_once():
                self._wait(self._backoff.next_delay())

        elif self._state == WatchState.DEVICE_READY:
            self._transition(WatchState.TRANSFERRING)

        elif self._state == WatchState.TRANSFERRING:
            result = self.run_pass(self._require_handle())
            if result.device_lost:
                logger.warning("Device lost during transfer; waiting for it to reconnect")
                self._handle = None
                self._transition(WatchState.WAITING_FOR_DEVICE)
                # An I/O error on a still-mounted device must not retry in a tight loop
                self._wait(self._config.poll_interval)
            else:
                logger.info("Re-connect device to begin a new transfer.")
                self._transition(WatchState.WAITING_FOR_DISCONNECT)

        elif self._state == WatchState.WAITING_FOR_DISCONNECT:
            if self._locator.is_present(self._require_handle()):
                logger.debug("Waiting for device to disconnect...")
                self._wait(self._config.disconnect_poll_interval)
            else:
                logger.info("Device disconnected")
                self._handle = None
                self._transition(WatchState.WAITING_FOR_DEVICE)

        return self._state

    def run_pass(self, handle: DeviceHandle) -> PassResult:
        """Run one reconciliation-and-transfer pass.

        File-level failures and ledger failures end up in the result; none
        of them propagate.

        Raises:
            PassInProgressError: If another pass is running.
        """
        if not self._pass_lock.acquire(blocking=False):
            raise PassInProgressError("A transfer pass is already in progress")

        result = PassResult(device=handle.descriptor)
        ledger_failed = False
        destination = self._config.destination
        try:
            logger.info(
                "Begin transferring files from %s to %s...",
                handle.source_root,
                destination,
            )
            if not destination.exists():
                logger.info("Creating destination directory: %s", destination)
            destination.mkdir(parents=True, exist_ok=True)

            tasks = self._reconciler.plan(self._ledger, self._locator.list_files(handle))
            result.planned = len(tasks)

            executor = TransferExecutor(
                self._ledger,
                self._copier,
                device=handle.descriptor,
                device_check=lambda: self._locator.is_present(handle),
            )
            executor.run(tasks, result)
            ledger_failed = result.aborted is not None
        except DeviceUnreachable as e:
            logger.warning("%s. Aborting pass.", e)
            result.aborted = str(e)
            result.device_lost = True
        except CorruptLedger as e:
            logger.error("Ledger error during pass on %s: %s", handle.descriptor, e)
            result.aborted = f"ledger error: {e}"
            ledger_failed = True
        except OSError as e:
            logger.error("Cannot prepare destination %s: %s", destination, e)
            result.aborted = f"destination error: {e}"
        finally:
            result.finish()
            self._pass_lock.release()

        self._log_summary(result)
        if not ledger_failed:
            try:
                self._ledger.record_pass(result)
            except CorruptLedger as e:
                logger.error("Could not record pass history: %s", e)

        self._last_result = result
        if self._notifier is not None:
            self._notifier(result)
        return result

    def _log_summary(self, result: PassResult) -> None:
        transferred = len(result.transferred)
        if transferred:
            logger.info("Transferred %d new files", transferred)
        if result.failed:
            logger.warning(
                "%d files failed to transfer and will be retried on the next connection",
                len(result.failed),
            )
        if result.completed:
            if transferred:
                logger.info("Transfer complete")
            elif not result.failed:
                logger.info("No new files found; did nothing.")

    # === Driving ===

    def run_once(self) -> PassResult | None:
        """Run a single pass if the device is ready right now.

        Returns:
            The pass result, or None if the device is not available.
        """
        if not self.poll_once():
            return None
        self.step()  # DEVICE_READY -> TRANSFERRING
        self.step()  # TRANSFERRING -> WAITING_FOR_DISCONNECT / WAITING_FOR_DEVICE
        return self._last_result

    def run(self) -> None:
        """Run until stop() is called."""
        logger.info("Waiting for device to connect...")
        while not self._stop_event.is_set():
            self.step()
        logger.info("Watch loop stopped in state %s", self._state.name)

    def stop(self) -> None:
        """Request the loop to stop after the current step."""
        self._stop_event.set()
        self._wakeup.set()
