"""Shared types for mtpcopy.

This module defines enums used by the agent, the CLI and the configuration.
"""

from __future__ import annotations

from enum import Enum


class WatchState(str, Enum):
    """State of the watch loop.

    The loop starts in WAITING_FOR_DEVICE and never terminates on its own.
    """

    WAITING_FOR_DEVICE = "waiting_for_device"
    DEVICE_READY = "device_ready"
    TRANSFERRING = "transferring"
    WAITING_FOR_DISCONNECT = "waiting_for_disconnect"


class IdentityPolicy(str, Enum):
    """How a device file's identity is derived.

    PATH ignores content changes: a same-named file replaced on the device
    is treated as already transferred. The other policies add the size
    (and mtime) so a replaced file is copied again.
    """

    PATH = "path"
    PATH_SIZE = "path+size"
    PATH_SIZE_MTIME = "path+size+mtime"
