"""Core module - Shared configuration and types."""

from mtpcopy.core.config import DEFAULT_MOUNT_TEMPLATE, DEFAULT_SOURCE_PATH, TransferConfig
from mtpcopy.core.types import IdentityPolicy, WatchState

__all__ = [
    # Config
    "DEFAULT_MOUNT_TEMPLATE",
    "DEFAULT_SOURCE_PATH",
    "TransferConfig",
    # Types
    "IdentityPolicy",
    "WatchState",
]
