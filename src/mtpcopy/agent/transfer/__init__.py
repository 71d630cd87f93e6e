"""Transfer planning and execution.

Architecture:
    DeviceListing → Reconciler → TransferExecutor → Ledger

Components:
- **Reconciler**: Compares a device listing against the ledger, yields tasks
- **TransferExecutor**: Copies tasks in order, records confirmed copies
- **Copiers**: GioCopier (external `gio copy`) and ShutilCopier (in-process)
- **IgnorePatterns**: Device files never worth transferring
- **PollBackoff**: Bounded backoff used while waiting for the device
"""

from mtpcopy.agent.transfer.executor import (
    Copier,
    GioCopier,
    ShutilCopier,
    TransferExecutor,
    make_copier,
    unique_destination,
)
from mtpcopy.agent.transfer.ignore import DEFAULT_IGNORE_PATTERNS, IgnorePatterns
from mtpcopy.agent.transfer.reconciler import LedgerView, Reconciler, compute_identity
from mtpcopy.agent.transfer.retry import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_INITIAL_BACKOFF,
    DEFAULT_MAX_BACKOFF,
    PollBackoff,
)
from mtpcopy.agent.transfer.types import (
    AmbiguousDevice,
    CorruptLedger,
    DeviceFileInfo,
    DeviceUnreachable,
    MtpCopyError,
    PassResult,
    TransferError,
    TransferOutcome,
    TransferTask,
)

__all__ = [
    # Errors
    "AmbiguousDevice",
    "CorruptLedger",
    "DeviceUnreachable",
    "MtpCopyError",
    "TransferError",
    # Types
    "DeviceFileInfo",
    "PassResult",
    "TransferOutcome",
    "TransferTask",
    # Planning
    "LedgerView",
    "Reconciler",
    "compute_identity",
    "DEFAULT_IGNORE_PATTERNS",
    "IgnorePatterns",
    # Execution
    "Copier",
    "GioCopier",
    "ShutilCopier",
    "TransferExecutor",
    "make_copier",
    "unique_destination",
    # Backoff
    "DEFAULT_BACKOFF_MULTIPLIER",
    "DEFAULT_INITIAL_BACKOFF",
    "DEFAULT_MAX_BACKOFF",
    "PollBackoff",
]
