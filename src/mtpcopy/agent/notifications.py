"""Desktop notifications for finished passes.

This module provides:
- Native notifications through notify-send (the agent targets gvfs desktops)
- Fallback to the log when notify-send is unavailable
"""

from __future__ import annotations

import logging
import platform
import subprocess
from dataclasses import dataclass
from enum import Enum, auto

from mtpcopy.agent.transfer.types import PassResult

logger = logging.getLogger(__name__)

APP_NAME = "mtpcopy"


class NotificationType(Enum):
    """Type of notification."""

    INFO = auto()
    WARNING = auto()
    ERROR = auto()


@dataclass
class Notification:
    """Represents a notification to display."""

    title: str
    message: str
    type: NotificationType = NotificationType.INFO


def _notify_linux(notification: Notification) -> bool:
    """Send notification on Linux using notify-send.

    Args:
        notification: The notification to send.

    Returns:
        True if notification was sent successfully.
    """
    urgency_map = {
        NotificationType.INFO: "normal",
        NotificationType.WARNING: "normal",
        NotificationType.ERROR: "critical",
    }
    urgency = urgency_map.get(notification.type, "normal")

    try:
        subprocess.run(
            [
                "notify-send",
                "--urgency", urgency,
                "--app-name", APP_NAME,
                notification.title,
                notification.message,
            ],
            capture_output=True,
            check=True,
            timeout=10,
        )
        return True
    except FileNotFoundError:
        logger.debug("notify-send not found")
        return False
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Linux notification failed: {e}")
        return False


def send_notification(notification: Notification) -> bool:
    """Send a system notification.

    Returns:
        True if notification was sent, False if failed or unavailable.
    """
    system = platform.system()
    if system != "Linux":
        logger.debug(f"Notifications not supported on {system}")
        return False
    return _notify_linux(notification)


def pass_notification(result: PassResult) -> Notification | None:
    """Build the notification for a finished pass.

    Returns:
        None when there is nothing worth telling (no copies, no failures).
    """
    copied = len(result.transferred)
    failed = len(result.failed)

    if result.aborted:
        return Notification(
            title="Transfer interrupted",
            message=f"Copied {copied} files before stopping: {result.aborted}",
            type=NotificationType.ERROR,
        )
    if failed:
        return Notification(
            title="Transfer finished with errors",
            message=f"Copied {copied} files, {failed} failed. Re-connect to retry.",
            type=NotificationType.WARNING,
        )
    if copied:
        return Notification(
            title="Transfer complete",
            message=f"Copied {copied} new files. You can disconnect the device.",
        )
    return None


def notify_pass(result: PassResult) -> bool:
    """Notify the user about a finished pass, if there is anything to tell."""
    notification = pass_notification(result)
    if notification is None:
        return False
    return send_notification(notification)
