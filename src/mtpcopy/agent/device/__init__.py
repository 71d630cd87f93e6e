"""Device detection.

Components:
- **usb**: lsusb enumeration and device matching
- **locator**: DeviceLocator, DeviceHandle and DeviceListing
- **mounts**: MountWatcher, wakes the watch loop on mount changes
"""

from mtpcopy.agent.device.locator import DeviceHandle, DeviceListing, DeviceLocator
from mtpcopy.agent.device.mounts import MountWatcher
from mtpcopy.agent.device.usb import DeviceMatcher, UsbDevice, list_usb_devices, parse_lsusb

__all__ = [
    "DeviceHandle",
    "DeviceListing",
    "DeviceLocator",
    "DeviceMatcher",
    "MountWatcher",
    "UsbDevice",
    "list_usb_devices",
    "parse_lsusb",
]
