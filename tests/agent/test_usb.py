"""Tests for lsusb parsing and device matching."""

import subprocess
from unittest.mock import patch

from mtpcopy.agent.device.usb import DeviceMatcher, UsbDevice, list_usb_devices, parse_lsusb

LSUSB_OUTPUT = """\
Bus 002 Device 001: ID 1d6b:0003 Linux Foundation 3.0 root hub
Bus 003 Device 026: ID 04E8:6860 Samsung Electronics Co., Ltd Galaxy (MTP)
Bus 001 Device 004: ID 18d1:4ee1 Google Inc. Nexus/Pixel Device (MTP)
Bus 001 Device 001: ID 1d6b:0002
not a device line
"""


class TestParseLsusb:
    """Tests for parse_lsusb()."""

    def test_parses_device_lines(self) -> None:
        """Device lines are parsed in order, other lines skipped."""
        devices = parse_lsusb(LSUSB_OUTPUT)

        assert [d.usb_id for d in devices] == ["1d6b:0003", "04e8:6860", "18d1:4ee1", "1d6b:0002"]
        samsung = devices[1]
        assert samsung.bus == "003"
        assert samsung.device == "026"
        assert samsung.description == "Samsung Electronics Co., Ltd Galaxy (MTP)"

    def test_missing_description(self) -> None:
        """A line without description still parses."""
        devices = parse_lsusb(LSUSB_OUTPUT)

        assert devices[-1].description == ""
        assert devices[-1].descriptor == "Bus 001 Device 001: ID 1d6b:0002"

    def test_empty_output(self) -> None:
        """Empty output means no devices."""
        assert parse_lsusb("") == []


class TestListUsbDevices:
    """Tests for list_usb_devices()."""

    def test_runs_lsusb(self) -> None:
        """lsusb output is parsed."""
        completed = subprocess.CompletedProcess(args=["lsusb"], returncode=0, stdout=LSUSB_OUTPUT, stderr="")
        with patch("mtpcopy.agent.device.usb.subprocess.run", return_value=completed):
            devices = list_usb_devices()

        assert len(devices) == 4

    def test_missing_lsusb(self) -> None:
        """A missing lsusb binary yields no devices."""
        with patch("mtpcopy.agent.device.usb.subprocess.run", side_effect=FileNotFoundError("lsusb")):
            assert list_usb_devices() == []

    def test_failing_lsusb(self) -> None:
        """A non-zero exit yields no devices."""
        completed = subprocess.CompletedProcess(args=["lsusb"], returncode=1, stdout="", stderr="boom")
        with patch("mtpcopy.agent.device.usb.subprocess.run", return_value=completed):
            assert list_usb_devices() == []


class TestDeviceMatcher:
    """Tests for DeviceMatcher."""

    def test_substring_case_insensitive(self, samsung: UsbDevice) -> None:
        """Description matching ignores case."""
        assert DeviceMatcher("samsung").matches(samsung) is True
        assert DeviceMatcher("Pixel").matches(samsung) is False

    def test_usb_id(self, samsung: UsbDevice) -> None:
        """A vendor:product criterion matches the ID exactly."""
        assert DeviceMatcher("04E8:6860").matches(samsung) is True
        assert DeviceMatcher("04e8:6861").matches(samsung) is False

    def test_select_sorted(self) -> None:
        """Matches come back in (bus, device) order."""
        devices = parse_lsusb(
            "Bus 003 Device 030: ID 04e8:6860 Samsung Galaxy\n"
            "Bus 001 Device 040: ID 04e8:6860 Samsung Galaxy\n"
            "Bus 003 Device 012: ID 04e8:6860 Samsung Galaxy\n"
            "Bus 002 Device 001: ID 1d6b:0003 Linux Foundation 3.0 root hub\n"
        )

        selected = DeviceMatcher("samsung").select(devices)

        assert [(d.bus, d.device) for d in selected] == [("001", "040"), ("003", "012"), ("003", "030")]
