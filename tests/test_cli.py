"""Tests for CLI commands - configure, run, devices, ledger, history."""

import json
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from mtpcopy.agent.ledger import Ledger
from mtpcopy.cli import cli

LSUSB_OUTPUT = (
    "Bus 002 Device 001: ID 1d6b:0003 Linux Foundation 3.0 root hub\n"
    "Bus 003 Device 026: ID 04e8:6860 Samsung Electronics Co., Ltd Galaxy (MTP)\n"
)
MOUNT_TEMPLATE = "mtp:host=%5Busb%3A{bus}%2C{device}%5D"


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the CLI at a temporary config directory."""
    config = tmp_path / ".mtpcopy"
    monkeypatch.setenv("MTPCOPY_HOME", str(config))
    return config


@pytest.fixture
def configured(runner: CliRunner, config_dir: Path, tmp_path: Path) -> Path:
    """Configure a Samsung device mounted under tmp_path/gvfs.

    Returns the device source directory (not created).
    """
    result = runner.invoke(
        cli,
        [
            "configure",
            "--device", "Samsung",
            "--destination", str(tmp_path / "dest"),
            "--mount-template", str(tmp_path / "gvfs" / MOUNT_TEMPLATE),
            "--copier", "shutil",
        ],
    )
    assert result.exit_code == 0, result.output
    return tmp_path / "gvfs" / "mtp:host=%5Busb%3A003%2C026%5D" / "Phone" / "DCIM" / "Camera"


def fake_lsusb(stdout: str = LSUSB_OUTPUT):
    completed = subprocess.CompletedProcess(args=["lsusb"], returncode=0, stdout=stdout, stderr="")
    return patch("mtpcopy.agent.device.usb.subprocess.run", return_value=completed)


class TestConfigureCommand:
    """Tests for 'mtpcopy configure' command."""

    def test_configure_writes_config(self, runner: CliRunner, config_dir: Path, tmp_path: Path) -> None:
        """Configure should save the device and destination."""
        result = runner.invoke(
            cli, ["configure", "--device", "04e8:6860", "--destination", str(tmp_path / "Pictures")]
        )

        assert result.exit_code == 0
        assert "Configuration saved" in result.output
        data = json.loads((config_dir / "config.json").read_text())
        assert data["device_match"] == "04e8:6860"
        assert data["destination"] == str((tmp_path / "Pictures").resolve())
        assert data["identity_policy"] == "path"

    def test_configure_prompts(self, runner: CliRunner, config_dir: Path, tmp_path: Path) -> None:
        """Configure should prompt for missing device and destination."""
        result = runner.invoke(cli, ["configure"], input=f"Pixel\n{tmp_path / 'dest'}\n")

        assert result.exit_code == 0
        data = json.loads((config_dir / "config.json").read_text())
        assert data["device_match"] == "Pixel"

    def test_configure_keeps_previous_options(
        self, runner: CliRunner, config_dir: Path, tmp_path: Path
    ) -> None:
        """Options not given should keep their saved value."""
        dest = str(tmp_path / "dest")
        runner.invoke(cli, ["configure", "--device", "x", "--destination", dest, "--identity", "path+size"])

        runner.invoke(cli, ["configure", "--device", "y", "--destination", dest])

        data = json.loads((config_dir / "config.json").read_text())
        assert data["device_match"] == "y"
        assert data["identity_policy"] == "path+size"

    def test_configure_rejects_invalid_values(
        self, runner: CliRunner, config_dir: Path, tmp_path: Path
    ) -> None:
        """Invalid values should not be saved."""
        result = runner.invoke(
            cli,
            ["configure", "--device", "x", "--destination", str(tmp_path), "--poll-interval", "0"],
        )

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
        assert not (config_dir / "config.json").exists()


class TestRunCommand:
    """Tests for 'mtpcopy run' command."""

    def test_not_configured(self, runner: CliRunner, config_dir: Path) -> None:
        """Run should refuse to start without configuration."""
        result = runner.invoke(cli, ["run", "--once"])

        assert result.exit_code == 1
        assert "Not configured" in result.output

    def test_corrupt_ledger_refuses_to_start(
        self, runner: CliRunner, configured: Path, config_dir: Path
    ) -> None:
        """A corrupt ledger must stop the program before any transfer."""
        (config_dir / "ledger.db").write_bytes(b"this is not a database" * 100)

        with patch("mtpcopy.agent.watch.WatchLoop") as loop_cls:
            result = runner.invoke(cli, ["run", "--once", "--no-notify"])

        assert result.exit_code == 1
        assert "Refusing to start" in result.output
        loop_cls.assert_not_called()

    def test_once_without_device(self, runner: CliRunner, configured: Path) -> None:
        """Run --once should exit 2 when the device is not connected."""
        with fake_lsusb(stdout=""):
            result = runner.invoke(cli, ["run", "--once", "--no-notify"])

        assert result.exit_code == 2
        assert "Device not available" in result.output

    def test_once_transfers_new_files(
        self, runner: CliRunner, configured: Path, config_dir: Path, tmp_path: Path
    ) -> None:
        """Run --once should copy new files and record them."""
        configured.mkdir(parents=True)
        (configured / "IMG_0001.jpg").write_bytes(b"one")
        (configured / "IMG_0002.jpg").write_bytes(b"two")

        with fake_lsusb():
            result = runner.invoke(cli, ["run", "--once", "--no-notify"])

        assert result.exit_code == 0, result.output
        assert "Transferred 2 new files, 0 failed" in result.output
        assert (tmp_path / "dest" / "IMG_0001.jpg").read_bytes() == b"one"
        with Ledger.load(config_dir / "ledger.db") as db:
            assert db.contains("IMG_0001.jpg") and db.contains("IMG_0002.jpg")

    def test_once_twice_copies_nothing(
        self, runner: CliRunner, configured: Path, tmp_path: Path
    ) -> None:
        """A second run should not copy files again, even if deleted on the host."""
        configured.mkdir(parents=True)
        (configured / "IMG_0001.jpg").write_bytes(b"one")
        with fake_lsusb():
            runner.invoke(cli, ["run", "--once", "--no-notify"])
        (tmp_path / "dest" / "IMG_0001.jpg").unlink()

        with fake_lsusb():
            result = runner.invoke(cli, ["run", "--once", "--no-notify"])

        assert result.exit_code == 0
        assert "Transferred 0 new files" in result.output
        assert "No new files found; did nothing." in result.output
        assert not (tmp_path / "dest" / "IMG_0001.jpg").exists()


class TestDevicesCommand:
    """Tests for 'mtpcopy devices' command."""

    def test_marks_matching_device(self, runner: CliRunner, configured: Path) -> None:
        """Matching devices should be marked with their status."""
        with fake_lsusb():
            result = runner.invoke(cli, ["devices"])

        assert result.exit_code == 0
        assert "* Bus 003 Device 026: ID 04e8:6860" in result.output
        assert "[files not accessible]" in result.output
        assert "  Bus 002 Device 001: ID 1d6b:0003" in result.output

    def test_ready_device(self, runner: CliRunner, configured: Path) -> None:
        """A mounted device should be shown as ready."""
        configured.mkdir(parents=True)
        with fake_lsusb():
            result = runner.invoke(cli, ["devices"])

        assert "[ready]" in result.output

    def test_no_match(self, runner: CliRunner, configured: Path) -> None:
        """Should say when nothing matches."""
        with fake_lsusb(stdout="Bus 002 Device 001: ID 1d6b:0003 Linux Foundation 3.0 root hub\n"):
            result = runner.invoke(cli, ["devices"])

        assert "No device matches 'Samsung'" in result.output

    def test_no_devices(self, runner: CliRunner, config_dir: Path) -> None:
        """Should say when lsusb lists nothing."""
        with fake_lsusb(stdout=""):
            result = runner.invoke(cli, ["devices"])

        assert "No USB devices found" in result.output


class TestLedgerCommands:
    """Tests for 'mtpcopy ledger' and 'mtpcopy history' commands."""

    def test_list_empty(self, runner: CliRunner, config_dir: Path) -> None:
        """Should say when nothing was transferred."""
        result = runner.invoke(cli, ["ledger", "list"])

        assert result.exit_code == 0
        assert "No files transferred yet." in result.output

    def test_import_and_list(self, runner: CliRunner, configured: Path, tmp_path: Path) -> None:
        """Imported files should be listed and never copied."""
        list_file = tmp_path / "transferred_files.txt"
        list_file.write_text(f"{tmp_path / 'dest' / 'IMG_0001.jpg'}\n\n/elsewhere/IMG_0002.jpg\n")

        result = runner.invoke(cli, ["ledger", "import", str(list_file)])

        assert result.exit_code == 0, result.output
        assert "Imported 2 new records (2 total)." in result.output
        listed = runner.invoke(cli, ["ledger", "list"])
        assert "IMG_0001.jpg" in listed.output
        assert "IMG_0002.jpg" in listed.output

        configured.mkdir(parents=True)
        (configured / "IMG_0001.jpg").write_bytes(b"one")
        with fake_lsusb():
            result = runner.invoke(cli, ["run", "--once", "--no-notify"])
        assert "Transferred 0 new files" in result.output

    def test_import_without_destination(self, runner: CliRunner, config_dir: Path, tmp_path: Path) -> None:
        """Import needs a destination when not configured."""
        list_file = tmp_path / "list.txt"
        list_file.write_text("/a/b.jpg\n")

        result = runner.invoke(cli, ["ledger", "import", str(list_file)])

        assert result.exit_code == 1
        assert "--destination" in result.output

    def test_forget(self, runner: CliRunner, config_dir: Path) -> None:
        """Forget should remove a record after confirmation."""
        with Ledger.load(config_dir / "ledger.db") as db:
            db.record("IMG_0001.jpg")

        result = runner.invoke(cli, ["ledger", "forget", "IMG_0001.jpg", "--yes"])

        assert result.exit_code == 0
        assert "Forgot IMG_0001.jpg" in result.output
        with Ledger.load(config_dir / "ledger.db") as db:
            assert not db.contains("IMG_0001.jpg")

    def test_forget_unknown(self, runner: CliRunner, config_dir: Path) -> None:
        """Forget should fail for identities not in the ledger."""
        result = runner.invoke(cli, ["ledger", "forget", "nope.jpg", "--yes"])

        assert result.exit_code == 1
        assert "not in the ledger" in result.output

    def test_list_corrupt_ledger(self, runner: CliRunner, config_dir: Path) -> None:
        """A corrupt ledger should be reported, not crash."""
        config_dir.mkdir(parents=True)
        (config_dir / "ledger.db").write_bytes(b"garbage" * 200)

        result = runner.invoke(cli, ["ledger", "list"])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_history(self, runner: CliRunner, configured: Path) -> None:
        """History should show one line per pass."""
        empty = runner.invoke(cli, ["history"])
        assert "No transfer passes recorded yet." in empty.output

        configured.mkdir(parents=True)
        (configured / "IMG_0001.jpg").write_bytes(b"one")
        with fake_lsusb():
            runner.invoke(cli, ["run", "--once", "--no-notify"])

        result = runner.invoke(cli, ["history"])

        assert result.exit_code == 0
        assert "transferred files: 1" in result.output
        assert "failed: 0" in result.output
