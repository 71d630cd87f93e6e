"""Configuration utilities for the mtpcopy CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from mtpcopy.agent.ledger import Ledger
from mtpcopy.core.config import TransferConfig

CONFIG_DIR_ENV = "MTPCOPY_HOME"


def get_config_dir() -> Path:
    """Get the configuration directory for mtpcopy.

    Returns:
        Path from $MTPCOPY_HOME, or ~/.mtpcopy.
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".mtpcopy"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_default_ledger_path() -> Path:
    """Get the ledger path used when none is configured."""
    return get_config_dir() / "ledger.db"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def load_transfer_config() -> TransferConfig | None:
    """Build the transfer configuration from the config file.

    Returns:
        TransferConfig, or None if the device or destination is not configured.

    Raises:
        ValueError: If a configured value is invalid.
    """
    config = load_config()
    if not config.get("device_match") or not config.get("destination"):
        return None
    transfer_config = TransferConfig.from_dict(config)
    if transfer_config.ledger_path is None:
        transfer_config.ledger_path = get_default_ledger_path()
    return transfer_config


def open_ledger(config: TransferConfig | None = None) -> Ledger:
    """Open the configured ledger (or the default one).

    Raises:
        CorruptLedger: If the ledger cannot be read.
    """
    path = config.ledger_path if config and config.ledger_path else get_default_ledger_path()
    return Ledger.load(path)
