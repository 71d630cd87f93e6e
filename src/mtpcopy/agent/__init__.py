"""Agent - device detection, ledger and transfer loop."""
