"""Bounded exponential backoff for device polling.

This module provides:
- PollBackoff: Delay sequence that grows while no device is found
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# Default backoff configuration
DEFAULT_INITIAL_BACKOFF = 5.0  # seconds
DEFAULT_MAX_BACKOFF = 30.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 1.5


@dataclass
class PollBackoff:
    """Delay sequence for polling: initial, initial*m, ... capped at maximum.

    Usage:
        backoff = PollBackoff(initial=5.0, maximum=30.0)
        while not found():
            sleep(backoff.next_delay())
        backoff.reset()
    """

    initial: float = DEFAULT_INITIAL_BACKOFF
    maximum: float = DEFAULT_MAX_BACKOFF
    multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    attempts: int = field(default=0, init=False)
    _current: float = field(default=0.0, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.initial <= 0:
            raise ValueError("initial backoff must be positive")
        if self.multiplier < 1.0:
            raise ValueError("backoff multiplier must be >= 1")
        self.maximum = max(self.maximum, self.initial)
        self._current = self.initial

    def next_delay(self) -> float:
        """Get the next delay and advance the sequence."""
        delay = self._current
        self.attempts += 1
        self._current = min(self._current * self.multiplier, self.maximum)
        return delay

    def reset(self) -> None:
        """Start over from the initial delay."""
        if self.attempts:
            logger.debug("Backoff reset after %d attempts", self.attempts)
        self.attempts = 0
        self._current = self.initial
