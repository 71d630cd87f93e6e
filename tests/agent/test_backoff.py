"""Tests for poll backoff."""

import pytest

from mtpcopy.agent.transfer.retry import PollBackoff


class TestPollBackoff:
    """Tests for PollBackoff."""

    def test_grows_and_caps(self) -> None:
        """Delays grow by the multiplier up to the maximum."""
        backoff = PollBackoff(initial=5.0, maximum=10.0, multiplier=1.5)

        delays = [backoff.next_delay() for _ in range(4)]

        assert delays == [5.0, 7.5, 10.0, 10.0]
        assert backoff.attempts == 4

    def test_reset(self) -> None:
        """Reset starts over from the initial delay."""
        backoff = PollBackoff(initial=1.0, maximum=8.0, multiplier=2.0)
        backoff.next_delay()
        backoff.next_delay()

        backoff.reset()

        assert backoff.attempts == 0
        assert backoff.next_delay() == 1.0

    def test_maximum_below_initial(self) -> None:
        """A maximum below the initial delay is raised to it."""
        backoff = PollBackoff(initial=5.0, maximum=1.0)

        assert backoff.next_delay() == 5.0
        assert backoff.next_delay() == 5.0

    def test_constant_with_multiplier_one(self) -> None:
        """A multiplier of 1 polls at a fixed interval."""
        backoff = PollBackoff(initial=2.0, maximum=30.0, multiplier=1.0)

        assert [backoff.next_delay() for _ in range(3)] == [2.0, 2.0, 2.0]

    @pytest.mark.parametrize(
        ("kwargs", "message"),
        [
            ({"initial": 0.0}, "initial"),
            ({"multiplier": 0.5}, "multiplier"),
        ],
    )
    def test_invalid(self, kwargs: dict, message: str) -> None:
        """Invalid parameters are rejected."""
        with pytest.raises(ValueError, match=message):
            PollBackoff(**kwargs)
