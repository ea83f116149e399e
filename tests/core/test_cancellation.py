"""
Unit tests for cancellation tokens.
"""

import time

import pytest

from distrobuilder.core.cancellation import CancellationToken
from distrobuilder.core.exceptions import CommandCancelledError


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_fresh_token(self):
        """Test a new token without deadline allows work."""
        token = CancellationToken()

        assert not token.cancelled
        assert not token.expired
        assert token.remaining() is None
        assert token.reason() is None
        token.raise_if_cancelled("fetch")

    def test_cancel(self):
        """Test cancel() stops work."""
        token = CancellationToken()
        token.cancel()

        assert token.cancelled
        assert token.reason() == "cancelled"
        with pytest.raises(CommandCancelledError, match="fetch cancelled"):
            token.raise_if_cancelled("fetch")

    def test_deadline_expires(self):
        """Test a passed deadline reports timed out."""
        token = CancellationToken(timeout=0.01)
        time.sleep(0.05)

        assert token.expired
        assert token.remaining() == 0.0
        assert token.reason() == "timed out"

    def test_remaining_counts_down(self):
        """Test remaining() is bounded by the timeout."""
        token = CancellationToken(timeout=100)

        assert 0 < token.remaining() <= 100
