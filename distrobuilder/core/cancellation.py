"""
Cancellation and deadline propagation.

A CancellationToken is shared by everything one build does: the process
runner polls it while a subprocess is running, and the source resolver
checks it before each git or HTTP call. A caller-supplied timeout is
expressed as a deadline on the same token.
"""

import threading
import time
from typing import Optional

from distrobuilder.core.exceptions import CommandCancelledError


class CancellationToken:
    """
    Cooperative cancellation signal with an optional deadline.

    Example:
        >>> token = CancellationToken(timeout=3600)
        >>> token.raise_if_cancelled("configure")
        >>> token.cancel()
        >>> token.cancelled
        True
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self.deadline: Optional[float] = (
            time.monotonic() + timeout if timeout is not None else None
        )

    def cancel(self) -> None:
        """Request cancellation of in-flight work."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None when there is no deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def reason(self) -> Optional[str]:
        """Why work must stop, or None if it may continue."""
        if self.cancelled:
            return "cancelled"
        if self.expired:
            return "timed out"
        return None

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        """
        Raise if cancellation was requested or the deadline passed.

        Args:
            operation: Description used in the error message

        Raises:
            CommandCancelledError: If work must stop
        """
        reason = self.reason()
        if reason:
            raise CommandCancelledError(f"{operation} {reason}")
