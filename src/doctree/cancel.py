"""Cooperative cancellation for long-running indexing and search work.

A ``CancelToken`` is passed down to every operation that may block. The
operation calls ``raise_if_cancelled()`` at safe points (per file, per stored
index) and stops with ``OperationCancelled`` once the token fires.
"""

import threading
import time

from doctree.errors import OperationCancelled


class CancelToken:
    """Cancellation signal backed by a ``threading.Event``.

    Args:
        timeout: Optional number of seconds after which the token counts as
            cancelled.
    """

    def __init__(self, timeout: float | None = None, parent: "CancelToken | None" = None):
        if timeout is not None and timeout < 0:
            raise ValueError(f"Timeout must be >= 0, got {timeout}")
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._parent = parent
        self._reason = "operation cancelled"

    def cancel(self, reason: str = "operation cancelled") -> None:
        """Request cancellation."""
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._reason = "deadline exceeded"
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def reason(self) -> str:
        if self._parent is not None and not self._event.is_set() and self._parent.cancelled:
            return self._parent.reason
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelled(self.reason)

    def child(self) -> "CancelToken":
        """Return a token that fires when either it or this token is cancelled."""
        return CancelToken(parent=self)


def check(ctx: CancelToken | None) -> None:
    """Raise ``OperationCancelled`` if ``ctx`` is set and cancelled."""
    if ctx is not None:
        ctx.raise_if_cancelled()
