"""
Cooperative cancellation for assessment and inventory runs.

Engines check the token at module boundaries and the pagination protocol
checks it between pages. In-flight requests are never interrupted.
"""

from __future__ import annotations

import threading


class CancellationToken:
    """
    Thread-safe cancellation flag.

    Example:
        >>> token = CancellationToken()
        >>> token.cancel()
        >>> token.is_cancelled
        True
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def is_cancelled(self) -> bool:
        """Check whether cancellation has been requested."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancellation is requested or the timeout expires."""
        return self._event.wait(timeout)


def is_cancelled(token: CancellationToken | None) -> bool:
    """Check a possibly absent token."""
    return token is not None and token.is_cancelled
