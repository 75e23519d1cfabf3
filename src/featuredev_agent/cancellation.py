"""
Cooperative cancellation tokens.

A token is observed at fixed checkpoints; cancelling never interrupts an
in-flight backend call. Cancellation may be requested from a UI thread,
so the flag is a threading.Event.
"""

import threading

from featuredev_agent.logging import get_logger

logger = get_logger(__name__)


class CancellationToken:
    """Read-only view of a cancellation source."""

    def __init__(self, source: "CancellationTokenSource"):
        self._source = source

    def is_cancellation_requested(self) -> bool:
        return self._source.cancelled


class CancellationTokenSource:
    """
    Owner of a single cancellation flag.

    Once cancelled, a source stays cancelled; allow further work by
    replacing it with a fresh source.
    """

    def __init__(self) -> None:
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self.token = CancellationToken(self)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self, source: str = "user") -> None:
        """Request cancellation. Repeated calls are no-ops."""
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()

        logger.info("Cancellation requested", source=source)
