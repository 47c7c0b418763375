"""
Cooperative cancellation for long-running filter and chunk loops.
"""

from __future__ import annotations

import threading

from pagechunk.exceptions import ChunkingCancelledError


class CancellationToken:
    """Thread-safe cancellation flag polled at paragraph/sentence granularity.

    Strategies may run on worker threads (``asyncio.to_thread``) where task
    cancellation does not reach, so they check the token instead.
    """

    __slots__ = ("_event", "_reason")

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ChunkingCancelledError(self._reason or "cancelled")


def check(cancel: CancellationToken | None) -> None:
    """Raise if a token was given and has fired."""
    if cancel is not None:
        cancel.raise_if_cancelled()
