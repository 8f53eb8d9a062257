"""Cooperative cancellation token.

Long-running work checks the token only at safe boundaries: between
pipeline stages and after each staging batch commits.
"""

from __future__ import annotations

import threading

from core.errors import OdmCancelledError


class CancellationToken:
    """Thread-safe flag requesting a stop at the next safe boundary."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, boundary: str) -> None:
        """Raise when cancellation was requested.

        Args:
            boundary: Description of the boundary reached, for the message.

        Raises:
            OdmCancelledError: If cancellation was requested.
        """
        if self._event.is_set():
            raise OdmCancelledError(
                f"Run cancelled at {boundary}. Re-run with --resume to continue."
            )
