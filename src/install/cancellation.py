"""Cooperative cancellation."""

import threading
from typing import Optional

from install.errors import OperationCancelledError


class CancellationToken:
    """Thread-safe flag checked at feed queries, download chunks and promotions."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, package_id: Optional[str] = None) -> None:
        """Raise OperationCancelledError when cancellation was requested."""
        if self._event.is_set():
            raise OperationCancelledError("Operation cancelled", package_id=package_id)
