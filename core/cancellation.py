"""
Cooperative Cancellation

Long passes (MPR families, Marching Cubes layers) poll a token at each
slice or layer boundary.
"""

import threading

from .errors import OperationCancelled


class CancellationToken:
    """
    Thread-safe cancellation flag.

    Example:
        token = CancellationToken()
        generator = MPRGenerator(volume, cancel_token=token)
        # from another thread:
        token.cancel()
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelled if cancellation was requested."""
        if self._event.is_set():
            raise OperationCancelled("Operation cancelled")
