import asyncio
import contextlib

from aap_sync.exceptions.aap_exceptions import OperationCancelledError


class CancellationToken:
    """Cooperative cancellation flag checked by pagination and polling loops"""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError()

    async def sleep(self, delay: float) -> None:
        """Sleep for delay seconds, waking early and raising when cancelled"""
        self.raise_if_cancelled()
        if delay > 0:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._event.wait(), timeout=delay)
        self.raise_if_cancelled()
