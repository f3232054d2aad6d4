"""
Single-slot hand-off between trigger sources and the payment consumer.

Holds at most one pending `PaymentRequest`. When the slot is already taken
the newest request is dropped and `offer()` returns False; the request being
paid and the one waiting behind it are never disturbed.
"""

import asyncio
import logging

from qrph_kiosk.domain.models import PaymentRequest

logger = logging.getLogger(__name__)


class RequestQueue:
    """Bounded (capacity 1) queue of payment requests."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[PaymentRequest] = asyncio.Queue(maxsize=1)
        self.dropped = 0

    def offer(self, request: PaymentRequest) -> bool:
        """Enqueue without blocking. Returns False if the request was dropped."""
        try:
            self._queue.put_nowait(request)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Kiosk busy, dropping request for %d minor units from %s",
                request.amount_minor_units,
                request.source,
            )
            return False
        logger.info("Queued request for %d minor units from %s", request.amount_minor_units, request.source)
        return True

    async def take(self) -> PaymentRequest:
        """Wait, indefinitely, for the next request."""
        return await self._queue.get()

    def done(self) -> None:
        self._queue.task_done()
