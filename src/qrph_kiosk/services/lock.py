"""
Lock actuator facade.

The kiosk's only physical output: one "unlock" signal per paid flow. This
facade logs the signal and counts it; wiring it to a relay or GPIO pin is a
matter of subclassing and overriding `_release`.
"""

import logging

from qrph_kiosk.domain.models import UnlockInput

logger = logging.getLogger(__name__)


class LockService:
    """Releases the storage-box lock."""

    def __init__(self) -> None:
        self.unlock_count = 0
        self.last_intent_id: str | None = None

    async def unlock(self, input: UnlockInput) -> bool:
        logger.info("Unlocking storage box for intent %s (%d minor units)", input.intent_id, input.amount_minor_units)
        await self._release()
        self.unlock_count += 1
        self.last_intent_id = input.intent_id
        return True

    async def _release(self) -> None:
        logger.info("LOCK: released")
