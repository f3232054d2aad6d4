"""
Display facade.

Shows the payer the QR code returned by the attach call. The kiosk here has
no screen driver, so the URL goes to the log; the last one shown is kept so
an operator console can fetch it.
"""

import logging

from qrph_kiosk.domain.models import DisplayInput

logger = logging.getLogger(__name__)


class DisplayService:
    """Presents the QR image URL to the payer."""

    def __init__(self) -> None:
        self.current: DisplayInput | None = None

    async def show_qr(self, input: DisplayInput) -> bool:
        self.current = input
        logger.info(
            "Scan to pay %s %d.%02d: %s",
            input.currency,
            input.amount_minor_units // 100,
            input.amount_minor_units % 100,
            input.qr_image_url,
        )
        return True
