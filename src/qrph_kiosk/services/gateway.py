"""
PayMongo gateway client.

Part of the **service layer**: activities delegate here, and nothing in this
module knows about Temporal. Each call opens its own `httpx.AsyncClient`, so
no connection outlives a single request.

Failures are raised, never returned:
  - `TransportError` for a non-success status or a connection problem
  - `DecodeError` when the body is not JSON or lacks the expected field
"""

import logging
from typing import Any

import httpx

from qrph_kiosk.domain.errors import DecodeError, TransportError
from qrph_kiosk.domain.models import BillingProfile, IntentStatus

logger = logging.getLogger(__name__)


def _extract(payload: Any, *path: str) -> str:
    """Walk `path` through nested dicts and return a non-empty string."""
    node = payload
    for key in path:
        if not isinstance(node, dict) or key not in node:
            raise DecodeError(f"Response is missing {'.'.join(path)}")
        node = node[key]
    if not isinstance(node, str) or not node:
        raise DecodeError(f"Response field {'.'.join(path)} is empty or not a string")
    return node


class PayMongoClient:
    """Thin async client for the four PayMongo calls the kiosk makes."""

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.paymongo.com/v1",
        *,
        currency: str = "PHP",
        payment_rail: str = "qrph",
        capture_type: str = "automatic",
        timeout_seconds: float = 10.0,
        verify_tls: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.currency = currency
        self.payment_rail = payment_rail
        self.capture_type = capture_type
        self.timeout_seconds = timeout_seconds
        self.verify_tls = verify_tls
        self._auth = httpx.BasicAuth(secret_key, "")
        self._transport = transport
        if not verify_tls:
            logger.warning("TLS certificate verification is DISABLED for %s", self.base_url)

    def _session(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            auth=self._auth,
            timeout=self.timeout_seconds,
            verify=self.verify_tls,
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

    async def _send(self, method: str, path: str, ok: tuple[int, ...], json: dict | None = None) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            async with self._session() as client:
                response = await client.request(method, url, json=json)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if response.status_code not in ok:
            raise TransportError(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError(f"Response body is not valid JSON: {exc}") from exc

    # ── Operations ───────────────────────────────────────────────

    async def create_intent(self, amount_minor_units: int) -> str:
        """Create a payment intent for `amount_minor_units` and return its id."""
        if amount_minor_units < 1:
            raise ValueError("amount_minor_units must be a positive integer")

        payload = {
            "data": {
                "attributes": {
                    "amount": amount_minor_units,
                    "payment_method_allowed": [self.payment_rail],
                    "currency": self.currency,
                    "capture_type": self.capture_type,
                }
            }
        }
        try:
            response = await self._send("POST", "/payment_intents", ok=(200,), json=payload)
            intent_id = _extract(self._json(response), "data", "id")
        except TransportError as err:
            logger.error("Intent failed, error: %s %s", err.status_code, err.body or err)
            raise
        logger.info("Intent created: %s", intent_id)
        return intent_id

    async def create_method(self, billing: BillingProfile) -> str:
        """Create a payment method on the kiosk's rail and return its id."""
        payload = {
            "data": {
                "attributes": {
                    "type": self.payment_rail,
                    "billing": billing.model_dump(),
                }
            }
        }
        try:
            response = await self._send("POST", "/payment_methods", ok=(200, 201), json=payload)
            method_id = _extract(self._json(response), "data", "id")
        except TransportError as err:
            logger.error("Payment method creation failed: %s %s", err.status_code, err.body or err)
            raise
        logger.info("Payment method created: %s", method_id)
        return method_id

    async def attach(self, intent_id: str, method_id: str) -> str:
        """Attach the method to the intent and return the QR image URL."""
        if not intent_id or not method_id:
            raise ValueError("attach needs both an intent id and a payment method id")

        payload = {"data": {"attributes": {"payment_method": method_id}}}
        try:
            response = await self._send("POST", f"/payment_intents/{intent_id}/attach", ok=(200, 201), json=payload)
        except TransportError as err:
            logger.error("Attach failed, error: %s %s", err.status_code, err.body or err)
            raise
        try:
            qr_image_url = _extract(
                self._json(response), "data", "attributes", "next_action", "code", "image_url"
            )
        except DecodeError as err:
            logger.error("Attach response could not be parsed: %s", err)
            raise
        logger.info("QR code URL received for %s", intent_id)
        return qr_image_url

    async def fetch_status(self, intent_id: str) -> IntentStatus:
        """Read the intent's current status."""
        if not intent_id:
            raise ValueError("fetch_status needs an intent id")

        response = await self._send("GET", f"/payment_intents/{intent_id}", ok=(200,))
        raw = _extract(self._json(response), "data", "attributes", "status")
        return IntentStatus.from_gateway(raw)
