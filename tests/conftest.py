"""
Pytest configuration and fixtures.
"""
from collections.abc import Iterator

import pytest

from qrph_kiosk.domain.models import (
    BillingAddress,
    BillingProfile,
    DisplayInput,
    FlowOptions,
    IntentStatus,
    PaymentFlowInput,
    PaymentRequest,
    UnlockInput,
)
from qrph_kiosk.services.factory import ServiceFactory


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it."""

    def __init__(self) -> None:
        self.t = 0.0
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.t

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds


class FakeSteps:
    """In-memory `PaymentSteps` that records every call.

    `statuses` is consumed one per fetch; the last entry repeats. An entry
    that is an exception instance is raised instead of returned.
    """

    def __init__(
        self,
        *,
        intent_id: str | Exception = "pi_test_123",
        method_id: str | Exception = "pm_test_456",
        qr_image_url: str | Exception = "https://qr.example/pi_test_123.png",
        statuses: list | None = None,
        display_error: Exception | None = None,
        unlock_error: Exception | None = None,
    ) -> None:
        self.intent_id = intent_id
        self.method_id = method_id
        self.qr_image_url = qr_image_url
        self.statuses = list(statuses or [IntentStatus.SUCCEEDED])
        self.display_error = display_error
        self.unlock_error = unlock_error
        self.calls: list[tuple] = []
        self.displayed: list[DisplayInput] = []
        self.unlocks: list[UnlockInput] = []

    @staticmethod
    def _give(value):
        if isinstance(value, Exception):
            raise value
        return value

    async def create_intent(self, amount_minor_units: int) -> str:
        self.calls.append(("create_intent", amount_minor_units))
        return self._give(self.intent_id)

    async def create_method(self, billing: BillingProfile) -> str:
        self.calls.append(("create_method", billing.name))
        return self._give(self.method_id)

    async def attach(self, intent_id: str, method_id: str) -> str:
        self.calls.append(("attach", intent_id, method_id))
        return self._give(self.qr_image_url)

    async def fetch_status(self, intent_id: str) -> IntentStatus:
        self.calls.append(("fetch_status", intent_id))
        value = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return self._give(value)

    async def display_qr(self, input: DisplayInput) -> None:
        self.calls.append(("display_qr", input.qr_image_url))
        self.displayed.append(input)
        if self.display_error is not None:
            raise self.display_error

    async def unlock(self, input: UnlockInput) -> None:
        self.calls.append(("unlock", input.intent_id))
        if self.unlock_error is not None:
            raise self.unlock_error
        self.unlocks.append(input)

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def billing() -> BillingProfile:
    return BillingProfile(
        name="Storage Customer",
        email="customer@example.com",
        phone="09171234567",
        address=BillingAddress(line1="123 Quezon Ave", city="Quezon City", country="PH"),
    )


@pytest.fixture
def flow_input(billing: BillingProfile) -> PaymentFlowInput:
    return PaymentFlowInput(
        request=PaymentRequest(amount_minor_units=100, source="test"),
        billing=billing,
        options=FlowOptions(poll_interval_seconds=3.0, poll_deadline_seconds=180.0),
    )


@pytest.fixture(autouse=True)
def reset_services() -> Iterator[None]:
    ServiceFactory.reset()
    yield
    ServiceFactory.reset()
