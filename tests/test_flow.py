"""Unit tests for the payment flow state machine."""

import pytest

from qrph_kiosk.domain.errors import DecodeError, TransportError
from qrph_kiosk.domain.flow import run_payment_flow
from qrph_kiosk.domain.models import (
    FlowOptions,
    FlowState,
    IntentStatus,
    Outcome,
    PaymentRequest,
    PollResult,
    Stage,
)

from conftest import FakeSteps


async def _run(flow_input, steps, clock, state=None):
    return await run_payment_flow(flow_input, steps, now=clock.now, sleep=clock.sleep, state=state)


class TestHappyPath:

    @pytest.mark.asyncio
    async def test_paid_on_first_poll_unlocks(self, flow_input, clock) -> None:
        steps = FakeSteps(statuses=[IntentStatus.SUCCEEDED])

        result = await _run(flow_input, steps, clock)

        assert result.outcome is Outcome.UNLOCKED
        assert result.poll_result is PollResult.SUCCEEDED
        assert result.intent_id == "pi_test_123"
        assert result.method_id == "pm_test_456"
        assert result.qr_image_url == "https://qr.example/pi_test_123.png"
        assert steps.names() == [
            "create_intent",
            "create_method",
            "attach",
            "display_qr",
            "fetch_status",
            "unlock",
        ]
        assert steps.calls[0] == ("create_intent", 100)
        assert [u.intent_id for u in steps.unlocks] == ["pi_test_123"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [1, 100, 2500, 999_999])
    async def test_amount_is_passed_through_unmodified(self, flow_input, clock, amount) -> None:
        flow_input.request = PaymentRequest(amount_minor_units=amount)
        steps = FakeSteps()

        await _run(flow_input, steps, clock)

        assert steps.calls[0] == ("create_intent", amount)
        assert steps.unlocks[0].amount_minor_units == amount

    @pytest.mark.asyncio
    async def test_state_ends_done(self, flow_input, clock) -> None:
        state = FlowState()

        await _run(flow_input, FakeSteps(), clock, state=state)

        assert state.stage is Stage.DONE
        assert state.intent_id == "pi_test_123"


class TestAborts:

    @pytest.mark.asyncio
    async def test_intent_http_400_aborts_before_method(self, flow_input, clock) -> None:
        steps = FakeSteps(intent_id=TransportError("HTTP 400", status_code=400))

        result = await _run(flow_input, steps, clock)

        assert result.outcome is Outcome.ABORTED
        assert result.error_kind == "transport"
        assert steps.names() == ["create_intent"]
        assert steps.unlocks == []

    @pytest.mark.asyncio
    async def test_method_failure_aborts_before_attach(self, flow_input, clock) -> None:
        steps = FakeSteps(method_id=TransportError("HTTP 422", status_code=422))

        result = await _run(flow_input, steps, clock)

        assert result.outcome is Outcome.ABORTED
        assert steps.names() == ["create_intent", "create_method"]

    @pytest.mark.asyncio
    async def test_malformed_attach_body_never_polls(self, flow_input, clock) -> None:
        steps = FakeSteps(qr_image_url=DecodeError("Response body is not valid JSON"))

        result = await _run(flow_input, steps, clock)

        assert result.outcome is Outcome.ABORTED
        assert result.error_kind == "decode"
        assert "fetch_status" not in steps.names()
        assert steps.unlocks == []

    @pytest.mark.asyncio
    async def test_empty_qr_url_aborts(self, flow_input, clock) -> None:
        steps = FakeSteps(qr_image_url="")

        result = await _run(flow_input, steps, clock)

        assert result.outcome is Outcome.ABORTED
        assert "fetch_status" not in steps.names()

    @pytest.mark.asyncio
    async def test_empty_method_id_never_attaches(self, flow_input, clock) -> None:
        steps = FakeSteps(method_id="")

        result = await _run(flow_input, steps, clock)

        assert result.outcome is Outcome.ABORTED
        assert "attach" not in steps.names()

    @pytest.mark.asyncio
    async def test_aborted_state(self, flow_input, clock) -> None:
        state = FlowState()

        await _run(flow_input, FakeSteps(intent_id=TransportError("down")), clock, state=state)

        assert state.stage is Stage.DONE
        assert state.intent_id == ""


class TestDenials:

    @pytest.mark.asyncio
    async def test_never_terminal_times_out_and_denies(self, flow_input, clock) -> None:
        steps = FakeSteps(statuses=[IntentStatus.PENDING])

        result = await _run(flow_input, steps, clock)

        assert result.outcome is Outcome.DENIED
        assert result.poll_result is PollResult.TIMED_OUT
        assert steps.unlocks == []
        assert clock.t <= 183.0

    @pytest.mark.asyncio
    async def test_cancel_on_second_attempt_denies(self, flow_input, clock) -> None:
        steps = FakeSteps(statuses=[IntentStatus.PENDING, IntentStatus.CANCELLED])

        result = await _run(flow_input, steps, clock)

        assert result.outcome is Outcome.DENIED
        assert result.poll_result is PollResult.CANCELLED
        assert steps.names().count("fetch_status") == 2
        assert steps.unlocks == []


class TestParallelSetup:

    @pytest.mark.asyncio
    async def test_parallel_setup_unlocks(self, flow_input, clock) -> None:
        flow_input.options = FlowOptions(parallel_setup=True)
        steps = FakeSteps()

        result = await _run(flow_input, steps, clock)

        assert result.outcome is Outcome.UNLOCKED
        assert set(steps.names()[:2]) == {"create_intent", "create_method"}

    @pytest.mark.asyncio
    async def test_parallel_setup_discards_other_result_on_failure(self, flow_input, clock) -> None:
        flow_input.options = FlowOptions(parallel_setup=True)
        steps = FakeSteps(intent_id=TransportError("HTTP 400", status_code=400))

        result = await _run(flow_input, steps, clock)

        assert result.outcome is Outcome.ABORTED
        assert result.method_id == ""
        assert "attach" not in steps.names()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "failing, stage",
        [("intent_id", "create_intent"), ("method_id", "create_method")],
    )
    async def test_parallel_abort_names_the_call_that_failed(self, flow_input, clock, caplog, failing, stage) -> None:
        flow_input.options = FlowOptions(parallel_setup=True)
        steps = FakeSteps(**{failing: TransportError("HTTP 500", status_code=500)})

        with caplog.at_level("ERROR", logger="qrph_kiosk.domain.flow"):
            result = await _run(flow_input, steps, clock)

        assert result.outcome is Outcome.ABORTED
        assert f"Payment flow aborted at {stage} (transport)" in caplog.text


@pytest.mark.asyncio
async def test_display_failure_does_not_stop_payment(flow_input, clock) -> None:
    steps = FakeSteps(display_error=RuntimeError("screen unplugged"))

    result = await _run(flow_input, steps, clock)

    assert result.outcome is Outcome.UNLOCKED


@pytest.mark.asyncio
async def test_display_shows_configured_currency(flow_input, clock) -> None:
    flow_input.currency = "USD"
    steps = FakeSteps()

    await _run(flow_input, steps, clock)

    assert [(d.currency, d.amount_minor_units) for d in steps.displayed] == [("USD", 100)]
