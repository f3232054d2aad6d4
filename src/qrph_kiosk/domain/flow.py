"""
The payment flow state machine.

    Start → CreateIntent → CreateMethod → Attach → Poll → {Unlock | Deny} → Done
                     \\error        \\error    \\error
                      └──────────────┴────────────┴──→ Aborted → Done

The flow only knows the `PaymentSteps` protocol. `PaymentFlowWorkflow`
implements it with Temporal activities; tests implement it with fakes.
"""

import asyncio
import logging
from typing import Protocol

from qrph_kiosk.domain.errors import DecodeError, GatewayError
from qrph_kiosk.domain.models import (
    BillingProfile,
    DisplayInput,
    FlowResult,
    FlowState,
    IntentStatus,
    Outcome,
    PaymentFlowInput,
    PollResult,
    Stage,
    UnlockInput,
)
from qrph_kiosk.domain.polling import Clock, Sleep, poll_until_terminal

module_logger = logging.getLogger(__name__)


class PaymentSteps(Protocol):
    """The side-effecting operations the flow sequences."""

    async def create_intent(self, amount_minor_units: int) -> str: ...

    async def create_method(self, billing: BillingProfile) -> str: ...

    async def attach(self, intent_id: str, method_id: str) -> str: ...

    async def fetch_status(self, intent_id: str) -> IntentStatus: ...

    async def display_qr(self, input: DisplayInput) -> None: ...

    async def unlock(self, input: UnlockInput) -> None: ...


async def _create_both(
    steps: PaymentSteps, flow_input: PaymentFlowInput, state: FlowState
) -> tuple[str, str]:
    """Run create-intent and create-method concurrently; any failure wins.

    On failure `state.stage` names the call that raised.
    """
    state.stage = Stage.CREATE_INTENT
    intent_id, method_id = await asyncio.gather(
        steps.create_intent(flow_input.request.amount_minor_units),
        steps.create_method(flow_input.billing),
        return_exceptions=True,
    )
    for stage, result in ((Stage.CREATE_INTENT, intent_id), (Stage.CREATE_METHOD, method_id)):
        if isinstance(result, BaseException):
            state.stage = stage
            raise result
    return intent_id, method_id


async def run_payment_flow(
    flow_input: PaymentFlowInput,
    steps: PaymentSteps,
    *,
    now: Clock,
    sleep: Sleep,
    logger: logging.Logger | logging.LoggerAdapter = module_logger,
    state: FlowState | None = None,
) -> FlowResult:
    """Drive one payment request to a terminal outcome.

    Setup failures (`GatewayError`) abort the flow and are reported in the
    result. Anything else propagates to the caller.
    """
    state = state if state is not None else FlowState()
    request = flow_input.request
    options = flow_input.options

    def finish(outcome: Outcome, **extra) -> FlowResult:
        state.stage = Stage.DONE
        return FlowResult(
            request=request,
            outcome=outcome,
            intent_id=state.intent_id,
            method_id=state.method_id,
            qr_image_url=state.qr_image_url,
            **extra,
        )

    logger.info("Starting payment flow for %d minor units (source=%s)", request.amount_minor_units, request.source)

    try:
        if options.parallel_setup:
            state.intent_id, state.method_id = await _create_both(steps, flow_input, state)
        else:
            state.stage = Stage.CREATE_INTENT
            state.intent_id = await steps.create_intent(request.amount_minor_units)
            state.stage = Stage.CREATE_METHOD
            state.method_id = await steps.create_method(flow_input.billing)

        if not state.intent_id or not state.method_id:
            raise DecodeError("Gateway returned an empty intent or payment method id")

        state.stage = Stage.ATTACH
        state.qr_image_url = await steps.attach(state.intent_id, state.method_id)
        if not state.qr_image_url:
            raise DecodeError("Attach returned no QR image URL")
    except GatewayError as err:
        logger.error("Payment flow aborted at %s (%s): %s", state.stage.value, err.kind, err)
        state.stage = Stage.ABORTED
        return finish(Outcome.ABORTED, error_kind=err.kind, error_message=str(err))

    logger.info("Scan this QR code to pay: %s", state.qr_image_url)
    try:
        await steps.display_qr(
            DisplayInput(
                intent_id=state.intent_id,
                qr_image_url=state.qr_image_url,
                amount_minor_units=request.amount_minor_units,
                currency=flow_input.currency,
            )
        )
    except Exception:
        # The URL is already in the log; the payer can still be served.
        logger.warning("Could not display QR code for %s", state.intent_id, exc_info=True)

    state.stage = Stage.POLL
    poll_result = await poll_until_terminal(
        steps.fetch_status,
        state.intent_id,
        interval=options.poll_interval_seconds,
        deadline=options.poll_deadline_seconds,
        now=now,
        sleep=sleep,
        logger=logger,
        state=state,
    )

    if poll_result is PollResult.SUCCEEDED:
        state.stage = Stage.UNLOCK
        logger.info("ACTION: Unlocking storage box for %s", state.intent_id)
        await steps.unlock(UnlockInput(intent_id=state.intent_id, amount_minor_units=request.amount_minor_units))
        return finish(Outcome.UNLOCKED, poll_result=poll_result)

    state.stage = Stage.DENY
    logger.info("ACTION: Payment %s for %s, box stays locked", poll_result.value, state.intent_id)
    return finish(Outcome.DENIED, poll_result=poll_result)
