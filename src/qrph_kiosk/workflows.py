"""
Temporal workflow — PaymentFlowWorkflow.

Hosts the payment state machine (`qrph_kiosk.domain.flow`) on Temporal. The
state machine itself is plain async code; this module supplies it with:
  - `ActivitySteps`, which turns each step into an activity execution;
  - `workflow.time` as the clock and `asyncio.sleep` as the sleep, which
    Temporal records as a durable timer.

Key constraints inside a workflow:
  - Must be **deterministic**: no I/O, no randomness, no system clock.
  - Use `workflow.logger` instead of the stdlib `logging` module.
"""

import asyncio
import logging
from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError, ApplicationError
from temporalio.exceptions import TimeoutError as ActivityTimeoutError

# Our modules pull in pydantic and httpx, which the sandbox would otherwise
# re-import per workflow run. Nothing here has side effects at import time.
with workflow.unsafe.imports_passed_through():
    from qrph_kiosk.activities import (
        attach_payment_method,
        create_payment_intent,
        create_payment_method,
        fetch_payment_status,
        show_qr_code,
        unlock_lock,
    )
    from qrph_kiosk.domain.errors import ERROR_TYPES, GatewayError, TransportError
    from qrph_kiosk.domain.flow import PaymentSteps, run_payment_flow
    from qrph_kiosk.domain.models import (
        AttachInput,
        BillingProfile,
        CreateIntentInput,
        CreateMethodInput,
        DisplayInput,
        FetchStatusInput,
        FlowResult,
        FlowState,
        IntentStatus,
        Outcome,
        PaymentFlowInput,
        PaymentRequest,
        UnlockInput,
    )
    from qrph_kiosk.domain.polling import Clock, Sleep


def gateway_error_from(err: ActivityError) -> GatewayError | None:
    """Recover the gateway error an activity failed with, if that is what happened."""
    cause = err.cause
    if isinstance(cause, ActivityTimeoutError):
        return TransportError(f"Activity timed out: {cause}")
    if not isinstance(cause, ApplicationError) or cause.type not in ERROR_TYPES:
        return None
    if cause.type == TransportError.__name__:
        status_code = cause.details[0] if cause.details else None
        return TransportError(cause.message, status_code=status_code)
    return ERROR_TYPES[cause.type](cause.message)


class ActivitySteps:
    """`PaymentSteps` backed by Temporal activities.

    Every step is attempted exactly once. There are no automatic retries
    for the setup calls; the poller does its own repetition.
    """

    def __init__(self, timeout: timedelta) -> None:
        self._opts = {
            "start_to_close_timeout": timeout,
            "retry_policy": RetryPolicy(maximum_attempts=1),
        }

    async def _execute(self, activity_fn, arg):
        try:
            return await workflow.execute_activity(activity_fn, arg, **self._opts)
        except ActivityError as err:
            gateway_error = gateway_error_from(err)
            if gateway_error is None:
                raise
            raise gateway_error from err

    async def create_intent(self, amount_minor_units: int) -> str:
        intent = await self._execute(create_payment_intent, CreateIntentInput(amount_minor_units=amount_minor_units))
        return intent.id

    async def create_method(self, billing: BillingProfile) -> str:
        method = await self._execute(create_payment_method, CreateMethodInput(billing=billing))
        return method.id

    async def attach(self, intent_id: str, method_id: str) -> str:
        result = await self._execute(attach_payment_method, AttachInput(intent_id=intent_id, method_id=method_id))
        return result.qr_image_url

    async def fetch_status(self, intent_id: str) -> IntentStatus:
        return await self._execute(fetch_payment_status, FetchStatusInput(intent_id=intent_id))

    async def display_qr(self, input: DisplayInput) -> None:
        await self._execute(show_qr_code, input)

    async def unlock(self, input: UnlockInput) -> None:
        await self._execute(unlock_lock, input)


async def run_flow_reporting_failures(
    flow_input: PaymentFlowInput,
    steps: PaymentSteps,
    state: FlowState,
    *,
    now: Clock,
    sleep: Sleep,
    logger: logging.Logger | logging.LoggerAdapter,
) -> FlowResult:
    """Run the flow, turning anything it raises into an ABORTED report.

    The workflow then completes instead of being marked failed by the
    server; the kiosk loop only cares about the outcome.
    """
    try:
        return await run_payment_flow(flow_input, steps, now=now, sleep=sleep, logger=logger, state=state)
    except Exception as exc:
        logger.exception("Payment flow for %d minor units failed", flow_input.request.amount_minor_units)
        return FlowResult(
            request=flow_input.request,
            outcome=Outcome.ABORTED,
            intent_id=state.intent_id,
            method_id=state.method_id,
            qr_image_url=state.qr_image_url,
            error_kind="internal",
            error_message=str(exc),
        )


@workflow.defn
class PaymentFlowWorkflow:
    """Runs one kiosk payment from intent creation to unlock or denial.

    Supports:
        - **Query** `get_status`: inspect the current stage, ids, QR URL
          and remaining polling time without affecting execution.
    """

    def __init__(self) -> None:
        self.state = FlowState()
        self.request: PaymentRequest | None = None

    @workflow.query
    def get_status(self) -> dict:
        status = self.state.model_dump(mode="json")
        status["amount_minor_units"] = self.request.amount_minor_units if self.request else None
        return status

    @workflow.run
    async def run(self, flow_input: PaymentFlowInput) -> FlowResult:
        self.request = flow_input.request
        steps = ActivitySteps(timedelta(seconds=flow_input.activity_timeout_seconds))

        return await run_flow_reporting_failures(
            flow_input,
            steps,
            self.state,
            now=workflow.time,
            sleep=asyncio.sleep,
            logger=workflow.logger,
        )
