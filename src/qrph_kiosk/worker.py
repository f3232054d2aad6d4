"""
Kiosk process — Temporal worker plus the request consumer.

One process does everything the kiosk needs:
  - a Temporal **worker** polling the "kiosk-payments" task queue, which
    executes PaymentFlowWorkflow and its activities;
  - trigger sources (a startup amount and newline-separated amounts on
    stdin, which is how a keyboard-wedge scanner or a button bridge
    shows up) that `offer()` requests into a single-slot `RequestQueue`;
  - one consumer that takes a request, runs the workflow to completion and
    reports the result before taking the next one.

Run with:
    python -m qrph_kiosk.worker --amount 100
"""

import argparse
import asyncio
import logging
import sys
import threading
from collections.abc import Awaitable, Callable
from typing import TextIO

from pydantic import ValidationError
from temporalio.client import Client, WorkflowFailureError
from temporalio.contrib.pydantic import pydantic_data_converter
from temporalio.exceptions import WorkflowAlreadyStartedError
from temporalio.worker import Worker

from qrph_kiosk.activities import ALL_ACTIVITIES
from qrph_kiosk.config import KioskSettings, get_settings
from qrph_kiosk.domain.models import FlowOptions, FlowResult, PaymentFlowInput, PaymentRequest
from qrph_kiosk.request_queue import RequestQueue
from qrph_kiosk.workflows import PaymentFlowWorkflow

logger = logging.getLogger(__name__)

FlowRunner = Callable[[PaymentRequest], Awaitable[FlowResult]]
ResultHandler = Callable[[FlowResult], None]


def log_result(result: FlowResult) -> None:
    """Default outcome report: one line per finished flow."""
    logger.info(
        "Flow finished: %s (source=%s, amount=%d, intent=%s%s)",
        result.outcome.value,
        result.request.source,
        result.request.amount_minor_units,
        result.intent_id or "-",
        f", {result.error_kind}: {result.error_message}" if result.error_kind else "",
    )


def parse_amount(line: str, source: str = "stdin") -> PaymentRequest | None:
    """Turn one trigger line into a request, or None if it is blank or invalid."""
    text = line.strip()
    if not text:
        return None
    try:
        return PaymentRequest(amount_minor_units=int(text), source=source)
    except (ValueError, ValidationError):
        logger.warning("Ignoring invalid amount %r from %s", text, source)
        return None


def build_flow_input(request: PaymentRequest, settings: KioskSettings) -> PaymentFlowInput:
    return PaymentFlowInput(
        request=request,
        billing=settings.billing_profile,
        options=FlowOptions(
            poll_interval_seconds=settings.poll_interval_seconds,
            poll_deadline_seconds=settings.poll_deadline_seconds,
            parallel_setup=settings.parallel_setup,
        ),
        currency=settings.currency,
        activity_timeout_seconds=settings.activity_timeout_seconds,
    )


def make_flow_runner(client: Client, settings: KioskSettings) -> FlowRunner:
    """Run each request as a workflow under the kiosk's fixed id and wait for the result.

    The fixed id makes Temporal refuse a second concurrent flow on this
    kiosk. If an operator started one (see `qrph_kiosk.client`), the loop
    waits for it to finish and then starts its own.
    """
    workflow_id = settings.workflow_id

    async def run_flow(request: PaymentRequest) -> FlowResult:
        flow_input = build_flow_input(request, settings)
        while True:
            logger.info("Starting workflow %s", workflow_id)
            try:
                return await client.execute_workflow(
                    PaymentFlowWorkflow.run,
                    flow_input,
                    id=workflow_id,
                    task_queue=settings.task_queue,
                )
            except WorkflowAlreadyStartedError:
                logger.warning("Workflow %s is already running, waiting for it to finish", workflow_id)
                try:
                    await client.get_workflow_handle(workflow_id).result()
                except WorkflowFailureError:
                    logger.warning("Running workflow %s failed", workflow_id)

    return run_flow


async def serve_requests(
    queue: RequestQueue,
    run_flow: FlowRunner,
    on_result: ResultHandler = log_result,
    max_requests: int | None = None,
) -> None:
    """Consume requests one at a time, forever unless `max_requests` is set.

    A flow that blows up is logged and the loop goes back to waiting.
    """
    served = 0
    while max_requests is None or served < max_requests:
        request = await queue.take()
        try:
            result = await run_flow(request)
        except Exception:
            logger.exception("Payment flow for %d minor units crashed", request.amount_minor_units)
        else:
            on_result(result)
        finally:
            queue.done()
            served += 1


def _pump_lines(stream: TextIO, loop: asyncio.AbstractEventLoop, lines: asyncio.Queue) -> None:
    """Blocking reader, run on a daemon thread. Sends "" at EOF."""
    while True:
        line = stream.readline()
        if loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(lines.put_nowait, line)
        except RuntimeError:
            # Loop closed between the check and the call; the process is exiting.
            return
        if not line:
            return


async def read_stdin_triggers(queue: RequestQueue, stream: TextIO | None = None) -> None:
    """Offer one request per line of `stream` (stdin by default) until EOF.

    The blocking reads happen on a daemon thread so shutdown never waits
    for a line that may not come.
    """
    loop = asyncio.get_running_loop()
    lines: asyncio.Queue[str] = asyncio.Queue()
    threading.Thread(
        target=_pump_lines,
        args=(stream if stream is not None else sys.stdin, loop, lines),
        name="stdin-triggers",
        daemon=True,
    ).start()
    while True:
        line = await lines.get()
        if not line:
            logger.info("stdin closed, no more triggers from it")
            return
        request = parse_amount(line)
        if request is not None:
            queue.offer(request)


async def run_kiosk(settings: KioskSettings) -> None:
    logging.basicConfig(level=settings.log_level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    # The same data_converter must be used by the client and the worker.
    client = await Client.connect(
        settings.temporal_address,
        namespace=settings.temporal_namespace,
        data_converter=pydantic_data_converter,
    )
    logger.info("Connected to Temporal — starting kiosk on queue %r", settings.task_queue)

    queue = RequestQueue()
    if settings.trigger_amount is not None:
        queue.offer(PaymentRequest(amount_minor_units=settings.trigger_amount, source="startup"))

    worker = Worker(
        client,
        task_queue=settings.task_queue,
        workflows=[PaymentFlowWorkflow],
        activities=ALL_ACTIVITIES,
    )
    async with worker:
        stdin_task = asyncio.create_task(read_stdin_triggers(queue)) if settings.read_stdin else None
        try:
            await serve_requests(queue, make_flow_runner(client, settings))
        finally:
            if stdin_task is not None:
                stdin_task.cancel()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the QR Ph payment kiosk")
    parser.add_argument("--amount", type=int, default=None, help="Amount in minor units to charge once at startup")
    parser.add_argument("--no-stdin", action="store_true", help="Do not read amounts from stdin")
    parser.add_argument("--log-level", default=None, help="Override KIOSK_LOG_LEVEL")
    args = parser.parse_args()

    updates: dict = {}
    if args.amount is not None:
        updates["trigger_amount"] = args.amount
    if args.no_stdin:
        updates["read_stdin"] = False
    if args.log_level:
        updates["log_level"] = args.log_level.upper()
    settings = get_settings().model_copy(update=updates)

    asyncio.run(run_kiosk(settings))


if __name__ == "__main__":
    main()
