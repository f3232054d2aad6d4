"""
CLI client — starts one payment flow directly and optionally queries it.

Bypasses the kiosk's request queue: useful for operators and for checking a
deployment end to end. A kiosk worker must be running on the same task queue.

The flow is started under the kiosk's fixed workflow id, the same one the
kiosk's own loop uses, so Temporal refuses it while the kiosk is already
taking a payment. The CLI then reports the kiosk as busy and exits 1.

Usage:
    # Charge PHP 1.00 and wait for the outcome:
    python -m qrph_kiosk.client --amount 100

    # Start, then query progress once the QR code should be out:
    python -m qrph_kiosk.client --amount 2500 --query-after 5
"""

import argparse
import asyncio
import logging
import sys

from temporalio.client import Client, WorkflowHandle
from temporalio.contrib.pydantic import pydantic_data_converter
from temporalio.exceptions import WorkflowAlreadyStartedError

from qrph_kiosk.config import KioskSettings, get_settings
from qrph_kiosk.domain.models import FlowResult, PaymentRequest
from qrph_kiosk.worker import build_flow_input
from qrph_kiosk.workflows import PaymentFlowWorkflow

logger = logging.getLogger(__name__)


async def start_payment(
    client: Client, settings: KioskSettings, request: PaymentRequest
) -> WorkflowHandle[PaymentFlowWorkflow, FlowResult] | None:
    """Start a flow on the kiosk, or return None if one is already running there."""
    logger.info("Starting workflow %s", settings.workflow_id)
    try:
        return await client.start_workflow(
            PaymentFlowWorkflow.run,
            build_flow_input(request, settings),
            id=settings.workflow_id,
            task_queue=settings.task_queue,
        )
    except WorkflowAlreadyStartedError:
        logger.warning(
            "Kiosk %s busy, not starting a payment for %d minor units",
            settings.kiosk_id,
            request.amount_minor_units,
        )
        return None


async def run_client(args: argparse.Namespace) -> int:
    settings = get_settings()
    if args.kiosk_id:
        settings = settings.model_copy(update={"kiosk_id": args.kiosk_id})
    logging.basicConfig(level=settings.log_level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    client = await Client.connect(
        settings.temporal_address,
        namespace=settings.temporal_namespace,
        data_converter=pydantic_data_converter,
    )

    request = PaymentRequest(amount_minor_units=args.amount, source="cli")
    handle = await start_payment(client, settings, request)
    if handle is None:
        return 1

    if args.query_after is not None:
        await asyncio.sleep(args.query_after)
        status = await handle.query(PaymentFlowWorkflow.get_status)
        logger.info("Query result: %s", status)

    result = await handle.result()
    print(result.model_dump_json(indent=2))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Start a kiosk payment via Temporal")
    parser.add_argument("--amount", type=int, required=True, help="Amount in minor units, e.g. 100 for PHP 1.00")
    parser.add_argument("--kiosk-id", default=None, help="Target kiosk (defaults to KIOSK_KIOSK_ID)")
    parser.add_argument("--query-after", type=float, default=None, help="Seconds to wait before querying status once")
    sys.exit(asyncio.run(run_client(parser.parse_args())))


if __name__ == "__main__":
    main()
