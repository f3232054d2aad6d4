"""
Status polling with a wall-clock deadline.

The clock and the sleep are injected. Inside a workflow they are
`workflow.time` and `asyncio.sleep` (which Temporal turns into a durable
timer); in tests they are a fake clock that advances when slept on.

The deadline is absolute, computed once when polling starts, and is only
checked between fetches. A single slow fetch can therefore overrun it by
at most its own duration.
"""

import logging
from collections.abc import Awaitable, Callable

from qrph_kiosk.domain.errors import GatewayError
from qrph_kiosk.domain.models import FlowState, IntentStatus, PollResult

module_logger = logging.getLogger(__name__)

FetchStatus = Callable[[str], Awaitable[IntentStatus]]
Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


async def poll_until_terminal(
    fetch_status: FetchStatus,
    intent_id: str,
    *,
    interval: float,
    deadline: float,
    now: Clock,
    sleep: Sleep,
    logger: logging.Logger | logging.LoggerAdapter = module_logger,
    state: FlowState | None = None,
) -> PollResult:
    """Fetch the intent status every `interval` seconds until it is terminal.

    Returns SUCCEEDED or CANCELLED as soon as the gateway reports it, or
    TIMED_OUT once `deadline` seconds have passed since the first call.
    A failed fetch is logged and treated like a non-terminal status.
    """
    if not intent_id:
        raise ValueError("Cannot poll without an intent id")

    started = now()
    ends_at = started + deadline
    attempt = 0

    while now() < ends_at:
        attempt += 1
        remaining = ends_at - now()
        if state is not None:
            state.poll_attempts = attempt
            state.seconds_remaining = remaining
        logger.info("Checking payment status for %s... [%ds remaining]", intent_id, int(remaining))

        try:
            status = await fetch_status(intent_id)
        except GatewayError as err:
            logger.warning("Polling %s failed (%s): %s", intent_id, err.kind, err)
        else:
            logger.info("Payment status for %s: %s", intent_id, status.value)
            if status.is_terminal:
                return PollResult(status.value)

        await sleep(interval)

    logger.info("Polling %s timed out after %d attempts", intent_id, attempt)
    if state is not None:
        state.seconds_remaining = 0.0
    return PollResult.TIMED_OUT
