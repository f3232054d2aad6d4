"""
Temporal activities — thin wrappers delegating to the service layer.

Every gateway call the flow makes is one activity. Activities run outside
the workflow sandbox, so they are where the HTTP I/O happens.

Gateway errors are re-raised as non-retryable `ApplicationError`s whose
`type` is the original exception class name ("TransportError" or
"DecodeError"). The workflow's retry policy is attempt-once anyway; marking
them non-retryable keeps that true even if someone loosens the policy.
"""

import logging

from temporalio import activity
from temporalio.exceptions import ApplicationError

from qrph_kiosk.domain.errors import GatewayError
from qrph_kiosk.domain.models import (
    AttachInput,
    AttachResult,
    CreateIntentInput,
    CreateMethodInput,
    DisplayInput,
    FetchStatusInput,
    IntentStatus,
    PaymentIntent,
    PaymentMethod,
    UnlockInput,
)
from qrph_kiosk.services.factory import ServiceFactory

logger = logging.getLogger(__name__)


def _as_application_error(err: GatewayError) -> ApplicationError:
    status_code = getattr(err, "status_code", None)
    return ApplicationError(str(err), status_code, type=type(err).__name__, non_retryable=True)


@activity.defn
async def create_payment_intent(input: CreateIntentInput) -> PaymentIntent:
    """Create the intent for the requested amount."""
    try:
        intent_id = await ServiceFactory.get_gateway_client().create_intent(input.amount_minor_units)
    except GatewayError as err:
        raise _as_application_error(err) from err
    return PaymentIntent(id=intent_id, status=IntentStatus.PENDING)


@activity.defn
async def create_payment_method(input: CreateMethodInput) -> PaymentMethod:
    try:
        method_id = await ServiceFactory.get_gateway_client().create_method(input.billing)
    except GatewayError as err:
        raise _as_application_error(err) from err
    return PaymentMethod(id=method_id)


@activity.defn
async def attach_payment_method(input: AttachInput) -> AttachResult:
    """Bind method to intent; the gateway answers with the QR Ph image URL."""
    try:
        qr_image_url = await ServiceFactory.get_gateway_client().attach(input.intent_id, input.method_id)
    except GatewayError as err:
        raise _as_application_error(err) from err
    return AttachResult(qr_image_url=qr_image_url)


@activity.defn
async def fetch_payment_status(input: FetchStatusInput) -> IntentStatus:
    try:
        return await ServiceFactory.get_gateway_client().fetch_status(input.intent_id)
    except GatewayError as err:
        raise _as_application_error(err) from err


@activity.defn
async def show_qr_code(input: DisplayInput) -> bool:
    return await ServiceFactory.get_display_service().show_qr(input)


@activity.defn
async def unlock_lock(input: UnlockInput) -> bool:
    """Fire the lock actuator. Scheduled at most once per flow."""
    logger.info("Activity unlock_lock started for intent %s", input.intent_id)
    result = await ServiceFactory.get_lock_service().unlock(input)
    logger.info("Activity unlock_lock completed for intent %s", input.intent_id)
    return result


ALL_ACTIVITIES = [
    create_payment_intent,
    create_payment_method,
    attach_payment_method,
    fetch_payment_status,
    show_qr_code,
    unlock_lock,
]
