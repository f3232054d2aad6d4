"""
Domain models for the kiosk payment flow.

All models use Pydantic v2 BaseModel so they validate on construction and
travel through Temporal as JSON via the pydantic_data_converter configured
on both the client and the worker.

Enums inherit from (str, Enum) so they serialize as plain strings in JSON
(e.g. "succeeded" instead of {"value": "succeeded"}).
"""

from enum import Enum

from pydantic import BaseModel, Field


class IntentStatus(str, Enum):
    """Payment intent status as reported by the gateway, reduced to what the flow needs."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    OTHER = "other"  # awaiting_payment_method, processing, ... anything else

    @classmethod
    def from_gateway(cls, raw: str | None) -> "IntentStatus":
        if raw in ("pending", "succeeded", "cancelled"):
            return cls(raw)
        return cls.OTHER

    @property
    def is_terminal(self) -> bool:
        return self in (IntentStatus.SUCCEEDED, IntentStatus.CANCELLED)


class PollResult(str, Enum):
    """How polling ended."""

    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


class Outcome(str, Enum):
    """Terminal outcome of one payment flow."""

    UNLOCKED = "unlocked"  # Paid, lock released
    DENIED = "denied"      # Cancelled by the payer or polling timed out
    ABORTED = "aborted"    # A setup call failed before polling began


class Stage(str, Enum):
    """Where a running flow currently is. Exposed through the workflow query."""

    START = "start"
    CREATE_INTENT = "create_intent"
    CREATE_METHOD = "create_method"
    ATTACH = "attach"
    POLL = "poll"
    UNLOCK = "unlock"
    DENY = "deny"
    ABORTED = "aborted"
    DONE = "done"


# ── Flow input / output ──────────────────────────────────────────────


class PaymentRequest(BaseModel):
    """One request for payment, produced by a trigger and consumed by the flow."""

    amount_minor_units: int = Field(..., ge=1)  # 100 = PHP 1.00
    source: str = "unknown"                     # Trigger origin, e.g. "startup", "stdin"


class BillingAddress(BaseModel):
    line1: str
    city: str
    country: str = Field(..., min_length=2, max_length=2)


class BillingProfile(BaseModel):
    """Billing details sent with every payment method the kiosk creates."""

    name: str
    email: str
    phone: str
    address: BillingAddress


class FlowOptions(BaseModel):
    """Timing knobs for a single flow. Chosen by the kiosk, fixed for the run."""

    poll_interval_seconds: float = Field(default=3.0, gt=0)
    poll_deadline_seconds: float = Field(default=180.0, gt=0)
    parallel_setup: bool = False


class PaymentFlowInput(BaseModel):
    """Input to `PaymentFlowWorkflow.run()`."""

    request: PaymentRequest
    billing: BillingProfile
    options: FlowOptions = FlowOptions()
    currency: str = "PHP"
    activity_timeout_seconds: float = Field(default=15.0, gt=0)


class FlowState(BaseModel):
    """Mutable progress snapshot, updated as the flow advances."""

    stage: Stage = Stage.START
    intent_id: str = ""
    method_id: str = ""
    qr_image_url: str = ""
    poll_attempts: int = 0
    seconds_remaining: float | None = None


class FlowResult(BaseModel):
    """Terminal report handed back to whoever triggered the payment."""

    request: PaymentRequest
    outcome: Outcome
    intent_id: str = ""
    method_id: str = ""
    qr_image_url: str = ""
    poll_result: PollResult | None = None
    error_kind: str | None = None     # "transport", "decode" or "internal"
    error_message: str | None = None


# ── Gateway records ──────────────────────────────────────────────────


class PaymentIntent(BaseModel):
    id: str = Field(..., min_length=1)
    status: IntentStatus = IntentStatus.OTHER


class PaymentMethod(BaseModel):
    id: str = Field(..., min_length=1)


class AttachResult(BaseModel):
    qr_image_url: str = Field(..., min_length=1)


# ── Activity payload models ──────────────────────────────────────────


class CreateIntentInput(BaseModel):
    amount_minor_units: int = Field(..., ge=1)


class CreateMethodInput(BaseModel):
    billing: BillingProfile


class AttachInput(BaseModel):
    intent_id: str = Field(..., min_length=1)
    method_id: str = Field(..., min_length=1)


class FetchStatusInput(BaseModel):
    intent_id: str = Field(..., min_length=1)


class DisplayInput(BaseModel):
    intent_id: str
    qr_image_url: str
    amount_minor_units: int
    currency: str = "PHP"


class UnlockInput(BaseModel):
    intent_id: str
    amount_minor_units: int
