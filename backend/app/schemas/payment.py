"""Payment gateway wire schemas (initiate, status, complete)."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.plan import BillingCycle
from app.models.tenant_payment import IntentType


class LastPaymentError(BaseModel):
    """Structured decline/error reported by the gateway for the latest attempt."""

    code: str | None = None
    message: str | None = None
    type: str | None = None
    decline_code: str | None = None


class StatusInfo(BaseModel):
    """Gateway status normalized into orthogonal flags.

    Exactly one of ``is_successful``, ``is_pending`` and ``is_failed`` must be
    true; ``requires_action`` and ``can_retry`` qualify the outcome.
    """

    is_successful: bool = False
    is_pending: bool = False
    is_failed: bool = False
    requires_action: bool = False
    can_retry: bool = False
    status_message: str = ""

    @property
    def is_consistent(self) -> bool:
        return [self.is_successful, self.is_pending, self.is_failed].count(True) == 1


class PaymentIntentRecord(BaseModel):
    """Client-side view of a payment intent. Never fabricated locally."""

    model_config = ConfigDict(frozen=True)

    payment_intent_id: str
    status: str | None = None
    amount: int | None = None
    customer_id: str | None = None
    client_secret: str | None = None
    last_payment_error: LastPaymentError | None = None


class InitiatePaymentRequest(BaseModel):
    """Amounts are integer minor units (cents)."""

    tenant_id: UUID
    plan_id: UUID
    billing_cycle: BillingCycle
    plan_tot_amt: int = Field(..., ge=0)
    branch_addon_tot_amt: int = Field(..., ge=0)
    org_addon_tot_amt: int = Field(..., ge=0)
    tot_amt: int = Field(..., ge=0)


class InitiatePaymentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_id: str
    type: IntentType
    client_secret: str = Field(alias="clientSecret")
    payment_intent_id: str


class PaymentStatusRequest(BaseModel):
    payment_intent: str = Field(..., min_length=1)


class PaymentDetails(BaseModel):
    payment_intent_id: str
    status: str
    amount: int
    currency: str
    last_payment_error: LastPaymentError | None = None


class ChargeDetails(BaseModel):
    charge_id: str
    status: str
    amount: int
    paid: bool = False
    failure_message: str | None = None
    receipt_url: str | None = None


class PaymentStatusResponse(BaseModel):
    payment_details: PaymentDetails
    charge_details: ChargeDetails | None = None
    status_info: StatusInfo


class CompletePaymentRequest(BaseModel):
    tenant_id: UUID
    payment_intent: str = Field(..., min_length=1)


class ActivatedTenant(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tenant_id: UUID
    organization_name: str
    status: str


class CompletePaymentResponse(BaseModel):
    tenant: ActivatedTenant
