"""Initiate and status endpoints of the onboarding payment gateway."""

import logging

from sqlalchemy.orm import Session

from app.models.plan import Plan
from app.models.tenant import Tenant, TenantStatus
from app.models.tenant_payment import TenantPayment
from app.repositories.plan_repository import PlanRepository
from app.repositories.tenant_payment_repository import TenantPaymentRepository
from app.repositories.tenant_repository import TenantRepository
from app.schemas.payment import (
    ChargeDetails,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    LastPaymentError,
    PaymentDetails,
    PaymentStatusResponse,
)
from app.services.payment_provider import GatewayIntent, PaymentProviderBase, get_payment_provider
from app.services.payment_status import normalize_status
from app.services.plan_assignment import PlanAssignmentService

logger = logging.getLogger(__name__)


class PaymentRequestError(ValueError):
    """The request cannot be honoured as sent (422)."""


class PaymentConflictError(ValueError):
    """The request conflicts with the tenant's or the payment's state (409)."""


class PaymentNotFoundError(ValueError):
    pass


def last_payment_error(intent: GatewayIntent) -> LastPaymentError | None:
    if not intent.last_payment_error:
        return None
    return LastPaymentError.model_validate(intent.last_payment_error)


def build_status_response(intent: GatewayIntent) -> PaymentStatusResponse:
    """Gateway intent as the status endpoint reports it.

    Raises:
        UnknownGatewayStatusError: The intent status is not recognised.
    """
    error = last_payment_error(intent)
    charge = None
    if intent.charge is not None:
        charge = ChargeDetails(
            charge_id=intent.charge.charge_id,
            status=intent.charge.status,
            amount=intent.charge.amount_cents,
            paid=intent.charge.paid,
            failure_message=intent.charge.failure_message,
            receipt_url=intent.charge.receipt_url,
        )
    return PaymentStatusResponse(
        payment_details=PaymentDetails(
            payment_intent_id=intent.intent_id,
            status=intent.status,
            amount=intent.amount_cents,
            currency=intent.currency,
            last_payment_error=error,
        ),
        charge_details=charge,
        status_info=normalize_status(intent.status, error),
    )


class TenantPaymentService:
    def __init__(self, db: Session, provider: PaymentProviderBase | None = None):
        self.db = db
        self.provider = provider or get_payment_provider()
        self.tenant_repo = TenantRepository(db)
        self.plan_repo = PlanRepository(db)
        self.payment_repo = TenantPaymentRepository(db)
        self.assignment_service = PlanAssignmentService(db)

    def initiate(self, tenant: Tenant, data: InitiatePaymentRequest) -> InitiatePaymentResponse:
        """Create a gateway intent for the tenant's stored plan assignment.

        The submitted amounts must equal the server-side price of that
        assignment, so the client can never pay for a stale selection.

        Raises:
            PaymentConflictError: Tenant already active.
            PaymentRequestError: Unverified tenant, no assignment, or amounts
                that do not match.
            PaymentProviderError: The gateway call failed.
        """
        if tenant.status == TenantStatus.ACTIVE.value:
            raise PaymentConflictError("Tenant is already active")
        if not (tenant.email_verified and tenant.phone_verified):
            raise PaymentRequestError("Email and phone must both be verified before payment")

        assignment = self.assignment_service.get_assignment(tenant)
        if assignment is None:
            raise PaymentRequestError("Select a plan before starting payment")
        if assignment.plan_id != data.plan_id or assignment.billing_cycle != data.billing_cycle:
            raise PaymentRequestError("Payment does not match the selected plan")

        breakdown = assignment.breakdown
        submitted = (data.plan_tot_amt, data.branch_addon_tot_amt, data.org_addon_tot_amt, data.tot_amt)
        expected = (
            breakdown.plan_total_cents,
            breakdown.branch_addon_total_cents,
            breakdown.org_addon_total_cents,
            breakdown.total_cents,
        )
        if submitted != expected:
            logger.warning(
                "Amount mismatch for tenant %s: submitted %s, expected %s",
                tenant.id,
                submitted,
                expected,
            )
            raise PaymentRequestError("Submitted amounts do not match the current price")

        plan: Plan | None = self.plan_repo.get_by_id(data.plan_id)
        if plan is None:
            raise PaymentRequestError(f"Plan {data.plan_id} not found")

        customer_id = tenant.gateway_customer_id
        if not customer_id:
            customer_id = self.provider.create_customer(
                email=str(tenant.email),
                name=str(tenant.organization_name),
                metadata={"tenant_id": str(tenant.id)},
            )
            self.tenant_repo.set_gateway_customer(tenant, customer_id)

        intent = self.provider.create_payment_intent(
            amount_cents=breakdown.total_cents,
            currency=str(plan.currency),
            customer_id=str(customer_id),
            metadata={
                "tenant_id": str(tenant.id),
                "plan_id": str(plan.id),
                "billing_cycle": data.billing_cycle.value,
            },
        )
        subscription = self.assignment_service.subscription_repo.get_by_tenant_id(tenant.id)  # type: ignore[arg-type]
        self.payment_repo.create(
            tenant_id=tenant.id,  # type: ignore[arg-type]
            subscription_id=subscription.id,  # type: ignore[union-attr]
            provider=self.provider.provider_name.value,
            intent=intent,
            breakdown=breakdown,
        )
        logger.info(
            "Created %s intent %s for tenant %s (%d cents)",
            intent.intent_type.value,
            intent.intent_id,
            tenant.id,
            breakdown.total_cents,
        )
        return InitiatePaymentResponse(
            customer_id=str(customer_id),
            type=intent.intent_type,
            client_secret=intent.client_secret or "",
            payment_intent_id=intent.intent_id,
        )

    def get_payment(self, payment_intent_id: str) -> TenantPayment:
        payment = self.payment_repo.get_by_intent_id(payment_intent_id)
        if payment is None:
            raise PaymentNotFoundError(f"Payment {payment_intent_id} not found")
        return payment

    def refresh(self, payment: TenantPayment) -> GatewayIntent:
        """Fetch the intent from the gateway and store its status on the payment row."""
        intent = self.provider.retrieve_payment_intent(str(payment.payment_intent_id))
        self.payment_repo.update_status(payment, intent.status, intent.last_payment_error)
        return intent

    def status(self, payment_intent_id: str) -> PaymentStatusResponse:
        """Current gateway status of a payment, normalized.

        Raises:
            PaymentNotFoundError: No payment with this intent id.
            PaymentProviderError: The gateway call failed.
            UnknownGatewayStatusError: The gateway reported an unknown status.
        """
        payment = self.get_payment(payment_intent_id)
        intent = self.refresh(payment)
        return build_status_response(intent)
