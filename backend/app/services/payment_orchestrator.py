"""Drives the payment lifecycle against the onboarding API.

Every network step is caller driven: the UI awaits one call before issuing
the next, and a call made while another is in flight is ignored rather than
fired in parallel. Two racing completion calls are the failure this guards
against.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID, uuid4

from app.core.config import settings
from app.models.plan import BillingCycle
from app.schemas.onboarding import PriceBreakdown
from app.schemas.payment import (
    CompletePaymentResponse,
    InitiatePaymentResponse,
    LastPaymentError,
    PaymentIntentRecord,
    PaymentStatusResponse,
)
from app.services.addon_selection import AddonSelectionStore
from app.services.onboarding_client import GatewayError, GatewayResponseError
from app.services.payment_lifecycle import (
    ClientConfirmed,
    ClientDeclined,
    CompleteRequested,
    CompletionAcknowledged,
    CompletionFailed,
    Failed,
    FailureKind,
    IllegalTransitionError,
    InitiateRequested,
    IntentCreated,
    PaymentEvent,
    PaymentFailure,
    PaymentPhase,
    PaymentState,
    PollFailed,
    Resumed,
    RetryWithNewPaymentMethod,
    SelectionChanged,
    StatusPolled,
    allows,
    transition,
)

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    async def initiate_payment(
        self,
        tenant_id: UUID,
        plan_id: UUID,
        billing_cycle: BillingCycle,
        breakdown: PriceBreakdown,
        idempotency_key: str | None = None,
    ) -> InitiatePaymentResponse: ...

    async def payment_status(self, payment_intent_id: str) -> PaymentStatusResponse: ...

    async def complete_payment(
        self, tenant_id: UUID, payment_intent_id: str
    ) -> CompletePaymentResponse: ...


class PaymentValidationError(ValueError):
    """Initiate inputs are inconsistent; nothing was sent to the gateway."""


@dataclass(frozen=True)
class PaymentSnapshot:
    """Pricing inputs captured at Initiate time."""

    plan_id: UUID
    billing_cycle: BillingCycle
    breakdown: PriceBreakdown
    selection_revision: int | None


def _gateway_failure(exc: GatewayError) -> PaymentFailure:
    if isinstance(exc, GatewayResponseError):
        kind = FailureKind.CONSISTENCY
    elif exc.retryable:
        kind = FailureKind.GATEWAY
    else:
        kind = FailureKind.VALIDATION
    return PaymentFailure(
        kind=kind,
        message=exc.message,
        retryable=exc.retryable,
        code=str(exc.status_code) if exc.status_code else None,
    )


class PaymentOrchestrator:
    """One onboarding session's payment flow.

    ``state`` is only ever replaced through ``transition``. When a selection
    store is given, its revision is captured at Initiate; a later change to
    the selection invalidates the in-flight intent.
    """

    def __init__(
        self,
        gateway: PaymentGateway,
        tenant_id: UUID,
        selection: AddonSelectionStore | None = None,
        max_attempts: int | None = None,
        max_complete_attempts: int | None = None,
    ):
        self.gateway = gateway
        self.tenant_id = tenant_id
        self.selection = selection
        self.max_attempts = max_attempts or settings.PAYMENT_MAX_ATTEMPTS
        self.max_complete_attempts = max_complete_attempts or settings.PAYMENT_COMPLETE_MAX_ATTEMPTS
        self.state = PaymentState()
        self.snapshot: PaymentSnapshot | None = None
        self.attempt = 0
        self.idempotency_key: str | None = None
        self._lock = asyncio.Lock()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    def _apply(self, event: PaymentEvent) -> PaymentState:
        previous = self.state.phase
        self.state = transition(self.state, event)
        if self.state.phase != previous:
            logger.debug("Payment %s -> %s", previous.value, self.state.phase.value)
        if self.state.phase == PaymentPhase.ERROR and self.state.failure is not None:
            if self.state.failure.kind == FailureKind.CONSISTENCY:
                logger.error(
                    "Payment consistency failure for tenant %s: %s",
                    self.tenant_id,
                    self.state.failure.message,
                )
        return self.state

    def _fail_unexpected(self, operation: str) -> None:
        logger.exception("Unexpected error during payment %s for tenant %s", operation, self.tenant_id)
        if not self.state.is_terminal:
            self._apply(
                Failed(
                    PaymentFailure(
                        kind=FailureKind.CONSISTENCY,
                        message=f"Payment {operation} failed unexpectedly. Please contact support.",
                    )
                )
            )

    def _ignore_duplicate(self, operation: str) -> bool:
        if self._lock.locked():
            logger.warning(
                "Ignoring %s for tenant %s: a payment call is already in flight",
                operation,
                self.tenant_id,
            )
            return True
        return False

    def _check_selection(self) -> None:
        if self.selection is None or self.snapshot is None or self.state.is_terminal:
            return
        if self.snapshot.selection_revision != self.selection.revision:
            logger.warning("Plan selection changed after payment initiation for tenant %s", self.tenant_id)
            self.invalidate_selection()

    def invalidate_selection(self) -> PaymentState:
        """The plan, branch count or add-ons changed since Initiate."""
        if self.state.is_terminal:
            return self.state
        self._apply(SelectionChanged())
        if self.state.phase == PaymentPhase.NOT_STARTED:
            self.snapshot = None
        return self.state

    async def initiate(
        self,
        breakdown: PriceBreakdown,
        plan_id: UUID,
        billing_cycle: BillingCycle,
    ) -> PaymentState:
        """Request a payment intent for the current selection.

        Raises:
            PaymentValidationError: The breakdown does not add up.
            IllegalTransitionError: Initiate is not allowed in the current phase.
        """
        if self._ignore_duplicate("initiate"):
            return self.state

        components = (
            breakdown.plan_total_cents,
            breakdown.branch_addon_total_cents,
            breakdown.org_addon_total_cents,
        )
        if any(amount < 0 for amount in components) or sum(components) != breakdown.total_cents:
            raise PaymentValidationError("Price breakdown does not add up to the total")

        async with self._lock:
            if not allows(self.state, InitiateRequested):
                raise IllegalTransitionError(self.state.phase, InitiateRequested())
            if self.attempt >= self.max_attempts:
                logger.warning("Payment attempts exhausted for tenant %s", self.tenant_id)
                return self._apply(
                    Failed(
                        PaymentFailure(
                            kind=FailureKind.GATEWAY,
                            message="Too many payment attempts. Please contact support.",
                        )
                    )
                )

            self._apply(InitiateRequested())
            self.attempt += 1
            # Unique per attempt; a reloaded session must never reuse an earlier key.
            self.idempotency_key = f"initiate:{self.tenant_id}:{uuid4()}"
            self.snapshot = PaymentSnapshot(
                plan_id=plan_id,
                billing_cycle=billing_cycle,
                breakdown=breakdown,
                selection_revision=self.selection.revision if self.selection else None,
            )

            try:
                response = await self.gateway.initiate_payment(
                    self.tenant_id,
                    plan_id,
                    billing_cycle,
                    breakdown,
                    idempotency_key=self.idempotency_key,
                )
            except GatewayError as exc:
                logger.warning("Payment initiation failed for tenant %s: %s", self.tenant_id, exc)
                return self._apply(Failed(_gateway_failure(exc)))
            except Exception:
                self._fail_unexpected("initiation")
                raise

            # The amount is filled in by the first status poll.
            intent = PaymentIntentRecord(
                payment_intent_id=response.payment_intent_id,
                customer_id=response.customer_id,
                client_secret=response.client_secret,
            )
            logger.info(
                "Payment intent %s created for tenant %s", intent.payment_intent_id, self.tenant_id
            )
            return self._apply(IntentCreated(intent))

    def record_client_confirmation(
        self,
        confirmed: bool,
        error: LastPaymentError | None = None,
    ) -> PaymentState:
        """Outcome of the gateway's client-side confirmation of the client secret."""
        if self._ignore_duplicate("client confirmation"):
            return self.state
        self._check_selection()
        if self.state.phase == PaymentPhase.NOT_STARTED:
            return self.state
        if confirmed:
            return self._apply(ClientConfirmed())
        return self._apply(ClientDeclined(error))

    async def poll(self) -> PaymentState:
        """Fetch the gateway status of the current intent once."""
        if self._ignore_duplicate("status poll"):
            return self.state
        self._check_selection()
        if not allows(self.state, StatusPolled):
            return self.state

        async with self._lock:
            intent_id = self.state.intent_id
            try:
                response = await self.gateway.payment_status(intent_id)
            except GatewayError as exc:
                logger.warning("Status poll for %s failed: %s", intent_id, exc)
                return self._apply(PollFailed(_gateway_failure(exc)))
            except Exception:
                self._fail_unexpected("status check")
                raise

            details = response.payment_details
            previous = self.state.intent
            intent = PaymentIntentRecord(
                payment_intent_id=details.payment_intent_id,
                status=details.status,
                amount=details.amount,
                customer_id=previous.customer_id if previous else None,
                client_secret=previous.client_secret if previous else None,
                last_payment_error=details.last_payment_error,
            )
            return self._apply(
                StatusPolled(
                    intent_id=details.payment_intent_id,
                    status_info=response.status_info,
                    intent=intent,
                )
            )

    async def complete(self) -> PaymentState:
        """Ask the backend to activate the tenant for the verified intent.

        Raises:
            IllegalTransitionError: No poll has reported success for the
                current intent.
        """
        if self._ignore_duplicate("completion"):
            return self.state
        self._check_selection()
        if not allows(self.state, CompleteRequested):
            logger.error(
                "Completion requested for tenant %s in phase %s",
                self.tenant_id,
                self.state.phase.value,
            )
        # Raises for any phase other than SUCCEEDED.
        self._apply(CompleteRequested(intent_id=self.state.intent_id))
        if self.state.phase != PaymentPhase.COMPLETING:
            return self.state

        async with self._lock:
            intent_id = self.state.verified_intent_id
            try:
                response = await self.gateway.complete_payment(self.tenant_id, intent_id)
            except GatewayError as exc:
                logger.warning(
                    "Completion of %s failed (attempt %d): %s",
                    intent_id,
                    self.state.completion_attempts,
                    exc,
                )
                return self._apply(CompletionFailed(_gateway_failure(exc), self.max_complete_attempts))
            except Exception:
                self._fail_unexpected("completion")
                raise

            tenant = response.tenant
            if tenant.status != "active":
                return self._apply(
                    CompletionFailed(
                        PaymentFailure(
                            kind=FailureKind.CONSISTENCY,
                            message="Payment was accepted but the account was not activated.",
                        ),
                        self.max_complete_attempts,
                    )
                )
            logger.info("Tenant %s activated with payment %s", tenant.tenant_id, intent_id)
            return self._apply(CompletionAcknowledged(tenant))

    def retry_with_new_payment_method(self) -> PaymentState:
        """Return a recoverable failure to confirmation on the same intent."""
        if self._ignore_duplicate("retry"):
            return self.state
        return self._apply(RetryWithNewPaymentMethod())

    def start_new_attempt(self) -> PaymentState:
        """Reset an errored flow so a fresh Initiate can run, within the attempt bound."""
        if self.state.phase != PaymentPhase.ERROR:
            return self.state
        if self.attempt >= self.max_attempts:
            logger.warning("Payment attempts exhausted for tenant %s", self.tenant_id)
            return self.state
        self.state = PaymentState()
        self.snapshot = None
        return self.state

    def resume(self, payment_intent_id: str) -> PaymentState:
        """Continue polling an intent created earlier, e.g. after a reload."""
        return self._apply(Resumed(payment_intent_id))
