"""Tenant activation on a verified successful payment.

Completion is idempotent per payment intent: repeating it with the intent
that activated the tenant returns the active tenant and writes nothing. The
``pending -> active`` flip is a conditional UPDATE, so two racing requests
cannot both activate.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.shared import utc_now
from app.models.tenant import Tenant, TenantStatus
from app.repositories.plan_repository import PlanRepository
from app.repositories.tenant_payment_repository import TenantPaymentRepository
from app.repositories.tenant_repository import TenantRepository
from app.repositories.tenant_subscription_repository import TenantSubscriptionRepository
from app.schemas.payment import ActivatedTenant
from app.services.payment_provider import PaymentProviderBase
from app.services.tenant_payment_service import (
    PaymentConflictError,
    PaymentNotFoundError,
    TenantPaymentService,
)

logger = logging.getLogger(__name__)


@dataclass
class ActivationResult:
    tenant: ActivatedTenant
    newly_activated: bool
    amount_cents: int = 0
    currency: str = ""
    plan_name: str = ""


def _activated(tenant: Tenant) -> ActivatedTenant:
    return ActivatedTenant(
        tenant_id=tenant.id,
        organization_name=tenant.organization_name,
        status=tenant.status,
    )


class TenantActivationService:
    def __init__(self, db: Session, provider: PaymentProviderBase | None = None):
        self.db = db
        self.payments = TenantPaymentService(db, provider)
        self.tenant_repo = TenantRepository(db)
        self.payment_repo = TenantPaymentRepository(db)
        self.subscription_repo = TenantSubscriptionRepository(db)
        self.plan_repo = PlanRepository(db)

    def _replay_or_conflict(self, tenant: Tenant, payment_intent_id: str) -> ActivationResult:
        if tenant.activation_payment_intent_id == payment_intent_id:
            return ActivationResult(tenant=_activated(tenant), newly_activated=False)
        raise PaymentConflictError("Tenant is already active with a different payment")

    def complete(self, tenant: Tenant, payment_intent_id: str) -> ActivationResult:
        """Activate ``tenant`` for a successful payment intent.

        Raises:
            PaymentNotFoundError: The intent is not a payment of this tenant.
            PaymentConflictError: The payment did not succeed, was superseded,
                or the tenant was activated by another payment.
            PaymentProviderError: The gateway call failed.
        """
        if tenant.status == TenantStatus.ACTIVE.value:
            return self._replay_or_conflict(tenant, payment_intent_id)

        payment = self.payment_repo.get_by_intent_id(payment_intent_id)
        if payment is None or payment.tenant_id != tenant.id:
            raise PaymentNotFoundError(f"Payment {payment_intent_id} not found")
        if payment.superseded_at is not None:
            raise PaymentConflictError("Payment was superseded by a newer plan selection")

        intent = self.payments.refresh(payment)
        if intent.status != "succeeded":
            raise PaymentConflictError(f"Payment has not succeeded (status: {intent.status})")

        now = utc_now()
        try:
            activated = self.tenant_repo.activate_if_pending(tenant.id, payment_intent_id, now)  # type: ignore[arg-type]
            if activated:
                self.subscription_repo.activate(payment.subscription_id, now)  # type: ignore[arg-type]
                self.payment_repo.mark_completed(payment, now)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            activated = False

        self.db.refresh(tenant)
        if not activated:
            # Another request got there first.
            if tenant.status == TenantStatus.ACTIVE.value:
                return self._replay_or_conflict(tenant, payment_intent_id)
            raise PaymentConflictError("Tenant could not be activated")

        logger.info("Tenant %s activated by payment %s", tenant.id, payment_intent_id)
        subscription = self.subscription_repo.get_by_tenant_id(tenant.id)  # type: ignore[arg-type]
        plan = self.plan_repo.get_by_id(subscription.plan_id) if subscription else None  # type: ignore[arg-type]
        return ActivationResult(
            tenant=_activated(tenant),
            newly_activated=True,
            amount_cents=int(payment.amount_cents),
            currency=str(payment.currency),
            plan_name=str(plan.name) if plan else "",
        )
