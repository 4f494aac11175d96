from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models.shared import utc_now
from app.models.tenant_payment import TenantPayment
from app.schemas.onboarding import PriceBreakdown
from app.services.payment_provider import GatewayIntent


class TenantPaymentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_intent_id(self, payment_intent_id: str) -> TenantPayment | None:
        return (
            self.db.query(TenantPayment)
            .filter(TenantPayment.payment_intent_id == payment_intent_id)
            .first()
        )

    def get_by_tenant_id(self, tenant_id: UUID) -> list[TenantPayment]:
        return (
            self.db.query(TenantPayment)
            .filter(TenantPayment.tenant_id == tenant_id)
            .order_by(TenantPayment.created_at.desc())
            .all()
        )

    def create(
        self,
        tenant_id: UUID,
        subscription_id: UUID,
        provider: str,
        intent: GatewayIntent,
        breakdown: PriceBreakdown,
    ) -> TenantPayment:
        payment = TenantPayment(
            tenant_id=tenant_id,
            subscription_id=subscription_id,
            provider=provider,
            payment_intent_id=intent.intent_id,
            intent_type=intent.intent_type.value,
            customer_id=intent.customer_id,
            client_secret=intent.client_secret,
            status=intent.status,
            currency=intent.currency,
            plan_total_cents=breakdown.plan_total_cents,
            branch_addon_total_cents=breakdown.branch_addon_total_cents,
            org_addon_total_cents=breakdown.org_addon_total_cents,
            amount_cents=breakdown.total_cents,
            last_payment_error=intent.last_payment_error,
        )
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def update_status(
        self,
        payment: TenantPayment,
        status: str,
        last_payment_error: dict[str, Any] | None,
    ) -> TenantPayment:
        payment.status = status  # type: ignore[assignment]
        payment.last_payment_error = last_payment_error  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def supersede_open(self, tenant_id: UUID) -> int:
        """Mark every un-completed payment of the tenant as superseded. Does not commit."""
        result = self.db.execute(
            update(TenantPayment)
            .where(
                TenantPayment.tenant_id == tenant_id,
                TenantPayment.completed_at.is_(None),
                TenantPayment.superseded_at.is_(None),
            )
            .values(superseded_at=utc_now())
        )
        return int(result.rowcount)

    def mark_completed(self, payment: TenantPayment, completed_at: datetime) -> None:
        """Does not commit."""
        payment.completed_at = completed_at  # type: ignore[assignment]
