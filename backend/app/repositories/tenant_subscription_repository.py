from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models.plan import BillingCycle
from app.models.tenant_subscription import SubscriptionStatus, TenantAddOn, TenantSubscription
from app.schemas.onboarding import BranchSelection, SelectedAddon


class TenantSubscriptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_tenant_id(self, tenant_id: UUID) -> TenantSubscription | None:
        return (
            self.db.query(TenantSubscription)
            .filter(TenantSubscription.tenant_id == tenant_id)
            .first()
        )

    def get_add_ons(self, subscription_id: UUID) -> list[TenantAddOn]:
        return (
            self.db.query(TenantAddOn)
            .filter(TenantAddOn.subscription_id == subscription_id)
            .order_by(TenantAddOn.position)
            .all()
        )

    def get_selected_add_ons(self, subscription_id: UUID) -> list[SelectedAddon]:
        return [
            SelectedAddon(
                addon_id=row.add_on_id,
                addon_name=row.addon_name,
                addon_price_cents=row.addon_price_cents,
                pricing_scope=row.pricing_scope,
                is_included=row.is_included,
                branches=tuple(BranchSelection.model_validate(b) for b in row.branches or []),
            )
            for row in self.get_add_ons(subscription_id)
        ]

    def upsert(
        self,
        tenant_id: UUID,
        plan_id: UUID,
        billing_cycle: BillingCycle,
        branch_count: int,
        add_ons: Sequence[SelectedAddon],
    ) -> TenantSubscription:
        """Replace the tenant's pending assignment and its add-on snapshot. Does not commit."""
        subscription = self.get_by_tenant_id(tenant_id)
        if subscription is None:
            subscription = TenantSubscription(tenant_id=tenant_id)
            self.db.add(subscription)
        subscription.plan_id = plan_id  # type: ignore[assignment]
        subscription.billing_cycle = billing_cycle.value  # type: ignore[assignment]
        subscription.branch_count = branch_count  # type: ignore[assignment]
        subscription.status = SubscriptionStatus.PENDING.value  # type: ignore[assignment]
        self.db.flush()

        self.db.query(TenantAddOn).filter(TenantAddOn.subscription_id == subscription.id).delete()
        for position, add_on in enumerate(add_ons):
            self.db.add(
                TenantAddOn(
                    subscription_id=subscription.id,
                    add_on_id=add_on.addon_id,
                    addon_name=add_on.addon_name,
                    addon_price_cents=add_on.addon_price_cents,
                    pricing_scope=add_on.pricing_scope.value,
                    is_included=add_on.is_included,
                    branches=[b.model_dump() for b in add_on.branches],
                    position=position,
                )
            )
        self.db.flush()
        return subscription

    def activate(self, subscription_id: UUID, activated_at: datetime) -> None:
        """Does not commit."""
        self.db.execute(
            update(TenantSubscription)
            .where(
                TenantSubscription.id == subscription_id,
                TenantSubscription.status == SubscriptionStatus.PENDING.value,
            )
            .values(status=SubscriptionStatus.ACTIVE.value, activated_at=activated_at)
        )
