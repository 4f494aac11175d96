"""Server-side plan selection: validation, quoting and the stored assignment."""

import logging
from collections.abc import Sequence

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.add_on import PricingScope
from app.models.plan import BillingCycle, Plan
from app.models.tenant import Tenant, TenantStatus
from app.repositories.plan_repository import PlanRepository
from app.repositories.tenant_payment_repository import TenantPaymentRepository
from app.repositories.tenant_subscription_repository import TenantSubscriptionRepository
from app.schemas.onboarding import AddOnSelectionInput, BranchSelection, PriceBreakdown, SelectedAddon
from app.schemas.plan import PlanAddOnOutput, PlanResponse
from app.schemas.tenant import PlanAssignmentRequest, PlanAssignmentResponse
from app.services.onboarding_wizard import default_branch_names
from app.services.pricing import compute_breakdown

logger = logging.getLogger(__name__)


class PlanAssignmentError(ValueError):
    """The requested plan, branch count or add-on selection is invalid."""


class TenantAlreadyActiveError(PlanAssignmentError):
    pass


def validate_branch_count(plan: PlanResponse, branch_count: int) -> None:
    if branch_count < 1:
        raise PlanAssignmentError("Branch count must be a positive number")
    if branch_count > settings.MAX_BRANCH_COUNT:
        raise PlanAssignmentError(f"Branch count cannot exceed {settings.MAX_BRANCH_COUNT}")
    if not plan.allow_branch_overage and branch_count > plan.included_branches_count:
        raise PlanAssignmentError(
            f"{plan.name} supports at most {plan.included_branches_count} branches"
        )


def _bundled_branches(branch_count: int) -> tuple[BranchSelection, ...]:
    return tuple(
        BranchSelection(branch_index=i, branch_name=name, is_selected=True)
        for i, name in enumerate(default_branch_names(branch_count))
    )


def _to_selected(addon: PlanAddOnOutput, branches: Sequence[BranchSelection]) -> SelectedAddon:
    return SelectedAddon(
        addon_id=addon.id,
        addon_name=addon.name,
        addon_price_cents=addon.price_cents,
        pricing_scope=addon.pricing_scope,
        is_included=addon.is_included,
        branches=tuple(branches),
    )


def resolve_selection(
    plan: PlanResponse,
    branch_count: int,
    selections: Sequence[AddOnSelectionInput],
) -> list[SelectedAddon]:
    """Turn requested add-on ids into priced selections from the plan's catalog.

    Included add-ons are attached when omitted. Branch entries beyond
    ``branch_count`` are dropped.

    Raises:
        PlanAssignmentError: Unknown or duplicate add-on, or a branch-scoped
            add-on without a selected branch.
    """
    catalog = {addon.id: addon for addon in plan.add_ons}
    resolved: dict = {}

    for selection in selections:
        addon = catalog.get(selection.addon_id)
        if addon is None:
            raise PlanAssignmentError(f"Add-on {selection.addon_id} is not offered with {plan.name}")
        if addon.id in resolved:
            raise PlanAssignmentError(f"{addon.name} was selected more than once")

        branches: list[BranchSelection] = []
        if addon.pricing_scope == PricingScope.BRANCH:
            indexes = [b.branch_index for b in selection.branches]
            if len(indexes) != len(set(indexes)):
                raise PlanAssignmentError(f"Duplicate branch entries for {addon.name}")
            branches = [b for b in selection.branches if b.branch_index < branch_count]
            if not any(b.is_selected for b in branches):
                raise PlanAssignmentError(f"Select at least one branch for {addon.name}")
        resolved[addon.id] = _to_selected(addon, branches)

    for addon in plan.add_ons:
        if addon.is_included and addon.id not in resolved:
            branches = _bundled_branches(branch_count) if addon.pricing_scope == PricingScope.BRANCH else ()
            resolved[addon.id] = _to_selected(addon, branches)

    return list(resolved.values())


class PlanAssignmentService:
    def __init__(self, db: Session):
        self.db = db
        self.plan_repo = PlanRepository(db)
        self.subscription_repo = TenantSubscriptionRepository(db)
        self.payment_repo = TenantPaymentRepository(db)

    def quote(
        self,
        plan: Plan,
        billing_cycle: BillingCycle,
        branch_count: int,
        selections: Sequence[AddOnSelectionInput],
    ) -> PriceBreakdown:
        catalog = self.plan_repo.build_response(plan)
        validate_branch_count(catalog, branch_count)
        addons = resolve_selection(catalog, branch_count, selections)
        return compute_breakdown(catalog, addons, billing_cycle, branch_count)

    def assign(self, tenant: Tenant, data: PlanAssignmentRequest) -> PlanAssignmentResponse:
        """Store the tenant's plan choice, replacing any earlier one.

        Un-completed payments for an earlier choice are superseded, so the
        next payment has to be initiated again.

        Raises:
            TenantAlreadyActiveError: The tenant has already been activated.
            PlanAssignmentError: The plan or the selection is invalid.
        """
        if tenant.status == TenantStatus.ACTIVE.value:
            raise TenantAlreadyActiveError("Plan cannot be changed after activation")

        plan = self.plan_repo.get_by_id(data.plan_id)
        if plan is None:
            raise PlanAssignmentError(f"Plan {data.plan_id} not found")
        catalog = self.plan_repo.build_response(plan)
        validate_branch_count(catalog, data.branch_count)
        addons = resolve_selection(catalog, data.branch_count, data.selected_add_ons)

        superseded = self.payment_repo.supersede_open(tenant.id)  # type: ignore[arg-type]
        if superseded:
            logger.info("Superseded %d open payment(s) for tenant %s", superseded, tenant.id)
        subscription = self.subscription_repo.upsert(
            tenant_id=tenant.id,  # type: ignore[arg-type]
            plan_id=plan.id,  # type: ignore[arg-type]
            billing_cycle=data.billing_cycle,
            branch_count=data.branch_count,
            add_ons=addons,
        )
        self.db.commit()
        self.db.refresh(subscription)
        logger.info("Tenant %s assigned plan %s", tenant.id, plan.code)

        return PlanAssignmentResponse(
            tenant_id=tenant.id,
            plan_id=plan.id,
            billing_cycle=data.billing_cycle,
            branch_count=data.branch_count,
            status=str(subscription.status),
            selected_add_ons=addons,
            breakdown=compute_breakdown(catalog, addons, data.billing_cycle, data.branch_count),
        )

    def get_assignment(self, tenant: Tenant) -> PlanAssignmentResponse | None:
        subscription = self.subscription_repo.get_by_tenant_id(tenant.id)  # type: ignore[arg-type]
        if subscription is None:
            return None
        plan = self.plan_repo.get_by_id(subscription.plan_id)  # type: ignore[arg-type]
        if plan is None:
            return None
        catalog = self.plan_repo.build_response(plan)
        addons = self.subscription_repo.get_selected_add_ons(subscription.id)  # type: ignore[arg-type]
        billing_cycle = BillingCycle(subscription.billing_cycle)
        branch_count = int(subscription.branch_count)
        return PlanAssignmentResponse(
            tenant_id=tenant.id,
            plan_id=plan.id,
            billing_cycle=billing_cycle,
            branch_count=branch_count,
            status=str(subscription.status),
            selected_add_ons=addons,
            breakdown=compute_breakdown(catalog, addons, billing_cycle, branch_count),
        )
