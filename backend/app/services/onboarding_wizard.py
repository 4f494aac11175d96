"""Step controller for the tenant onboarding wizard.

Steps run in a fixed order and only move forward through ``advance``, which
refuses to leave a step whose requirements are not met. ``back`` is the one
explicit way to revisit an earlier step.
"""

import logging
from collections.abc import Sequence
from enum import Enum

from app.core.config import settings
from app.models.add_on import PricingScope
from app.models.plan import BillingCycle
from app.schemas.onboarding import BranchSelection, PriceBreakdown
from app.schemas.plan import PlanAddOnOutput, PlanResponse
from app.schemas.tenant import TenantCreate
from app.services.addon_selection import AddonSelectionStore
from app.services.payment_lifecycle import PaymentPhase, PaymentState
from app.services.pricing import compute_breakdown

logger = logging.getLogger(__name__)


class WizardStep(str, Enum):
    COMPANY_DETAILS = "company_details"
    VERIFICATION = "verification"
    PLAN_SELECTION = "plan_selection"
    PLAN_SUMMARY = "plan_summary"


STEP_ORDER: tuple[WizardStep, ...] = (
    WizardStep.COMPANY_DETAILS,
    WizardStep.VERIFICATION,
    WizardStep.PLAN_SELECTION,
    WizardStep.PLAN_SUMMARY,
)


class PaymentOutcome(str, Enum):
    SUCCESS = "success"
    RETRY_PAYMENT = "retry_payment"
    CONTACT_SUPPORT = "contact_support"


class WizardValidationError(ValueError):
    def __init__(self, step: WizardStep, errors: Sequence[str]):
        self.step = step
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


def payment_outcome(state: PaymentState) -> PaymentOutcome | None:
    """Where the wizard sends the user for a settled payment; None while in progress."""
    if state.phase == PaymentPhase.COMPLETED:
        return PaymentOutcome.SUCCESS
    if state.phase == PaymentPhase.FAILED:
        return PaymentOutcome.RETRY_PAYMENT if state.can_retry else PaymentOutcome.CONTACT_SUPPORT
    if state.phase == PaymentPhase.ERROR:
        return PaymentOutcome.CONTACT_SUPPORT
    return None


def default_branch_names(branch_count: int) -> list[str]:
    return [f"Branch {i + 1}" for i in range(branch_count)]


class WizardStepController:
    def __init__(self, max_branch_count: int | None = None):
        self.max_branch_count = max_branch_count or settings.MAX_BRANCH_COUNT
        self.step = WizardStep.COMPANY_DETAILS
        self.company: TenantCreate | None = None
        self.email_verified = False
        self.phone_verified = False
        self.plan: PlanResponse | None = None
        self.billing_cycle = BillingCycle.MONTHLY
        self.branch_count: int | None = None
        self.selection = AddonSelectionStore()

    @property
    def step_index(self) -> int:
        return STEP_ORDER.index(self.step)

    @property
    def is_last_step(self) -> bool:
        return self.step == STEP_ORDER[-1]

    def set_company_details(self, details: TenantCreate) -> None:
        self.company = details

    def set_email_verified(self, verified: bool = True) -> None:
        self.email_verified = verified

    def set_phone_verified(self, verified: bool = True) -> None:
        self.phone_verified = verified

    def select_plan(
        self,
        plan: PlanResponse,
        billing_cycle: BillingCycle,
        branch_count: int,
        branch_names: Sequence[str] | None = None,
    ) -> None:
        """Choose a plan; switching plans drops add-ons picked for the old one."""
        if self.plan is not None and self.plan.id != plan.id:
            self.selection.clear()
        if (
            self.plan is None
            or self.plan.id != plan.id
            or self.billing_cycle != billing_cycle
            or self.branch_count != branch_count
        ):
            self.selection.mark_changed()
        self.plan = plan
        self.billing_cycle = billing_cycle
        self.branch_count = branch_count
        if branch_count >= 1:
            self.selection.include_bundled(
                plan.add_ons, branch_names or default_branch_names(branch_count)
            )

    def configure_addon(
        self,
        addon: PlanAddOnOutput,
        branch_selections: Sequence[BranchSelection] = (),
    ) -> None:
        if self.plan is None or addon.plan_id != self.plan.id:
            raise WizardValidationError(self.step, [f"{addon.name} is not offered with the selected plan"])
        self.selection.configure(addon, branch_selections)

    def validate(self, step: WizardStep | None = None) -> list[str]:
        """Errors that keep ``step`` (default: the current step) from being left."""
        step = step or self.step
        if step == WizardStep.COMPANY_DETAILS:
            return [] if self.company is not None else ["Company details are required"]
        if step == WizardStep.VERIFICATION:
            errors = []
            if not self.email_verified:
                errors.append("Email address is not verified")
            if not self.phone_verified:
                errors.append("Phone number is not verified")
            return errors
        if step == WizardStep.PLAN_SELECTION:
            return self._validate_plan_selection()
        return []

    def _validate_plan_selection(self) -> list[str]:
        if self.plan is None:
            return ["Select a plan"]

        errors = []
        count = self.branch_count
        if count is None or count < 1:
            errors.append("Branch count must be a positive number")
        elif count > self.max_branch_count:
            errors.append(f"Branch count cannot exceed {self.max_branch_count}")
        elif not self.plan.allow_branch_overage and count > self.plan.included_branches_count:
            errors.append(
                f"{self.plan.name} supports at most {self.plan.included_branches_count} branches"
            )

        plan_addon_ids = {addon.id for addon in self.plan.add_ons}
        for selected in self.selection.selections:
            if selected.addon_id not in plan_addon_ids:
                errors.append(f"{selected.addon_name} is not offered with {self.plan.name}")
            elif selected.pricing_scope == PricingScope.BRANCH:
                in_range = [
                    b for b in selected.branches
                    if b.is_selected and (count is None or b.branch_index < count)
                ]
                if not in_range:
                    errors.append(f"Select at least one branch for {selected.addon_name}")
        return errors

    def advance(self) -> WizardStep:
        """Move to the next step.

        Raises:
            WizardValidationError: The current step's requirements are not met.
        """
        errors = self.validate()
        if errors:
            raise WizardValidationError(self.step, errors)
        if not self.is_last_step:
            self.step = STEP_ORDER[self.step_index + 1]
            logger.debug("Onboarding wizard advanced to %s", self.step.value)
        return self.step

    def back(self) -> WizardStep:
        if self.step_index > 0:
            self.step = STEP_ORDER[self.step_index - 1]
        return self.step

    def breakdown(self) -> PriceBreakdown:
        """Price of the current selection."""
        errors = self._validate_plan_selection()
        if errors:
            raise WizardValidationError(WizardStep.PLAN_SELECTION, errors)
        return compute_breakdown(
            self.plan, self.selection.selections, self.billing_cycle, self.branch_count
        )
