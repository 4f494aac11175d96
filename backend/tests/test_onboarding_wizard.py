"""Tests for the onboarding wizard step controller."""

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from app.models.add_on import PricingScope
from app.models.plan import BillingCycle
from app.schemas.onboarding import BranchSelection
from app.models.tenant_payment import IntentType
from app.schemas.payment import InitiatePaymentResponse, StatusInfo
from app.schemas.plan import PlanAddOnOutput, PlanResponse, VolumeDiscountTierOutput
from app.schemas.tenant import TenantCreate
from app.services.onboarding_wizard import (
    STEP_ORDER,
    PaymentOutcome,
    WizardStep,
    WizardStepController,
    WizardValidationError,
    default_branch_names,
    payment_outcome,
)
from app.services.payment_lifecycle import PaymentPhase, PaymentState
from app.services.payment_orchestrator import PaymentOrchestrator

NOW = datetime(2026, 1, 1, tzinfo=UTC)


def _addon(plan_id, name, scope, price_cents=500, is_included=False):  # type: ignore[no-untyped-def]
    return PlanAddOnOutput(
        id=uuid4(),
        plan_id=plan_id,
        code=name.lower(),
        name=name,
        description=None,
        price_cents=price_cents,
        pricing_scope=scope,
        is_included=is_included,
        default_quantity=None,
        min_quantity=None,
        max_quantity=None,
        display_order=0,
    )


def _plan(name="Growth", allow_overage=True, included_branches=1, with_bundle=True):  # type: ignore[no-untyped-def]
    plan_id = uuid4()
    add_ons = [
        _addon(plan_id, "Inventory", PricingScope.BRANCH, 2000),
        _addon(plan_id, "Analytics", PricingScope.ORGANIZATION, 1500),
    ]
    if with_bundle:
        add_ons.append(_addon(plan_id, "Backup", PricingScope.BRANCH, 900, is_included=True))
    return PlanResponse(
        id=plan_id,
        code=name.lower(),
        name=name,
        description=None,
        monthly_price_cents=10000,
        annual_discount_percentage=Decimal("0"),
        currency="USD",
        included_branches_count=included_branches,
        allow_branch_overage=allow_overage,
        is_featured=False,
        is_custom=False,
        display_order=0,
        add_ons=add_ons,
        volume_discount_tiers=[
            VolumeDiscountTierOutput(
                id=uuid4(),
                name="Bulk",
                min_branches=10,
                max_branches=None,
                discount_percentage=Decimal("10"),
                display_order=0,
            )
        ],
        created_at=NOW,
        updated_at=NOW,
    )


def _company() -> TenantCreate:
    return TenantCreate(
        organization_name="Acme Retail",
        contact_name="Ada Owner",
        email="owner@acme.test",
        phone="+15550001111",
    )


def _branches(count: int, selected: set[int]) -> list[BranchSelection]:
    return [
        BranchSelection(branch_index=i, branch_name=f"Branch {i + 1}", is_selected=i in selected)
        for i in range(count)
    ]


@pytest.fixture
def wizard() -> WizardStepController:
    return WizardStepController(max_branch_count=50)


@pytest.fixture
def at_plan_selection(wizard: WizardStepController) -> WizardStepController:
    wizard.set_company_details(_company())
    wizard.advance()
    wizard.set_email_verified()
    wizard.set_phone_verified()
    wizard.advance()
    return wizard


class TestStepOrder:
    def test_starts_at_company_details(self, wizard: WizardStepController) -> None:
        assert wizard.step == WizardStep.COMPANY_DETAILS
        assert STEP_ORDER[0] == WizardStep.COMPANY_DETAILS
        assert STEP_ORDER[-1] == WizardStep.PLAN_SUMMARY

    def test_company_details_required(self, wizard: WizardStepController) -> None:
        with pytest.raises(WizardValidationError) as exc_info:
            wizard.advance()

        assert exc_info.value.step == WizardStep.COMPANY_DETAILS
        assert wizard.step == WizardStep.COMPANY_DETAILS

    def test_walks_every_step(self, at_plan_selection: WizardStepController) -> None:
        wizard = at_plan_selection
        assert wizard.step == WizardStep.PLAN_SELECTION

        wizard.select_plan(_plan(), BillingCycle.MONTHLY, 2)
        assert wizard.advance() == WizardStep.PLAN_SUMMARY
        assert wizard.is_last_step
        assert wizard.advance() == WizardStep.PLAN_SUMMARY

    def test_back_revisits_previous_step(self, at_plan_selection: WizardStepController) -> None:
        wizard = at_plan_selection
        assert wizard.back() == WizardStep.VERIFICATION
        assert wizard.back() == WizardStep.COMPANY_DETAILS
        assert wizard.back() == WizardStep.COMPANY_DETAILS


class TestVerificationGate:
    def test_requires_both_channels(self, wizard: WizardStepController) -> None:
        wizard.set_company_details(_company())
        wizard.advance()

        wizard.set_email_verified()
        with pytest.raises(WizardValidationError) as exc_info:
            wizard.advance()
        assert exc_info.value.errors == ["Phone number is not verified"]

        wizard.set_email_verified(False)
        wizard.set_phone_verified()
        with pytest.raises(WizardValidationError) as exc_info:
            wizard.advance()
        assert exc_info.value.errors == ["Email address is not verified"]

        wizard.set_email_verified()
        assert wizard.advance() == WizardStep.PLAN_SELECTION

    def test_reports_both_missing(self, wizard: WizardStepController) -> None:
        assert wizard.validate(WizardStep.VERIFICATION) == [
            "Email address is not verified",
            "Phone number is not verified",
        ]


class TestPlanSelectionGate:
    def test_plan_required(self, at_plan_selection: WizardStepController) -> None:
        with pytest.raises(WizardValidationError, match="Select a plan"):
            at_plan_selection.advance()

    @pytest.mark.parametrize("branch_count", [0, -2])
    def test_branch_count_must_be_positive(self, at_plan_selection: WizardStepController, branch_count: int) -> None:
        at_plan_selection.select_plan(_plan(), BillingCycle.MONTHLY, branch_count)
        assert "Branch count must be a positive number" in at_plan_selection.validate()

    def test_branch_count_ceiling(self, at_plan_selection: WizardStepController) -> None:
        at_plan_selection.select_plan(_plan(), BillingCycle.MONTHLY, 51)
        assert at_plan_selection.validate() == ["Branch count cannot exceed 50"]

    def test_overage_allowed_by_default(self, at_plan_selection: WizardStepController) -> None:
        at_plan_selection.select_plan(_plan(included_branches=1), BillingCycle.MONTHLY, 12)
        assert at_plan_selection.validate() == []

    def test_plan_forbidding_overage_caps_branches(self, at_plan_selection: WizardStepController) -> None:
        plan = _plan(name="Starter", allow_overage=False, included_branches=3)
        at_plan_selection.select_plan(plan, BillingCycle.MONTHLY, 4)
        assert at_plan_selection.validate() == ["Starter supports at most 3 branches"]

        at_plan_selection.select_plan(plan, BillingCycle.MONTHLY, 3)
        assert at_plan_selection.validate() == []

    def test_branch_addon_needs_a_branch_in_range(self, at_plan_selection: WizardStepController) -> None:
        plan = _plan(with_bundle=False)
        inventory = plan.add_ons[0]
        at_plan_selection.select_plan(plan, BillingCycle.MONTHLY, 4)
        at_plan_selection.configure_addon(inventory, _branches(4, {3}))

        at_plan_selection.select_plan(plan, BillingCycle.MONTHLY, 2)

        assert at_plan_selection.validate() == ["Select at least one branch for Inventory"]


class TestSelection:
    def test_select_plan_attaches_bundled_addons(self, wizard: WizardStepController) -> None:
        plan = _plan()
        bundled = plan.add_ons[2]

        wizard.select_plan(plan, BillingCycle.MONTHLY, 3, ["Main", "North", "South"])

        selection = wizard.selection.get(bundled.id)
        assert selection is not None
        assert [b.branch_name for b in selection.branches] == ["Main", "North", "South"]
        assert selection.selected_branch_count == 3

    def test_switching_plan_clears_selection(self, wizard: WizardStepController) -> None:
        first = _plan(with_bundle=False)
        wizard.select_plan(first, BillingCycle.MONTHLY, 2)
        wizard.configure_addon(first.add_ons[1])

        second = _plan(name="Scale", with_bundle=False)
        wizard.select_plan(second, BillingCycle.YEARLY, 2)

        assert wizard.selection.selections == []
        assert wizard.billing_cycle == BillingCycle.YEARLY

    def test_reselecting_same_plan_keeps_selection(self, wizard: WizardStepController) -> None:
        plan = _plan(with_bundle=False)
        wizard.select_plan(plan, BillingCycle.MONTHLY, 2)
        wizard.configure_addon(plan.add_ons[1])

        wizard.select_plan(plan, BillingCycle.MONTHLY, 5)

        assert wizard.selection.is_selected(plan.add_ons[1].id)

    def test_addon_from_another_plan_is_rejected(self, wizard: WizardStepController) -> None:
        wizard.select_plan(_plan(), BillingCycle.MONTHLY, 2)
        foreign = _plan(name="Other").add_ons[1]

        with pytest.raises(WizardValidationError, match="not offered"):
            wizard.configure_addon(foreign)

    def test_breakdown(self, wizard: WizardStepController) -> None:
        plan = _plan(with_bundle=False)
        wizard.select_plan(plan, BillingCycle.MONTHLY, 12)
        wizard.configure_addon(plan.add_ons[0], _branches(12, {0, 1, 2}))

        breakdown = wizard.breakdown()

        assert breakdown.plan_total_cents == 108000
        assert breakdown.branch_addon_total_cents == 6000
        assert breakdown.total_cents == 114000

    def test_breakdown_requires_valid_selection(self, wizard: WizardStepController) -> None:
        with pytest.raises(WizardValidationError) as exc_info:
            wizard.breakdown()
        assert exc_info.value.step == WizardStep.PLAN_SELECTION

    @pytest.mark.parametrize(
        ("billing_cycle", "branch_count"),
        [(BillingCycle.YEARLY, 2), (BillingCycle.MONTHLY, 8), (BillingCycle.YEARLY, 8)],
    )
    def test_pricing_input_change_bumps_revision(
        self, wizard: WizardStepController, billing_cycle: BillingCycle, branch_count: int
    ) -> None:
        plan = _plan(with_bundle=False)
        wizard.select_plan(plan, BillingCycle.MONTHLY, 2)
        revision = wizard.selection.revision

        wizard.select_plan(plan, billing_cycle, branch_count)

        assert wizard.selection.revision > revision

    def test_same_plan_choice_keeps_revision(self, wizard: WizardStepController) -> None:
        plan = _plan(with_bundle=False)
        wizard.select_plan(plan, BillingCycle.MONTHLY, 2)
        revision = wizard.selection.revision

        wizard.select_plan(plan, BillingCycle.MONTHLY, 2)

        assert wizard.selection.revision == revision

    @pytest.mark.asyncio
    async def test_changing_cycle_and_branches_after_initiate_forces_fresh_initiate(
        self, wizard: WizardStepController
    ) -> None:
        plan = _plan(with_bundle=False)
        wizard.select_plan(plan, BillingCycle.MONTHLY, 2)
        gateway = AsyncMock()
        gateway.initiate_payment.return_value = InitiatePaymentResponse(
            customer_id="cus_1",
            type=IntentType.PAYMENT,
            client_secret="pi_1_secret",
            payment_intent_id="pi_1",
        )
        orchestrator = PaymentOrchestrator(gateway, uuid4(), selection=wizard.selection)
        await orchestrator.initiate(wizard.breakdown(), plan.id, wizard.billing_cycle)

        wizard.select_plan(plan, BillingCycle.YEARLY, 8)
        state = orchestrator.record_client_confirmation(True)

        assert state.phase == PaymentPhase.NOT_STARTED
        assert orchestrator.snapshot is None


class TestPaymentOutcome:
    def test_completed_is_success(self) -> None:
        assert payment_outcome(PaymentState(phase=PaymentPhase.COMPLETED)) == PaymentOutcome.SUCCESS

    def test_retryable_failure_offers_retry(self) -> None:
        state = PaymentState(
            phase=PaymentPhase.FAILED,
            status_info=StatusInfo(is_failed=True, can_retry=True),
        )
        assert payment_outcome(state) == PaymentOutcome.RETRY_PAYMENT

    def test_hard_failure_goes_to_support(self) -> None:
        state = PaymentState(
            phase=PaymentPhase.FAILED,
            status_info=StatusInfo(is_failed=True, can_retry=False),
        )
        assert payment_outcome(state) == PaymentOutcome.CONTACT_SUPPORT
        assert payment_outcome(PaymentState(phase=PaymentPhase.ERROR)) == PaymentOutcome.CONTACT_SUPPORT

    def test_in_progress_has_no_outcome(self) -> None:
        assert payment_outcome(PaymentState(phase=PaymentPhase.PROCESSING)) is None


def test_default_branch_names() -> None:
    assert default_branch_names(3) == ["Branch 1", "Branch 2", "Branch 3"]
    assert default_branch_names(0) == []
