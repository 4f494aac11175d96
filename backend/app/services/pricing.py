"""Pricing engine for tenant onboarding.

Pure functions, no I/O. Every amount is an integer number of minor units
(cents). Percentages are applied with ``Decimal`` arithmetic and each
component (the plan, each add-on) is rounded half-up exactly once, so a
grand total is a plain integer sum and does not depend on the order in
which add-ons were configured.

Volume discount tiers are expected not to overlap. If catalog data violates
that, the first tier in display order whose range contains the branch count
wins; ``find_overlapping_tiers`` lets callers detect the condition.
"""

from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from app.models.add_on import PricingScope
from app.models.plan import BillingCycle
from app.schemas.onboarding import PriceBreakdown, SelectedAddon

_HUNDRED = Decimal(100)
_MONTHS_PER_YEAR = 12


class DiscountTier(Protocol):
    @property
    def min_branches(self) -> int: ...

    @property
    def max_branches(self) -> int | None: ...

    @property
    def discount_percentage(self) -> Decimal: ...


class PricedPlan(Protocol):
    @property
    def monthly_price_cents(self) -> int: ...

    @property
    def annual_discount_percentage(self) -> Decimal: ...

    @property
    def volume_discount_tiers(self) -> Sequence[DiscountTier]: ...


def to_cents(amount: Decimal) -> int:
    """Round a Decimal amount of cents half-up to an integer."""
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def cycle_price(
    monthly_cents: int,
    billing_cycle: BillingCycle,
    annual_discount_percentage: Decimal | int | float = 0,
) -> Decimal:
    """Unrounded price of one unit for a billing cycle.

    Yearly price = monthly * 12 * (1 - annual_discount_percentage / 100).
    """
    monthly = Decimal(monthly_cents)
    if billing_cycle == BillingCycle.MONTHLY:
        return monthly
    discount = Decimal(str(annual_discount_percentage)) / _HUNDRED
    return monthly * _MONTHS_PER_YEAR * (1 - discount)


def yearly_price(plan: PricedPlan) -> int:
    """Yearly price of the plan for a single branch, in cents."""
    return to_cents(
        cycle_price(plan.monthly_price_cents, BillingCycle.YEARLY, plan.annual_discount_percentage)
    )


def tier_contains(tier: DiscountTier, branch_count: int) -> bool:
    """Whether ``branch_count`` falls within ``[min_branches, max_branches]`` (inclusive)."""
    if branch_count < tier.min_branches:
        return False
    return tier.max_branches is None or branch_count <= tier.max_branches


def find_volume_tier(tiers: Iterable[DiscountTier], branch_count: int) -> DiscountTier | None:
    """Return the first tier, in display order, whose range contains ``branch_count``."""
    for tier in tiers:
        if tier_contains(tier, branch_count):
            return tier
    return None


def find_overlapping_tiers(
    tiers: Sequence[DiscountTier],
) -> list[tuple[DiscountTier, DiscountTier]]:
    """List every pair of tiers whose branch ranges intersect."""
    overlaps = []
    for i, first in enumerate(tiers):
        for second in tiers[i + 1 :]:
            low = max(first.min_branches, second.min_branches)
            highs = [t.max_branches for t in (first, second) if t.max_branches is not None]
            if not highs or low <= min(highs):
                overlaps.append((first, second))
    return overlaps


def _validate_branch_count(branch_count: int) -> None:
    if branch_count < 1:
        raise ValueError(f"Branch count must be a positive integer, got {branch_count}")


def compute_plan_total(plan: PricedPlan, billing_cycle: BillingCycle, branch_count: int) -> int:
    """Plan cost for the cycle: unit price * branch_count, less the matching volume discount."""
    _validate_branch_count(branch_count)
    base = cycle_price(plan.monthly_price_cents, billing_cycle, plan.annual_discount_percentage)
    total = base * branch_count

    tier = find_volume_tier(plan.volume_discount_tiers, branch_count)
    if tier is not None:
        total = total * (1 - Decimal(str(tier.discount_percentage)) / _HUNDRED)
    return to_cents(total)


def compute_addon_total(
    addon: SelectedAddon,
    billing_cycle: BillingCycle,
    annual_discount_percentage: Decimal | int | float = 0,
    branch_count: int | None = None,
) -> int:
    """Cost of one selected add-on for the cycle.

    Organization-scoped add-ons are charged once; branch-scoped add-ons are
    charged per selected branch. When ``branch_count`` is given, selections on
    branch indexes beyond it are ignored. Included add-ons are always free.
    """
    if addon.is_included:
        return 0

    unit = cycle_price(addon.addon_price_cents, billing_cycle, annual_discount_percentage)
    if addon.pricing_scope == PricingScope.ORGANIZATION:
        return to_cents(unit)

    selected = sum(
        1
        for branch in addon.branches
        if branch.is_selected and (branch_count is None or branch.branch_index < branch_count)
    )
    return to_cents(unit * selected)


def compute_breakdown(
    plan: PricedPlan,
    addons: Iterable[SelectedAddon],
    billing_cycle: BillingCycle,
    branch_count: int,
) -> PriceBreakdown:
    """Plan, branch add-on and organization add-on subtotals plus their sum."""
    plan_total = compute_plan_total(plan, billing_cycle, branch_count)

    branch_total = 0
    org_total = 0
    for addon in addons:
        amount = compute_addon_total(
            addon, billing_cycle, plan.annual_discount_percentage, branch_count
        )
        if addon.pricing_scope == PricingScope.BRANCH:
            branch_total += amount
        else:
            org_total += amount

    tier = find_volume_tier(plan.volume_discount_tiers, branch_count)
    return PriceBreakdown(
        plan_total_cents=plan_total,
        branch_addon_total_cents=branch_total,
        org_addon_total_cents=org_total,
        total_cents=plan_total + branch_total + org_total,
        volume_discount_percentage=float(tier.discount_percentage) if tier else 0.0,
    )


def compute_grand_total(
    plan: PricedPlan,
    addons: Iterable[SelectedAddon],
    billing_cycle: BillingCycle,
    branch_count: int,
) -> int:
    """Sum of the plan total and every add-on total."""
    return compute_breakdown(plan, addons, billing_cycle, branch_count).total_cents
