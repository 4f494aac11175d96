"""Value types shared by the pricing engine, the add-on store and the plan assignment API."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.add_on import PricingScope


class BranchSelection(BaseModel):
    """Whether a branch-scoped add-on is enabled on one branch of the tenant."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    branch_index: int = Field(alias="branchIndex", ge=0)
    branch_name: str = Field(alias="branchName")
    is_selected: bool = Field(default=False, alias="isSelected")


class SelectedAddon(BaseModel):
    """An add-on attached to the in-progress tenant.

    ``addon_price_cents`` is the catalog price captured when the add-on was
    configured; later catalog edits do not flow into an existing selection.
    Organization-scoped add-ons carry no branch list.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    addon_id: UUID
    addon_name: str
    addon_price_cents: int = Field(ge=0)
    pricing_scope: PricingScope
    is_included: bool = False
    branches: tuple[BranchSelection, ...] = ()

    @property
    def selected_branch_count(self) -> int:
        return sum(1 for branch in self.branches if branch.is_selected)

    @property
    def is_valid_selection(self) -> bool:
        if self.pricing_scope == PricingScope.ORGANIZATION:
            return True
        return self.selected_branch_count > 0


class PriceBreakdown(BaseModel):
    """Totals for one billing cycle, in minor units (cents)."""

    model_config = ConfigDict(frozen=True)

    plan_total_cents: int
    branch_addon_total_cents: int
    org_addon_total_cents: int
    total_cents: int
    volume_discount_percentage: float = 0.0


class AddOnSelectionInput(BaseModel):
    """Add-on chosen by id; price and scope are taken from the catalog server side."""

    model_config = ConfigDict(populate_by_name=True)

    addon_id: UUID = Field(alias="addonId")
    branches: list[BranchSelection] = Field(default_factory=list)
