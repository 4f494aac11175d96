from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.models.add_on import PricingScope
from app.models.plan import BillingCycle
from app.schemas.onboarding import AddOnSelectionInput


class VolumeDiscountTierInput(BaseModel):
    """Volume discount tier input when creating a plan."""

    name: str = Field(..., min_length=1, max_length=255)
    min_branches: int = Field(..., ge=1)
    max_branches: int | None = Field(default=None, ge=1)
    discount_percentage: Decimal = Field(..., ge=0, le=100)

    @model_validator(mode="after")
    def check_range(self) -> "VolumeDiscountTierInput":
        if self.max_branches is not None and self.max_branches < self.min_branches:
            raise ValueError("max_branches must be greater than or equal to min_branches")
        return self


class VolumeDiscountTierOutput(BaseModel):
    id: UUID
    name: str
    min_branches: int
    max_branches: int | None
    discount_percentage: Decimal
    display_order: int

    model_config = {"from_attributes": True}


class PlanFeatureInput(BaseModel):
    code: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class PlanFeatureOutput(BaseModel):
    id: UUID
    code: str
    name: str
    description: str | None
    display_order: int

    model_config = {"from_attributes": True}


class PlanAddOnInput(BaseModel):
    code: str = Field(..., min_length=1, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    price_cents: int = Field(default=0, ge=0)
    pricing_scope: PricingScope = PricingScope.ORGANIZATION
    is_included: bool = False
    default_quantity: int | None = Field(default=None, ge=0)
    min_quantity: int | None = Field(default=None, ge=0)
    max_quantity: int | None = Field(default=None, ge=0)


class PlanAddOnOutput(BaseModel):
    id: UUID
    plan_id: UUID
    code: str
    name: str
    description: str | None
    price_cents: int
    pricing_scope: PricingScope
    is_included: bool
    default_quantity: int | None
    min_quantity: int | None
    max_quantity: int | None
    display_order: int

    model_config = {"from_attributes": True}


class PlanCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    monthly_price_cents: int = Field(default=0, ge=0)
    annual_discount_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    included_branches_count: int = Field(default=1, ge=1)
    allow_branch_overage: bool = True
    is_featured: bool = False
    is_custom: bool = False
    display_order: int = 0
    features: list[PlanFeatureInput] = Field(default_factory=list)
    add_ons: list[PlanAddOnInput] = Field(default_factory=list)
    volume_discount_tiers: list[VolumeDiscountTierInput] = Field(default_factory=list)


class PlanResponse(BaseModel):
    """Plan catalog entry with its ordered features, add-ons and discount tiers."""

    id: UUID
    code: str
    name: str
    description: str | None
    monthly_price_cents: int
    annual_discount_percentage: Decimal
    currency: str
    included_branches_count: int
    allow_branch_overage: bool
    is_featured: bool
    is_custom: bool
    display_order: int
    features: list[PlanFeatureOutput] = Field(default_factory=list)
    add_ons: list[PlanAddOnOutput] = Field(default_factory=list)
    volume_discount_tiers: list[VolumeDiscountTierOutput] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PlanQuoteRequest(BaseModel):
    billing_cycle: BillingCycle
    branch_count: int = Field(..., ge=1)
    selected_add_ons: list[AddOnSelectionInput] = Field(default_factory=list)
