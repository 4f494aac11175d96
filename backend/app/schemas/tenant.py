from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.models.otp_challenge import OtpType
from app.models.plan import BillingCycle
from app.models.tenant import TenantStatus
from app.schemas.onboarding import AddOnSelectionInput, PriceBreakdown, SelectedAddon


class TenantCreate(BaseModel):
    organization_name: str = Field(..., min_length=1, max_length=255)
    contact_name: str | None = Field(default=None, max_length=255)
    email: EmailStr
    phone: str = Field(..., min_length=5, max_length=50)


class TenantResponse(BaseModel):
    id: UUID
    organization_name: str
    contact_name: str | None
    email: str
    phone: str
    status: TenantStatus
    email_verified: bool
    phone_verified: bool
    activated_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OtpRequest(BaseModel):
    otp_type: OtpType


class OtpRequestResponse(BaseModel):
    otp_type: OtpType
    destination: str
    expires_at: datetime


class OtpVerifyRequest(BaseModel):
    otp_type: OtpType
    otp_code: str = Field(..., min_length=4, max_length=10)


class OtpVerifyResponse(BaseModel):
    verified: bool
    email_verified: bool
    phone_verified: bool


class PlanAssignmentRequest(BaseModel):
    plan_id: UUID
    billing_cycle: BillingCycle
    branch_count: int = Field(..., ge=1)
    selected_add_ons: list[AddOnSelectionInput] = Field(default_factory=list)


class PlanAssignmentResponse(BaseModel):
    """Stored plan assignment with its server-side price breakdown."""

    tenant_id: UUID
    plan_id: UUID
    billing_cycle: BillingCycle
    branch_count: int
    status: str
    selected_add_ons: list[SelectedAddon]
    breakdown: PriceBreakdown
