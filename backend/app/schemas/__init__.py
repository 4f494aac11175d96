from app.schemas.onboarding import (
    AddOnSelectionInput,
    BranchSelection,
    PriceBreakdown,
    SelectedAddon,
)
from app.schemas.payment import (
    ActivatedTenant,
    ChargeDetails,
    CompletePaymentRequest,
    CompletePaymentResponse,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    LastPaymentError,
    PaymentDetails,
    PaymentIntentRecord,
    PaymentStatusRequest,
    PaymentStatusResponse,
    StatusInfo,
)
from app.schemas.plan import (
    PlanAddOnInput,
    PlanAddOnOutput,
    PlanCreate,
    PlanFeatureInput,
    PlanFeatureOutput,
    PlanQuoteRequest,
    PlanResponse,
    VolumeDiscountTierInput,
    VolumeDiscountTierOutput,
)
from app.schemas.tenant import (
    OtpRequest,
    OtpRequestResponse,
    OtpVerifyRequest,
    OtpVerifyResponse,
    PlanAssignmentRequest,
    PlanAssignmentResponse,
    TenantCreate,
    TenantResponse,
)

__all__ = [
    "ActivatedTenant",
    "AddOnSelectionInput",
    "BranchSelection",
    "ChargeDetails",
    "CompletePaymentRequest",
    "CompletePaymentResponse",
    "InitiatePaymentRequest",
    "InitiatePaymentResponse",
    "LastPaymentError",
    "OtpRequest",
    "OtpRequestResponse",
    "OtpVerifyRequest",
    "OtpVerifyResponse",
    "PaymentDetails",
    "PaymentIntentRecord",
    "PaymentStatusRequest",
    "PaymentStatusResponse",
    "PlanAddOnInput",
    "PlanAddOnOutput",
    "PlanAssignmentRequest",
    "PlanAssignmentResponse",
    "PlanCreate",
    "PlanFeatureInput",
    "PlanFeatureOutput",
    "PlanQuoteRequest",
    "PlanResponse",
    "PriceBreakdown",
    "SelectedAddon",
    "StatusInfo",
    "TenantCreate",
    "TenantResponse",
    "VolumeDiscountTierInput",
    "VolumeDiscountTierOutput",
]
