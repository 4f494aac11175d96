from app.models.add_on import PlanAddOn, PricingScope
from app.models.feature import PlanFeature
from app.models.idempotency_record import IdempotencyRecord
from app.models.otp_challenge import OtpChallenge, OtpType
from app.models.plan import BillingCycle, Plan
from app.models.tenant import Tenant, TenantStatus
from app.models.tenant_payment import IntentType, PaymentGatewayProvider, TenantPayment
from app.models.tenant_subscription import SubscriptionStatus, TenantAddOn, TenantSubscription
from app.models.volume_discount_tier import VolumeDiscountTier

__all__ = [
    "BillingCycle",
    "IdempotencyRecord",
    "IntentType",
    "OtpChallenge",
    "OtpType",
    "PaymentGatewayProvider",
    "Plan",
    "PlanAddOn",
    "PlanFeature",
    "PricingScope",
    "SubscriptionStatus",
    "Tenant",
    "TenantAddOn",
    "TenantPayment",
    "TenantStatus",
    "TenantSubscription",
    "VolumeDiscountTier",
]
