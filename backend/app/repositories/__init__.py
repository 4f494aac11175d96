from app.repositories.idempotency_repository import IdempotencyRepository
from app.repositories.otp_challenge_repository import OtpChallengeRepository
from app.repositories.plan_repository import PlanRepository
from app.repositories.tenant_payment_repository import TenantPaymentRepository
from app.repositories.tenant_repository import TenantRepository
from app.repositories.tenant_subscription_repository import TenantSubscriptionRepository

__all__ = [
    "IdempotencyRepository",
    "OtpChallengeRepository",
    "PlanRepository",
    "TenantPaymentRepository",
    "TenantRepository",
    "TenantSubscriptionRepository",
]
