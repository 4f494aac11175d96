"""One-time code verification of a tenant's email address and phone number."""

import hashlib
import hmac
import logging
import secrets
from datetime import UTC, timedelta

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.rate_limiter import RateLimiter
from app.models.otp_challenge import OtpChallenge, OtpType
from app.models.shared import utc_now
from app.models.tenant import Tenant, TenantStatus
from app.repositories.otp_challenge_repository import OtpChallengeRepository
from app.repositories.tenant_repository import TenantRepository
from app.services.email_service import EmailService

logger = logging.getLogger(__name__)

OTP_CODE_LENGTH = 6

otp_rate_limiter = RateLimiter(
    max_requests=settings.OTP_REQUESTS_PER_WINDOW,
    window_seconds=settings.OTP_RATE_WINDOW_SECONDS,
)


class VerificationError(ValueError):
    """The code cannot be issued or checked."""


class OtpRateLimitedError(VerificationError):
    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__("Too many verification codes requested. Please try again later.")


def generate_otp_code() -> str:
    return f"{secrets.randbelow(10**OTP_CODE_LENGTH):0{OTP_CODE_LENGTH}d}"


def hash_otp_code(tenant_id: object, otp_type: OtpType, code: str) -> str:
    """HMAC-SHA256 of the code, bound to the tenant and channel."""
    message = f"{tenant_id}:{otp_type.value}:{code}".encode()
    return hmac.new(settings.OTP_HASH_SECRET.encode(), message, hashlib.sha256).hexdigest()


class VerificationService:
    def __init__(
        self,
        db: Session,
        email_service: EmailService | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        self.db = db
        self.challenge_repo = OtpChallengeRepository(db)
        self.tenant_repo = TenantRepository(db)
        self.email_service = email_service or EmailService()
        self.rate_limiter = rate_limiter or otp_rate_limiter

    async def request_otp(self, tenant: Tenant, otp_type: OtpType) -> OtpChallenge:
        """Issue a new code for one channel and deliver it.

        Raises:
            OtpRateLimitedError: Too many codes requested for this channel.
            VerificationError: The tenant is already active.
        """
        if tenant.status == TenantStatus.ACTIVE.value:
            raise VerificationError("Tenant is already active")

        key = f"{tenant.id}:{otp_type.value}"
        if not self.rate_limiter.is_allowed(key):
            raise OtpRateLimitedError(self.rate_limiter.retry_after(key))

        code = generate_otp_code()
        destination = str(tenant.email if otp_type == OtpType.EMAIL else tenant.phone)
        challenge = self.challenge_repo.create(
            tenant_id=tenant.id,  # type: ignore[arg-type]
            otp_type=otp_type,
            destination=destination,
            code_hash=hash_otp_code(tenant.id, otp_type, code),
            expires_at=utc_now() + timedelta(seconds=settings.OTP_TTL_SECONDS),
        )

        if otp_type == OtpType.EMAIL:
            await self.email_service.send_otp_email(tenant, code, settings.OTP_TTL_SECONDS)
        else:
            # No SMS provider is configured.
            logger.debug("Phone verification code for %s: %s", destination, code)

        logger.info("Issued %s verification code for tenant %s", otp_type.value, tenant.id)
        return challenge

    def verify_otp(self, tenant: Tenant, otp_type: OtpType, code: str) -> bool:
        """Check ``code`` against the latest open challenge for the channel.

        Returns False for a wrong code. On success the channel is marked
        verified; the other channel is unaffected.

        Raises:
            VerificationError: No live challenge, expired, or out of attempts.
        """
        challenge = self.challenge_repo.get_latest_open(tenant.id, otp_type)  # type: ignore[arg-type]
        if challenge is None:
            raise VerificationError("No verification code has been requested")

        expires_at = challenge.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        if expires_at <= utc_now():
            raise VerificationError("Verification code has expired. Please request a new one.")
        if challenge.attempts >= settings.OTP_MAX_ATTEMPTS:
            raise VerificationError("Too many incorrect attempts. Please request a new code.")

        self.challenge_repo.record_attempt(challenge)
        expected = hash_otp_code(tenant.id, otp_type, code.strip())
        if not hmac.compare_digest(expected, str(challenge.code_hash)):
            logger.info("Incorrect %s verification code for tenant %s", otp_type.value, tenant.id)
            return False

        self.challenge_repo.consume(challenge)
        self.tenant_repo.mark_verified(tenant, otp_type)
        logger.info("Tenant %s verified %s", tenant.id, otp_type.value)
        return True
