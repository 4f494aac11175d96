from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.otp_challenge import OtpChallenge, OtpType
from app.models.shared import utc_now


class OtpChallengeRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        tenant_id: UUID,
        otp_type: OtpType,
        destination: str,
        code_hash: str,
        expires_at: datetime,
    ) -> OtpChallenge:
        challenge = OtpChallenge(
            tenant_id=tenant_id,
            otp_type=otp_type.value,
            destination=destination,
            code_hash=code_hash,
            expires_at=expires_at,
        )
        self.db.add(challenge)
        self.db.commit()
        self.db.refresh(challenge)
        return challenge

    def get_latest_open(self, tenant_id: UUID, otp_type: OtpType) -> OtpChallenge | None:
        """Most recent challenge for the channel that has not been consumed."""
        return (
            self.db.query(OtpChallenge)
            .filter(
                OtpChallenge.tenant_id == tenant_id,
                OtpChallenge.otp_type == otp_type.value,
                OtpChallenge.consumed_at.is_(None),
            )
            .order_by(OtpChallenge.created_at.desc(), OtpChallenge.expires_at.desc())
            .first()
        )

    def record_attempt(self, challenge: OtpChallenge) -> OtpChallenge:
        challenge.attempts = (challenge.attempts or 0) + 1  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(challenge)
        return challenge

    def consume(self, challenge: OtpChallenge) -> None:
        """Does not commit."""
        challenge.consumed_at = utc_now()  # type: ignore[assignment]

    def delete_expired(self, now: datetime | None = None) -> int:
        cutoff = now or utc_now()
        count = (
            self.db.query(OtpChallenge)
            .filter(OtpChallenge.expires_at < cutoff)
            .delete()
        )
        self.db.commit()
        return int(count)
