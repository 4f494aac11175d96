from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class OtpType(str, Enum):
    EMAIL = "email"
    PHONE = "phone"


class OtpChallenge(Base):
    """One-time code issued to verify a tenant's email address or phone number."""

    __tablename__ = "otp_challenges"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    tenant_id = Column(
        UUIDType,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    otp_type = Column(String(10), nullable=False)
    destination = Column(String(255), nullable=False)
    code_hash = Column(String(64), nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    consumed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
