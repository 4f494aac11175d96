"""Tenant organization being onboarded."""

from enum import Enum

from sqlalchemy import Column, DateTime, String, func

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class TenantStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"


class Tenant(Base):
    """Tenant account.

    ``status`` moves ``pending -> active`` at most once, and only when a
    verified successful payment is completed. ``activation_payment_intent_id``
    records which payment intent performed the activation.
    """

    __tablename__ = "tenants"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    organization_name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default=TenantStatus.PENDING.value)

    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    phone_verified_at = Column(DateTime(timezone=True), nullable=True)

    gateway_customer_id = Column(String(255), nullable=True)
    activation_payment_intent_id = Column(String(255), unique=True, nullable=True)
    activated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def email_verified(self) -> bool:
        return self.email_verified_at is not None

    @property
    def phone_verified(self) -> bool:
        return self.phone_verified_at is not None
