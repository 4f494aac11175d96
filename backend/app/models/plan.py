"""Plan catalog model."""

from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text, func

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Plan(Base):
    """Subscription plan offered during tenant onboarding. Read-only at onboarding time."""

    __tablename__ = "plans"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    code = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    monthly_price_cents = Column(Integer, nullable=False, default=0)
    annual_discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")

    included_branches_count = Column(Integer, nullable=False, default=1)
    allow_branch_overage = Column(Boolean, nullable=False, default=True)

    is_featured = Column(Boolean, nullable=False, default=False)
    is_custom = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
