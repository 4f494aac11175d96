"""Add-on catalog model attached to a plan."""

from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class PricingScope(str, Enum):
    """How an add-on's price multiplies."""

    BRANCH = "branch"
    ORGANIZATION = "organization"


class PlanAddOn(Base):
    """Add-on offered with a plan, priced per selected branch or once per organization."""

    __tablename__ = "plan_add_ons"
    __table_args__ = (
        UniqueConstraint("plan_id", "code", name="uq_plan_add_ons_plan_code"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    plan_id = Column(
        UUIDType,
        ForeignKey("plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    price_cents = Column(Integer, nullable=False, default=0)
    pricing_scope = Column(String(20), nullable=False, default=PricingScope.ORGANIZATION.value)
    # Bundled free with the plan and not removable during onboarding
    is_included = Column(Boolean, nullable=False, default=False)

    default_quantity = Column(Integer, nullable=True)
    min_quantity = Column(Integer, nullable=True)
    max_quantity = Column(Integer, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
