"""Plan assignment for a tenant and the add-ons selected with it."""

from enum import Enum

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, func

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"


class TenantSubscription(Base):
    __tablename__ = "tenant_subscriptions"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    tenant_id = Column(
        UUIDType,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    plan_id = Column(
        UUIDType,
        ForeignKey("plans.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    billing_cycle = Column(String(20), nullable=False)
    branch_count = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.PENDING.value)

    activated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class TenantAddOn(Base):
    """Snapshot of an add-on selection; price is frozen at selection time."""

    __tablename__ = "tenant_add_ons"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    subscription_id = Column(
        UUIDType,
        ForeignKey("tenant_subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    add_on_id = Column(
        UUIDType,
        ForeignKey("plan_add_ons.id", ondelete="RESTRICT"),
        nullable=False,
    )
    addon_name = Column(String(255), nullable=False)
    addon_price_cents = Column(Integer, nullable=False)
    pricing_scope = Column(String(20), nullable=False)
    is_included = Column(Boolean, nullable=False, default=False)
    # [{"branch_index": 0, "branch_name": "...", "is_selected": true}, ...]
    branches = Column(JSON, nullable=False, default=list)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
