"""Payment intent records for tenant onboarding."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, func

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class PaymentGatewayProvider(str, Enum):
    """Supported payment gateways."""

    STRIPE = "stripe"
    DEMO = "demo"  # In-process gateway for demo checkout and tests


class IntentType(str, Enum):
    PAYMENT = "payment"
    SETUP = "setup"


class TenantPayment(Base):
    """Local mirror of an external payment intent.

    Created by the initiate call and afterwards updated only from gateway
    status polls. ``payment_intent_id`` is the idempotency key for completion.
    """

    __tablename__ = "tenant_payments"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    tenant_id = Column(
        UUIDType,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subscription_id = Column(
        UUIDType,
        ForeignKey("tenant_subscriptions.id", ondelete="CASCADE"),
        nullable=False,
    )
    provider = Column(String(50), nullable=False, default=PaymentGatewayProvider.STRIPE.value)
    payment_intent_id = Column(String(255), unique=True, index=True, nullable=False)
    intent_type = Column(String(20), nullable=False, default=IntentType.PAYMENT.value)
    customer_id = Column(String(255), nullable=True)
    client_secret = Column(Text, nullable=True)

    # Raw gateway status, e.g. "requires_payment_method", "processing", "succeeded"
    status = Column(String(50), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    plan_total_cents = Column(Integer, nullable=False)
    branch_addon_total_cents = Column(Integer, nullable=False)
    org_addon_total_cents = Column(Integer, nullable=False)
    amount_cents = Column(Integer, nullable=False)
    last_payment_error = Column(JSON, nullable=True)

    superseded_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
