from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, func

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class VolumeDiscountTier(Base):
    """Branch-count range with a percentage discount on branch-multiplied plan pricing.

    ``max_branches`` of NULL means the tier is unbounded above.
    """

    __tablename__ = "volume_discount_tiers"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    plan_id = Column(
        UUIDType,
        ForeignKey("plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    min_branches = Column(Integer, nullable=False)
    max_branches = Column(Integer, nullable=True)
    discount_percentage = Column(Numeric(5, 2), nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
