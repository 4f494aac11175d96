import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.add_on import PlanAddOn
from app.models.feature import PlanFeature
from app.models.plan import Plan
from app.models.volume_discount_tier import VolumeDiscountTier
from app.schemas.plan import (
    PlanAddOnOutput,
    PlanCreate,
    PlanFeatureOutput,
    PlanResponse,
    VolumeDiscountTierOutput,
)
from app.services.pricing import find_overlapping_tiers

logger = logging.getLogger(__name__)


class PlanRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(self, skip: int = 0, limit: int = 100) -> list[Plan]:
        return (
            self.db.query(Plan)
            .order_by(Plan.display_order, Plan.created_at)
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count(self) -> int:
        return self.db.query(func.count(Plan.id)).scalar() or 0

    def get_by_id(self, plan_id: UUID) -> Plan | None:
        return self.db.query(Plan).filter(Plan.id == plan_id).first()

    def get_by_code(self, code: str) -> Plan | None:
        return self.db.query(Plan).filter(Plan.code == code).first()

    def code_exists(self, code: str) -> bool:
        """Check if a plan with the given code already exists."""
        return self.get_by_code(code) is not None

    def get_features(self, plan_id: UUID) -> list[PlanFeature]:
        return (
            self.db.query(PlanFeature)
            .filter(PlanFeature.plan_id == plan_id)
            .order_by(PlanFeature.display_order)
            .all()
        )

    def get_add_ons(self, plan_id: UUID) -> list[PlanAddOn]:
        return (
            self.db.query(PlanAddOn)
            .filter(PlanAddOn.plan_id == plan_id)
            .order_by(PlanAddOn.display_order)
            .all()
        )

    def get_add_on(self, plan_id: UUID, add_on_id: UUID) -> PlanAddOn | None:
        return (
            self.db.query(PlanAddOn)
            .filter(PlanAddOn.plan_id == plan_id, PlanAddOn.id == add_on_id)
            .first()
        )

    def get_volume_discount_tiers(self, plan_id: UUID) -> list[VolumeDiscountTier]:
        return (
            self.db.query(VolumeDiscountTier)
            .filter(VolumeDiscountTier.plan_id == plan_id)
            .order_by(VolumeDiscountTier.display_order)
            .all()
        )

    def create(self, data: PlanCreate) -> Plan:
        plan = Plan(
            code=data.code,
            name=data.name,
            description=data.description,
            monthly_price_cents=data.monthly_price_cents,
            annual_discount_percentage=data.annual_discount_percentage,
            currency=data.currency,
            included_branches_count=data.included_branches_count,
            allow_branch_overage=data.allow_branch_overage,
            is_featured=data.is_featured,
            is_custom=data.is_custom,
            display_order=data.display_order,
        )
        self.db.add(plan)
        self.db.flush()  # Get the plan ID

        for position, feature in enumerate(data.features):
            self.db.add(PlanFeature(plan_id=plan.id, display_order=position, **feature.model_dump()))
        for position, add_on in enumerate(data.add_ons):
            self.db.add(
                PlanAddOn(
                    plan_id=plan.id,
                    display_order=position,
                    **add_on.model_dump(exclude={"pricing_scope"}),
                    pricing_scope=add_on.pricing_scope.value,
                )
            )
        for position, tier in enumerate(data.volume_discount_tiers):
            self.db.add(VolumeDiscountTier(plan_id=plan.id, display_order=position, **tier.model_dump()))

        self.db.commit()
        self.db.refresh(plan)
        return plan

    def delete(self, plan_id: UUID) -> bool:
        plan = self.get_by_id(plan_id)
        if not plan:
            return False
        self.db.query(PlanFeature).filter(PlanFeature.plan_id == plan_id).delete()
        self.db.query(PlanAddOn).filter(PlanAddOn.plan_id == plan_id).delete()
        self.db.query(VolumeDiscountTier).filter(VolumeDiscountTier.plan_id == plan_id).delete()
        self.db.delete(plan)
        self.db.commit()
        return True

    def build_response(self, plan: Plan) -> PlanResponse:
        """Plan with its features, add-ons and tiers, each in display order."""
        tiers = [VolumeDiscountTierOutput.model_validate(t) for t in self.get_volume_discount_tiers(plan.id)]
        overlaps = find_overlapping_tiers(tiers)
        if overlaps:
            # Pricing picks the first matching tier in display order.
            logger.warning(
                "Plan %s has %d overlapping volume discount tier pair(s): %s",
                plan.code,
                len(overlaps),
                ", ".join(f"{a.name}/{b.name}" for a, b in overlaps),
            )

        response = PlanResponse.model_validate(plan)
        return response.model_copy(
            update={
                "features": [PlanFeatureOutput.model_validate(f) for f in self.get_features(plan.id)],
                "add_ons": [PlanAddOnOutput.model_validate(a) for a in self.get_add_ons(plan.id)],
                "volume_discount_tiers": tiers,
            }
        )
