from datetime import datetime
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models.otp_challenge import OtpType
from app.models.shared import utc_now
from app.models.tenant import Tenant, TenantStatus
from app.schemas.tenant import TenantCreate


class TenantRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, tenant_id: UUID) -> Tenant | None:
        return self.db.query(Tenant).filter(Tenant.id == tenant_id).first()

    def get_by_email(self, email: str) -> Tenant | None:
        return self.db.query(Tenant).filter(Tenant.email == email.lower()).first()

    def email_exists(self, email: str) -> bool:
        return self.get_by_email(email) is not None

    def create(self, data: TenantCreate) -> Tenant:
        tenant = Tenant(
            organization_name=data.organization_name,
            contact_name=data.contact_name,
            email=str(data.email).lower(),
            phone=data.phone,
            status=TenantStatus.PENDING.value,
        )
        self.db.add(tenant)
        self.db.commit()
        self.db.refresh(tenant)
        return tenant

    def mark_verified(self, tenant: Tenant, otp_type: OtpType) -> Tenant:
        now = utc_now()
        if otp_type == OtpType.EMAIL:
            tenant.email_verified_at = now  # type: ignore[assignment]
        else:
            tenant.phone_verified_at = now  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(tenant)
        return tenant

    def set_gateway_customer(self, tenant: Tenant, customer_id: str) -> Tenant:
        tenant.gateway_customer_id = customer_id  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(tenant)
        return tenant

    def activate_if_pending(self, tenant_id: UUID, payment_intent_id: str, activated_at: datetime) -> bool:
        """Flip ``pending -> active`` in one conditional UPDATE.

        Returns False when the tenant was no longer pending, in which case
        nothing was written. Does not commit.
        """
        result = self.db.execute(
            update(Tenant)
            .where(Tenant.id == tenant_id, Tenant.status == TenantStatus.PENDING.value)
            .values(
                status=TenantStatus.ACTIVE.value,
                activation_payment_intent_id=payment_intent_id,
                activated_at=activated_at,
            )
        )
        return result.rowcount == 1
