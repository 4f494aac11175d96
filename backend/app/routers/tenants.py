from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.tenant import Tenant
from app.repositories.tenant_repository import TenantRepository
from app.schemas.tenant import (
    OtpRequest,
    OtpRequestResponse,
    OtpVerifyRequest,
    OtpVerifyResponse,
    PlanAssignmentRequest,
    PlanAssignmentResponse,
    TenantCreate,
    TenantResponse,
)
from app.services.plan_assignment import (
    PlanAssignmentError,
    PlanAssignmentService,
    TenantAlreadyActiveError,
)
from app.services.verification_service import (
    OtpRateLimitedError,
    VerificationError,
    VerificationService,
)

router = APIRouter()


def _get_tenant_or_404(db: Session, tenant_id: UUID) -> Tenant:
    tenant = TenantRepository(db).get_by_id(tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return tenant


@router.post(
    "/",
    response_model=TenantResponse,
    status_code=201,
    summary="Create tenant",
    responses={
        409: {"description": "Tenant with this email already exists"},
        422: {"description": "Validation error"},
    },
)
async def create_tenant(
    data: TenantCreate,
    db: Session = Depends(get_db),
) -> Tenant:
    """Register a pending tenant from the company details step."""
    repo = TenantRepository(db)
    if repo.email_exists(str(data.email)):
        raise HTTPException(status_code=409, detail="Tenant with this email already exists")
    return repo.create(data)


@router.get(
    "/{tenant_id}",
    response_model=TenantResponse,
    summary="Get tenant",
    responses={404: {"description": "Tenant not found"}},
)
async def get_tenant(
    tenant_id: UUID,
    db: Session = Depends(get_db),
) -> Tenant:
    return _get_tenant_or_404(db, tenant_id)


@router.post(
    "/{tenant_id}/otp/request",
    response_model=OtpRequestResponse,
    summary="Request verification code",
    responses={
        404: {"description": "Tenant not found"},
        409: {"description": "Tenant is already active"},
        429: {"description": "Too many codes requested"},
    },
)
async def request_otp(
    tenant_id: UUID,
    data: OtpRequest,
    db: Session = Depends(get_db),
) -> OtpRequestResponse:
    """Send a one-time code to the tenant's email address or phone number."""
    tenant = _get_tenant_or_404(db, tenant_id)
    try:
        challenge = await VerificationService(db).request_otp(tenant, data.otp_type)
    except OtpRateLimitedError as e:
        raise HTTPException(
            status_code=429,
            detail=str(e),
            headers={"Retry-After": str(e.retry_after)},
        ) from e
    except VerificationError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return OtpRequestResponse(
        otp_type=data.otp_type,
        destination=str(challenge.destination),
        expires_at=challenge.expires_at,  # type: ignore[arg-type]
    )


@router.post(
    "/{tenant_id}/otp/verify",
    response_model=OtpVerifyResponse,
    summary="Verify code",
    responses={
        400: {"description": "No live code, code expired, or too many attempts"},
        404: {"description": "Tenant not found"},
    },
)
async def verify_otp(
    tenant_id: UUID,
    data: OtpVerifyRequest,
    db: Session = Depends(get_db),
) -> OtpVerifyResponse:
    """Check a one-time code. Email and phone are verified independently."""
    tenant = _get_tenant_or_404(db, tenant_id)
    try:
        verified = VerificationService(db).verify_otp(tenant, data.otp_type, data.otp_code)
    except VerificationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return OtpVerifyResponse(
        verified=verified,
        email_verified=tenant.email_verified,
        phone_verified=tenant.phone_verified,
    )


@router.put(
    "/{tenant_id}/plan",
    response_model=PlanAssignmentResponse,
    summary="Assign plan",
    responses={
        404: {"description": "Tenant not found"},
        409: {"description": "Tenant is already active"},
        422: {"description": "Invalid plan, branch count or add-on selection"},
    },
)
async def assign_plan(
    tenant_id: UUID,
    data: PlanAssignmentRequest,
    db: Session = Depends(get_db),
) -> PlanAssignmentResponse:
    """Store the selected plan, branch count and add-ons for the tenant."""
    tenant = _get_tenant_or_404(db, tenant_id)
    try:
        return PlanAssignmentService(db).assign(tenant, data)
    except TenantAlreadyActiveError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except PlanAssignmentError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@router.get(
    "/{tenant_id}/plan",
    response_model=PlanAssignmentResponse,
    summary="Get plan assignment",
    responses={404: {"description": "Tenant or plan assignment not found"}},
)
async def get_plan_assignment(
    tenant_id: UUID,
    db: Session = Depends(get_db),
) -> PlanAssignmentResponse:
    tenant = _get_tenant_or_404(db, tenant_id)
    assignment = PlanAssignmentService(db).get_assignment(tenant)
    if assignment is None:
        raise HTTPException(status_code=404, detail="No plan assigned")
    return assignment
