import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.idempotency import (
    IdempotencyResult,
    check_idempotency,
    record_idempotency_response,
    release_idempotency_key,
)
from app.repositories.tenant_payment_repository import TenantPaymentRepository
from app.repositories.tenant_repository import TenantRepository
from app.schemas.payment import (
    CompletePaymentRequest,
    CompletePaymentResponse,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    PaymentStatusRequest,
    PaymentStatusResponse,
)
from app.services.email_service import EmailService
from app.services.payment_provider import (
    PaymentIntentNotFoundError,
    PaymentProviderBase,
    PaymentProviderError,
    get_payment_provider,
)
from app.services.payment_status import UnknownGatewayStatusError
from app.services.tenant_activation import TenantActivationService
from app.services.tenant_payment_service import (
    PaymentConflictError,
    PaymentNotFoundError,
    PaymentRequestError,
    TenantPaymentService,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_provider() -> PaymentProviderBase:
    return get_payment_provider()


def _replays_superseded_intent(db: Session, replay: JSONResponse) -> bool:
    if replay.status_code != 200 or replay.headers.get("Idempotency-Replayed") != "true":
        return False
    intent_id = json.loads(bytes(replay.body)).get("payment_intent_id")
    payment = TenantPaymentRepository(db).get_by_intent_id(intent_id) if intent_id else None
    return payment is not None and payment.superseded_at is not None


@router.post(
    "/initiate",
    response_model=InitiatePaymentResponse,
    summary="Initiate payment",
    responses={
        404: {"description": "Tenant not found"},
        409: {"description": "Tenant is already active, or the replayed payment was superseded"},
        422: {"description": "Invalid request, amount mismatch, or Idempotency-Key reused"},
        502: {"description": "Payment provider error"},
    },
)
async def initiate_payment(
    data: InitiatePaymentRequest,
    request: Request,
    db: Session = Depends(get_db),
    provider: PaymentProviderBase = Depends(get_provider),
) -> InitiatePaymentResponse | JSONResponse:
    """Create a payment intent for the tenant's selected plan.

    Send an ``Idempotency-Key`` header to make retries safe; a replay returns
    the original response instead of creating a second intent.
    """
    tenant = TenantRepository(db).get_by_id(data.tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant not found")

    idempotency = check_idempotency(
        request, db, f"tenant:{tenant.id}", data.model_dump(mode="json")
    )
    if isinstance(idempotency, JSONResponse):
        if _replays_superseded_intent(db, idempotency):
            raise HTTPException(
                status_code=409,
                detail="Payment was superseded by a newer plan selection; retry with a new Idempotency-Key",
            )
        return idempotency

    try:
        result = TenantPaymentService(db, provider).initiate(tenant, data)
    except (PaymentConflictError, PaymentRequestError, PaymentProviderError) as e:
        if isinstance(idempotency, IdempotencyResult):
            release_idempotency_key(db, idempotency)
        if isinstance(e, PaymentConflictError):
            raise HTTPException(status_code=409, detail=str(e)) from e
        if isinstance(e, PaymentRequestError):
            raise HTTPException(status_code=422, detail=str(e)) from e
        logger.error("Payment initiation failed for tenant %s: %s", tenant.id, e)
        raise HTTPException(status_code=502, detail="Payment provider error") from e

    if isinstance(idempotency, IdempotencyResult):
        body = result.model_dump(mode="json", by_alias=True)
        record_idempotency_response(db, idempotency, 200, body)

    return result


@router.post(
    "/status",
    response_model=PaymentStatusResponse,
    summary="Get payment status",
    responses={
        404: {"description": "Payment not found"},
        502: {"description": "Payment provider error"},
    },
)
async def payment_status(
    data: PaymentStatusRequest,
    db: Session = Depends(get_db),
    provider: PaymentProviderBase = Depends(get_provider),
) -> PaymentStatusResponse:
    """Fetch the gateway status of a payment intent, with normalized status flags."""
    try:
        return TenantPaymentService(db, provider).status(data.payment_intent)
    except (PaymentNotFoundError, PaymentIntentNotFoundError) as e:
        raise HTTPException(status_code=404, detail="Payment not found") from e
    except (PaymentProviderError, UnknownGatewayStatusError) as e:
        logger.error("Status lookup failed for %s: %s", data.payment_intent, e)
        raise HTTPException(status_code=502, detail="Payment provider error") from e


@router.post(
    "/complete",
    response_model=CompletePaymentResponse,
    summary="Complete payment and activate tenant",
    responses={
        404: {"description": "Tenant or payment not found"},
        409: {"description": "Payment not successful, superseded, or tenant activated by another payment"},
        502: {"description": "Payment provider error"},
    },
)
async def complete_payment(
    data: CompletePaymentRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    provider: PaymentProviderBase = Depends(get_provider),
) -> CompletePaymentResponse:
    """Activate the tenant for a successful payment.

    Safe to repeat: completing again with the same payment intent returns the
    already-active tenant.
    """
    tenant = TenantRepository(db).get_by_id(data.tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant not found")

    try:
        result = TenantActivationService(db, provider).complete(tenant, data.payment_intent)
    except (PaymentNotFoundError, PaymentIntentNotFoundError) as e:
        raise HTTPException(status_code=404, detail="Payment not found") from e
    except PaymentConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except PaymentProviderError as e:
        logger.error("Completion failed for %s: %s", data.payment_intent, e)
        raise HTTPException(status_code=502, detail="Payment provider error") from e

    if result.newly_activated:
        background_tasks.add_task(
            EmailService().send_activation_email,
            str(tenant.email),
            str(tenant.organization_name),
            result.plan_name,
            result.amount_cents,
            result.currency,
        )

    return CompletePaymentResponse(tenant=result.tenant)
