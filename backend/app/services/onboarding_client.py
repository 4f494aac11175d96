"""Async HTTP client for the onboarding payment and verification endpoints."""

import logging
from typing import Any, TypeVar
from uuid import UUID

import httpx
from pydantic import BaseModel, ValidationError

from app.core.config import settings
from app.models.otp_challenge import OtpType
from app.models.plan import BillingCycle
from app.schemas.onboarding import PriceBreakdown
from app.schemas.payment import (
    CompletePaymentResponse,
    InitiatePaymentResponse,
    PaymentStatusResponse,
)
from app.schemas.tenant import OtpVerifyResponse

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """A call to the onboarding API did not produce a usable response."""

    retryable = False

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class GatewayUnavailableError(GatewayError):
    """Network failure, timeout, or 5xx/429. Safe to re-issue."""

    retryable = True


class GatewayRejectedError(GatewayError):
    """The API rejected the request (4xx). Re-issuing it unchanged will not help."""


class GatewayResponseError(GatewayError):
    """A 2xx response whose body does not have the documented shape."""


_ResponseT = TypeVar("_ResponseT", bound=BaseModel)


def _parse(model: type[_ResponseT], path: str, data: Any) -> _ResponseT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.error("Onboarding API call %s returned a malformed body: %s", path, exc)
        raise GatewayResponseError("The payment service returned an unexpected response.") from exc


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or f"HTTP {response.status_code}"
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, str):
        return detail
    return f"Request rejected with HTTP {response.status_code}"


class OnboardingClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.ONBOARDING_API_URL
        self.timeout = timeout if timeout is not None else settings.ONBOARDING_API_TIMEOUT_SECONDS
        self._transport = transport

    async def _post(
        self,
        path: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(path, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Onboarding API call %s failed: %s", path, exc)
            raise GatewayUnavailableError(
                "The payment service could not be reached. Please try again."
            ) from exc

        if response.status_code >= 500 or response.status_code == 429:
            logger.warning("Onboarding API call %s returned %s", path, response.status_code)
            raise GatewayUnavailableError(_detail(response), status_code=response.status_code)
        if response.status_code >= 400:
            raise GatewayRejectedError(_detail(response), status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise GatewayUnavailableError(
                "The payment service returned an unreadable response.",
                status_code=response.status_code,
            ) from exc

    async def initiate_payment(
        self,
        tenant_id: UUID,
        plan_id: UUID,
        billing_cycle: BillingCycle,
        breakdown: PriceBreakdown,
        idempotency_key: str | None = None,
    ) -> InitiatePaymentResponse:
        payload = {
            "tenant_id": str(tenant_id),
            "plan_id": str(plan_id),
            "billing_cycle": billing_cycle.value,
            "plan_tot_amt": breakdown.plan_total_cents,
            "branch_addon_tot_amt": breakdown.branch_addon_total_cents,
            "org_addon_tot_amt": breakdown.org_addon_total_cents,
            "tot_amt": breakdown.total_cents,
        }
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        data = await self._post("/v1/payments/initiate", payload, headers=headers)
        return _parse(InitiatePaymentResponse, "/v1/payments/initiate", data)

    async def payment_status(self, payment_intent_id: str) -> PaymentStatusResponse:
        data = await self._post("/v1/payments/status", {"payment_intent": payment_intent_id})
        return _parse(PaymentStatusResponse, "/v1/payments/status", data)

    async def complete_payment(self, tenant_id: UUID, payment_intent_id: str) -> CompletePaymentResponse:
        data = await self._post(
            "/v1/payments/complete",
            {"tenant_id": str(tenant_id), "payment_intent": payment_intent_id},
        )
        return _parse(CompletePaymentResponse, "/v1/payments/complete", data)

    async def request_otp(self, tenant_id: UUID, otp_type: OtpType) -> None:
        await self._post(f"/v1/tenants/{tenant_id}/otp/request", {"otp_type": otp_type.value})

    async def verify_otp(self, tenant_id: UUID, otp_type: OtpType, otp_code: str) -> OtpVerifyResponse:
        path = f"/v1/tenants/{tenant_id}/otp/verify"
        data = await self._post(path, {"otp_type": otp_type.value, "otp_code": otp_code})
        return _parse(OtpVerifyResponse, path, data)
