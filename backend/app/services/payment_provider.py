"""Payment gateway abstraction layer.

Supports Stripe PaymentIntents and an in-process demo gateway.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any
from uuid import uuid4

from app.core.config import settings
from app.models.tenant_payment import IntentType, PaymentGatewayProvider


class PaymentProviderError(Exception):
    """The gateway call failed or returned an error."""


class PaymentIntentNotFoundError(PaymentProviderError):
    """The gateway does not know the payment intent."""


@dataclass
class GatewayCharge:
    """Latest charge attempt on an intent."""

    charge_id: str
    status: str
    amount_cents: int
    paid: bool = False
    failure_message: str | None = None
    receipt_url: str | None = None


@dataclass
class GatewayIntent:
    """Payment (or setup) intent as reported by the gateway."""

    intent_id: str
    intent_type: IntentType
    status: str
    amount_cents: int
    currency: str
    customer_id: str | None = None
    client_secret: str | None = None
    last_payment_error: dict[str, Any] | None = None
    charge: GatewayCharge | None = None
    metadata: dict[str, str] = field(default_factory=dict)


class PaymentProviderBase(ABC):
    """Abstract base class for payment gateways."""

    @property
    @abstractmethod
    def provider_name(self) -> PaymentGatewayProvider:
        """Return the provider enum value."""
        pass  # pragma: no cover

    @abstractmethod
    def create_customer(self, email: str, name: str, metadata: dict[str, str] | None = None) -> str:
        """Create a gateway customer and return its id."""
        pass  # pragma: no cover

    @abstractmethod
    def create_payment_intent(
        self,
        amount_cents: int,
        currency: str,
        customer_id: str,
        metadata: dict[str, str] | None = None,
    ) -> GatewayIntent:
        """Create a payment intent, or a setup intent when nothing is due now."""
        pass  # pragma: no cover

    @abstractmethod
    def retrieve_payment_intent(self, intent_id: str) -> GatewayIntent:
        """Fetch the current state of an intent."""
        pass  # pragma: no cover


def _error_dict(error: Any) -> dict[str, Any] | None:
    if not error:
        return None
    return {
        "code": error.get("code"),
        "message": error.get("message"),
        "type": error.get("type"),
        "decline_code": error.get("decline_code"),
    }


class StripeProvider(PaymentProviderBase):
    """Stripe PaymentIntents / SetupIntents."""

    def __init__(self, api_key: str | None = None):
        self.api_key = api_key or settings.stripe_api_key
        self._stripe: Any = None

    @property
    def stripe(self) -> Any:
        """Lazy-load stripe module."""
        if self._stripe is None:
            try:
                import stripe

                stripe.api_key = self.api_key
                self._stripe = stripe
            except ImportError as e:
                raise ImportError("stripe package not installed. Run: pip install stripe") from e
        return self._stripe

    @property
    def provider_name(self) -> PaymentGatewayProvider:
        return PaymentGatewayProvider.STRIPE

    def create_customer(self, email: str, name: str, metadata: dict[str, str] | None = None) -> str:
        try:
            customer = self.stripe.Customer.create(email=email, name=name, metadata=metadata or {})
        except self.stripe.StripeError as e:
            raise PaymentProviderError(f"Stripe customer creation failed: {e}") from e
        return customer.id

    def create_payment_intent(
        self,
        amount_cents: int,
        currency: str,
        customer_id: str,
        metadata: dict[str, str] | None = None,
    ) -> GatewayIntent:
        try:
            if amount_cents == 0:
                intent = self.stripe.SetupIntent.create(
                    customer=customer_id,
                    usage="off_session",
                    metadata=metadata or {},
                )
                return self._from_setup_intent(intent, currency)

            intent = self.stripe.PaymentIntent.create(
                amount=amount_cents,
                currency=currency.lower(),
                customer=customer_id,
                automatic_payment_methods={"enabled": True},
                metadata=metadata or {},
            )
        except self.stripe.StripeError as e:
            raise PaymentProviderError(f"Stripe intent creation failed: {e}") from e
        return self._from_payment_intent(intent)

    def retrieve_payment_intent(self, intent_id: str) -> GatewayIntent:
        try:
            if intent_id.startswith("seti_"):
                return self._from_setup_intent(
                    self.stripe.SetupIntent.retrieve(intent_id), settings.DEFAULT_CURRENCY
                )
            intent = self.stripe.PaymentIntent.retrieve(intent_id, expand=["latest_charge"])
        except self.stripe.InvalidRequestError as e:
            if getattr(e, "http_status", None) == 404:
                raise PaymentIntentNotFoundError(intent_id) from e
            raise PaymentProviderError(f"Stripe intent lookup failed: {e}") from e
        except self.stripe.StripeError as e:
            raise PaymentProviderError(f"Stripe intent lookup failed: {e}") from e
        return self._from_payment_intent(intent)

    def _from_payment_intent(self, intent: Any) -> GatewayIntent:
        charge = None
        latest = intent.get("latest_charge")
        # Unexpanded charges are plain ids.
        if latest and not isinstance(latest, str):
            charge = GatewayCharge(
                charge_id=latest.get("id"),
                status=latest.get("status"),
                amount_cents=latest.get("amount") or 0,
                paid=bool(latest.get("paid")),
                failure_message=latest.get("failure_message"),
                receipt_url=latest.get("receipt_url"),
            )
        return GatewayIntent(
            intent_id=intent.get("id"),
            intent_type=IntentType.PAYMENT,
            status=intent.get("status"),
            amount_cents=intent.get("amount") or 0,
            currency=(intent.get("currency") or settings.DEFAULT_CURRENCY).upper(),
            customer_id=intent.get("customer"),
            client_secret=intent.get("client_secret"),
            last_payment_error=_error_dict(intent.get("last_payment_error")),
            charge=charge,
            metadata=dict(intent.get("metadata") or {}),
        )

    def _from_setup_intent(self, intent: Any, currency: str) -> GatewayIntent:
        return GatewayIntent(
            intent_id=intent.get("id"),
            intent_type=IntentType.SETUP,
            status=intent.get("status"),
            amount_cents=0,
            currency=currency.upper(),
            customer_id=intent.get("customer"),
            client_secret=intent.get("client_secret"),
            last_payment_error=_error_dict(intent.get("last_setup_error")),
            metadata=dict(intent.get("metadata") or {}),
        )


class DemoProvider(PaymentProviderBase):
    """In-process gateway for demo checkout and tests.

    Intents live in a process-wide registry; their status only changes
    through ``set_status``.
    """

    _intents: dict[str, GatewayIntent] = {}
    _lock = threading.Lock()

    @property
    def provider_name(self) -> PaymentGatewayProvider:
        return PaymentGatewayProvider.DEMO

    def create_customer(self, email: str, name: str, metadata: dict[str, str] | None = None) -> str:
        return f"cus_demo_{uuid4().hex[:16]}"

    def create_payment_intent(
        self,
        amount_cents: int,
        currency: str,
        customer_id: str,
        metadata: dict[str, str] | None = None,
    ) -> GatewayIntent:
        is_setup = amount_cents == 0
        prefix = "seti_demo" if is_setup else "pi_demo"
        intent_id = f"{prefix}_{uuid4().hex[:16]}"
        intent = GatewayIntent(
            intent_id=intent_id,
            intent_type=IntentType.SETUP if is_setup else IntentType.PAYMENT,
            status="requires_payment_method",
            amount_cents=amount_cents,
            currency=currency.upper(),
            customer_id=customer_id,
            client_secret=f"{intent_id}_secret_{uuid4().hex[:12]}",
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._intents[intent_id] = intent
        return replace(intent)

    def retrieve_payment_intent(self, intent_id: str) -> GatewayIntent:
        with self._lock:
            intent = self._intents.get(intent_id)
        if intent is None:
            raise PaymentIntentNotFoundError(intent_id)
        return replace(intent)

    @classmethod
    def set_status(
        cls,
        intent_id: str,
        status: str,
        last_payment_error: dict[str, Any] | None = None,
    ) -> GatewayIntent:
        """Move a demo intent to ``status``, recording a charge for terminal outcomes."""
        with cls._lock:
            intent = cls._intents.get(intent_id)
            if intent is None:
                raise PaymentIntentNotFoundError(intent_id)
            intent.status = status
            intent.last_payment_error = last_payment_error
            if status == "succeeded" or last_payment_error:
                intent.charge = GatewayCharge(
                    charge_id=f"ch_demo_{uuid4().hex[:16]}",
                    status="succeeded" if status == "succeeded" else "failed",
                    amount_cents=intent.amount_cents,
                    paid=status == "succeeded",
                    failure_message=(last_payment_error or {}).get("message"),
                )
            return replace(intent)

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._intents.clear()


def get_payment_provider(
    provider: PaymentGatewayProvider | str | None = None,
) -> PaymentProviderBase:
    """Factory function to get the configured payment provider."""
    providers: dict[PaymentGatewayProvider, type[PaymentProviderBase]] = {
        PaymentGatewayProvider.STRIPE: StripeProvider,
        PaymentGatewayProvider.DEMO: DemoProvider,
    }

    try:
        key = PaymentGatewayProvider(provider or settings.PAYMENT_PROVIDER)
    except ValueError as e:
        raise ValueError(f"Unsupported payment provider: {provider}") from e

    return providers[key]()
