"""Normalization of raw gateway payment statuses and decline errors."""

from enum import Enum

from app.schemas.payment import LastPaymentError, StatusInfo

# Declines where retrying with another card is not offered; the tenant is
# sent to support instead.
HARD_DECLINE_CODES = frozenset(
    {
        "lost_card",
        "stolen_card",
        "pickup_card",
        "fraudulent",
        "restricted_card",
        "security_violation",
    }
)

INVALID_CARD_CODES = frozenset(
    {
        "invalid_number",
        "invalid_expiry_month",
        "invalid_expiry_year",
        "invalid_cvc",
        "incorrect_number",
        "incorrect_cvc",
    }
)


class PaymentErrorCode(str, Enum):
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    EXPIRED_CARD = "EXPIRED_CARD"
    CARD_DECLINED = "CARD_DECLINED"
    INVALID_CARD = "INVALID_CARD"
    PROCESSING_ERROR = "PROCESSING_ERROR"


class UnknownGatewayStatusError(ValueError):
    """The gateway reported a status this service does not understand."""


DEFAULT_DECLINE_MESSAGE = "Your payment could not be processed. Please try again."

_STATUS_MESSAGES = {
    "succeeded": "Payment completed successfully.",
    "processing": "Your payment is being processed.",
    "requires_confirmation": "Your payment is awaiting confirmation.",
    "requires_capture": "Your payment has been authorized and is being finalized.",
    "requires_action": "Additional authentication is required to complete your payment.",
    "requires_payment_method": "Please provide a payment method.",
    "canceled": "This payment session has expired. Please start again.",
}


def map_decline_error(error: LastPaymentError | None) -> PaymentErrorCode:
    """Map a gateway decline to the error code shown to the tenant."""
    if error is None:
        return PaymentErrorCode.PROCESSING_ERROR

    code = error.code or ""
    decline_code = error.decline_code or ""
    if code == "card_declined" or error.type == "card_error":
        if decline_code == "insufficient_funds":
            return PaymentErrorCode.INSUFFICIENT_FUNDS
        if decline_code == "expired_card":
            return PaymentErrorCode.EXPIRED_CARD
        return PaymentErrorCode.CARD_DECLINED
    if code in INVALID_CARD_CODES:
        return PaymentErrorCode.INVALID_CARD
    if code == "expired_card":
        return PaymentErrorCode.EXPIRED_CARD
    return PaymentErrorCode.PROCESSING_ERROR


def is_recoverable_decline(error: LastPaymentError | None) -> bool:
    """Whether the tenant may retry the same intent with a new payment method."""
    if error is None:
        return True
    return (error.decline_code or "") not in HARD_DECLINE_CODES


def decline_message(error: LastPaymentError | None) -> str:
    if error is not None and error.message:
        return error.message
    return DEFAULT_DECLINE_MESSAGE


def normalize_status(status: str, last_payment_error: LastPaymentError | None = None) -> StatusInfo:
    """Translate a raw gateway intent status into ``StatusInfo`` flags.

    Raises:
        UnknownGatewayStatusError: ``status`` is not a known intent status.
    """
    if status not in _STATUS_MESSAGES:
        raise UnknownGatewayStatusError(f"Unknown payment status: {status}")

    message = _STATUS_MESSAGES[status]
    if status == "succeeded":
        return StatusInfo(is_successful=True, status_message=message)
    if status == "canceled":
        return StatusInfo(is_failed=True, can_retry=False, status_message=message)
    if status == "requires_payment_method" and last_payment_error is not None:
        return StatusInfo(
            is_failed=True,
            can_retry=is_recoverable_decline(last_payment_error),
            status_message=decline_message(last_payment_error),
        )
    return StatusInfo(
        is_pending=True,
        requires_action=status == "requires_action",
        status_message=message,
    )
