"""Payment lifecycle state machine for tenant onboarding.

``PaymentState`` is an immutable value tagged by ``phase``; ``transition``
is a pure function from (state, event) to the next state. Pairs that are not
defined raise ``IllegalTransitionError`` so that, for example, a completion
can never be requested before a status poll reported success for the same
payment intent.

    NOT_STARTED -> INITIATING -> AWAITING_CONFIRMATION -> PROCESSING
        -> SUCCEEDED | FAILED | REQUIRES_ACTION
    SUCCEEDED -> COMPLETING -> COMPLETED

``COMPLETED`` and ``ERROR`` are terminal for an attempt.
"""

from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from app.schemas.payment import ActivatedTenant, LastPaymentError, PaymentIntentRecord, StatusInfo
from app.services.payment_status import (
    decline_message,
    is_recoverable_decline,
    map_decline_error,
)


class PaymentPhase(str, Enum):
    NOT_STARTED = "not_started"
    INITIATING = "initiating"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REQUIRES_ACTION = "requires_action"
    COMPLETING = "completing"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_PHASES = frozenset({PaymentPhase.COMPLETED, PaymentPhase.ERROR})


class FailureKind(str, Enum):
    VALIDATION = "validation"
    GATEWAY = "gateway"
    DECLINED = "declined"
    CONSISTENCY = "consistency"


@dataclass(frozen=True)
class PaymentFailure:
    """Typed reason for a failed step, with a human-readable message."""

    kind: FailureKind
    message: str
    retryable: bool = False
    code: str | None = None


@dataclass(frozen=True)
class PaymentState:
    phase: PaymentPhase = PaymentPhase.NOT_STARTED
    intent_id: str | None = None
    intent: PaymentIntentRecord | None = None
    status_info: StatusInfo | None = None
    # Intent id for which a poll observed is_successful=True
    verified_intent_id: str | None = None
    tenant: ActivatedTenant | None = None
    failure: PaymentFailure | None = None
    completion_attempts: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def can_retry(self) -> bool:
        """A failed payment may be retried on the same intent with a new payment method."""
        return (
            self.phase == PaymentPhase.FAILED
            and self.status_info is not None
            and self.status_info.can_retry
        )


# --- events -----------------------------------------------------------------


@dataclass(frozen=True)
class InitiateRequested:
    pass


@dataclass(frozen=True)
class IntentCreated:
    intent: PaymentIntentRecord


@dataclass(frozen=True)
class Resumed:
    """Pick up an existing intent, e.g. after the page reloaded mid-payment."""

    intent_id: str


@dataclass(frozen=True)
class ClientConfirmed:
    pass


@dataclass(frozen=True)
class ClientDeclined:
    error: LastPaymentError | None = None


@dataclass(frozen=True)
class StatusPolled:
    intent_id: str
    status_info: StatusInfo
    intent: PaymentIntentRecord | None = None


@dataclass(frozen=True)
class PollFailed:
    failure: PaymentFailure


@dataclass(frozen=True)
class RetryWithNewPaymentMethod:
    pass


@dataclass(frozen=True)
class CompleteRequested:
    intent_id: str


@dataclass(frozen=True)
class CompletionAcknowledged:
    tenant: ActivatedTenant


@dataclass(frozen=True)
class CompletionFailed:
    failure: PaymentFailure
    max_attempts: int


@dataclass(frozen=True)
class SelectionChanged:
    pass


@dataclass(frozen=True)
class Failed:
    """Unrecoverable failure at the current step."""

    failure: PaymentFailure


PaymentEvent = (
    InitiateRequested
    | IntentCreated
    | Resumed
    | ClientConfirmed
    | ClientDeclined
    | StatusPolled
    | PollFailed
    | RetryWithNewPaymentMethod
    | CompleteRequested
    | CompletionAcknowledged
    | CompletionFailed
    | SelectionChanged
    | Failed
)


class IllegalTransitionError(RuntimeError):
    def __init__(self, phase: PaymentPhase, event: Any):
        self.phase = phase
        self.event = event
        super().__init__(f"{type(event).__name__} is not allowed in phase {phase.value}")


def _error(state: PaymentState, message: str, kind: FailureKind = FailureKind.CONSISTENCY) -> PaymentState:
    return replace(
        state,
        phase=PaymentPhase.ERROR,
        failure=PaymentFailure(kind=kind, message=message),
    )


# --- handlers ---------------------------------------------------------------


def _start_initiate(state: PaymentState, event: InitiateRequested) -> PaymentState:
    # A fresh intent; nothing from an earlier intent carries over.
    return PaymentState(phase=PaymentPhase.INITIATING)


def _intent_created(state: PaymentState, event: IntentCreated) -> PaymentState:
    return replace(
        state,
        phase=PaymentPhase.AWAITING_CONFIRMATION,
        intent_id=event.intent.payment_intent_id,
        intent=event.intent,
    )


def _resumed(state: PaymentState, event: Resumed) -> PaymentState:
    return PaymentState(phase=PaymentPhase.PROCESSING, intent_id=event.intent_id)


def _client_confirmed(state: PaymentState, event: ClientConfirmed) -> PaymentState:
    return replace(state, phase=PaymentPhase.PROCESSING, failure=None)


def _client_declined(state: PaymentState, event: ClientDeclined) -> PaymentState:
    retryable = is_recoverable_decline(event.error)
    message = decline_message(event.error)
    return replace(
        state,
        phase=PaymentPhase.FAILED,
        status_info=StatusInfo(is_failed=True, can_retry=retryable, status_message=message),
        failure=PaymentFailure(
            kind=FailureKind.DECLINED,
            message=message,
            retryable=retryable,
            code=map_decline_error(event.error).value,
        ),
    )


def _status_polled(state: PaymentState, event: StatusPolled) -> PaymentState:
    if event.intent_id != state.intent_id:
        return _error(state, "Payment status was reported for a different payment")

    info = event.status_info
    if not info.is_consistent:
        return _error(state, "Payment gateway reported an inconsistent payment status")

    polled = replace(state, intent=event.intent or state.intent, status_info=info)
    if info.is_successful:
        return replace(
            polled,
            phase=PaymentPhase.SUCCEEDED,
            verified_intent_id=event.intent_id,
            failure=None,
        )
    if info.is_failed:
        last_error = polled.intent.last_payment_error if polled.intent else None
        return replace(
            polled,
            phase=PaymentPhase.FAILED,
            failure=PaymentFailure(
                kind=FailureKind.DECLINED,
                message=info.status_message or decline_message(last_error),
                retryable=info.can_retry,
                code=map_decline_error(last_error).value,
            ),
        )
    if info.requires_action:
        return replace(polled, phase=PaymentPhase.REQUIRES_ACTION)
    return replace(polled, phase=PaymentPhase.PROCESSING)


def _poll_failed(state: PaymentState, event: PollFailed) -> PaymentState:
    if event.failure.retryable:
        # Intent is unchanged; the caller polls again.
        return replace(state, failure=event.failure)
    return replace(state, phase=PaymentPhase.ERROR, failure=event.failure)


def _retry_new_method(state: PaymentState, event: RetryWithNewPaymentMethod) -> PaymentState:
    if not state.can_retry:
        raise IllegalTransitionError(state.phase, event)
    return replace(
        state,
        phase=PaymentPhase.AWAITING_CONFIRMATION,
        status_info=None,
        failure=None,
    )


def _complete_requested(state: PaymentState, event: CompleteRequested) -> PaymentState:
    if state.verified_intent_id is None or event.intent_id != state.verified_intent_id:
        return _error(state, "Completion requested for a payment that was not confirmed successful")
    return replace(
        state,
        phase=PaymentPhase.COMPLETING,
        completion_attempts=state.completion_attempts + 1,
    )


def _completion_acknowledged(state: PaymentState, event: CompletionAcknowledged) -> PaymentState:
    return replace(state, phase=PaymentPhase.COMPLETED, tenant=event.tenant, failure=None)


def _completion_failed(state: PaymentState, event: CompletionFailed) -> PaymentState:
    if event.failure.retryable and state.completion_attempts < event.max_attempts:
        # Back to SUCCEEDED so the caller re-issues the (idempotent) completion.
        return replace(state, phase=PaymentPhase.SUCCEEDED, failure=event.failure)
    return replace(state, phase=PaymentPhase.ERROR, failure=event.failure)


def _selection_unchanged(state: PaymentState, event: SelectionChanged) -> PaymentState:
    return state


def _selection_discards_intent(state: PaymentState, event: SelectionChanged) -> PaymentState:
    return PaymentState()


def _selection_diverged(state: PaymentState, event: SelectionChanged) -> PaymentState:
    return _error(state, "Plan selection changed while a payment was in progress")


def _failed(state: PaymentState, event: Failed) -> PaymentState:
    return replace(state, phase=PaymentPhase.ERROR, failure=event.failure)


_Handler = Callable[[PaymentState, Any], PaymentState]

_P = PaymentPhase
_TRANSITIONS: dict[tuple[PaymentPhase, type], _Handler] = {
    (_P.NOT_STARTED, InitiateRequested): _start_initiate,
    (_P.FAILED, InitiateRequested): _start_initiate,
    (_P.NOT_STARTED, Resumed): _resumed,
    (_P.INITIATING, IntentCreated): _intent_created,
    (_P.AWAITING_CONFIRMATION, ClientConfirmed): _client_confirmed,
    (_P.REQUIRES_ACTION, ClientConfirmed): _client_confirmed,
    (_P.AWAITING_CONFIRMATION, ClientDeclined): _client_declined,
    (_P.REQUIRES_ACTION, ClientDeclined): _client_declined,
    (_P.PROCESSING, StatusPolled): _status_polled,
    (_P.REQUIRES_ACTION, StatusPolled): _status_polled,
    (_P.PROCESSING, PollFailed): _poll_failed,
    (_P.REQUIRES_ACTION, PollFailed): _poll_failed,
    (_P.FAILED, RetryWithNewPaymentMethod): _retry_new_method,
    (_P.SUCCEEDED, CompleteRequested): _complete_requested,
    (_P.COMPLETING, CompletionAcknowledged): _completion_acknowledged,
    (_P.COMPLETING, CompletionFailed): _completion_failed,
    (_P.NOT_STARTED, SelectionChanged): _selection_unchanged,
    (_P.AWAITING_CONFIRMATION, SelectionChanged): _selection_discards_intent,
    (_P.FAILED, SelectionChanged): _selection_discards_intent,
    (_P.REQUIRES_ACTION, SelectionChanged): _selection_discards_intent,
    (_P.INITIATING, SelectionChanged): _selection_diverged,
    (_P.PROCESSING, SelectionChanged): _selection_diverged,
    (_P.SUCCEEDED, SelectionChanged): _selection_diverged,
    (_P.COMPLETING, SelectionChanged): _selection_diverged,
}


def transition(state: PaymentState, event: PaymentEvent) -> PaymentState:
    """Return the state that follows ``state`` on ``event``.

    Raises:
        IllegalTransitionError: The event is not defined for the current phase,
            including any event on a terminal phase.
    """
    if state.is_terminal:
        raise IllegalTransitionError(state.phase, event)
    if isinstance(event, Failed):
        return _failed(state, event)
    handler = _TRANSITIONS.get((state.phase, type(event)))
    if handler is None:
        raise IllegalTransitionError(state.phase, event)
    return handler(state, event)


def allows(state: PaymentState, event_type: type) -> bool:
    """Whether an event of ``event_type`` is defined for the current phase."""
    if state.is_terminal:
        return False
    return event_type is Failed or (state.phase, event_type) in _TRANSITIONS
