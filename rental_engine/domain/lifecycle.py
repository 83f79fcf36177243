"""
Explicit state machines for rental requests and payments.

Every status change in the service goes through `transition_rental` or
`transition_payment`. A (status, event) pair missing from the table is
rejected with InvalidStateError; there are no implicit transitions.
"""

import enum
from typing import Dict, Tuple, Type

from rental_engine.domain.exceptions import InvalidStateError
from rental_engine.domain.models import PaymentStatus, RentalStatus


class RentalEvent(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    WITHDRAW = "WITHDRAW"
    RENEW = "RENEW"
    COMPLETE = "COMPLETE"


class PaymentEvent(str, enum.Enum):
    SETTLE_OK = "SETTLE_OK"
    SETTLE_FAIL = "SETTLE_FAIL"


# APPROVED -> CANCELLED is deliberately absent: approval is a commitment.
RENTAL_TRANSITIONS: Dict[Tuple[RentalStatus, RentalEvent], RentalStatus] = {
    (RentalStatus.PENDING, RentalEvent.APPROVE): RentalStatus.APPROVED,
    (RentalStatus.PENDING, RentalEvent.REJECT): RentalStatus.CANCELLED,
    (RentalStatus.PENDING, RentalEvent.WITHDRAW): RentalStatus.CANCELLED,
    (RentalStatus.APPROVED, RentalEvent.RENEW): RentalStatus.APPROVED,
    (RentalStatus.APPROVED, RentalEvent.COMPLETE): RentalStatus.COMPLETED,
}

RENTAL_TERMINAL = frozenset({RentalStatus.CANCELLED, RentalStatus.COMPLETED})

PAYMENT_TRANSITIONS: Dict[Tuple[PaymentStatus, PaymentEvent], PaymentStatus] = {
    (PaymentStatus.PENDING, PaymentEvent.SETTLE_OK): PaymentStatus.SUCCESS,
    (PaymentStatus.PENDING, PaymentEvent.SETTLE_FAIL): PaymentStatus.FAILED,
}

PAYMENT_TERMINAL = frozenset({PaymentStatus.SUCCESS, PaymentStatus.FAILED})


def check_exhaustive(
    table: Dict[tuple, enum.Enum],
    states: Type[enum.Enum],
    events: Type[enum.Enum],
    terminal: frozenset,
) -> None:
    """
    Validate a transition table against its state and event enums.

    Raises:
        ValueError: if a key or target is not a declared member, a
            terminal state has outgoing edges, or a non-terminal state
            has none
    """
    sources = set()
    for (state, event), target in table.items():
        if not isinstance(state, states) or not isinstance(target, states):
            raise ValueError(f"Unknown state in transition {state!r} -> {target!r}")
        if not isinstance(event, events):
            raise ValueError(f"Unknown event {event!r}")
        if state in terminal:
            raise ValueError(f"Terminal state {state.value} has outgoing transition {event.value}")
        sources.add(state)

    missing = {s for s in states if s not in terminal} - sources
    if missing:
        raise ValueError(f"Non-terminal states without transitions: {sorted(s.value for s in missing)}")


check_exhaustive(RENTAL_TRANSITIONS, RentalStatus, RentalEvent, RENTAL_TERMINAL)
check_exhaustive(PAYMENT_TRANSITIONS, PaymentStatus, PaymentEvent, PAYMENT_TERMINAL)


def transition_rental(current: RentalStatus, event: RentalEvent) -> RentalStatus:
    try:
        return RENTAL_TRANSITIONS[(RentalStatus(current), RentalEvent(event))]
    except KeyError:
        raise InvalidStateError(
            f"Cannot {RentalEvent(event).value.lower()} a rental in status {RentalStatus(current).value}"
        ) from None


def transition_payment(current: PaymentStatus, event: PaymentEvent) -> PaymentStatus:
    try:
        return PAYMENT_TRANSITIONS[(PaymentStatus(current), PaymentEvent(event))]
    except KeyError:
        raise InvalidStateError(
            f"Cannot apply {PaymentEvent(event).value} to a payment in status {PaymentStatus(current).value}"
        ) from None


def is_completion_due(rental, today, complete_unpaid: bool = False) -> bool:
    """
    APPROVED rentals complete once their term has elapsed.

    The end date is exclusive, so a rental ending today is over. Unpaid
    rentals stay APPROVED (and payable) unless `complete_unpaid` is set.
    """
    if rental.status != RentalStatus.APPROVED or rental.end_date > today:
        return False
    return rental.is_paid or complete_unpaid
