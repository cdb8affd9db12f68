"""
Transaction status state machine.

The single place a transaction's status is changed. Legal edges:

  new        → processing
  processing → completed | failed

``completed`` and ``failed`` are terminal. The machine never talks to a
provider; the orchestrator decides *which* target to apply after consulting
one, which keeps this module deterministic.
"""

from typing import Union

from paylink.engine.errors import InvalidTransition
from paylink.models.enums import TransactionStatus

StatusLike = Union[TransactionStatus, str]

ALLOWED_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.NEW: frozenset({TransactionStatus.PROCESSING}),
    TransactionStatus.PROCESSING: frozenset({TransactionStatus.COMPLETED, TransactionStatus.FAILED}),
    TransactionStatus.COMPLETED: frozenset(),
    TransactionStatus.FAILED: frozenset(),
}

TERMINAL_STATUSES = frozenset({TransactionStatus.COMPLETED, TransactionStatus.FAILED})


def _coerce(status: StatusLike) -> TransactionStatus | None:
    try:
        return TransactionStatus(status)
    except ValueError:
        return None


def can_transition(current: StatusLike, target: StatusLike) -> bool:
    source = _coerce(current)
    destination = _coerce(target)
    if source is None or destination is None:
        return False
    return destination in ALLOWED_TRANSITIONS[source]


def check_transition(current: StatusLike, target: StatusLike) -> None:
    """Raise InvalidTransition when ``current → target`` is not an edge."""
    if not can_transition(current, target):
        raise InvalidTransition(current, target)


def apply(transaction, target: StatusLike) -> None:
    """
    Move a transaction to ``target`` if the edge is legal.

    Clears ``pending_reference`` when entering a terminal state: the
    correlation id has been consumed by then.

    Raises:
        InvalidTransition: For any edge not in ALLOWED_TRANSITIONS. The
            transaction is left untouched.
    """
    check_transition(transaction.status, target)
    destination = TransactionStatus(target)
    transaction.status = destination.value
    if destination in TERMINAL_STATUSES:
        transaction.pending_reference = None
