"""
Message delivery state machine.

PENDING -> SENT -> DELIVERED -> READ, with ERROR reachable from PENDING/SENT.
"""

from enum import Enum

from zapflow.errors import DeliveryStateError


class DeliveryStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    READ = "READ"
    ERROR = "ERROR"


TRANSITIONS: dict[DeliveryStatus, frozenset[DeliveryStatus]] = {
    DeliveryStatus.PENDING: frozenset({DeliveryStatus.SENT, DeliveryStatus.ERROR}),
    DeliveryStatus.SENT: frozenset({DeliveryStatus.DELIVERED, DeliveryStatus.READ, DeliveryStatus.ERROR}),
    DeliveryStatus.DELIVERED: frozenset({DeliveryStatus.READ}),
    DeliveryStatus.READ: frozenset(),
    DeliveryStatus.ERROR: frozenset(),
}


def can_advance(current: DeliveryStatus, target: DeliveryStatus) -> bool:
    return current == target or target in TRANSITIONS[current]


def advance(current: DeliveryStatus, target: DeliveryStatus) -> DeliveryStatus:
    """Validate a transition. Re-applying the current state is a no-op."""
    if not can_advance(current, target):
        raise DeliveryStateError(current.value, target.value)
    return target
