"""Legal order-status transitions.

The adjacency table is built once at import as a read-only mapping of
frozensets; everything else in the code base asks these functions instead
of keeping its own copy.
"""

from types import MappingProxyType
from typing import FrozenSet

from .enums import OrderStatus
from .exceptions import InvalidTransition


INITIAL_STATUS = OrderStatus.PENDING

_TRANSITIONS = MappingProxyType({
    OrderStatus.PENDING: frozenset({
        OrderStatus.PAYMENT_CONFIRMED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PAYMENT_CONFIRMED: frozenset({
        OrderStatus.ACCEPTED,
        OrderStatus.REJECTED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.ACCEPTED: frozenset({
        OrderStatus.PREPARING,
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PREPARING: frozenset({
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.READY_FOR_PICKUP: frozenset({
        OrderStatus.ASSIGNED_TO_DRIVER,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.ASSIGNED_TO_DRIVER: frozenset({
        OrderStatus.PICKED_UP,
        OrderStatus.READY_FOR_PICKUP,  # driver unassigned
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PICKED_UP: frozenset({
        OrderStatus.IN_TRANSIT,
        OrderStatus.DELIVERED,
    }),
    OrderStatus.IN_TRANSIT: frozenset({
        OrderStatus.DELIVERED,
    }),
    OrderStatus.DELIVERED: frozenset(),  # terminal
    OrderStatus.CANCELLED: frozenset({
        OrderStatus.REFUNDED,
    }),
    OrderStatus.REJECTED: frozenset({
        OrderStatus.REFUNDED,
    }),
    OrderStatus.REFUNDED: frozenset(),  # terminal
})

# Money captured but delivery not completed
_REFUND_REQUIRED = frozenset({
    OrderStatus.PAYMENT_CONFIRMED,
    OrderStatus.ACCEPTED,
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.ASSIGNED_TO_DRIVER,
    OrderStatus.PICKED_UP,
    OrderStatus.REJECTED,
})

_INACTIVE = frozenset({
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.REJECTED,
    OrderStatus.REFUNDED,
})


def valid_transitions(current: OrderStatus) -> FrozenSet[OrderStatus]:
    """Statuses reachable from ``current`` in one step"""
    return _TRANSITIONS[OrderStatus(current)]


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return OrderStatus(target) in valid_transitions(current)


def validate_transition(current: OrderStatus, target: OrderStatus) -> None:
    """Raise InvalidTransition unless ``current -> target`` is in the table"""
    current, target = OrderStatus(current), OrderStatus(target)
    if not can_transition(current, target):
        ordered = sorted(valid_transitions(current), key=lambda s: list(OrderStatus).index(s))
        raise InvalidTransition(current, target, ordered)


def is_terminal(status: OrderStatus) -> bool:
    return not valid_transitions(status)


def requires_refund(status: OrderStatus) -> bool:
    return OrderStatus(status) in _REFUND_REQUIRED


def is_active(status: OrderStatus) -> bool:
    return OrderStatus(status) not in _INACTIVE
