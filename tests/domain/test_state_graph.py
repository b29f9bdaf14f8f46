import itertools

import pytest

from mealrelay.domain import state_graph
from mealrelay.domain.enums import OrderStatus as S
from mealrelay.domain.exceptions import InvalidTransition

ALLOWED = {
    (S.PENDING, S.PAYMENT_CONFIRMED),
    (S.PENDING, S.CANCELLED),
    (S.PAYMENT_CONFIRMED, S.ACCEPTED),
    (S.PAYMENT_CONFIRMED, S.REJECTED),
    (S.PAYMENT_CONFIRMED, S.CANCELLED),
    (S.ACCEPTED, S.PREPARING),
    (S.ACCEPTED, S.READY_FOR_PICKUP),
    (S.ACCEPTED, S.CANCELLED),
    (S.PREPARING, S.READY_FOR_PICKUP),
    (S.PREPARING, S.CANCELLED),
    (S.READY_FOR_PICKUP, S.ASSIGNED_TO_DRIVER),
    (S.READY_FOR_PICKUP, S.CANCELLED),
    (S.ASSIGNED_TO_DRIVER, S.PICKED_UP),
    (S.ASSIGNED_TO_DRIVER, S.READY_FOR_PICKUP),
    (S.ASSIGNED_TO_DRIVER, S.CANCELLED),
    (S.PICKED_UP, S.IN_TRANSIT),
    (S.PICKED_UP, S.DELIVERED),
    (S.IN_TRANSIT, S.DELIVERED),
    (S.CANCELLED, S.REFUNDED),
    (S.REJECTED, S.REFUNDED),
}


@pytest.mark.parametrize("current,target", list(itertools.product(S, S)))
def test_transition_table_is_exact(current, target):
    assert state_graph.can_transition(current, target) == ((current, target) in ALLOWED)


@pytest.mark.parametrize("current,target", sorted(ALLOWED))
def test_validate_accepts_allowed_transitions(current, target):
    state_graph.validate_transition(current, target)


def test_validate_rejects_with_valid_options():
    with pytest.raises(InvalidTransition) as exc:
        state_graph.validate_transition(S.PENDING, S.DELIVERED)

    assert exc.value.current == S.PENDING
    assert exc.value.requested == S.DELIVERED
    assert set(exc.value.valid_next) == {S.PAYMENT_CONFIRMED, S.CANCELLED}
    assert "pending" in exc.value.message and "delivered" in exc.value.message


def test_validate_rejects_leaving_terminal_state():
    with pytest.raises(InvalidTransition) as exc:
        state_graph.validate_transition(S.DELIVERED, S.CANCELLED)
    assert exc.value.valid_next == ()
    assert "terminal" in exc.value.message


def test_self_transitions_are_never_allowed():
    for status in S:
        assert not state_graph.can_transition(status, status)


def test_only_delivered_and_refunded_are_terminal():
    terminal = {status for status in S if state_graph.is_terminal(status)}
    assert terminal == {S.DELIVERED, S.REFUNDED}


def test_requires_refund_when_money_captured_but_not_delivered():
    needs_refund = {status for status in S if state_graph.requires_refund(status)}
    assert needs_refund == {
        S.PAYMENT_CONFIRMED,
        S.ACCEPTED,
        S.PREPARING,
        S.READY_FOR_PICKUP,
        S.ASSIGNED_TO_DRIVER,
        S.PICKED_UP,
        S.REJECTED,
    }


def test_active_statuses():
    assert state_graph.is_active(S.PENDING)
    assert state_graph.is_active(S.IN_TRANSIT)
    for status in (S.DELIVERED, S.CANCELLED, S.REJECTED, S.REFUNDED):
        assert not state_graph.is_active(status)


def test_accepts_raw_string_values():
    assert state_graph.can_transition("ready_for_pickup", "assigned_to_driver")


def test_valid_transitions_cannot_be_mutated():
    with pytest.raises(TypeError):
        state_graph._TRANSITIONS[S.DELIVERED] = frozenset({S.PENDING})
    with pytest.raises(AttributeError):
        state_graph.valid_transitions(S.PENDING).add(S.DELIVERED)
