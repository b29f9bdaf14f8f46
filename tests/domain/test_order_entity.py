import re
from uuid import uuid4

import pytest

from mealrelay.domain.commission import CommissionEngine
from mealrelay.domain.entities.order import Order, OrderItem
from mealrelay.domain.enums import OrderStatus
from mealrelay.domain.events.order_events import DriverReleased, DriverReserved, OrderPlaced, OrderStatusChanged
from mealrelay.domain.exceptions import BadRequest, Conflict, InvalidTransition
from mealrelay.domain.value_objects.geo import GeoPoint


def new_order(quantity=2, price=5000):
    items = [OrderItem(menu_item_id=uuid4(), name="Lasagna", quantity=quantity, unit_price_cents=price)]
    return Order.place(
        customer_id=uuid4(),
        chef_id=uuid4(),
        items=items,
        breakdown=CommissionEngine().calculate(quantity * price),
        pickup_location=GeoPoint(40.7128, -74.0060),
        delivery_location=GeoPoint(40.70, -74.0),
        delivery_address="12 Mulberry St",
    )


def ready_order():
    order = new_order()
    for status in (OrderStatus.PAYMENT_CONFIRMED, OrderStatus.ACCEPTED, OrderStatus.READY_FOR_PICKUP):
        order.transition_to(status, "system")
    order.pull_history()
    order.get_events()
    return order


class TestPlace:
    def test_new_order_is_pending_with_frozen_money(self):
        order = new_order()

        assert order.status == OrderStatus.PENDING
        assert order.subtotal_cents == 10000
        assert order.total_cents == 11300
        assert order.refundable_cents == 11300
        assert re.fullmatch(r"ORD-\d{8}-[0-9A-F]{6}", order.order_number)

    def test_records_creation_history_and_event(self):
        order = new_order()

        history = order.pull_history()
        assert len(history) == 1
        assert history[0].from_status is None
        assert history[0].to_status == OrderStatus.PENDING
        assert history[0].sequence == 1
        assert isinstance(order.get_events()[0], OrderPlaced)

    def test_requires_items(self):
        with pytest.raises(BadRequest):
            Order.place(uuid4(), uuid4(), [], CommissionEngine().calculate(0), None, None, "x")

    def test_breakdown_must_match_items(self):
        items = [OrderItem(menu_item_id=uuid4(), name="Soup", quantity=1, unit_price_cents=900)]
        with pytest.raises(BadRequest):
            Order.place(uuid4(), uuid4(), items, CommissionEngine().calculate(1000), None, None, "x")

    @pytest.mark.parametrize("quantity", [0, 100])
    def test_item_quantity_bounds(self, quantity):
        with pytest.raises(BadRequest):
            OrderItem(menu_item_id=uuid4(), name="Soup", quantity=quantity, unit_price_cents=900)


class TestTransitions:
    def test_transition_sets_milestone_history_and_event(self):
        order = new_order()
        order.pull_history()
        order.transition_to(OrderStatus.PAYMENT_CONFIRMED, "system")
        order.transition_to(OrderStatus.ACCEPTED, "chef-1", "chef_accepted")

        assert order.accepted_at is not None
        history = order.pull_history()
        assert [h.sequence for h in history] == [2, 3]
        assert history[-1].event == "chef_accepted"
        assert history[-1].changed_by == "chef-1"
        events = [e for e in order.get_events() if isinstance(e, OrderStatusChanged)]
        assert events[-1].from_status == OrderStatus.PAYMENT_CONFIRMED

    def test_invalid_transition_changes_nothing(self):
        order = new_order()
        order.pull_history()

        with pytest.raises(InvalidTransition):
            order.transition_to(OrderStatus.DELIVERED, "system")

        assert order.status == OrderStatus.PENDING
        assert order.pull_history() == []

    def test_cancel_records_reason_and_clears_driver(self):
        order = ready_order()
        order.assigned_driver_id = uuid4()

        order.cancel("admin-1", "customer called")

        assert order.status == OrderStatus.CANCELLED
        assert order.cancellation_reason == "customer called"
        assert order.assigned_driver_id is None
        assert order.cancelled_at is not None

    def test_reject_requires_reason(self):
        order = new_order()
        order.transition_to(OrderStatus.PAYMENT_CONFIRMED, "system")

        with pytest.raises(BadRequest):
            order.reject("chef-1", "   ")
        order.reject("chef-1", "out of ingredients")

        assert order.status == OrderStatus.REJECTED
        assert order.rejection_reason == "out of ingredients"


class TestDriverReservation:
    def test_reserve_keeps_status_but_writes_history(self):
        order = ready_order()
        driver_id = uuid4()

        order.reserve_driver(driver_id, uuid4(), 3.9, 12)

        assert order.status == OrderStatus.READY_FOR_PICKUP
        assert order.assigned_driver_id == driver_id
        history = order.pull_history()
        assert history[0].event == "driver_reserved"
        assert isinstance(order.get_events()[0], DriverReserved)

    def test_cannot_reserve_twice(self):
        order = ready_order()
        order.reserve_driver(uuid4(), uuid4(), 1.0, 3)

        with pytest.raises(Conflict):
            order.reserve_driver(uuid4(), uuid4(), 1.0, 3)

    def test_cannot_reserve_before_ready(self):
        order = new_order()
        with pytest.raises(BadRequest):
            order.reserve_driver(uuid4(), uuid4(), 1.0, 3)

    def test_release_from_assigned_goes_back_to_ready(self):
        order = ready_order()
        order.reserve_driver(uuid4(), uuid4(), 1.0, 3)
        order.transition_to(OrderStatus.ASSIGNED_TO_DRIVER, "driver")
        order.get_events()

        order.release_driver("admin", "vehicle broke down")

        assert order.status == OrderStatus.READY_FOR_PICKUP
        assert order.assigned_driver_id is None
        assert any(isinstance(e, DriverReleased) for e in order.get_events())


class TestRefundAccounting:
    def test_partial_refunds_accumulate(self):
        order = ready_order()

        order.record_refund(5000)
        order.record_refund(6300)

        assert order.refunded_cents == 11300
        assert order.is_fully_refunded

    def test_refund_over_remaining_balance(self):
        order = ready_order()
        order.record_refund(10000)

        with pytest.raises(BadRequest):
            order.record_refund(1301)
        assert order.refunded_cents == 10000

    def test_payment_captured(self):
        order = new_order()
        assert not order.payment_captured
        order.transition_to(OrderStatus.PAYMENT_CONFIRMED, "system")
        assert order.payment_captured
