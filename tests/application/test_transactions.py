"""A failed write anywhere in an operation leaves the order exactly as it was."""

import pytest

from mealrelay.domain.enums import LedgerEntryKind, OrderStatus
from mealrelay.domain.exceptions import TransientFailure

from factories import driver_actor


async def failing_write(*args, **kwargs):
    raise TransientFailure("database went away")


async def test_delivery_rolls_back_with_driver_update(market, coordinator, uow, monkeypatch):
    order, driver = await market.assigned_order()
    actor = driver_actor(driver)
    await coordinator.mark_picked_up(order.id, actor)
    await coordinator.mark_in_transit(order.id, actor)
    monkeypatch.setattr(uow.drivers, "update", failing_write)

    with pytest.raises(TransientFailure):
        await coordinator.mark_delivered(order.id, actor)

    order = await coordinator.get_order(order.id, market.admin)
    assert order.status == OrderStatus.IN_TRANSIT
    assert order.delivered_at is None
    async with uow:
        kinds = {e.kind for e in await uow.ledger.list_for_order(order.id)}
    assert LedgerEntryKind.DELIVERY_EARNING not in kinds
    history = await coordinator.get_order_history(order.id, market.admin)
    assert history[-1].to_status == OrderStatus.IN_TRANSIT

    monkeypatch.undo()
    order = await coordinator.mark_delivered(order.id, actor)
    assert order.status == OrderStatus.DELIVERED


async def test_ready_rolls_back_without_dispatch_message(market, coordinator, uow, monkeypatch):
    order = await market.accepted_order()
    await coordinator.start_preparing(order.id, market.chef_actor)
    monkeypatch.setattr(uow.outbox, "add", failing_write)

    with pytest.raises(TransientFailure):
        await coordinator.mark_ready(order.id, market.chef_actor)

    order = await coordinator.get_order(order.id, market.admin)
    assert order.status == OrderStatus.PREPARING


async def test_cancellation_rolls_back_when_refund_cannot_be_staged(market, coordinator, uow, payments, monkeypatch):
    order = await market.accepted_order()
    monkeypatch.setattr(uow.refunds, "add", failing_write)

    with pytest.raises(TransientFailure):
        await coordinator.cancel_order(order.id, market.admin, "kitchen closed")

    order = await coordinator.get_order(order.id, market.admin)
    assert order.status == OrderStatus.ACCEPTED
    assert order.refunded_cents == 0
    assert payments.refunds == []
    async with uow:
        assert all(e.amount_cents > 0 for e in await uow.ledger.list_for_order(order.id))


async def test_payment_confirmation_is_all_or_nothing(market, coordinator, uow, monkeypatch):
    order = await market.place_order()
    monkeypatch.setattr(uow.ledger, "append", failing_write)

    with pytest.raises(TransientFailure):
        await coordinator.confirm_payment(order.id, "pi_123")

    order = await coordinator.get_order(order.id, market.admin)
    assert order.status == OrderStatus.PENDING
    assert order.payment_reference is None


async def test_notification_failure_does_not_undo_transition(market, coordinator, notifications):
    order = await market.paid_order()
    notifications.fail = True

    order = await coordinator.accept_order(order.id, market.chef_actor)

    assert order.status == OrderStatus.ACCEPTED
    stored = await coordinator.get_order(order.id, market.admin)
    assert stored.status == OrderStatus.ACCEPTED
