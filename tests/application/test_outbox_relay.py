from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from mealrelay.application.use_cases.outbox_relay import OutboxRelay, build_handlers
from mealrelay.core.config import Settings, settings
from mealrelay.domain.entities.outbox import OutboxMessage
from mealrelay.domain.enums import OrderStatus, OutboxStatus, OutboxTopic, RefundStatus
from mealrelay.infrastructure.orm.ledger_model import OutboxMessageModel

from fakes import FakeDispatchPartner


def hours_from_now(hours):
    return datetime.utcnow() + timedelta(hours=hours)


def stored(session, topic):
    session.expire_all()
    return session.query(OutboxMessageModel).filter(OutboxMessageModel.topic == topic).all()


@pytest.fixture()
def relay(uow, coordinator, matcher, notifications, partner):
    return OutboxRelay(uow, build_handlers(coordinator, matcher, notifications, partner, timeout=1.0), settings)


async def add_message(uow, topic, payload):
    message = OutboxMessage(topic=topic, aggregate_id=uuid4(), payload=payload)
    async with uow:
        await uow.outbox.add(message)
    return message


class TestBackoff:
    async def test_failing_message_backs_off_then_fails(self, uow, session, coordinator, matcher, notifications):
        config = Settings(OUTBOX_MAX_ATTEMPTS=3, OUTBOX_RETRY_BASE_SECONDS=15)
        handlers = build_handlers(coordinator, matcher, notifications, FakeDispatchPartner(fail=True), timeout=1.0)
        relay = OutboxRelay(uow, handlers, config)
        await add_message(uow, OutboxTopic.DISPATCH_PARTNER, {"order_id": str(uuid4())})

        first = await relay.relay_due()
        assert (first.delivered, first.retried, first.failed) == (0, 1, 0)

        # Not due again for another 15 seconds
        assert (await relay.relay_due(datetime.utcnow() + timedelta(seconds=5))).retried == 0

        assert (await relay.relay_due(hours_from_now(1))).retried == 1
        assert (await relay.relay_due(hours_from_now(2))).failed == 1

        [row] = stored(session, "dispatch.partner")
        assert row.status == OutboxStatus.FAILED
        assert row.attempts == 3
        assert "dispatch partner unavailable" in row.last_error
        assert (await relay.relay_due(hours_from_now(3))).failed == 0

    async def test_unknown_topic_is_retried(self, uow, session):
        relay = OutboxRelay(uow, {}, settings)
        await add_message(uow, OutboxTopic.NOTIFICATION, {})

        result = await relay.relay_due()

        assert result.retried == 1
        assert "No handler registered" in stored(session, "notification")[0].last_error

    async def test_claimed_messages_are_leased(self, uow):
        await add_message(uow, OutboxTopic.NOTIFICATION, {})
        now = datetime.utcnow()

        async with uow:
            claimed = await uow.outbox.claim_due(now, 10, now + timedelta(minutes=1))
        async with uow:
            again = await uow.outbox.claim_due(now, 10, now + timedelta(minutes=1))

        assert len(claimed) == 1
        assert again == []


class TestHandlers:
    async def test_partner_is_told_about_reservation(self, market, matcher, relay, partner):
        market.add_driver()
        order = await market.ready_order()
        await matcher.assign_driver_to_order(order.id)

        await relay.relay_due(hours_from_now(1))

        assert [r["order_id"] for r in partner.requests] == [str(order.id)]

    async def test_dispatch_waits_for_a_driver(self, market, coordinator, relay, session):
        order = await market.ready_order()

        assert (await relay.relay_due(hours_from_now(1))).retried == 1
        [row] = stored(session, "dispatch.requested")
        assert "No available drivers" in row.last_error

        driver = market.add_driver()
        assert (await relay.relay_due(hours_from_now(2))).delivered == 1

        order = await coordinator.get_order(order.id, market.admin)
        assert order.assigned_driver_id == driver.id

    async def test_dispatch_of_cancelled_order_is_dropped(self, market, coordinator, relay, session):
        market.add_driver()
        order = await market.ready_order()
        await coordinator.cancel_order(order.id, market.admin, "customer unreachable")

        await relay.relay_due(hours_from_now(1))

        [row] = stored(session, "dispatch.requested")
        assert row.status == OutboxStatus.DELIVERED
        order = await coordinator.get_order(order.id, market.admin)
        assert order.assigned_driver_id is None

    async def test_failed_notifications_are_redelivered(self, market, relay, notifications, session):
        notifications.fail = True
        await market.place_order()

        queued = stored(session, "notification")
        assert {row.payload["event"] for row in queued} == {"order.placed", "order.received"}
        assert notifications.sent == []

        notifications.fail = False
        await relay.relay_due(hours_from_now(1))

        assert notifications.events_for(market.customer.user_id) == ["order.placed"]
        assert notifications.events_for(market.chef.user_id) == ["order.received"]

    async def test_refund_backstop_settles_pending_refund(self, market, coordinator, relay, payments, uow):
        order = await market.accepted_order()
        payments.raise_on_refund = ConnectionError("processor down")
        await coordinator.cancel_order(order.id, market.admin, "kitchen fire")

        assert (await relay.relay_due(hours_from_now(1))).retried == 1

        payments.raise_on_refund = None
        await relay.relay_due(hours_from_now(2))

        async with uow:
            [refund] = await uow.refunds.list_for_order(order.id)
        assert refund.status == RefundStatus.SUCCEEDED
        order = await coordinator.get_order(order.id, market.admin)
        assert order.status == OrderStatus.REFUNDED

    async def test_refund_backstop_after_in_request_success(self, market, coordinator, relay, payments, session):
        order = await market.accepted_order()
        await coordinator.cancel_order(order.id, market.admin, "duplicate order")

        await relay.relay_due(hours_from_now(1))

        [row] = stored(session, "payment.refund")
        assert row.status == OutboxStatus.DELIVERED
        assert len(payments.refunds) == 1
