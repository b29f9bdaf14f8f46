import pytest

from mealrelay.application.use_cases.lifecycle_coordinator import LifecycleCoordinator
from mealrelay.core.config import Settings
from mealrelay.domain.enums import (
    AssignmentStatus,
    LedgerActorType,
    LedgerEntryKind,
    OrderStatus,
    RefundStatus,
)
from mealrelay.domain.exceptions import BadRequest, Forbidden, InvalidTransition
from mealrelay.infrastructure.orm.ledger_model import OutboxMessageModel

from factories import driver_actor


async def refunds_for(uow, order_id):
    async with uow:
        return await uow.refunds.list_for_order(order_id)


class TestCustomerCancellation:
    async def test_pending_order_cancels_without_refund(self, market, coordinator, uow, payments):
        order = await market.place_order()

        order = await coordinator.cancel_order(order.id, market.customer, "changed my mind")

        assert order.status == OrderStatus.CANCELLED
        assert order.cancellation_reason == "changed my mind"
        assert payments.refunds == []
        assert await refunds_for(uow, order.id) == []

    async def test_paid_order_is_refunded_in_full(self, market, coordinator, payments):
        order = await market.paid_order()

        order = await coordinator.cancel_order(order.id, market.customer, "ordered twice")

        assert order.status == OrderStatus.REFUNDED
        assert order.refunded_cents == 11300
        assert payments.refunds[0][1] == 11300

    async def test_customer_cannot_cancel_after_chef_accepts(self, market, coordinator):
        order = await market.accepted_order()

        with pytest.raises(Forbidden):
            await coordinator.cancel_order(order.id, market.customer, "too slow")

        order = await coordinator.get_order(order.id, market.customer)
        assert order.status == OrderStatus.ACCEPTED

    async def test_chef_cannot_cancel(self, market, coordinator):
        order = await market.paid_order()
        with pytest.raises(Forbidden):
            await coordinator.cancel_order(order.id, market.chef_actor, "busy")

    async def test_reason_required(self, market, coordinator):
        order = await market.place_order()
        with pytest.raises(BadRequest):
            await coordinator.cancel_order(order.id, market.customer, "  ")


class TestAdminCancellation:
    async def test_cancel_accepted_order_refunds_total(self, market, coordinator, uow, payments):
        order = await market.accepted_order()

        order = await coordinator.cancel_order(order.id, market.admin, "kitchen closed")

        assert order.status == OrderStatus.REFUNDED
        assert order.refunded_cents == order.total_cents == 11300
        refunds = await refunds_for(uow, order.id)
        assert len(refunds) == 1
        assert refunds[0].status == RefundStatus.SUCCEEDED
        assert (refunds[0].chef_refund_cents, refunds[0].platform_refund_cents) == (8500, 1500)
        assert payments.refunds == [(order.payment_reference, 11300, f"refund-{refunds[0].id}")]

        async with uow:
            assert await uow.ledger.balance(LedgerActorType.CHEF, order.chef_id) == 0
            assert await uow.ledger.balance(LedgerActorType.PLATFORM) == 0

        history = await coordinator.get_order_history(order.id, market.admin)
        assert [h.to_status for h in history[-2:]] == [OrderStatus.CANCELLED, OrderStatus.REFUNDED]

    async def test_cancel_declines_pending_assignment(self, market, coordinator, matcher, uow):
        market.add_driver()
        order = await market.ready_order()
        assignment = await matcher.assign_driver_to_order(order.id)

        order = await coordinator.cancel_order(order.id, market.admin, "customer unreachable")

        async with uow:
            stored = await uow.assignments.get_by_id(assignment.id)
        assert stored.status == AssignmentStatus.DECLINED
        assert stored.decline_reason == "order_cancelled"
        assert order.assigned_driver_id is None

    async def test_delivered_order_cannot_be_cancelled(self, market, coordinator):
        order, _ = await market.delivered_order()
        with pytest.raises(InvalidTransition):
            await coordinator.cancel_order(order.id, market.admin, "complaint")

    async def test_picked_up_order_cannot_be_cancelled(self, market, coordinator):
        order, driver = await market.assigned_order()
        await coordinator.mark_picked_up(order.id, driver_actor(driver))

        with pytest.raises(InvalidTransition):
            await coordinator.cancel_order(order.id, market.admin, "complaint")


class TestRejection:
    async def test_rejected_paid_order_is_refunded(self, market, coordinator):
        order = await market.paid_order()

        order = await coordinator.reject_order(order.id, market.chef_actor, "out of ingredients")

        assert order.status == OrderStatus.REFUNDED
        assert order.rejection_reason == "out of ingredients"
        assert order.refunded_cents == 11300

    async def test_rejection_needs_reason(self, market, coordinator):
        order = await market.paid_order()
        with pytest.raises(BadRequest):
            await coordinator.reject_order(order.id, market.chef_actor, "")


class TestPaymentFailures:
    async def test_failed_refund_stays_pending_and_is_retried(self, market, coordinator, uow, payments, session):
        order = await market.accepted_order()
        payments.raise_on_refund = TimeoutError("processor timeout")

        order = await coordinator.cancel_order(order.id, market.admin, "kitchen fire")

        # The cancellation commits even though the refund call failed
        assert order.status == OrderStatus.CANCELLED
        assert order.refunded_cents == 11300
        refund = (await refunds_for(uow, order.id))[0]
        assert refund.status == RefundStatus.PENDING
        assert refund.attempts == 1
        backstop = session.query(OutboxMessageModel).filter(OutboxMessageModel.topic == "payment.refund").one()
        assert backstop.payload["refund_id"] == str(refund.id)

        payments.raise_on_refund = None
        assert await coordinator.retry_pending_refunds() == 1

        order = await coordinator.get_order(order.id, market.admin)
        assert order.status == OrderStatus.REFUNDED
        assert (await refunds_for(uow, order.id))[0].status == RefundStatus.SUCCEEDED

    async def test_refund_gives_up_after_max_attempts(self, market, uow, payments, notifier):
        coordinator = LifecycleCoordinator(uow, payments, notifier, Settings(OUTBOX_MAX_ATTEMPTS=2))
        market.coordinator = coordinator
        order = await market.accepted_order()
        payments.decline_refunds = True

        await coordinator.cancel_order(order.id, market.admin, "kitchen fire")
        await coordinator.retry_pending_refunds()

        refund = (await refunds_for(uow, order.id))[0]
        assert refund.status == RefundStatus.FAILED
        assert refund.attempts == 2
        assert refund.failure_reason == "card_declined"
        order = await coordinator.get_order(order.id, market.admin)
        assert order.status == OrderStatus.CANCELLED

    async def test_settling_twice_is_harmless(self, market, coordinator, uow, payments):
        order = await market.accepted_order()
        await coordinator.cancel_order(order.id, market.admin, "duplicate")
        refund = (await refunds_for(uow, order.id))[0]

        assert await coordinator.settle_refund(refund.id) is True
        assert len(payments.refunds) == 1


class TestPaymentAfterCancellation:
    async def test_capture_on_cancelled_order_is_refunded(self, market, coordinator, uow, payments):
        order = await market.place_order()
        intent = await coordinator.create_payment_intent(order.id, market.customer)
        await coordinator.cancel_order(order.id, market.customer, "changed my mind")

        order = await coordinator.confirm_payment(order.id, intent.reference)

        assert order.status == OrderStatus.REFUNDED
        assert order.refunded_cents == 11300
        [refund] = await refunds_for(uow, order.id)
        assert refund.status == RefundStatus.SUCCEEDED
        assert refund.reason == "payment_after_cancellation"
        assert payments.refunds == [(intent.reference, 11300, f"refund-{refund.id}")]
        async with uow:
            assert await uow.ledger.balance(LedgerActorType.CHEF, order.chef_id) == 0
            assert await uow.ledger.balance(LedgerActorType.PLATFORM) == 0

    async def test_repeated_webhook_refunds_once(self, market, coordinator, uow, payments):
        order = await market.place_order()
        intent = await coordinator.create_payment_intent(order.id, market.customer)
        await coordinator.cancel_order(order.id, market.customer, "changed my mind")
        payments.raise_on_refund = ConnectionError("processor down")

        await coordinator.confirm_payment(order.id, intent.reference)
        order = await coordinator.confirm_payment(order.id, intent.reference)

        assert order.status == OrderStatus.CANCELLED
        assert order.refunded_cents == 11300
        [refund] = await refunds_for(uow, order.id)
        assert refund.status == RefundStatus.PENDING


class TestAdminRefund:
    async def test_partial_refund_of_delivered_order(self, market, coordinator, uow):
        order, _ = await market.delivered_order()

        order, refund = await coordinator.refund_order(order.id, market.admin, "cold food", 5650)

        assert order.status == OrderStatus.DELIVERED
        assert order.refunded_cents == 5650
        assert refund.status == RefundStatus.SUCCEEDED
        assert (refund.chef_refund_cents, refund.platform_refund_cents) == (4250, 750)
        async with uow:
            entries = await uow.ledger.list_for_order(order.id)
        reversals = {e.kind: e.amount_cents for e in entries if e.amount_cents < 0}
        assert reversals == {
            LedgerEntryKind.ORDER_EARNING_REVERSAL: -4250,
            LedgerEntryKind.PLATFORM_FEE_REVERSAL: -750,
        }

    async def test_refund_cannot_exceed_remaining_balance(self, market, coordinator):
        order, _ = await market.delivered_order()
        await coordinator.refund_order(order.id, market.admin, "cold food", 5650)

        with pytest.raises(BadRequest):
            await coordinator.refund_order(order.id, market.admin, "still cold", 5651)

        order = await coordinator.get_order(order.id, market.admin)
        assert order.refunded_cents == 5650

    async def test_full_refund_then_nothing_left(self, market, coordinator):
        order, _ = await market.delivered_order()
        await coordinator.refund_order(order.id, market.admin, "never arrived")

        with pytest.raises(BadRequest, match="fully refunded"):
            await coordinator.refund_order(order.id, market.admin, "again")

    async def test_partial_refunds_completing_a_cancelled_order(self, market, coordinator, payments):
        order = await market.place_order()
        intent = await coordinator.create_payment_intent(order.id, market.customer)
        await coordinator.confirm_payment(order.id, intent.reference)
        await coordinator.refund_order(order.id, market.admin, "missing side", 1300)

        order = await coordinator.cancel_order(order.id, market.admin, "customer left")

        assert order.status == OrderStatus.REFUNDED
        assert [amount for _, amount, _ in payments.refunds] == [1300, 10000]

    async def test_only_admins_refund(self, market, coordinator):
        order, _ = await market.delivered_order()
        with pytest.raises(Forbidden):
            await coordinator.refund_order(order.id, market.customer, "please")

    async def test_unpaid_order_has_nothing_to_refund(self, market, coordinator):
        order = await market.place_order()
        with pytest.raises(BadRequest):
            await coordinator.refund_order(order.id, market.admin, "test")
