"""Order lifecycle coordinator.

The only code that changes an order's status. Every operation has the same
shape:

    lock the order row -> check the caller may do this -> check the state
    graph -> side effect -> write order + history (+ ledger, refund, outbox)
    in one unit of work -> after commit, notify

Refunds are two-phase. The first phase is part of the transition
transaction: reversing ledger entries, a pending Refund row and an outbox
backstop. The payment call happens after commit, and a second short
transaction records its outcome.
"""

import asyncio
import logging
from dataclasses import replace
from typing import List, Optional, Tuple
from uuid import UUID

from ...core.config import Settings, settings as default_settings
from ...domain import state_graph
from ...domain.commission import CommissionEngine, CommissionPolicy, format_cents
from ...domain.entities.actor import Actor
from ...domain.entities.order import Order, OrderItem, StatusHistoryEntry, SYSTEM_ACTOR
from ...domain.entities.refund import Refund
from ...domain.enums import AssignmentStatus, OrderStatus, RefundStatus, UserRole
from ...domain.events.order_events import RefundRequested
from ...domain.exceptions import BadRequest, Conflict, DomainError, Forbidden, NotFound, TransientFailure
from ...domain.repositories.order_repository import OrderFilters
from ...domain.repositories.unit_of_work import IUnitOfWork
from ...domain.services.ports import PaymentGateway, PaymentIntent
from ...domain.value_objects.geo import GeoPoint
from ..dtos.order_dtos import CreateOrderRequest
from . import outbox_messages
from .external_calls import call_external
from .order_access import OrderAccess
from .order_notifier import OrderNotifier

logger = logging.getLogger(__name__)

_CUSTOMER_CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.PAYMENT_CONFIRMED})


def _require_reason(reason: Optional[str], what: str) -> str:
    if reason is None or not reason.strip():
        raise BadRequest(f"A {what} reason is required")
    return reason.strip()


class LifecycleCoordinator:

    def __init__(
        self,
        uow: IUnitOfWork,
        payments: PaymentGateway,
        notifier: OrderNotifier,
        config: Settings = default_settings,
        commission: CommissionEngine = None,
    ):
        self.uow = uow
        self.payments = payments
        self.notifier = notifier
        self.config = config
        self.commission = commission or CommissionEngine(CommissionPolicy.from_settings(config))
        self.access = OrderAccess(uow)

    # Placement and payment -------------------------------------------------

    async def create_order(self, actor: Actor, request: CreateOrderRequest) -> Order:
        if actor.role != UserRole.CUSTOMER:
            raise Forbidden("Only customers can place orders")
        try:
            destination = GeoPoint(request.delivery.latitude, request.delivery.longitude)
        except ValueError as e:
            raise BadRequest(str(e))

        async with self.uow:
            chef = await self.uow.chefs.get_by_id(request.chef_id)
            if chef is None:
                raise NotFound("Chef not found")
            chef.ensure_accepting_orders()
            chef.ensure_delivers_to(destination)

            menu = {item.id: item for item in await self.uow.chefs.get_menu_items(i.menu_item_id for i in request.items)}
            for line in request.items:
                menu_item = menu.get(line.menu_item_id)
                if menu_item is None or menu_item.chef_id != chef.id:
                    raise NotFound("One or more menu items not found")
            if any(not menu[line.menu_item_id].is_available for line in request.items):
                raise BadRequest("Some menu items are not available")

            items = [
                OrderItem(
                    menu_item_id=line.menu_item_id,
                    name=menu[line.menu_item_id].name,
                    quantity=line.quantity,
                    unit_price_cents=menu[line.menu_item_id].price_cents,
                    notes=line.notes,
                )
                for line in request.items
            ]
            subtotal = sum(item.line_total_cents for item in items)
            if subtotal < chef.minimum_order_cents:
                raise BadRequest(
                    f"Order subtotal {format_cents(subtotal)} is below the chef's minimum "
                    f"of {format_cents(chef.minimum_order_cents)}"
                )

            order = Order.place(
                customer_id=actor.user_id,
                chef_id=chef.id,
                items=items,
                breakdown=self.commission.calculate(subtotal),
                pickup_location=chef.location,
                delivery_location=destination,
                delivery_address=request.delivery.address,
                delivery_instructions=request.delivery.instructions,
            )
            await self.uow.orders.add(order)
            events = order.get_events()

        logger.info(f"Order {order.order_number} ({order.id}) placed by {actor.label}, total {format_cents(order.total_cents)}")
        await self.notifier.publish(events)
        return order

    async def create_payment_intent(self, order_id: UUID, actor: Actor) -> PaymentIntent:
        async with self.uow:
            order = await self._get_visible(order_id, actor)
            if not (actor.is_admin or self.access.is_customer_of(order, actor)):
                raise Forbidden("Only the customer who placed this order can pay for it")
        if order.status != OrderStatus.PENDING:
            raise BadRequest("Payment can only be started for pending orders")

        intent = await call_external(
            self.payments.create_payment_intent(order.id, order.total_cents),
            self.config.EXTERNAL_CALL_TIMEOUT_SECONDS,
            f"creating payment for order {order.id}",
        )

        async with self.uow:
            order = await self._lock(order_id)
            if order.status != OrderStatus.PENDING:
                raise Conflict("Order changed while the payment was being created")
            order.payment_reference = intent.reference
            await self.uow.orders.update(order)
        return intent

    async def confirm_payment(self, order_id: UUID, payment_reference: str, actor: Actor = None) -> Order:
        """Payment captured: PENDING -> PAYMENT_CONFIRMED plus chef and platform ledger entries.

        Repeated confirmations with the same reference are no-ops. A capture
        that lands after the customer cancelled is recorded and refunded in full.
        """
        actor = actor or Actor.system()
        if not (actor.is_system or actor.is_admin):
            raise Forbidden("Only the payment webhook can confirm payments")

        refund = None
        async with self.uow:
            order = await self._lock(order_id)
            if order.payment_reference and order.payment_reference != payment_reference:
                raise Conflict("Payment reference does not match the order")

            if order.status == OrderStatus.CANCELLED and order.refunded_cents == 0:
                refund = await self._refund_late_capture(order, payment_reference, actor)
                events = self._refund_events(order, refund)
            else:
                if order.status != OrderStatus.PENDING and order.payment_reference == payment_reference:
                    return order

                order.payment_reference = payment_reference
                order.transition_to(OrderStatus.PAYMENT_CONFIRMED, actor.label, "payment_confirmed")
                await self._record_capture(order)
                await self.uow.orders.update(order)
                events = order.get_events()

        await self.notifier.publish(events)
        if refund:
            logger.warning(f"Payment {payment_reference} captured after order {order.id} was cancelled, refund {refund.id} requested")
            return await self._finish_refund(order, refund)
        self._log_transition(order, OrderStatus.PENDING, actor)
        return order

    async def _record_capture(self, order: Order) -> None:
        await self.uow.ledger.append([
            self.commission.chef_earning_entry(order.id, order.chef_id, order.breakdown),
            self.commission.platform_fee_entry(order.id, order.breakdown),
        ])

    async def _refund_late_capture(self, order: Order, payment_reference: str, actor: Actor) -> Refund:
        order.payment_reference = payment_reference
        await self._record_capture(order)
        refund = await self._stage_refund(order, actor, "payment_after_cancellation")
        await self.uow.orders.update(order)
        return refund

    # Chef ------------------------------------------------------------------

    async def accept_order(self, order_id: UUID, actor: Actor) -> Order:
        return await self._chef_transition(order_id, actor, OrderStatus.ACCEPTED, "chef_accepted")

    async def start_preparing(self, order_id: UUID, actor: Actor) -> Order:
        return await self._chef_transition(order_id, actor, OrderStatus.PREPARING, "preparation_started")

    async def mark_ready(self, order_id: UUID, actor: Actor) -> Order:
        """Ready for pickup; queues automatic dispatch when it is enabled"""
        return await self._chef_transition(order_id, actor, OrderStatus.READY_FOR_PICKUP, "ready_for_pickup")

    async def reject_order(self, order_id: UUID, actor: Actor, reason: str) -> Order:
        reason = _require_reason(reason, "rejection")
        async with self.uow:
            order = await self._lock(order_id)
            await self.access.require_chef(order, actor)
            previous = order.status
            order.reject(actor.label, reason)

            refund = None
            if state_graph.requires_refund(previous) and order.payment_captured:
                refund = await self._stage_refund(order, actor, reason)
            await self.uow.orders.update(order)
            events = order.get_events() + self._refund_events(order, refund)

        self._log_transition(order, previous, actor)
        await self.notifier.publish(events)
        if refund:
            return await self._finish_refund(order, refund)
        return order

    async def _chef_transition(self, order_id: UUID, actor: Actor, target: OrderStatus, event: str) -> Order:
        async with self.uow:
            order = await self._lock(order_id)
            await self.access.require_chef(order, actor)
            previous = order.status
            order.transition_to(target, actor.label, event)
            await self.uow.orders.update(order)
            if target == OrderStatus.READY_FOR_PICKUP and self.config.AUTO_DISPATCH_ENABLED:
                await self.uow.outbox.add(outbox_messages.dispatch_requested(order.id))
            events = order.get_events()

        self._log_transition(order, previous, actor)
        await self.notifier.publish(events)
        return order

    # Driver ----------------------------------------------------------------

    async def mark_picked_up(self, order_id: UUID, actor: Actor) -> Order:
        return await self._driver_transition(order_id, actor, OrderStatus.PICKED_UP, "picked_up")

    async def mark_in_transit(self, order_id: UUID, actor: Actor) -> Order:
        return await self._driver_transition(order_id, actor, OrderStatus.IN_TRANSIT, "in_transit")

    async def mark_delivered(self, order_id: UUID, actor: Actor) -> Order:
        """Delivered: credits the driver the delivery fee in the same transaction"""
        return await self._driver_transition(order_id, actor, OrderStatus.DELIVERED, "delivered")

    async def _driver_transition(self, order_id: UUID, actor: Actor, target: OrderStatus, event: str) -> Order:
        async with self.uow:
            order = await self._lock(order_id)
            driver = await self.access.require_driver(order, actor)
            previous = order.status
            order.transition_to(target, actor.label, event)

            if target == OrderStatus.DELIVERED:
                await self.uow.ledger.append([
                    self.commission.driver_delivery_entry(order.id, driver.id, order.delivery_fee_cents),
                ])
                driver = await self.uow.drivers.get_for_update(driver.id)
                driver.record_delivery(order.delivery_fee_cents)
                await self.uow.drivers.update(driver)

            await self.uow.orders.update(order)
            events = order.get_events()

        self._log_transition(order, previous, actor)
        await self.notifier.publish(events)
        return order

    # Cancellation and refunds ---------------------------------------------

    async def cancel_order(self, order_id: UUID, actor: Actor, reason: str) -> Order:
        """Customers may cancel before the chef accepts; admins any time the graph allows.

        Orders whose payment was captured get a full refund of whatever has
        not been refunded yet.
        """
        reason = _require_reason(reason, "cancellation")
        async with self.uow:
            order = await self._lock(order_id)
            is_customer = self.access.is_customer_of(order, actor)
            if not (actor.is_admin or is_customer):
                raise Forbidden("Only the customer or an administrator can cancel this order")
            state_graph.validate_transition(order.status, OrderStatus.CANCELLED)
            if is_customer and not actor.is_admin and order.status not in _CUSTOMER_CANCELLABLE:
                raise Forbidden("Orders can only be cancelled by the customer before the chef accepts them")

            previous = order.status
            pending = await self.uow.assignments.get_pending_for_order(order.id)
            if pending is not None:
                await self.uow.assignments.resolve_pending(pending.id, None, AssignmentStatus.DECLINED, "order_cancelled")

            order.cancel(actor.label, reason)
            refund = None
            if state_graph.requires_refund(previous) and order.refundable_cents > 0:
                refund = await self._stage_refund(order, actor, reason)
            await self.uow.orders.update(order)
            events = order.get_events() + self._refund_events(order, refund)

        self._log_transition(order, previous, actor)
        await self.notifier.publish(events)
        if refund:
            return await self._finish_refund(order, refund)
        return order

    async def refund_order(self, order_id: UUID, actor: Actor, reason: str, amount_cents: Optional[int] = None) -> Tuple[Order, Refund]:
        """Admin refund, partial or full, independent of cancellation"""
        self.access.require_admin(actor, "issue refunds")
        reason = _require_reason(reason, "refund")
        if amount_cents is not None and amount_cents <= 0:
            raise BadRequest("Refund amount must be positive")

        async with self.uow:
            order = await self._lock(order_id)
            if order.is_fully_refunded:
                raise BadRequest("Order has already been fully refunded")
            if not order.payment_captured:
                raise BadRequest("Order has no captured payment to refund")
            refund = await self._stage_refund(order, actor, reason, amount_cents)
            await self.uow.orders.update(order)
            events = order.get_events() + self._refund_events(order, refund)

        logger.info(f"Refund {refund.id} of {format_cents(refund.amount_cents)} requested on order {order.id} by {actor.label}")
        await self.notifier.publish(events)
        order = await self._finish_refund(order, refund)
        async with self.uow:
            refund = await self.uow.refunds.get_by_id(refund.id)
        return order, refund

    async def retry_pending_refunds(self, limit: int = 50) -> int:
        """Worker entry point; returns how many refunds settled"""
        async with self.uow:
            pending = await self.uow.refunds.list_pending(limit)
        settled = 0
        for refund in pending:
            try:
                if await self.settle_refund(refund.id):
                    settled += 1
            except (DomainError, TransientFailure) as e:
                logger.warning(f"Refund {refund.id} retry failed: {e}")
        return settled

    async def settle_refund(self, refund_id: UUID) -> bool:
        """Call the payment processor for a pending refund and record the outcome.

        Returns True once the refund is no longer pending (succeeded, failed
        for good, or settled by someone else), False when it should be retried.
        """
        async with self.uow:
            refund = await self.uow.refunds.get_by_id(refund_id)
            if refund is None:
                raise NotFound("Refund not found")
            order = await self.uow.orders.get_by_id(refund.order_id)
        if refund.status != RefundStatus.PENDING:
            return True

        result = None
        error = None
        if not order.payment_reference:
            error = "Order has no payment reference"
        else:
            try:
                result = await asyncio.wait_for(
                    self.payments.refund(order.payment_reference, refund.amount_cents, f"refund-{refund.id}"),
                    self.config.EXTERNAL_CALL_TIMEOUT_SECONDS,
                )
            except asyncio.TimeoutError:
                error = "Payment processor timed out"
            except Exception as e:
                error = f"Payment processor error: {e}"
        if result is not None and not result.success:
            error = result.failure_reason or "Refund declined"

        async with self.uow:
            order = await self._lock(refund.order_id)
            refund = await self.uow.refunds.get_for_update(refund_id)
            if refund.status != RefundStatus.PENDING:
                return True

            if error is None:
                refund.mark_succeeded(result.gateway_refund_id)
                await self.uow.refunds.update(refund)
                await self._complete_refunded_order(order, refund)
                events = order.get_events()
            else:
                give_up = refund.attempts + 1 >= self.config.OUTBOX_MAX_ATTEMPTS
                refund.record_failed_attempt(error, give_up=give_up)
                await self.uow.refunds.update(refund)
                events = []

        if error is None:
            logger.info(f"Refund {refund.id} of {format_cents(refund.amount_cents)} for order {order.id} succeeded")
            await self.notifier.publish(events)
            return True
        if refund.status == RefundStatus.FAILED:
            logger.error(f"Refund {refund.id} for order {order.id} failed permanently after {refund.attempts} attempts: {error}")
            return True
        logger.warning(f"Refund {refund.id} for order {order.id} still pending (attempt {refund.attempts}): {error}")
        return False

    async def _stage_refund(self, order: Order, actor: Actor, reason: str, amount_cents: Optional[int] = None) -> Refund:
        """First phase of a refund, inside the caller's transaction"""
        amount = order.refundable_cents if amount_cents is None else amount_cents
        order.record_refund(amount)
        split = self.commission.calculate_refund(order.breakdown, amount)
        refund = Refund.request(order.id, split, reason, actor.label)

        await self.uow.ledger.append(
            self.commission.reversal_entries(order.id, order.chef_id, split, reason)
        )
        await self.uow.refunds.add(refund)
        await self.uow.outbox.add(outbox_messages.refund_settlement(refund, self.config.OUTBOX_RETRY_BASE_SECONDS))
        return refund

    async def _complete_refunded_order(self, order: Order, settled: Refund) -> None:
        if not order.is_fully_refunded or not state_graph.can_transition(order.status, OrderStatus.REFUNDED):
            return
        others = await self.uow.refunds.list_for_order(order.id)
        if any(r.status == RefundStatus.PENDING and r.id != settled.id for r in others):
            return
        previous = order.status
        order.transition_to(OrderStatus.REFUNDED, SYSTEM_ACTOR, "refund_completed")
        await self.uow.orders.update(order)
        logger.info(f"Order {order.id} {previous.value} -> refunded")

    async def _finish_refund(self, order: Order, refund: Refund) -> Order:
        """Second phase, after commit; the refund stays pending on failure"""
        try:
            await self.settle_refund(refund.id)
        except (DomainError, TransientFailure) as e:
            logger.warning(f"Refund {refund.id} for order {order.id} left for retry: {e}")
        async with self.uow:
            return await self.uow.orders.get_by_id(order.id)

    def _refund_events(self, order: Order, refund: Optional[Refund]) -> List:
        if refund is None:
            return []
        return [RefundRequested(
            order_id=order.id,
            order_number=order.order_number,
            refund_id=refund.id,
            customer_id=order.customer_id,
            amount_cents=refund.amount_cents,
        )]

    # Queries ---------------------------------------------------------------

    async def get_order(self, order_id: UUID, actor: Actor) -> Order:
        async with self.uow:
            return await self._get_visible(order_id, actor)

    async def get_order_history(self, order_id: UUID, actor: Actor) -> List[StatusHistoryEntry]:
        async with self.uow:
            order = await self._get_visible(order_id, actor)
            return await self.uow.orders.get_history(order.id)

    async def list_orders(self, actor: Actor, filters: OrderFilters, page: int = 1, per_page: int = 20) -> Tuple[List[Order], int]:
        """Admins see everything; everyone else only their own orders"""
        if page < 1 or not 1 <= per_page <= 100:
            raise BadRequest("page must be >= 1 and per_page between 1 and 100")

        async with self.uow:
            if actor.is_admin:
                scoped = filters
            elif actor.role == UserRole.CUSTOMER:
                scoped = _replace(filters, customer_id=actor.user_id)
            elif actor.role == UserRole.CHEF:
                chef = await self.access.chef_for(actor)
                if chef is None:
                    return [], 0
                scoped = _replace(filters, chef_id=chef.id)
            elif actor.role == UserRole.DRIVER:
                driver = await self.access.driver_for(actor)
                if driver is None:
                    return [], 0
                scoped = _replace(filters, driver_id=driver.id)
            else:
                raise Forbidden("You cannot list orders")
            return await self.uow.orders.list(scoped, offset=(page - 1) * per_page, limit=per_page)

    # Helpers ---------------------------------------------------------------

    async def _lock(self, order_id: UUID) -> Order:
        order = await self.uow.orders.get_for_update(order_id)
        if order is None:
            raise NotFound("Order not found")
        return order

    async def _get_visible(self, order_id: UUID, actor: Actor) -> Order:
        order = await self.uow.orders.get_by_id(order_id)
        if order is None:
            raise NotFound("Order not found")
        if not await self.access.can_view(order, actor):
            raise Forbidden("You do not have access to this order")
        return order

    def _log_transition(self, order: Order, previous: OrderStatus, actor: Actor) -> None:
        logger.info(f"Order {order.id} {previous.value} -> {order.status.value} by {actor.label}")


def _replace(filters: OrderFilters, **changes) -> OrderFilters:
    return replace(filters, **changes)
