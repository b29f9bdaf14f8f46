"""Post-commit notifications.

Runs only after the order transaction has committed. A failed or slow
notification is logged and queued in the outbox for the relay to retry; it
never propagates to the caller.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Tuple
from uuid import UUID

from ...domain.enums import OrderStatus
from ...domain.events.order_events import (
    DriverReleased,
    DriverReserved,
    OrderPlaced,
    OrderStatusChanged,
    RefundRequested,
)
from ...domain.repositories.unit_of_work import IUnitOfWork
from ...domain.services.ports import NotificationService
from . import outbox_messages

logger = logging.getLogger(__name__)

# Status changes the chef hears about (they caused most of the others)
_CHEF_STATUSES = {OrderStatus.PAYMENT_CONFIRMED, OrderStatus.CANCELLED, OrderStatus.DELIVERED}

Notification = Tuple[UUID, UUID, str, Dict[str, Any]]  # order id, user id, event, payload


class OrderNotifier:

    def __init__(self, uow: IUnitOfWork, notifications: NotificationService, timeout: float = 5.0):
        self.uow = uow
        self.notifications = notifications
        self.timeout = timeout

    async def publish(self, events: Iterable) -> None:
        events = list(events)
        if not events:
            return
        try:
            outgoing = await self._resolve(events)
        except Exception as e:
            logger.warning(f"Could not resolve notification recipients for {len(events)} events: {e}")
            return
        for order_id, user_id, event, payload in outgoing:
            await self.send(order_id, user_id, event, payload)

    async def send(self, order_id: UUID, user_id: UUID, event: str, payload: Dict[str, Any]) -> None:
        try:
            await asyncio.wait_for(self.notifications.notify(user_id, event, payload), self.timeout)
        except Exception as e:
            logger.warning(f"Notification {event} to {user_id} failed, queued for retry: {e!r}")
            await self._queue(order_id, user_id, event, payload)

    async def _queue(self, order_id: UUID, user_id: UUID, event: str, payload: Dict[str, Any]) -> None:
        try:
            async with self.uow:
                await self.uow.outbox.add(outbox_messages.notification(order_id, user_id, event, payload))
        except Exception as e:
            logger.error(f"Dropped notification {event} for order {order_id}: {e!r}")

    async def _resolve(self, events: List) -> List[Notification]:
        outgoing: List[Notification] = []
        async with self.uow:
            for event in events:
                payload = {"order_id": str(event.order_id), "order_number": event.order_number}

                if isinstance(event, OrderPlaced):
                    payload["total_cents"] = event.total_cents
                    outgoing.append((event.order_id, event.customer_id, "order.placed", payload))
                    chef = await self.uow.chefs.get_by_id(event.chef_id)
                    if chef:
                        outgoing.append((event.order_id, chef.user_id, "order.received", payload))

                elif isinstance(event, OrderStatusChanged):
                    payload.update({
                        "from_status": event.from_status.value,
                        "to_status": event.to_status.value,
                        "note": event.note,
                    })
                    name = f"order.{event.to_status.value}"
                    outgoing.append((event.order_id, event.customer_id, name, payload))
                    if event.to_status in _CHEF_STATUSES:
                        chef = await self.uow.chefs.get_by_id(event.chef_id)
                        if chef:
                            outgoing.append((event.order_id, chef.user_id, name, payload))
                    if event.to_status == OrderStatus.CANCELLED and event.driver_id:
                        driver = await self.uow.drivers.get_by_id(event.driver_id)
                        if driver:
                            outgoing.append((event.order_id, driver.user_id, name, payload))

                elif isinstance(event, DriverReserved):
                    payload.update({
                        "assignment_id": str(event.assignment_id),
                        "distance_km": round(event.distance_km, 2),
                        "estimated_pickup_minutes": event.estimated_pickup_minutes,
                    })
                    driver = await self.uow.drivers.get_by_id(event.driver_id)
                    if driver:
                        outgoing.append((event.order_id, driver.user_id, "assignment.offered", payload))

                elif isinstance(event, DriverReleased):
                    payload["reason"] = event.reason
                    driver = await self.uow.drivers.get_by_id(event.driver_id)
                    if driver:
                        outgoing.append((event.order_id, driver.user_id, "assignment.released", payload))

                elif isinstance(event, RefundRequested):
                    payload.update({"refund_id": str(event.refund_id), "amount_cents": event.amount_cents})
                    outgoing.append((event.order_id, event.customer_id, "refund.requested", payload))
        return outgoing
