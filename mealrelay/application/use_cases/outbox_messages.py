"""Builders for the outbox messages the use cases write"""

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable
from uuid import UUID

from ...domain.entities.driver import DriverAssignment
from ...domain.entities.order import Order
from ...domain.entities.outbox import OutboxMessage
from ...domain.entities.refund import Refund
from ...domain.enums import OutboxTopic


def dispatch_requested(order_id: UUID, exclude_driver_ids: Iterable[UUID] = ()) -> OutboxMessage:
    return OutboxMessage(
        topic=OutboxTopic.DISPATCH_REQUESTED,
        aggregate_id=order_id,
        payload={
            "order_id": str(order_id),
            "exclude_driver_ids": [str(d) for d in exclude_driver_ids],
        },
    )


def dispatch_partner(order: Order, assignment: DriverAssignment) -> OutboxMessage:
    return OutboxMessage(
        topic=OutboxTopic.DISPATCH_PARTNER,
        aggregate_id=order.id,
        payload={
            "order_id": str(order.id),
            "order_number": order.order_number,
            "assignment_id": str(assignment.id),
            "driver_id": str(assignment.driver_id),
            "pickup": _point(order.pickup_location),
            "dropoff": _point(order.delivery_location),
            "dropoff_address": order.delivery_address,
            "estimated_pickup_minutes": assignment.estimated_pickup_minutes,
        },
    )


def refund_settlement(refund: Refund, delay_seconds: int) -> OutboxMessage:
    """Backstop for the in-request refund attempt; delayed so that one usually wins"""
    return OutboxMessage(
        topic=OutboxTopic.PAYMENT_REFUND,
        aggregate_id=refund.order_id,
        payload={"refund_id": str(refund.id), "order_id": str(refund.order_id)},
        next_attempt_at=datetime.utcnow() + timedelta(seconds=delay_seconds),
    )


def notification(aggregate_id: UUID, user_id: UUID, event: str, payload: Dict[str, Any]) -> OutboxMessage:
    return OutboxMessage(
        topic=OutboxTopic.NOTIFICATION,
        aggregate_id=aggregate_id,
        payload={"user_id": str(user_id), "event": event, "payload": payload},
    )


def _point(point):
    if point is None:
        return None
    return {"lat": point.latitude, "lng": point.longitude}
