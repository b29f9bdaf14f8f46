"""Order domain events"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from ..enums import OrderStatus


@dataclass(frozen=True)
class OrderPlaced:
    order_id: UUID
    order_number: str
    customer_id: UUID
    chef_id: UUID
    total_cents: int


@dataclass(frozen=True)
class OrderStatusChanged:
    order_id: UUID
    order_number: str
    from_status: OrderStatus
    to_status: OrderStatus
    changed_by: str
    customer_id: UUID
    chef_id: UUID
    driver_id: Optional[UUID] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class DriverReserved:
    order_id: UUID
    order_number: str
    assignment_id: UUID
    driver_id: UUID
    distance_km: float
    estimated_pickup_minutes: int


@dataclass(frozen=True)
class DriverReleased:
    order_id: UUID
    order_number: str
    driver_id: UUID
    reason: Optional[str] = None


@dataclass(frozen=True)
class RefundRequested:
    order_id: UUID
    order_number: str
    refund_id: UUID
    customer_id: UUID
    amount_cents: int
