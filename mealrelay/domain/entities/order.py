"""Order entity with business logic"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4
import secrets

from .. import state_graph
from ..commission import CommissionBreakdown
from ..enums import OrderStatus
from ..exceptions import BadRequest, Conflict
from ..events.order_events import (
    DriverReleased,
    DriverReserved,
    OrderPlaced,
    OrderStatusChanged,
)
from ..value_objects.geo import GeoPoint


SYSTEM_ACTOR = "system"

_MILESTONES = {
    OrderStatus.ACCEPTED: "accepted_at",
    OrderStatus.READY_FOR_PICKUP: "ready_at",
    OrderStatus.PICKED_UP: "picked_up_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def generate_order_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


@dataclass(frozen=True)
class OrderItem:
    """Line item with the menu price captured at order time"""
    menu_item_id: UUID
    name: str
    quantity: int
    unit_price_cents: int
    notes: Optional[str] = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self):
        if not 1 <= self.quantity <= 99:
            raise BadRequest("Item quantity must be between 1 and 99")
        if self.unit_price_cents < 0:
            raise BadRequest("Item price cannot be negative")

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity


@dataclass(frozen=True)
class StatusHistoryEntry:
    order_id: UUID
    sequence: int
    from_status: Optional[OrderStatus]
    to_status: OrderStatus
    event: str
    changed_by: str
    note: Optional[str] = None
    changed_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class Order:
    id: UUID
    order_number: str
    customer_id: UUID
    chef_id: UUID
    status: OrderStatus

    # Money snapshot taken at creation
    subtotal_cents: int
    tax_cents: int
    delivery_fee_cents: int
    platform_fee_cents: int
    chef_earnings_cents: int
    total_cents: int
    refunded_cents: int = 0

    pickup_location: Optional[GeoPoint] = None
    delivery_location: Optional[GeoPoint] = None
    delivery_address: str = ""
    delivery_instructions: Optional[str] = None
    items: List[OrderItem] = field(default_factory=list)

    payment_reference: Optional[str] = None
    assigned_driver_id: Optional[UUID] = None
    cancellation_reason: Optional[str] = None
    rejection_reason: Optional[str] = None

    assigned_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    estimated_delivery_at: Optional[datetime] = None

    history_sequence: int = 0
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    # Unsaved history rows and domain events
    _history: List[StatusHistoryEntry] = field(default_factory=list, init=False, repr=False)
    _events: List = field(default_factory=list, init=False, repr=False)

    @classmethod
    def place(
        cls,
        customer_id: UUID,
        chef_id: UUID,
        items: List[OrderItem],
        breakdown: CommissionBreakdown,
        pickup_location: GeoPoint,
        delivery_location: GeoPoint,
        delivery_address: str,
        delivery_instructions: Optional[str] = None,
    ) -> "Order":
        """Factory for a new PENDING order with its money split frozen in"""
        if not items:
            raise BadRequest("An order needs at least one item")
        if sum(item.line_total_cents for item in items) != breakdown.subtotal_cents:
            raise BadRequest("Breakdown subtotal does not match the items")

        order = cls(
            id=uuid4(),
            order_number=generate_order_number(),
            customer_id=customer_id,
            chef_id=chef_id,
            status=state_graph.INITIAL_STATUS,
            subtotal_cents=breakdown.subtotal_cents,
            tax_cents=breakdown.tax_cents,
            delivery_fee_cents=breakdown.delivery_fee_cents,
            platform_fee_cents=breakdown.platform_fee_cents,
            chef_earnings_cents=breakdown.chef_earnings_cents,
            total_cents=breakdown.total_cents,
            pickup_location=pickup_location,
            delivery_location=delivery_location,
            delivery_address=delivery_address,
            delivery_instructions=delivery_instructions,
            items=list(items),
        )
        order._record_history(None, order.status, "order_placed", str(customer_id))
        order._events.append(OrderPlaced(
            order_id=order.id,
            order_number=order.order_number,
            customer_id=customer_id,
            chef_id=chef_id,
            total_cents=order.total_cents,
        ))
        return order

    @property
    def breakdown(self) -> CommissionBreakdown:
        return CommissionBreakdown(
            subtotal_cents=self.subtotal_cents,
            platform_fee_cents=self.platform_fee_cents,
            chef_earnings_cents=self.chef_earnings_cents,
            tax_cents=self.tax_cents,
            delivery_fee_cents=self.delivery_fee_cents,
            total_cents=self.total_cents,
        )

    @property
    def refundable_cents(self) -> int:
        return self.total_cents - self.refunded_cents

    @property
    def is_fully_refunded(self) -> bool:
        return self.refunded_cents >= self.total_cents

    @property
    def payment_captured(self) -> bool:
        """Money was taken at some point (refunds do not undo this)"""
        if self.refunded_cents > 0:
            return True
        return state_graph.requires_refund(self.status) or self.status in (
            OrderStatus.IN_TRANSIT,
            OrderStatus.DELIVERED,
        )

    def ensure_dispatchable(self) -> None:
        if self.assigned_driver_id is not None:
            raise Conflict("Order already has an assigned driver")
        if self.status != OrderStatus.READY_FOR_PICKUP:
            raise BadRequest("Order is not ready for pickup")

    # Transitions -----------------------------------------------------------

    def transition_to(self, target: OrderStatus, changed_by: str, event: str = None, note: str = None) -> None:
        """Move to ``target`` if the state graph allows it"""
        previous = self.status
        state_graph.validate_transition(previous, target)

        now = datetime.utcnow()
        self.status = target
        milestone = _MILESTONES.get(target)
        if milestone:
            setattr(self, milestone, now)
        self.updated_at = now

        self._record_history(previous, target, event or target.value, changed_by, note)
        self._events.append(OrderStatusChanged(
            order_id=self.id,
            order_number=self.order_number,
            from_status=previous,
            to_status=target,
            changed_by=changed_by,
            customer_id=self.customer_id,
            chef_id=self.chef_id,
            driver_id=self.assigned_driver_id,
            note=note,
        ))

    def cancel(self, changed_by: str, reason: str) -> None:
        self.transition_to(OrderStatus.CANCELLED, changed_by, "order_cancelled", reason)
        self.cancellation_reason = reason
        self.assigned_driver_id = None

    def reject(self, changed_by: str, reason: str) -> None:
        if not reason or not reason.strip():
            raise BadRequest("A rejection reason is required")
        self.transition_to(OrderStatus.REJECTED, changed_by, "order_rejected", reason)
        self.rejection_reason = reason

    def reserve_driver(
        self,
        driver_id: UUID,
        assignment_id: UUID,
        distance_km: float,
        estimated_pickup_minutes: int,
        changed_by: str = SYSTEM_ACTOR,
    ) -> None:
        """Hold the order for one driver while their assignment is pending"""
        self.ensure_dispatchable()

        now = datetime.utcnow()
        self.assigned_driver_id = driver_id
        self.assigned_at = now
        self.updated_at = now
        self._record_history(self.status, self.status, "driver_reserved", changed_by, f"driver {driver_id}")
        self._events.append(DriverReserved(
            order_id=self.id,
            order_number=self.order_number,
            assignment_id=assignment_id,
            driver_id=driver_id,
            distance_km=distance_km,
            estimated_pickup_minutes=estimated_pickup_minutes,
        ))

    def release_driver(self, changed_by: str, reason: str = None) -> None:
        """Drop the driver and put the order back in the dispatchable pool"""
        driver_id = self.assigned_driver_id
        if driver_id is None:
            return
        if self.status == OrderStatus.ASSIGNED_TO_DRIVER:
            self.transition_to(OrderStatus.READY_FOR_PICKUP, changed_by, "driver_unassigned", reason)
        elif self.status == OrderStatus.READY_FOR_PICKUP:
            self._record_history(self.status, self.status, "driver_released", changed_by, reason)
        else:
            raise BadRequest(f"Cannot release the driver of an order that is {self.status.value}")

        self.assigned_driver_id = None
        self.assigned_at = None
        self.updated_at = datetime.utcnow()
        self._events.append(DriverReleased(
            order_id=self.id,
            order_number=self.order_number,
            driver_id=driver_id,
            reason=reason,
        ))

    def record_refund(self, amount_cents: int) -> None:
        if amount_cents <= 0:
            raise BadRequest("Refund amount must be positive")
        if self.is_fully_refunded:
            raise BadRequest("Order has already been fully refunded")
        if amount_cents > self.refundable_cents:
            raise BadRequest(
                f"Refund of {amount_cents} cents exceeds the remaining balance of {self.refundable_cents} cents"
            )
        self.refunded_cents += amount_cents
        self.updated_at = datetime.utcnow()

    def _record_history(self, from_status, to_status, event, changed_by, note=None) -> None:
        self.history_sequence += 1
        self._history.append(StatusHistoryEntry(
            order_id=self.id,
            sequence=self.history_sequence,
            from_status=from_status,
            to_status=to_status,
            event=event,
            changed_by=changed_by,
            note=note,
        ))

    def pull_history(self) -> List[StatusHistoryEntry]:
        """Get and clear unsaved history rows"""
        history = self._history.copy()
        self._history.clear()
        return history

    def get_events(self) -> List:
        """Get and clear domain events"""
        events = self._events.copy()
        self._events.clear()
        return events
