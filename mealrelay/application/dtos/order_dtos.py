"""Order DTOs for API requests and responses"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from ...domain.commission import format_cents


def _not_blank(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


class OrderItemRequest(BaseModel):
    menu_item_id: UUID
    quantity: int = Field(..., ge=1, le=99)
    notes: Optional[str] = Field(default=None, max_length=500)


class DeliveryDetails(BaseModel):
    address: str = Field(..., min_length=1, max_length=500)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    instructions: Optional[str] = Field(default=None, max_length=500)


class CreateOrderRequest(BaseModel):
    """Request DTO for placing an order"""
    chef_id: UUID
    items: List[OrderItemRequest] = Field(..., min_length=1)
    delivery: DeliveryDetails


class ReasonRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class RefundOrderRequest(ReasonRequest):
    amount_cents: Optional[int] = Field(default=None, gt=0)


class ConfirmPaymentRequest(BaseModel):
    payment_reference: str = Field(..., min_length=1, max_length=255)


class OrderItemResponse(BaseModel):
    id: UUID
    menu_item_id: UUID
    name: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    notes: Optional[str] = None


class StatusHistoryResponse(BaseModel):
    sequence: int
    from_status: Optional[str] = None
    to_status: str
    event: str
    changed_by: str
    note: Optional[str] = None
    changed_at: datetime

    @classmethod
    def from_entity(cls, entry):
        return cls(
            sequence=entry.sequence,
            from_status=entry.from_status.value if entry.from_status else None,
            to_status=entry.to_status.value,
            event=entry.event,
            changed_by=entry.changed_by,
            note=entry.note,
            changed_at=entry.changed_at,
        )


class OrderResponse(BaseModel):
    """Response DTO for order data"""
    id: UUID
    order_number: str
    status: str
    customer_id: UUID
    chef_id: UUID
    assigned_driver_id: Optional[UUID] = None
    subtotal_cents: int
    tax_cents: int
    delivery_fee_cents: int
    platform_fee_cents: int
    chef_earnings_cents: int
    total_cents: int
    refunded_cents: int
    total_display: str
    delivery_address: str
    delivery_instructions: Optional[str] = None
    payment_reference: Optional[str] = None
    cancellation_reason: Optional[str] = None
    rejection_reason: Optional[str] = None
    items: List[OrderItemResponse] = []
    assigned_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    estimated_delivery_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    history: Optional[List[StatusHistoryResponse]] = None

    @classmethod
    def from_entity(cls, order, history=None):
        """Convert domain entity to DTO"""
        return cls(
            id=order.id,
            order_number=order.order_number,
            status=order.status.value,
            customer_id=order.customer_id,
            chef_id=order.chef_id,
            assigned_driver_id=order.assigned_driver_id,
            subtotal_cents=order.subtotal_cents,
            tax_cents=order.tax_cents,
            delivery_fee_cents=order.delivery_fee_cents,
            platform_fee_cents=order.platform_fee_cents,
            chef_earnings_cents=order.chef_earnings_cents,
            total_cents=order.total_cents,
            refunded_cents=order.refunded_cents,
            total_display=format_cents(order.total_cents),
            delivery_address=order.delivery_address,
            delivery_instructions=order.delivery_instructions,
            payment_reference=order.payment_reference,
            cancellation_reason=order.cancellation_reason,
            rejection_reason=order.rejection_reason,
            items=[
                OrderItemResponse(
                    id=item.id,
                    menu_item_id=item.menu_item_id,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price_cents=item.unit_price_cents,
                    line_total_cents=item.line_total_cents,
                    notes=item.notes,
                )
                for item in order.items
            ],
            assigned_at=order.assigned_at,
            accepted_at=order.accepted_at,
            ready_at=order.ready_at,
            picked_up_at=order.picked_up_at,
            delivered_at=order.delivered_at,
            cancelled_at=order.cancelled_at,
            estimated_delivery_at=order.estimated_delivery_at,
            created_at=order.created_at,
            updated_at=order.updated_at,
            history=[StatusHistoryResponse.from_entity(h) for h in history] if history is not None else None,
        )


class OrderListResponse(BaseModel):
    items: List[OrderResponse]
    total: int
    page: int
    per_page: int
    pages: int


class PaymentIntentResponse(BaseModel):
    order_id: UUID
    payment_reference: str
    client_secret: Optional[str] = None
    amount_cents: int


class RefundResponse(BaseModel):
    id: UUID
    order_id: UUID
    amount_cents: int
    chef_refund_cents: int
    platform_refund_cents: int
    status: str
    reason: str
    created_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, refund):
        return cls(
            id=refund.id,
            order_id=refund.order_id,
            amount_cents=refund.amount_cents,
            chef_refund_cents=refund.chef_refund_cents,
            platform_refund_cents=refund.platform_refund_cents,
            status=refund.status.value,
            reason=refund.reason,
            created_at=refund.created_at,
            completed_at=refund.completed_at,
        )
