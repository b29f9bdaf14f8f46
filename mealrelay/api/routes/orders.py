"""Order routes"""

import math
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ...application.dtos.order_dtos import (
    ConfirmPaymentRequest,
    CreateOrderRequest,
    OrderListResponse,
    OrderResponse,
    PaymentIntentResponse,
    ReasonRequest,
    RefundOrderRequest,
    RefundResponse,
    StatusHistoryResponse,
)
from ...application.use_cases.lifecycle_coordinator import LifecycleCoordinator
from ...api.dependencies import get_current_actor, get_current_admin, get_lifecycle_coordinator
from ...domain.entities.actor import Actor
from ...domain.enums import OrderStatus
from ...domain.repositories.order_repository import OrderFilters


router = APIRouter(tags=["orders"])


@router.post("/", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: CreateOrderRequest,
    actor: Actor = Depends(get_current_actor),
    coordinator: LifecycleCoordinator = Depends(get_lifecycle_coordinator),
):
    """Place a new order (customers only)"""
    order = await coordinator.create_order(actor, order_data)
    return OrderResponse.from_entity(order)


@router.get("/", response_model=OrderListResponse)
async def list_orders(
    status_filter: Optional[OrderStatus] = Query(default=None, alias="status"),
    chef_id: Optional[UUID] = None,
    customer_id: Optional[UUID] = None,
    driver_id: Optional[UUID] = None,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    coordinator: LifecycleCoordinator = Depends(get_lifecycle_coordinator),
):
    """List orders visible to the caller"""
    filters = OrderFilters(
        status=status_filter,
        customer_id=customer_id,
        chef_id=chef_id,
        driver_id=driver_id,
        created_from=created_from,
        created_to=created_to,
    )
    orders, total = await coordinator.list_orders(actor, filters, page, per_page)
    return OrderListResponse(
        items=[OrderResponse.from_entity(order) for order in orders],
        total=total,
        page=page,
        per_page=per_page,
        pages=math.ceil(total / per_page) if total else 0,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    include_history: bool = False,
    actor: Actor = Depends(get_current_actor),
    coordinator: LifecycleCoordinator = Depends(get_lifecycle_coordinator),
):
    """Get order by ID"""
    order = await coordinator.get_order(order_id, actor)
    history = await coordinator.get_order_history(order_id, actor) if include_history else None
    return OrderResponse.from_entity(order, history)


@router.get("/{order_id}/history", response_model=List[StatusHistoryResponse])
async def get_order_history(
    order_id: UUID,
    actor: Actor = Depends(get_current_actor),
    coordinator: LifecycleCoordinator = Depends(get_lifecycle_coordinator),
):
    history = await coordinator.get_order_history(order_id, actor)
    return [StatusHistoryResponse.from_entity(entry) for entry in history]


@router.post("/{order_id}/payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    order_id: UUID,
    actor: Actor = Depends(get_current_actor),
    coordinator: LifecycleCoordinator = Depends(get_lifecycle_coordinator),
):
    """Start payment for a pending order"""
    intent = await coordinator.create_payment_intent(order_id, actor)
    order = await coordinator.get_order(order_id, actor)
    return PaymentIntentResponse(
        order_id=order.id,
        payment_reference=intent.reference,
        client_secret=intent.client_secret,
        amount_cents=order.total_cents,
    )


@router.post("/{order_id}/payment/confirm", response_model=OrderResponse)
async def confirm_payment(
    order_id: UUID,
    payment: ConfirmPaymentRequest,
    actor: Actor = Depends(get_current_admin),
    coordinator: LifecycleCoordinator = Depends(get_lifecycle_coordinator),
):
    """Record a captured payment (payment webhook relay)"""
    order = await coordinator.confirm_payment(order_id, payment.payment_reference, actor)
    return OrderResponse.from_entity(order)


# Chef actions

@router.post("/{order_id}/accept", response_model=OrderResponse)
async def accept_order(
    order_id: UUID,
    actor: Actor = Depends(get_current_actor),
    coordinator: LifecycleCoordinator = Depends(get_lifecycle_coordinator),
):
    return OrderResponse.from_entity(await coordinator.accept_order(order_id, actor))


@router.post("/{order_id}/reject", response_model=OrderResponse)
async def reject_order(
    order_id: UUID,
    body: ReasonRequest,
    actor: Actor = Depends(get_current_actor),
    coordinator: LifecycleCoordinator = Depends(get_lifecycle_coordinator),
):
    return OrderResponse.from_entity(await coordinator.reject_order(order_id, actor, body.reason))


@router.post("/{order_id}/preparing", response_model=OrderResponse)
async def start_preparing(
    order_id: UUID,
    actor: Actor = Depends(get_current_actor),
    coordinator: LifecycleCoordinator = Depends(get_lifecycle_coordinator),
):
    return OrderResponse.from_entity(await coordinator.start_preparing(order_id, actor))


@router.post("/{order_id}/ready", response_model=OrderResponse)
async def mark_ready(
    order_id: UUID,
    actor: Actor = Depends(get_current_actor),
    coordinator: LifecycleCoordinator = Depends(get_lifecycle_coordinator),
):
    return OrderResponse.from_entity(await coordinator.mark_ready(order_id, actor))


# Driver actions

@router.post("/{order_id}/pickup", response_model=OrderResponse)
async def mark_picked_up(
    order_id: UUID,
    actor: Actor = Depends(get_current_actor),
    coordinator: LifecycleCoordinator = Depends(get_lifecycle_coordinator),
):
    return OrderResponse.from_entity(await coordinator.mark_picked_up(order_id, actor))


@router.post("/{order_id}/in-transit", response_model=OrderResponse)
async def mark_in_transit(
    order_id: UUID,
    actor: Actor = Depends(get_current_actor),
    coordinator: LifecycleCoordinator = Depends(get_lifecycle_coordinator),
):
    return OrderResponse.from_entity(await coordinator.mark_in_transit(order_id, actor))


@router.post("/{order_id}/deliver", response_model=OrderResponse)
async def mark_delivered(
    order_id: UUID,
    actor: Actor = Depends(get_current_actor),
    coordinator: LifecycleCoordinator = Depends(get_lifecycle_coordinator),
):
    return OrderResponse.from_entity(await coordinator.mark_delivered(order_id, actor))


# Cancellation and refunds

@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: UUID,
    body: ReasonRequest,
    actor: Actor = Depends(get_current_actor),
    coordinator: LifecycleCoordinator = Depends(get_lifecycle_coordinator),
):
    """Cancel an order; captured payments are refunded"""
    return OrderResponse.from_entity(await coordinator.cancel_order(order_id, actor, body.reason))


@router.post("/{order_id}/refund", response_model=RefundResponse)
async def refund_order(
    order_id: UUID,
    body: RefundOrderRequest,
    actor: Actor = Depends(get_current_admin),
    coordinator: LifecycleCoordinator = Depends(get_lifecycle_coordinator),
):
    """Full or partial refund (admins only)"""
    _, refund = await coordinator.refund_order(order_id, actor, body.reason, body.amount_cents)
    return RefundResponse.from_entity(refund)
