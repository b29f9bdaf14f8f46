"""Order repository implementation using SQLAlchemy ORM"""

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import desc
from sqlalchemy.orm import Session

from ...domain.entities.order import Order, OrderItem, StatusHistoryEntry
from ...domain.exceptions import NotFound
from ...domain.repositories.order_repository import IOrderRepository, OrderFilters
from ...domain.value_objects.geo import GeoPoint
from ..orm.order_model import OrderModel, OrderItemModel, OrderStatusHistoryModel
from .db_errors import translate_db_errors

# Plain columns copied both ways between entity and model
_ORDER_FIELDS = (
    'order_number', 'customer_id', 'chef_id', 'assigned_driver_id', 'status',
    'subtotal_cents', 'tax_cents', 'delivery_fee_cents', 'platform_fee_cents',
    'chef_earnings_cents', 'total_cents', 'refunded_cents', 'payment_reference',
    'delivery_address', 'delivery_instructions', 'cancellation_reason', 'rejection_reason',
    'assigned_at', 'accepted_at', 'ready_at', 'picked_up_at', 'delivered_at', 'cancelled_at',
    'estimated_delivery_at', 'history_sequence', 'created_at', 'updated_at',
)


class OrderRepositoryImpl(IOrderRepository):
    """Repository implementation for the Order aggregate"""

    def __init__(self, session: Session):
        self.session = session

    async def get_by_id(self, order_id: UUID) -> Optional[Order]:
        model = self.session.query(OrderModel).filter(OrderModel.id == order_id).first()
        return self._map_to_entity(model) if model else None

    async def get_for_update(self, order_id: UUID) -> Optional[Order]:
        """SELECT ... FOR UPDATE, refreshing any copy already in the session"""
        with translate_db_errors("locking order"):
            model = (
                self.session.query(OrderModel)
                .filter(OrderModel.id == order_id)
                .populate_existing()
                .with_for_update()
                .first()
            )
        return self._map_to_entity(model) if model else None

    async def add(self, order: Order) -> Order:
        model = OrderModel(id=order.id)
        self._update_model_from_entity(model, order)
        model.items = [
            OrderItemModel(
                id=item.id,
                menu_item_id=item.menu_item_id,
                position=position,
                name=item.name,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                notes=item.notes,
            )
            for position, item in enumerate(order.items)
        ]
        self.session.add(model)
        self._add_history(order)
        with translate_db_errors("creating order"):
            self.session.flush()
        return order

    async def update(self, order: Order) -> Order:
        """Write the aggregate back; the version column rejects lost updates"""
        model = self.session.get(OrderModel, order.id)
        if model is None:
            raise NotFound("Order not found")
        self._update_model_from_entity(model, order)
        self._add_history(order)
        with translate_db_errors("updating order"):
            self.session.flush()
        return order

    async def list(self, filters: OrderFilters, offset: int = 0, limit: int = 20) -> Tuple[List[Order], int]:
        query = self.session.query(OrderModel)
        if filters.status is not None:
            query = query.filter(OrderModel.status == filters.status)
        if filters.customer_id is not None:
            query = query.filter(OrderModel.customer_id == filters.customer_id)
        if filters.chef_id is not None:
            query = query.filter(OrderModel.chef_id == filters.chef_id)
        if filters.driver_id is not None:
            query = query.filter(OrderModel.assigned_driver_id == filters.driver_id)
        if filters.created_from is not None:
            query = query.filter(OrderModel.created_at >= filters.created_from)
        if filters.created_to is not None:
            query = query.filter(OrderModel.created_at <= filters.created_to)

        total = query.count()
        models = (
            query.order_by(desc(OrderModel.created_at), desc(OrderModel.order_number))
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [self._map_to_entity(model) for model in models], total

    async def get_history(self, order_id: UUID) -> List[StatusHistoryEntry]:
        models = (
            self.session.query(OrderStatusHistoryModel)
            .filter(OrderStatusHistoryModel.order_id == order_id)
            .order_by(OrderStatusHistoryModel.sequence)
            .all()
        )
        return [
            StatusHistoryEntry(
                order_id=m.order_id,
                sequence=m.sequence,
                from_status=m.from_status,
                to_status=m.to_status,
                event=m.event,
                changed_by=m.changed_by,
                note=m.note,
                changed_at=m.changed_at,
            )
            for m in models
        ]

    def _add_history(self, order: Order) -> None:
        for entry in order.pull_history():
            self.session.add(OrderStatusHistoryModel(
                order_id=entry.order_id,
                sequence=entry.sequence,
                from_status=entry.from_status,
                to_status=entry.to_status,
                event=entry.event,
                changed_by=entry.changed_by,
                note=entry.note,
                changed_at=entry.changed_at,
            ))

    def _update_model_from_entity(self, model: OrderModel, order: Order) -> None:
        for name in _ORDER_FIELDS:
            setattr(model, name, getattr(order, name))
        model.pickup_latitude = order.pickup_location.latitude if order.pickup_location else None
        model.pickup_longitude = order.pickup_location.longitude if order.pickup_location else None
        model.delivery_latitude = order.delivery_location.latitude if order.delivery_location else None
        model.delivery_longitude = order.delivery_location.longitude if order.delivery_location else None

    def _map_to_entity(self, model: OrderModel) -> Order:
        pickup = None
        if model.pickup_latitude is not None and model.pickup_longitude is not None:
            pickup = GeoPoint(model.pickup_latitude, model.pickup_longitude)
        delivery = None
        if model.delivery_latitude is not None and model.delivery_longitude is not None:
            delivery = GeoPoint(model.delivery_latitude, model.delivery_longitude)

        return Order(
            id=model.id,
            pickup_location=pickup,
            delivery_location=delivery,
            items=[
                OrderItem(
                    id=item.id,
                    menu_item_id=item.menu_item_id,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price_cents=item.unit_price_cents,
                    notes=item.notes,
                )
                for item in model.items
            ],
            **{name: getattr(model, name) for name in _ORDER_FIELDS},
        )
