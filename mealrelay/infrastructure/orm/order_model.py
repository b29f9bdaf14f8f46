"""Order ORM Models"""

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Float, ForeignKey, Uuid,
    UniqueConstraint, Index, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from uuid import uuid4

from ...db.models import Base
from ...domain.enums import OrderStatus
from .types import value_enum


class OrderModel(Base):
    __tablename__ = 'orders'

    id = Column(Uuid, primary_key=True, default=uuid4)
    order_number = Column(String(32), unique=True, nullable=False)
    customer_id = Column(Uuid, nullable=False, index=True)
    chef_id = Column(Uuid, ForeignKey('chefs.id'), nullable=False, index=True)
    assigned_driver_id = Column(Uuid, ForeignKey('drivers.id'), nullable=True, index=True)
    status = Column(value_enum(OrderStatus, 'order_status'), default=OrderStatus.PENDING, nullable=False, index=True)

    # Money snapshot (cents)
    subtotal_cents = Column(Integer, nullable=False)
    tax_cents = Column(Integer, nullable=False)
    delivery_fee_cents = Column(Integer, nullable=False)
    platform_fee_cents = Column(Integer, nullable=False)
    chef_earnings_cents = Column(Integer, nullable=False)
    total_cents = Column(Integer, nullable=False)
    refunded_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), default='USD', nullable=False)
    payment_reference = Column(String, nullable=True, index=True)

    # Locations
    pickup_latitude = Column(Float, nullable=True)
    pickup_longitude = Column(Float, nullable=True)
    delivery_latitude = Column(Float, nullable=True)
    delivery_longitude = Column(Float, nullable=True)
    delivery_address = Column(String(500), nullable=False)
    delivery_instructions = Column(String(500), nullable=True)

    cancellation_reason = Column(String(500), nullable=True)
    rejection_reason = Column(String(500), nullable=True)

    # Milestones
    assigned_at = Column(DateTime, nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    ready_at = Column(DateTime, nullable=True)
    picked_up_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    estimated_delivery_at = Column(DateTime, nullable=True)

    history_sequence = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    items = relationship('OrderItemModel', back_populates='order', order_by='OrderItemModel.position')
    history = relationship('OrderStatusHistoryModel', back_populates='order', order_by='OrderStatusHistoryModel.sequence')
    chef = relationship('ChefModel')

    __table_args__ = (
        CheckConstraint('total_cents = subtotal_cents + tax_cents + delivery_fee_cents', name='ck_orders_total'),
        CheckConstraint('refunded_cents >= 0 AND refunded_cents <= total_cents', name='ck_orders_refunded'),
    )
    # UPDATE ... WHERE version = :loaded_version; a lost race raises StaleDataError
    __mapper_args__ = {'version_id_col': version}


class OrderItemModel(Base):
    __tablename__ = 'order_items'

    id = Column(Uuid, primary_key=True, default=uuid4)
    order_id = Column(Uuid, ForeignKey('orders.id'), nullable=False, index=True)
    menu_item_id = Column(Uuid, ForeignKey('menu_items.id'), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price_cents = Column(Integer, nullable=False)
    notes = Column(String(500), nullable=True)

    order = relationship('OrderModel', back_populates='items')


class OrderStatusHistoryModel(Base):
    __tablename__ = 'order_status_history'

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Uuid, ForeignKey('orders.id'), nullable=False)
    sequence = Column(Integer, nullable=False)
    from_status = Column(value_enum(OrderStatus, 'order_status'), nullable=True)
    to_status = Column(value_enum(OrderStatus, 'order_status'), nullable=False)
    event = Column(String(64), nullable=False)
    changed_by = Column(String(64), nullable=False)
    note = Column(Text, nullable=True)
    changed_at = Column(DateTime, nullable=False)

    order = relationship('OrderModel', back_populates='history')

    __table_args__ = (
        UniqueConstraint('order_id', 'sequence', name='uq_order_status_history_sequence'),
        Index('idx_order_status_history_order', 'order_id', 'sequence'),
    )
