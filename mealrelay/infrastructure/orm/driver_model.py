"""Driver and driver assignment ORM Models"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, ForeignKey, Uuid, Index, text
from sqlalchemy.sql import func
from uuid import uuid4

from ...db.models import Base
from ...domain.enums import AssignmentStatus, VerificationStatus
from .types import value_enum


class DriverModel(Base):
    __tablename__ = 'drivers'

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default='')
    vehicle_type = Column(String(50), nullable=False, default='car')
    is_available = Column(Boolean, default=False, nullable=False)
    verification_status = Column(
        value_enum(VerificationStatus, 'verification_status'),
        default=VerificationStatus.PENDING,
        nullable=False,
    )
    current_latitude = Column(Float, nullable=True)
    current_longitude = Column(Float, nullable=True)
    location_updated_at = Column(DateTime, nullable=True)

    average_rating = Column(Float, default=0.0, nullable=False)
    total_deliveries = Column(Integer, default=0, nullable=False)
    successful_deliveries = Column(Integer, default=0, nullable=False)
    cancelled_deliveries = Column(Integer, default=0, nullable=False)
    total_earnings_cents = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_drivers_available_location', 'is_available', 'current_latitude', 'current_longitude'),
    )


class DriverAssignmentModel(Base):
    __tablename__ = 'driver_assignments'

    id = Column(Uuid, primary_key=True, default=uuid4)
    order_id = Column(Uuid, ForeignKey('orders.id'), nullable=False, index=True)
    driver_id = Column(Uuid, ForeignKey('drivers.id'), nullable=False, index=True)
    status = Column(
        value_enum(AssignmentStatus, 'assignment_status'),
        default=AssignmentStatus.PENDING,
        nullable=False,
    )
    distance_km = Column(Float, nullable=False)
    estimated_pickup_minutes = Column(Integer, nullable=False)
    assigned_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    declined_at = Column(DateTime, nullable=True)
    decline_reason = Column(String(500), nullable=True)

    __table_args__ = (
        # At most one pending assignment per order
        Index(
            'uq_driver_assignments_one_pending',
            'order_id',
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index('idx_driver_assignments_status_assigned_at', 'status', 'assigned_at'),
    )
