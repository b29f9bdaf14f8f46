"""Chef and menu ORM Models"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, ForeignKey, Uuid
from sqlalchemy.sql import func
from uuid import uuid4

from ...db.models import Base
from ...domain.enums import VerificationStatus
from .types import value_enum


class ChefModel(Base):
    __tablename__ = 'chefs'

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, unique=True, nullable=False, index=True)
    business_name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    verification_status = Column(
        value_enum(VerificationStatus, 'verification_status'),
        default=VerificationStatus.PENDING,
        nullable=False,
    )
    payment_account_id = Column(String, nullable=True)
    payment_onboarding_complete = Column(Boolean, default=False, nullable=False)
    minimum_order_cents = Column(Integer, default=0, nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    delivery_radius_km = Column(Float, default=8.0, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class MenuItemModel(Base):
    __tablename__ = 'menu_items'

    id = Column(Uuid, primary_key=True, default=uuid4)
    chef_id = Column(Uuid, ForeignKey('chefs.id'), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price_cents = Column(Integer, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
