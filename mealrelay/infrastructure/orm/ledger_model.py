"""Ledger, refund and outbox ORM Models"""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Uuid, JSON, Index
from uuid import uuid4

from ...db.models import Base
from ...domain.enums import LedgerActorType, LedgerEntryKind, OutboxStatus, RefundStatus
from .types import value_enum


class LedgerEntryModel(Base):
    """Append-only; rows are inserted and never updated"""
    __tablename__ = 'ledger_entries'

    id = Column(Uuid, primary_key=True, default=uuid4)
    order_id = Column(Uuid, ForeignKey('orders.id'), nullable=False, index=True)
    actor_type = Column(value_enum(LedgerActorType, 'ledger_actor_type'), nullable=False)
    actor_id = Column(Uuid, nullable=True)
    kind = Column(value_enum(LedgerEntryKind, 'ledger_entry_kind'), nullable=False)
    amount_cents = Column(Integer, nullable=False)
    description = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index('idx_ledger_entries_actor', 'actor_type', 'actor_id'),
    )


class RefundModel(Base):
    __tablename__ = 'refunds'

    id = Column(Uuid, primary_key=True, default=uuid4)
    order_id = Column(Uuid, ForeignKey('orders.id'), nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False)
    chef_refund_cents = Column(Integer, nullable=False)
    platform_refund_cents = Column(Integer, nullable=False)
    reason = Column(String(500), nullable=False)
    requested_by = Column(String(64), nullable=False)
    status = Column(value_enum(RefundStatus, 'refund_status'), default=RefundStatus.PENDING, nullable=False, index=True)
    gateway_refund_id = Column(String, nullable=True)
    failure_reason = Column(Text, nullable=True)
    attempts = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)


class OutboxMessageModel(Base):
    __tablename__ = 'outbox_messages'

    id = Column(Uuid, primary_key=True, default=uuid4)
    topic = Column(String(64), nullable=False)
    aggregate_id = Column(Uuid, nullable=False, index=True)
    payload = Column(JSON, nullable=False)
    status = Column(value_enum(OutboxStatus, 'outbox_status'), default=OutboxStatus.PENDING, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)
    next_attempt_at = Column(DateTime, nullable=False)
    delivered_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('idx_outbox_messages_due', 'status', 'next_attempt_at'),
    )
