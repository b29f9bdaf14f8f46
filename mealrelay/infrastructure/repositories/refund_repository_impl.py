"""Refund and outbox repository implementations"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ...domain.entities.outbox import OutboxMessage
from ...domain.entities.refund import Refund
from ...domain.enums import OutboxStatus, OutboxTopic, RefundStatus
from ...domain.exceptions import NotFound
from ...domain.repositories.refund_repository import IOutboxRepository, IRefundRepository
from ..orm.ledger_model import OutboxMessageModel, RefundModel
from .db_errors import translate_db_errors

_REFUND_FIELDS = (
    'order_id', 'amount_cents', 'chef_refund_cents', 'platform_refund_cents', 'reason',
    'requested_by', 'status', 'gateway_refund_id', 'failure_reason', 'attempts',
    'created_at', 'completed_at',
)

_OUTBOX_FIELDS = (
    'aggregate_id', 'payload', 'status', 'attempts', 'last_error',
    'created_at', 'next_attempt_at', 'delivered_at',
)


class RefundRepositoryImpl(IRefundRepository):

    def __init__(self, session: Session):
        self.session = session

    async def get_by_id(self, refund_id: UUID) -> Optional[Refund]:
        model = self.session.query(RefundModel).filter(RefundModel.id == refund_id).first()
        return self._map_to_entity(model) if model else None

    async def get_for_update(self, refund_id: UUID) -> Optional[Refund]:
        with translate_db_errors("locking refund"):
            model = (
                self.session.query(RefundModel)
                .filter(RefundModel.id == refund_id)
                .populate_existing()
                .with_for_update()
                .first()
            )
        return self._map_to_entity(model) if model else None

    async def add(self, refund: Refund) -> Refund:
        model = RefundModel(id=refund.id)
        for name in _REFUND_FIELDS:
            setattr(model, name, getattr(refund, name))
        self.session.add(model)
        with translate_db_errors("recording refund"):
            self.session.flush()
        return refund

    async def update(self, refund: Refund) -> Refund:
        model = self.session.get(RefundModel, refund.id)
        if model is None:
            raise NotFound("Refund not found")
        for name in _REFUND_FIELDS:
            setattr(model, name, getattr(refund, name))
        with translate_db_errors("updating refund"):
            self.session.flush()
        return refund

    async def list_for_order(self, order_id: UUID) -> List[Refund]:
        models = (
            self.session.query(RefundModel)
            .filter(RefundModel.order_id == order_id)
            .order_by(RefundModel.created_at)
            .all()
        )
        return [self._map_to_entity(m) for m in models]

    async def list_pending(self, limit: int = 50) -> List[Refund]:
        models = (
            self.session.query(RefundModel)
            .filter(RefundModel.status == RefundStatus.PENDING)
            .order_by(RefundModel.created_at)
            .limit(limit)
            .all()
        )
        return [self._map_to_entity(m) for m in models]

    def _map_to_entity(self, model: RefundModel) -> Refund:
        return Refund(id=model.id, **{name: getattr(model, name) for name in _REFUND_FIELDS})


class OutboxRepositoryImpl(IOutboxRepository):

    def __init__(self, session: Session):
        self.session = session

    async def add(self, message: OutboxMessage) -> OutboxMessage:
        model = OutboxMessageModel(id=message.id, topic=message.topic.value)
        for name in _OUTBOX_FIELDS:
            setattr(model, name, getattr(message, name))
        self.session.add(model)
        with translate_db_errors("writing outbox message"):
            self.session.flush()
        return message

    async def claim_due(self, now: datetime, limit: int, lease_until: datetime) -> List[OutboxMessage]:
        """Rows being claimed by another relay worker are skipped, not waited on"""
        with translate_db_errors("claiming outbox messages"):
            models = (
                self.session.query(OutboxMessageModel)
                .filter(
                    OutboxMessageModel.status == OutboxStatus.PENDING,
                    OutboxMessageModel.next_attempt_at <= now,
                )
                .order_by(OutboxMessageModel.next_attempt_at)
                .limit(limit)
                .with_for_update(skip_locked=True)
                .all()
            )
            messages = [self._map_to_entity(m) for m in models]
            for model in models:
                model.next_attempt_at = lease_until
            self.session.flush()
        return messages

    async def update(self, message: OutboxMessage) -> OutboxMessage:
        model = self.session.get(OutboxMessageModel, message.id)
        if model is None:
            raise NotFound("Outbox message not found")
        model.status = message.status
        model.attempts = message.attempts
        model.last_error = message.last_error
        model.next_attempt_at = message.next_attempt_at
        model.delivered_at = message.delivered_at
        with translate_db_errors("updating outbox message"):
            self.session.flush()
        return message

    def _map_to_entity(self, model: OutboxMessageModel) -> OutboxMessage:
        return OutboxMessage(
            id=model.id,
            topic=OutboxTopic(model.topic),
            **{name: getattr(model, name) for name in _OUTBOX_FIELDS},
        )
