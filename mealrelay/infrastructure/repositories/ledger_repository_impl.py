"""Ledger repository implementation (insert-only)"""

from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...domain.entities.ledger import LedgerEntry
from ...domain.enums import LedgerActorType
from ...domain.repositories.ledger_repository import ILedgerRepository
from ..orm.ledger_model import LedgerEntryModel
from .db_errors import translate_db_errors


class LedgerRepositoryImpl(ILedgerRepository):

    def __init__(self, session: Session):
        self.session = session

    async def append(self, entries: Iterable[LedgerEntry]) -> None:
        self.session.add_all([
            LedgerEntryModel(
                id=entry.id,
                order_id=entry.order_id,
                actor_type=entry.actor_type,
                actor_id=entry.actor_id,
                kind=entry.kind,
                amount_cents=entry.amount_cents,
                description=entry.description,
                created_at=entry.created_at,
            )
            for entry in entries
        ])
        with translate_db_errors("writing ledger entries"):
            self.session.flush()

    async def list_for_order(self, order_id: UUID) -> List[LedgerEntry]:
        models = (
            self.session.query(LedgerEntryModel)
            .filter(LedgerEntryModel.order_id == order_id)
            .order_by(LedgerEntryModel.created_at)
            .all()
        )
        return [
            LedgerEntry(
                id=m.id,
                order_id=m.order_id,
                actor_type=m.actor_type,
                actor_id=m.actor_id,
                kind=m.kind,
                amount_cents=m.amount_cents,
                description=m.description,
                created_at=m.created_at,
            )
            for m in models
        ]

    async def balance(self, actor_type: LedgerActorType, actor_id: Optional[UUID] = None) -> int:
        query = self.session.query(func.coalesce(func.sum(LedgerEntryModel.amount_cents), 0)).filter(
            LedgerEntryModel.actor_type == actor_type
        )
        if actor_id is not None:
            query = query.filter(LedgerEntryModel.actor_id == actor_id)
        return int(query.scalar())
