"""Ledger entry entity"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from ..enums import LedgerActorType, LedgerEntryKind


@dataclass(frozen=True)
class LedgerEntry:
    """Money owed to (positive) or clawed back from (negative) an actor.

    Entries are written once and never edited; corrections are new entries
    of a ``*_reversal`` kind.
    """
    order_id: UUID
    actor_type: LedgerActorType
    kind: LedgerEntryKind
    amount_cents: int
    actor_id: Optional[UUID] = None
    description: Optional[str] = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)
