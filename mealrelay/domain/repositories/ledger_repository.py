"""Ledger repository interface (append-only)"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional
from uuid import UUID

from ..entities.ledger import LedgerEntry
from ..enums import LedgerActorType


class ILedgerRepository(ABC):

    @abstractmethod
    async def append(self, entries: Iterable[LedgerEntry]) -> None:
        pass

    @abstractmethod
    async def list_for_order(self, order_id: UUID) -> List[LedgerEntry]:
        pass

    @abstractmethod
    async def balance(self, actor_type: LedgerActorType, actor_id: Optional[UUID] = None) -> int:
        pass
