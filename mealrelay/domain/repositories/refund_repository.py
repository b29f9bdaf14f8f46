"""Refund and outbox repository interfaces"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from ..entities.outbox import OutboxMessage
from ..entities.refund import Refund


class IRefundRepository(ABC):

    @abstractmethod
    async def get_by_id(self, refund_id: UUID) -> Optional[Refund]:
        pass

    @abstractmethod
    async def get_for_update(self, refund_id: UUID) -> Optional[Refund]:
        pass

    @abstractmethod
    async def add(self, refund: Refund) -> Refund:
        pass

    @abstractmethod
    async def update(self, refund: Refund) -> Refund:
        pass

    @abstractmethod
    async def list_for_order(self, order_id: UUID) -> List[Refund]:
        pass

    @abstractmethod
    async def list_pending(self, limit: int = 50) -> List[Refund]:
        pass


class IOutboxRepository(ABC):

    @abstractmethod
    async def add(self, message: OutboxMessage) -> OutboxMessage:
        pass

    @abstractmethod
    async def claim_due(self, now: datetime, limit: int, lease_until: datetime) -> List[OutboxMessage]:
        """Lease pending messages whose next attempt is due.

        Claimed rows get ``next_attempt_at = lease_until`` so other relay
        workers leave them alone until the lease runs out.
        """
        pass

    @abstractmethod
    async def update(self, message: OutboxMessage) -> OutboxMessage:
        pass
