"""Order repository interface"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from ..entities.order import Order, StatusHistoryEntry
from ..enums import OrderStatus


@dataclass(frozen=True)
class OrderFilters:
    status: Optional[OrderStatus] = None
    customer_id: Optional[UUID] = None
    chef_id: Optional[UUID] = None
    driver_id: Optional[UUID] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None


class IOrderRepository(ABC):

    @abstractmethod
    async def get_by_id(self, order_id: UUID) -> Optional[Order]:
        pass

    @abstractmethod
    async def get_for_update(self, order_id: UUID) -> Optional[Order]:
        """Load the order holding an exclusive row lock until commit/rollback"""
        pass

    @abstractmethod
    async def add(self, order: Order) -> Order:
        pass

    @abstractmethod
    async def update(self, order: Order) -> Order:
        pass

    @abstractmethod
    async def list(self, filters: OrderFilters, offset: int = 0, limit: int = 20) -> Tuple[List[Order], int]:
        pass

    @abstractmethod
    async def get_history(self, order_id: UUID) -> List[StatusHistoryEntry]:
        pass
