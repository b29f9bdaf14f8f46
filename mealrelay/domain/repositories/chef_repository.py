"""Chef repository interface"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional
from uuid import UUID

from ..entities.chef import Chef, MenuItem


class IChefRepository(ABC):

    @abstractmethod
    async def get_by_id(self, chef_id: UUID) -> Optional[Chef]:
        pass

    @abstractmethod
    async def get_by_user_id(self, user_id: UUID) -> Optional[Chef]:
        pass

    @abstractmethod
    async def get_menu_items(self, item_ids: Iterable[UUID]) -> List[MenuItem]:
        pass
