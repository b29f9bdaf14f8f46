"""Driver and assignment repository interfaces"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from ..entities.driver import Driver, DriverAssignment
from ..enums import AssignmentStatus
from ..value_objects.geo import BoundingBox, GeoPoint


class IDriverRepository(ABC):

    @abstractmethod
    async def get_by_id(self, driver_id: UUID) -> Optional[Driver]:
        pass

    @abstractmethod
    async def get_by_user_id(self, user_id: UUID) -> Optional[Driver]:
        pass

    @abstractmethod
    async def get_for_update(self, driver_id: UUID) -> Optional[Driver]:
        pass

    @abstractmethod
    async def find_dispatchable_in(self, center: GeoPoint, box: BoundingBox, max_rows: int) -> List[Driver]:
        """Available, approved drivers with a location inside ``box``, roughly nearest ``center`` first"""
        pass

    @abstractmethod
    async def update(self, driver: Driver) -> Driver:
        pass


class IAssignmentRepository(ABC):

    @abstractmethod
    async def get_by_id(self, assignment_id: UUID) -> Optional[DriverAssignment]:
        pass

    @abstractmethod
    async def get_pending_for_order(self, order_id: UUID) -> Optional[DriverAssignment]:
        pass

    @abstractmethod
    async def list_for_order(self, order_id: UUID) -> List[DriverAssignment]:
        pass

    @abstractmethod
    async def add(self, assignment: DriverAssignment) -> DriverAssignment:
        pass

    @abstractmethod
    async def resolve_pending(
        self,
        assignment_id: UUID,
        driver_id: Optional[UUID],
        status: AssignmentStatus,
        reason: Optional[str] = None,
    ) -> Optional[DriverAssignment]:
        """Conditionally move a pending assignment to ``status``.

        Returns the updated assignment, or None when no pending row matched
        (already resolved, wrong driver, or missing).
        """
        pass

    @abstractmethod
    async def list_stale_pending(self, assigned_before: datetime, limit: int = 100) -> List[DriverAssignment]:
        pass

    @abstractmethod
    async def list_pending_for_unavailable_drivers(self, limit: int = 100) -> List[DriverAssignment]:
        pass
