"""Unit of Work interface for transaction management"""

from abc import ABC, abstractmethod

from .chef_repository import IChefRepository
from .driver_repository import IAssignmentRepository, IDriverRepository
from .ledger_repository import ILedgerRepository
from .order_repository import IOrderRepository
from .refund_repository import IOutboxRepository, IRefundRepository


class IUnitOfWork(ABC):
    """One database transaction spanning every repository.

    Leaving the ``async with`` block with an exception rolls everything
    back; leaving it cleanly commits.
    """

    orders: IOrderRepository
    chefs: IChefRepository
    drivers: IDriverRepository
    assignments: IAssignmentRepository
    ledger: ILedgerRepository
    refunds: IRefundRepository
    outbox: IOutboxRepository

    @abstractmethod
    async def __aenter__(self):
        """Enter async context"""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context"""
        pass

    @abstractmethod
    async def commit(self):
        """Commit transaction"""
        pass

    @abstractmethod
    async def rollback(self):
        """Rollback transaction"""
        pass
