"""Unit of Work implementation over one SQLAlchemy session"""

from sqlalchemy.orm import Session

from ...domain.repositories.unit_of_work import IUnitOfWork
from .chef_repository_impl import ChefRepositoryImpl
from .db_errors import translate_db_errors
from .driver_repository_impl import AssignmentRepositoryImpl, DriverRepositoryImpl
from .ledger_repository_impl import LedgerRepositoryImpl
from .order_repository_impl import OrderRepositoryImpl
from .refund_repository_impl import OutboxRepositoryImpl, RefundRepositoryImpl


class UnitOfWorkImpl(IUnitOfWork):

    def __init__(self, session: Session):
        self.session = session
        self.orders = OrderRepositoryImpl(session)
        self.chefs = ChefRepositoryImpl(session)
        self.drivers = DriverRepositoryImpl(session)
        self.assignments = AssignmentRepositoryImpl(session)
        self.ledger = LedgerRepositoryImpl(session)
        self.refunds = RefundRepositoryImpl(session)
        self.outbox = OutboxRepositoryImpl(session)
        self._committed = False

    async def __aenter__(self):
        # The same unit of work may run several transactions in sequence
        self._committed = False
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            await self.rollback()
        elif not self._committed:
            await self.commit()

    async def commit(self) -> None:
        """Commit transaction"""
        try:
            with translate_db_errors("committing"):
                self.session.commit()
            self._committed = True
        except Exception:
            self.rollback_sync()
            raise

    async def rollback(self) -> None:
        """Rollback transaction"""
        self.rollback_sync()

    def rollback_sync(self) -> None:
        """Synchronous rollback helper"""
        self.session.rollback()
