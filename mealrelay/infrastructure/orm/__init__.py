"""Infrastructure ORM Models"""

from .chef_model import ChefModel, MenuItemModel
from .driver_model import DriverModel, DriverAssignmentModel
from .order_model import OrderModel, OrderItemModel, OrderStatusHistoryModel
from .ledger_model import LedgerEntryModel, RefundModel, OutboxMessageModel

__all__ = [
    'ChefModel',
    'MenuItemModel',
    'DriverModel',
    'DriverAssignmentModel',
    'OrderModel',
    'OrderItemModel',
    'OrderStatusHistoryModel',
    'LedgerEntryModel',
    'RefundModel',
    'OutboxMessageModel',
]
