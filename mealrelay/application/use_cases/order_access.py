"""Who may touch which order"""

from typing import Optional

from ...domain.entities.actor import Actor
from ...domain.entities.chef import Chef
from ...domain.entities.driver import Driver
from ...domain.entities.order import Order
from ...domain.enums import UserRole
from ...domain.exceptions import Forbidden
from ...domain.repositories.unit_of_work import IUnitOfWork


class OrderAccess:
    """Maps an authenticated user to their chef/driver profile and checks it
    against an order. Must be used inside an open unit of work."""

    def __init__(self, uow: IUnitOfWork):
        self.uow = uow

    async def chef_for(self, actor: Actor) -> Optional[Chef]:
        if actor.role != UserRole.CHEF or actor.user_id is None:
            return None
        return await self.uow.chefs.get_by_user_id(actor.user_id)

    async def driver_for(self, actor: Actor) -> Optional[Driver]:
        if actor.role != UserRole.DRIVER or actor.user_id is None:
            return None
        return await self.uow.drivers.get_by_user_id(actor.user_id)

    def is_customer_of(self, order: Order, actor: Actor) -> bool:
        return actor.role == UserRole.CUSTOMER and actor.user_id == order.customer_id

    def require_admin(self, actor: Actor, action: str) -> None:
        if not actor.is_admin:
            raise Forbidden(f"Only administrators can {action}")

    async def require_chef(self, order: Order, actor: Actor) -> Chef:
        chef = await self.chef_for(actor)
        if chef is None or chef.id != order.chef_id:
            raise Forbidden("Only the chef who owns this order can do that")
        return chef

    async def require_driver(self, order: Order, actor: Actor) -> Driver:
        driver = await self.driver_for(actor)
        if driver is None or order.assigned_driver_id is None or driver.id != order.assigned_driver_id:
            raise Forbidden("Only the driver assigned to this order can do that")
        return driver

    async def can_view(self, order: Order, actor: Actor) -> bool:
        if actor.is_admin or actor.is_system or self.is_customer_of(order, actor):
            return True
        if actor.role == UserRole.CHEF:
            chef = await self.chef_for(actor)
            return chef is not None and chef.id == order.chef_id
        if actor.role == UserRole.DRIVER:
            driver = await self.driver_for(actor)
            return driver is not None and driver.id == order.assigned_driver_id
        return False
