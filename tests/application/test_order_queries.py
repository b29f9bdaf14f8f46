from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from mealrelay.domain.entities.actor import Actor
from mealrelay.domain.enums import OrderStatus, UserRole
from mealrelay.domain.exceptions import BadRequest, Forbidden, NotFound
from mealrelay.domain.repositories.order_repository import OrderFilters

from factories import chef_actor, driver_actor


class TestVisibility:
    async def test_parties_to_the_order_can_see_it(self, market, coordinator):
        order, driver = await market.assigned_order()

        for actor in (market.customer, market.chef_actor, driver_actor(driver), market.admin, Actor.system()):
            assert (await coordinator.get_order(order.id, actor)).id == order.id

    async def test_outsiders_cannot(self, market, coordinator):
        order, _ = await market.assigned_order()
        other_driver = market.add_driver(km_from_chef=1.0)
        outsiders = [
            Actor(uuid4(), UserRole.CUSTOMER),
            chef_actor(market.add_chef()),
            driver_actor(other_driver),
            Actor(uuid4(), UserRole.CHEF),
        ]

        for actor in outsiders:
            with pytest.raises(Forbidden):
                await coordinator.get_order(order.id, actor)
            with pytest.raises(Forbidden):
                await coordinator.get_order_history(order.id, actor)

    async def test_missing_order(self, market, coordinator):
        with pytest.raises(NotFound):
            await coordinator.get_order(uuid4(), market.admin)

    async def test_items_and_money_are_loaded(self, market, coordinator):
        placed = await market.place_order(quantity=3)

        order = await coordinator.get_order(placed.id, market.customer)

        assert [(i.name, i.quantity, i.unit_price_cents) for i in order.items] == [("Lasagna", 3, 5000)]
        assert order.order_number == placed.order_number
        assert order.total_cents == placed.total_cents
        assert order.delivery_location.latitude == pytest.approx(placed.delivery_location.latitude)


class TestListOrders:
    async def test_customers_only_see_their_own(self, market, coordinator):
        mine = await market.place_order()
        someone_else = Actor(uuid4(), UserRole.CUSTOMER)
        await coordinator.create_order(someone_else, market.order_request())

        orders, total = await coordinator.list_orders(market.customer, OrderFilters())

        assert total == 1
        assert [o.id for o in orders] == [mine.id]

    async def test_customer_filter_cannot_widen_scope(self, market, coordinator):
        someone_else = Actor(uuid4(), UserRole.CUSTOMER)
        await coordinator.create_order(someone_else, market.order_request())

        orders, total = await coordinator.list_orders(market.customer, OrderFilters(customer_id=someone_else.user_id))

        assert (orders, total) == ([], 0)

    async def test_admin_sees_everything_and_filters(self, market, coordinator):
        await market.place_order()
        paid = await market.paid_order()

        _, total = await coordinator.list_orders(market.admin, OrderFilters())
        orders, confirmed = await coordinator.list_orders(market.admin, OrderFilters(status=OrderStatus.PAYMENT_CONFIRMED))

        assert total == 2
        assert confirmed == 1 and orders[0].id == paid.id

    async def test_chef_and_driver_scopes(self, market, coordinator):
        order, driver = await market.assigned_order()
        await market.place_order()
        other_chef = market.add_chef()

        _, chef_total = await coordinator.list_orders(market.chef_actor, OrderFilters())
        driver_orders, driver_total = await coordinator.list_orders(driver_actor(driver), OrderFilters())
        _, other_total = await coordinator.list_orders(chef_actor(other_chef), OrderFilters())
        _, profileless = await coordinator.list_orders(Actor(uuid4(), UserRole.DRIVER), OrderFilters())

        assert chef_total == 2
        assert driver_total == 1 and driver_orders[0].id == order.id
        assert other_total == 0
        assert profileless == 0

    async def test_date_range(self, market, coordinator):
        await market.place_order()
        hour_ago = datetime.utcnow() - timedelta(hours=1)

        _, recent = await coordinator.list_orders(market.admin, OrderFilters(created_from=hour_ago))
        _, old = await coordinator.list_orders(market.admin, OrderFilters(created_to=hour_ago))

        assert (recent, old) == (1, 0)

    async def test_pagination(self, market, coordinator):
        for _ in range(5):
            await market.place_order()

        first, total = await coordinator.list_orders(market.customer, OrderFilters(), page=1, per_page=2)
        last, _ = await coordinator.list_orders(market.customer, OrderFilters(), page=3, per_page=2)

        assert total == 5
        assert len(first) == 2
        assert len(last) == 1
        assert {o.id for o in first}.isdisjoint(o.id for o in last)

    @pytest.mark.parametrize("page,per_page", [(0, 20), (1, 0), (1, 101)])
    async def test_bad_paging(self, market, coordinator, page, per_page):
        with pytest.raises(BadRequest):
            await coordinator.list_orders(market.admin, OrderFilters(), page=page, per_page=per_page)
