"""Chef repository implementation using SQLAlchemy ORM"""

from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ...domain.entities.chef import Chef, MenuItem
from ...domain.repositories.chef_repository import IChefRepository
from ...domain.value_objects.geo import GeoPoint
from ..orm.chef_model import ChefModel, MenuItemModel


class ChefRepositoryImpl(IChefRepository):

    def __init__(self, session: Session):
        self.session = session

    async def get_by_id(self, chef_id: UUID) -> Optional[Chef]:
        model = self.session.query(ChefModel).filter(ChefModel.id == chef_id).first()
        return self._map_to_entity(model) if model else None

    async def get_by_user_id(self, user_id: UUID) -> Optional[Chef]:
        model = self.session.query(ChefModel).filter(ChefModel.user_id == user_id).first()
        return self._map_to_entity(model) if model else None

    async def get_menu_items(self, item_ids: Iterable[UUID]) -> List[MenuItem]:
        ids = list(set(item_ids))
        if not ids:
            return []
        models = self.session.query(MenuItemModel).filter(MenuItemModel.id.in_(ids)).all()
        return [
            MenuItem(
                id=m.id,
                chef_id=m.chef_id,
                name=m.name,
                price_cents=m.price_cents,
                is_available=m.is_available,
            )
            for m in models
        ]

    def _map_to_entity(self, model: ChefModel) -> Chef:
        location = None
        if model.latitude is not None and model.longitude is not None:
            location = GeoPoint(model.latitude, model.longitude)
        return Chef(
            id=model.id,
            user_id=model.user_id,
            business_name=model.business_name,
            is_active=model.is_active,
            verification_status=model.verification_status,
            payment_onboarding_complete=model.payment_onboarding_complete,
            minimum_order_cents=model.minimum_order_cents,
            location=location,
            delivery_radius_km=model.delivery_radius_km,
        )
