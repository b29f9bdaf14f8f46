"""The authenticated caller of an operation"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from ..enums import UserRole
from .order import SYSTEM_ACTOR


@dataclass(frozen=True)
class Actor:
    user_id: Optional[UUID]
    role: Optional[UserRole]

    @classmethod
    def system(cls) -> "Actor":
        """Webhooks and background jobs"""
        return cls(user_id=None, role=None)

    @property
    def is_system(self) -> bool:
        return self.user_id is None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def label(self) -> str:
        """Value written to ``changed_by`` in the status history"""
        return str(self.user_id) if self.user_id else SYSTEM_ACTOR
