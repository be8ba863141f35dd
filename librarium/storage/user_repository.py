"""
User repository for Librarium.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import select

from librarium.storage.models import UserModel
from librarium.storage.repository import ModelRepository


@dataclass
class StoredUser:
    """Data class for user data transfer. The password hash never leaves via ``to_dict``."""

    id: int
    name: str
    email: str
    role: str
    hashed_password: str = field(default="", repr=False)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: UserModel) -> "StoredUser":
        return cls(
            id=model.id,
            name=model.name,
            email=model.email,
            role=model.role,
            hashed_password=model.hashed_password,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class UserRepository(ModelRepository):
    """Repository for user CRUD operations."""

    model = UserModel
    stored = StoredUser
    ordering = (UserModel.name.asc(), UserModel.id.asc())

    async def get_by_email(self, email: str) -> Optional[StoredUser]:
        stmt = select(UserModel).where(UserModel.email == email)
        model = (await self.session.execute(stmt)).scalar_one_or_none()
        return StoredUser.from_model(model) if model else None

    async def search(self, term: str) -> list[StoredUser]:
        return await self._list(UserModel.name.ilike(f"%{term}%"))
