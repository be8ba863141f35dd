"""
User accounts for Librarium.

Creation, lookup and maintenance of library users, plus credential checks
for the login endpoint. Passwords are stored hashed (see ``librarium.security``).
"""

import re
from typing import Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from librarium.exceptions import ConflictError, NotFoundError, ValidationError
from librarium.security import get_password_hash, verify_password
from librarium.storage.loan_repository import LoanRepository
from librarium.storage.models import UserRole
from librarium.storage.user_repository import StoredUser, UserRepository

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6


def validate_email(email: Optional[str]) -> str:
    email = (email or "").strip()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email address")
    return email


def validate_password(password: Optional[str]) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must have at least {MIN_PASSWORD_LENGTH} characters")
    return password


def validate_role(role: Optional[str]) -> str:
    try:
        return UserRole(role or UserRole.REGULAR.value).value
    except ValueError:
        raise ValidationError(f"Invalid role '{role}'")


class UserService:
    """
    User management.

    Usage:
        users = UserService(session_factory)
        user = await users.create_user("Ana", "ana@example.com", "secret1")
        same = await users.authenticate("ana@example.com", "secret1")
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create_user(
        self,
        name: str,
        email: str,
        password: str,
        role: Optional[str] = None,
    ) -> StoredUser:
        """
        Raises:
            ValidationError: missing name, malformed email, short password, unknown role
            ConflictError: email already registered
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required")
        email = validate_email(email)
        validate_password(password)
        role = validate_role(role)

        try:
            async with self.session_factory.begin() as session:
                repo = UserRepository(session)
                if await repo.get_by_email(email) is not None:
                    raise ConflictError("Email already registered")
                user = await repo.create(
                    name=name,
                    email=email,
                    hashed_password=get_password_hash(password),
                    role=role,
                )
        except IntegrityError as exc:
            # Lost a race with a concurrent registration
            raise ConflictError("Email already registered") from exc

        logger.info(f"User {user.id} created with role {user.role}")
        return user

    async def get_user(self, user_id: int) -> StoredUser:
        async with self.session_factory() as session:
            user = await UserRepository(session).get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def get_by_email(self, email: str) -> StoredUser:
        async with self.session_factory() as session:
            user = await UserRepository(session).get_by_email(email)
        if user is None:
            raise NotFoundError("User", email)
        return user

    async def list_users(self) -> list[StoredUser]:
        async with self.session_factory() as session:
            return await UserRepository(session).list_all()

    async def search_users(self, name: str) -> list[StoredUser]:
        async with self.session_factory() as session:
            return await UserRepository(session).search((name or "").strip())

    async def update_user(
        self,
        user_id: int,
        name: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
        role: Optional[str] = None,
    ) -> StoredUser:
        """
        Partial update. A new password is re-hashed.

        Raises:
            ValidationError: invalid field
            NotFoundError: user does not exist
            ConflictError: email taken by another user
        """
        updates = {}
        if name is not None:
            if not name.strip():
                raise ValidationError("Name is required")
            updates["name"] = name.strip()
        if email is not None:
            updates["email"] = validate_email(email)
        if password is not None:
            updates["hashed_password"] = get_password_hash(validate_password(password))
        if role is not None:
            updates["role"] = validate_role(role)

        try:
            async with self.session_factory.begin() as session:
                repo = UserRepository(session)
                if not await repo.exists(user_id):
                    raise NotFoundError("User", user_id)

                if "email" in updates:
                    existing = await repo.get_by_email(updates["email"])
                    if existing is not None and existing.id != user_id:
                        raise ConflictError("Email already registered")

                return await repo.update(user_id, **updates)
        except IntegrityError as exc:
            raise ConflictError("Email already registered") from exc

    async def delete_user(self, user_id: int) -> None:
        """
        Raises:
            NotFoundError: user does not exist
            ConflictError: user still has active loans
        """
        async with self.session_factory.begin() as session:
            repo = UserRepository(session)
            if not await repo.exists(user_id):
                raise NotFoundError("User", user_id)
            if await LoanRepository(session).has_active_for_user(user_id):
                raise ConflictError("User has active loans")
            await repo.delete(user_id)
        logger.info(f"User {user_id} deleted")

    async def authenticate(self, email: str, password: str) -> Optional[StoredUser]:
        """The user when the credentials match, otherwise None."""
        async with self.session_factory() as session:
            user = await UserRepository(session).get_by_email((email or "").strip())
        if user is None or not verify_password(password, user.hashed_password):
            return None
        return user
