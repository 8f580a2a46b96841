"""User management utilities.

This module provides account storage, password hashing and lookup for the
authentication routes.
"""

import logging
from typing import Optional

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import UserModel
from schemas.user import User

logger = logging.getLogger(__name__)

# Bcrypt rounds for password hashing (higher = more secure but slower)
BCRYPT_ROUNDS = 12


class UserAlreadyExistsError(Exception):
    """Exception raised when trying to create a user that already exists."""

    pass


def model_to_user(model: UserModel) -> User:
    return User(
        user_id=model.user_id,
        username=model.username,
        password_hash=model.password_hash,
        role=model.role,
        display_name=model.display_name,
        email=model.email,
        create_at=model.create_at,
    )


class UserManager:
    """Manages user data persistence using SQLAlchemy."""

    def __init__(self, db: AsyncSession, rounds: int = BCRYPT_ROUNDS):
        """Initialize UserManager.

        Args:
            db: SQLAlchemy AsyncSession.
            rounds: bcrypt cost factor.
        """
        self.db = db
        self.rounds = rounds

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        bcrypt only looks at the first 72 bytes, so longer passwords are
        truncated before hashing and before verification.
        """
        password_bytes = password.encode("utf-8")[:72]
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password_bytes, salt).decode("utf-8")

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        password_bytes = plain_password.encode("utf-8")[:72]
        try:
            return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
        except ValueError as e:
            logger.error("Password verification error: %s", e)
            return False

    async def create_user(
        self,
        username: str,
        password: str,
        role: str,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        """Create a new user.

        Raises:
            UserAlreadyExistsError: If username already exists.
        """
        if await self.get_user_by_username(username) is not None:
            raise UserAlreadyExistsError(f"User '{username}' already exists")

        user = User(
            username=username,
            password_hash=self.hash_password(password),
            role=role,
            display_name=display_name,
            email=email,
        )
        # Two registrations can pass the check together; the unique index decides.
        try:
            self.db.add(UserModel(**user.model_dump()))
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise UserAlreadyExistsError(f"User '{username}' already exists") from e

        logger.info("Created user: %s", username)
        return user

    async def get_user_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(
            select(UserModel).filter(UserModel.username == username)
        )
        model = result.scalars().first()
        return model_to_user(model) if model else None

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        model = await self.db.get(UserModel, user_id)
        return model_to_user(model) if model else None

    async def authenticate(self, username: str, password: str) -> Optional[User]:
        user = await self.get_user_by_username(username)
        if user is None or not self.verify_password(password, user.password_hash):
            return None
        return user
